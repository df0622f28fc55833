"""User service — user CRUD, paging and search for the admin console."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from rbac_console.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from rbac_console.core.security import hash_password
from rbac_console.models.role import PROTECTED_SYSTEM_ROLES, Role, SystemRole
from rbac_console.models.user import User, UserRole
from rbac_console.schemas.schemas import DeleteUserResult, RoleSummary, UserCreate, UserOut, UserUpdate
from rbac_console.services.common import (
    ErrorCollector, clamp_page, handler_context, page_info, parse_uuid, utcnow,
)
from rbac_console.services.permission_service import permission_service

logger = logging.getLogger("rbac_console")

SORT_COLUMNS = {
    "email": User.email,
    "displayname": User.display_name,
    "firstname": User.first_name,
    "lastname": User.last_name,
    "createdat": User.created_at,
    "lastloginat": User.last_login_at,
}


class UserService:
    """Handles user management."""

    @staticmethod
    def to_dto(db: Session, user: User) -> UserOut:
        dto = UserOut.model_validate(user)
        dto.roles = [RoleSummary.model_validate(r) for r in permission_service.get_user_roles(db, user.id)]
        dto.permissions = sorted(permission_service.get_user_permission_keys(db, user.id))
        return dto

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        page_size: Optional[int] = None,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        sort_by: Optional[str] = None,
        sort_direction: str = "asc",
    ) -> Tuple[List[User], dict]:
        """Filtered, sorted page of users plus paging info."""
        page, page_size = clamp_page(page, page_size)
        query = db.query(User)

        if search:
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(User.email).like(term),
                func.lower(User.display_name).like(term),
                func.lower(User.first_name).like(term),
                func.lower(User.last_name).like(term),
            ))
        if role:
            holders = (
                select(UserRole.user_id)
                .join(Role, Role.id == UserRole.role_id)
                .where(func.lower(Role.name) == role.lower(), UserRole.is_active == True)
            )
            query = query.filter(User.id.in_(holders))
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()

        column = SORT_COLUMNS.get((sort_by or "").replace("_", "").lower(), User.created_at)
        order = column.desc() if sort_direction.lower() == "desc" else column.asc()
        users = (
            query.order_by(order, User.email)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return users, page_info(total, page, page_size)

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        """Fetch a user, active or not.

        Raises:
            ResourceNotFoundError: If no user has the id.
        """
        parsed = parse_uuid(user_id)
        user = db.query(User).filter(User.id == parsed).first() if parsed else None
        if not user:
            raise ResourceNotFoundError.for_entity("User", user_id)
        return user

    @staticmethod
    def _email_taken(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(User.id).filter(func.lower(User.email) == email.lower())
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def create_user(db: Session, body: UserCreate, actor_id: Optional[str] = None) -> User:
        """Create a user and assign the named roles.

        Raises:
            ValidationError: Listing every violated rule.
        """
        with handler_context(db, "create_user", body.email):
            errors = ErrorCollector()
            if UserService._email_taken(db, body.email):
                errors.add("Email is already registered")
            roles = []
            for name in dict.fromkeys(body.roles):
                role = db.query(Role).filter(
                    func.lower(Role.name) == name.strip().lower(), Role.is_active == True,
                ).first()
                if not role:
                    errors.add(f"Role not found: {name}")
                    continue
                roles.append(role)
            errors.raise_if_any()

            user = User(
                email=body.email,
                display_name=body.display_name,
                first_name=body.first_name,
                last_name=body.last_name,
                hashed_password=hash_password(body.password),
                email_confirmed=body.email_confirmed,
                is_active=True,
            )
            db.add(user)
            db.flush()
            now = utcnow()
            for role in roles:
                db.add(UserRole(user_id=user.id, role_id=role.id, is_active=True,
                                assigned_by=actor_id, assigned_at=now))
            db.commit()
            db.refresh(user)
            logger.info("User %s created by %s with roles %s", user.email, actor_id, [r.name for r in roles])
            return user

    @staticmethod
    def update_user(db: Session, user_id: str, body: UserUpdate, actor_id: Optional[str] = None) -> User:
        """Update a user's profile; role assignments are fully replaced when ``role_ids`` is given."""
        with handler_context(db, "update_user", user_id):
            parsed = parse_uuid(user_id)
            if parsed is None:
                raise ValidationError(["Invalid user ID"])
            user = db.query(User).filter(User.id == parsed).first()
            if not user:
                raise ResourceNotFoundError.for_entity("User", user_id)

            errors = ErrorCollector()
            if UserService._email_taken(db, body.email, exclude_id=user.id):
                errors.add("Email is already registered")
            roles = []
            for raw_id in dict.fromkeys(body.role_ids or []):
                role_id = parse_uuid(raw_id)
                if role_id is None:
                    errors.add(f"Invalid role ID: {raw_id}")
                    continue
                role = db.query(Role).filter(Role.id == role_id, Role.is_active == True).first()
                if not role:
                    errors.add(f"Role not found or inactive: {raw_id}")
                    continue
                roles.append(role)
            errors.raise_if_any()

            user.email = body.email
            user.display_name = body.display_name
            user.first_name = body.first_name
            user.last_name = body.last_name
            user.is_active = body.is_active
            if body.email_confirmed is not None:
                user.email_confirmed = body.email_confirmed
            user.updated_at = utcnow()

            if body.role_ids is not None:
                db.query(UserRole).filter(UserRole.user_id == user.id).delete(synchronize_session=False)
                now = utcnow()
                for role in roles:
                    db.add(UserRole(user_id=user.id, role_id=role.id, is_active=True,
                                    assigned_by=actor_id, assigned_at=now))

            db.commit()
            db.refresh(user)
            logger.info("User %s updated by %s", user.email, actor_id)
            return user

    @staticmethod
    def delete_user(db: Session, user_id: str, force: bool = False,
                    actor_id: Optional[str] = None) -> DeleteUserResult:
        """Soft-delete a user and deactivate their role assignments.

        Holders of an active SuperAdmin or Admin role are refused unless
        ``force`` is set. Deleting an already inactive user changes nothing.
        """
        with handler_context(db, "delete_user", user_id):
            parsed = parse_uuid(user_id)
            if parsed is None:
                raise ValidationError(["Invalid user ID"])
            user = db.query(User).filter(User.id == parsed).first()
            if not user:
                raise ResourceNotFoundError.for_entity("User", user_id)

            result = DeleteUserResult(user_id=user.id, email=user.email, was_force_deleted=force)
            if not user.is_active:
                result.warnings.append("User is already inactive")
                return result

            protected = [
                r for r in permission_service.get_user_roles(db, user.id)
                if r.system_role in PROTECTED_SYSTEM_ROLES
            ]
            if protected and not force:
                names = ", ".join(r.name for r in protected)
                raise ResourceConflictError(
                    f"Cannot delete user '{user.email}' because they hold the protected role(s) {names}. "
                    "Use forceDelete=true to override."
                )
            for role in protected:
                result.warnings.append(
                    f"User held protected role '{role.name}' ({SystemRole(role.system_role).name})"
                )

            result.deactivated_role_count = db.query(UserRole).filter(
                UserRole.user_id == user.id, UserRole.is_active == True,
            ).update({"is_active": False, "updated_at": utcnow()}, synchronize_session=False)
            user.is_active = False
            user.updated_at = utcnow()
            db.commit()
            logger.info("User %s deleted by %s (force=%s)", user.email, actor_id, force)
            return result


user_service = UserService()
