"""Declarative base shared by all models."""

import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())
