"""RBAC console CLI tool (rbacctl)."""

import typer
from sqlalchemy.engine import make_url

app = typer.Typer(name="rbacctl", help="RBAC admin console CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


def _server_connection():
    """Connect to the MySQL server (not the database) named by DATABASE_URL."""
    import pymysql
    from rbac_console.core.config import settings

    url = make_url(settings.DATABASE_URL)
    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    return conn, url.database


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist, then its tables.

    SQLite URLs skip the server step; the file is created on connect.
    """
    from rbac_console.core.config import settings
    from rbac_console.db.base import Base
    from rbac_console.db.session import engine
    import rbac_console.models  # noqa: F401

    if make_url(settings.DATABASE_URL).get_backend_name() != "sqlite":
        conn, db_name = _server_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
            conn.commit()
            typer.echo(f"✅ Database '{db_name}' created (or already exists)")
        finally:
            conn.close()

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed():
    """Seed roles, menus, permissions, grants and the super-admin."""
    from rbac_console.db.session import SessionLocal
    from rbac_console.db.seeds.seed_rbac import seed_all

    db = SessionLocal()
    try:
        seed_all(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate the database and its tables (DANGER).

    SQLite URLs drop and recreate the tables only.
    """
    from rbac_console.core.config import settings
    from rbac_console.db.base import Base
    from rbac_console.db.session import engine
    import rbac_console.models  # noqa: F401

    confirm = typer.confirm("⚠️  This will DROP the entire database. Continue?")
    if not confirm:
        raise typer.Abort()

    if make_url(settings.DATABASE_URL).get_backend_name() == "sqlite":
        Base.metadata.drop_all(bind=engine)
        typer.echo("✅ Tables dropped")
    else:
        conn, db_name = _server_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"DROP DATABASE IF EXISTS `{db_name}`")
            cursor.execute(f"CREATE DATABASE `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
            conn.commit()
            typer.echo(f"✅ Database '{db_name}' reset")
        finally:
            conn.close()
        engine.dispose()

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@app.command("token")
def issue_token(
    email: str = typer.Argument(..., help="Email of an existing user"),
    minutes: int = typer.Option(None, help="Lifetime in minutes (defaults to JWT_EXPIRY_MINUTES)"),
):
    """Print a development bearer token for a user."""
    from datetime import timedelta
    from rbac_console.core.security import create_access_token
    from rbac_console.db.session import SessionLocal
    from rbac_console.models.user import User

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
    finally:
        db.close()
    if not user:
        typer.echo(f"❌ No user with email '{email}'", err=True)
        raise typer.Exit(code=1)
    expires = timedelta(minutes=minutes) if minutes else None
    typer.echo(create_access_token(user.id, user.email, expires))


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("rbac_console.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
