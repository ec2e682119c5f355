"""Command-line interface for serving the API, database setup and account management."""

import asyncio
import logging
import sys

import typer
import uvicorn
from typing_extensions import Annotated

from mutual_aid.config.settings import settings
from mutual_aid.core.errors import AppError, ValidationError
from mutual_aid.core.security import hash_password
from mutual_aid.core.user_store import UserStore
from mutual_aid.core.validator import validate_registration
from mutual_aid.models.enums import UserRole
from mutual_aid.utils.db_session import check_connection, create_all_tables, get_db_session_context_manager

app = typer.Typer(help="Mutual Aid Directory Management Commands")
logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """Set up basic logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = settings.API_HOST,
    port: Annotated[int, typer.Option("--port", "-p", help="Bind port")] = settings.API_PORT,
    reload: Annotated[bool, typer.Option("--reload", help="Restart on code changes")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    uvicorn.run("mutual_aid.api.main:app", host=host, port=port, reload=reload)


@app.command("check")
def check(
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """Test the database connection."""
    setup_logging(loglevel)
    try:
        asyncio.run(check_connection())
    except Exception as e:
        logger.error(f"Connection failed! Check database credentials and connectivity: {e}")
        sys.exit(1)
    logger.info("✓ Connected to database successfully")


@app.command("init-db")
def init_db(
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """Create the users and submissions tables if they do not exist."""
    setup_logging(loglevel)
    asyncio.run(create_all_tables())
    logger.info("✓ Database tables created")


async def _create_user(username: str, email: str, password: str, role: UserRole) -> int:
    data = validate_registration({"username": username, "email": email, "password": password})
    password_hash = await asyncio.to_thread(hash_password, data.password)
    async with get_db_session_context_manager() as session:
        return await UserStore(session).create(
            username=data.username,
            email=str(data.email),
            password_hash=password_hash,
            role=role,
        )


@app.command("create-user")
def create_user(
    username: Annotated[str, typer.Argument(help="Login name")],
    email: Annotated[str, typer.Argument(help="Contact email")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True, confirmation_prompt=True)],
    role: Annotated[UserRole, typer.Option("--role", "-r", help="Account role")] = UserRole.COORDINATOR,
    loglevel: Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")] = "INFO",
) -> None:
    """Create an account, typically the first coordinator or admin."""
    setup_logging(loglevel)
    try:
        user_id = asyncio.run(_create_user(username, email, password, role))
    except ValidationError as e:
        logger.error(f"Invalid account details: {e.summary()}")
        sys.exit(1)
    except AppError as e:
        logger.error(f"Failed to create user: {e.message}")
        sys.exit(1)
    logger.info(f"✓ Created {role.value} '{username}' with id {user_id}")


if __name__ == "__main__":
    app()
