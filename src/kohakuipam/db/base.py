"""
Database base configuration and utilities.

This module provides the foundation for KohakuIPAM's database layer using
Peewee ORM with SQLite backend.

Components:
    - db: Global SQLite database instance
    - BaseModel: Base class for all KohakuIPAM database models
    - initialize_database: Database setup function
    - run_in_executor: Async wrapper for blocking DB operations
"""

import asyncio
import os

import peewee

from kohakuipam.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Database Instance
# =============================================================================

# Global database instance - path set via initialize_database()
db = peewee.SqliteDatabase(None)


# =============================================================================
# Base Model
# =============================================================================


class BaseModel(peewee.Model):
    """
    Base model for all KohakuIPAM database models.

    All models inherit from this class to share the database connection.
    """

    class Meta:
        database = db


# =============================================================================
# Database Lifecycle
# =============================================================================


def initialize_database(db_path: str) -> None:
    """
    Connect to the database and create tables.

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        peewee.OperationalError: If database connection fails.
    """
    # Import models here to avoid circular imports
    from kohakuipam.db.endpoint import Endpoint

    logger.debug(f"Initializing database at: {db_path}")

    directory = os.path.dirname(db_path)
    if directory and db_path != ":memory:":
        os.makedirs(directory, exist_ok=True)

    try:
        if not db.is_closed():
            db.close()
        db.init(
            db_path,
            pragmas={
                "journal_mode": "wal",
                "foreign_keys": 1,
                "busy_timeout": 5000,
            },
        )
        db.connect()
        db.create_tables([Endpoint], safe=True)

        logger.info(f"Database initialized: {db_path}")

        # Log initial stats
        total = Endpoint.select().count()
        active = Endpoint.select().where(Endpoint.in_use == True).count()  # noqa: E712
        logger.debug(f"Database contains {total} endpoints, {active} in use")

    except peewee.OperationalError as e:
        logger.error(f"Failed to initialize database '{db_path}': {e}")
        raise


def close_database() -> None:
    """Close the database connection if open."""
    if not db.is_closed():
        db.close()
        logger.debug("Database connection closed")


# =============================================================================
# Async Utilities
# =============================================================================


async def run_in_executor(func, *args, **kwargs):
    """
    Run a blocking database function in a thread pool executor.

    Use this in async contexts to avoid blocking the event loop.

    Args:
        func: The blocking function to execute.
        *args: Positional arguments for the function.
        **kwargs: Keyword arguments for the function.

    Returns:
        The return value of the function.

    Example:
        endpoint = await run_in_executor(service.allocate, 1, 1, 1)
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))
