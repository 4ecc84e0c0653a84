# SPDX-License-Identifier: GPL-3.0-only
"""Database connection."""

from peewee import DatabaseError, MySQLDatabase, SqliteDatabase

from base_logger import get_logger
from cims_otp.utils import ensure_database_exists, get_configs

logger = get_logger(__name__)

DATABASE_CONFIGS = {
    "mode": get_configs("MODE", default_value="production"),
    "host": get_configs("MYSQL_HOST", default_value="127.0.0.1"),
    "password": get_configs("MYSQL_PASSWORD"),
    "user": get_configs("MYSQL_USER"),
    "database": get_configs("MYSQL_DATABASE", default_value="cims_otp"),
}
SQLITE_DATABASE_PATH = get_configs("SQLITE_DATABASE_PATH", default_value="cims_otp.db")


def connect():
    """
    Connect to the database for the configured mode.

    Returns:
        peewee.Database: SQLite in testing mode, MySQL otherwise.
    """
    if DATABASE_CONFIGS["mode"] == "testing":
        return connect_to_sqlite(SQLITE_DATABASE_PATH)
    return connect_to_mysql()


@ensure_database_exists(
    DATABASE_CONFIGS["host"],
    DATABASE_CONFIGS["user"],
    DATABASE_CONFIGS["password"],
    DATABASE_CONFIGS["database"],
)
def connect_to_mysql():
    """Connect to the MySQL database."""
    try:
        db = MySQLDatabase(
            DATABASE_CONFIGS["database"],
            user=DATABASE_CONFIGS["user"],
            password=DATABASE_CONFIGS["password"],
            host=DATABASE_CONFIGS["host"],
        )
        logger.info("Connected to MySQL database successfully.")
        return db
    except DatabaseError as error:
        logger.error("Failed to connect to MySQL database: %s", error)
        raise


def connect_to_sqlite(db_path):
    """
    Connect to a SQLite database.

    Args:
        db_path (str): Path to the SQLite database file.
    """
    try:
        db = SqliteDatabase(db_path)
        logger.debug("Using SQLite database at %s", db_path)
        return db
    except DatabaseError as error:
        logger.error("Failed to connect to SQLite database: %s", error)
        raise
