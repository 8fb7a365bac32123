"""
Database connection utilities
"""
import os
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2.pool import ThreadedConnectionPool
from dotenv import load_dotenv


# Load environment variables
load_dotenv()


def _connect_kwargs(host, port, database, user, password) -> dict:
    return {
        'host': host or os.getenv('DB_HOST', 'localhost'),
        'port': port or int(os.getenv('DB_PORT', '5432')),
        'database': database or os.getenv('DB_NAME', 'finance_db'),
        'user': user or os.getenv('DB_USER', 'finance_user'),
        'password': password or os.getenv('DB_PASSWORD', 'finance_password_local_dev'),
    }


def get_db_connection(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None
):
    """
    Get database connection using environment variables or provided values

    Args:
        host: Database host (default: from DB_HOST env var)
        port: Database port (default: from DB_PORT env var)
        database: Database name (default: from DB_NAME env var)
        user: Database user (default: from DB_USER env var)
        password: Database password (default: from DB_PASSWORD env var)

    Returns:
        psycopg2 connection object
    """
    return psycopg2.connect(**_connect_kwargs(host, port, database, user, password))


def get_connection_pool(
    minconn: int = 1,
    maxconn: Optional[int] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None
) -> ThreadedConnectionPool:
    """
    Thread-safe connection pool with the same settings as get_db_connection

    Args:
        minconn: Connections opened up front
        maxconn: Upper bound (default: from DB_POOL_MAX env var, 10)

    Returns:
        psycopg2 ThreadedConnectionPool
    """
    maxconn = maxconn or int(os.getenv('DB_POOL_MAX', '10'))
    return ThreadedConnectionPool(
        minconn, maxconn, **_connect_kwargs(host, port, database, user, password)
    )


@contextmanager
def pooled_connection(pool):
    """
    Borrow a connection for one unit of work

    Each borrower gets its own connection, so one caller's rollback never
    touches another caller's transaction. Connections that were closed or
    raised a connection-level error are discarded and the pool opens a fresh
    one on the next getconn().
    """
    conn = pool.getconn()
    broken = False
    try:
        yield conn
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        broken = True
        raise
    finally:
        pool.putconn(conn, close=broken or bool(conn.closed))


def check_connection(conn) -> bool:
    """
    Run a trivial query against an open connection

    Returns:
        True if the database answered, False otherwise
    """
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT 1")
        cursor.close()
        return True
    except psycopg2.Error as e:
        print(f"❌ Database connection failed: {e}")
        return False
