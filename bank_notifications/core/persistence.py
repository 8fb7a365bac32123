"""
Transaction storage

Inserts assembled transactions into PostgreSQL.
"""
import psycopg2

from .errors import PersistenceFailure
from .models import NormalizedTransaction
from ..utils.db_connection import pooled_connection
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)


class TransactionRepository:
    """
    Writes NormalizedTransaction rows to the transactions table
    """

    INSERT_SQL = """
        INSERT INTO transactions (
            card_last4, amount, original_amount, original_currency,
            merchant, category, category_source,
            include_in_insights, raw_text, created_at
        )
        VALUES (
            %(card_last4)s, %(amount)s, %(original_amount)s, %(original_currency)s,
            %(merchant)s, %(category)s, %(category_source)s,
            %(include_in_insights)s, %(raw_text)s, %(created_at)s
        )
        RETURNING id
    """

    def __init__(self, pool):
        """
        Args:
            pool: psycopg2 connection pool (one connection per insert)
        """
        self.pool = pool

    def insert(self, txn: NormalizedTransaction) -> str:
        """
        Insert one transaction and commit

        Returns:
            The new row id

        Raises:
            PersistenceFailure: if the insert fails (the transaction is rolled back)
        """
        try:
            with pooled_connection(self.pool) as conn:
                row = self._insert(conn, txn)
        except psycopg2.Error as e:
            LOGGER.error("Failed to insert transaction for %r: %s", txn.merchant, e)
            raise PersistenceFailure(str(e).strip() or type(e).__name__) from e

        if not row:
            raise PersistenceFailure("Insert returned no id")
        return str(row[0])

    def _insert(self, conn, txn: NormalizedTransaction):
        cursor = conn.cursor()
        try:
            cursor.execute(self.INSERT_SQL, txn.to_record())
            row = cursor.fetchone()
            conn.commit()
            return row
        except psycopg2.Error:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            cursor.close()
