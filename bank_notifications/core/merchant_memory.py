"""
Merchant Category Memory

Looks up the category most recently given to a merchant, so manual
corrections stick and known merchants never need the LLM.
"""
from typing import Dict, Optional

import psycopg2

from ..utils.db_connection import pooled_connection
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)


class MerchantCategoryMemory:
    """
    Category history backed by the transactions table
    """

    QUERY = """
        SELECT category
        FROM transactions
        WHERE merchant = %s
          AND category IS NOT NULL
          AND category <> ''
        ORDER BY created_at DESC
        LIMIT 1
    """

    def __init__(self, pool):
        """
        Args:
            pool: psycopg2 connection pool (one connection per lookup)
        """
        self.pool = pool

    def prior_category(self, merchant: str) -> Optional[str]:
        """
        Most recent category for an exact merchant match

        Returns:
            Category name, or None if unseen (or the lookup failed)
        """
        if not merchant:
            return None

        try:
            with pooled_connection(self.pool) as conn:
                row = self._fetch(conn, merchant)
        except psycopg2.Error as e:
            LOGGER.error("Merchant history lookup failed for %r: %s", merchant, e)
            return None

        if not row or not row[0]:
            return None
        return row[0]

    def _fetch(self, conn, merchant: str):
        cursor = conn.cursor()
        try:
            cursor.execute(self.QUERY, (merchant,))
            row = cursor.fetchone()
            # End the read transaction before the connection goes back
            conn.commit()
            return row
        except psycopg2.Error:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            cursor.close()


class InMemoryMerchantMemory:
    """
    Dict-backed history for dry runs
    """

    def __init__(self, categories: Optional[Dict[str, str]] = None):
        self._categories = dict(categories or {})

    def prior_category(self, merchant: str) -> Optional[str]:
        if not merchant:
            return None
        return self._categories.get(merchant)

    def remember(self, merchant: str, category: str):
        self._categories[merchant] = category
