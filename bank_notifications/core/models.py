"""
Transaction data structures

ExtractedFields accumulates what the pattern extractor finds in a message,
AIExtraction is the normalized LLM answer, and NormalizedTransaction is the
record handed to storage.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional


UNKNOWN_MERCHANT = 'Unknown Merchant'
TRANSFER_MERCHANT = 'Transfer'
TRANSFER_CATEGORY = 'Transfers'
DEFAULT_CATEGORY = 'Other'


@dataclass
class ExtractedFields:
    """Best-effort fields pulled from a raw message (all optional)"""
    card_last4: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[Decimal] = None
    merchant: Optional[str] = None
    message_timestamp: Optional[datetime] = None
    is_transfer: Optional[bool] = None
    category: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.amount is not None and bool(self.merchant)


@dataclass
class AIExtraction:
    """Validated LLM extraction (any field may be missing)"""
    merchant: Optional[str] = None
    card_last4: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    is_transfer: Optional[bool] = None


@dataclass(frozen=True)
class RateQuote:
    """Conversion rate observed at a point in time"""
    currency: str
    rate_to_base: Decimal
    observed_at: datetime


@dataclass(frozen=True)
class NormalizedTransaction:
    """Assembled transaction, immutable once built"""
    amount_base: Decimal
    original_currency: str
    original_amount: Decimal
    card_last4: Optional[str]
    merchant: str
    category: str
    include_in_insights: bool
    occurred_at: datetime
    raw_text: str

    # Audit
    category_source: str = 'default'
    converted: bool = True

    def to_record(self) -> Dict:
        """Column mapping for the transactions table"""
        return {
            'card_last4': self.card_last4,
            'amount': self.amount_base,
            'original_amount': self.original_amount,
            'original_currency': self.original_currency,
            'merchant': self.merchant,
            'category': self.category,
            'category_source': self.category_source,
            'include_in_insights': self.include_in_insights,
            'raw_text': self.raw_text,
            'created_at': self.occurred_at,
        }

    def to_dict(self) -> Dict:
        """JSON-friendly view for API and CLI output"""
        return {
            'amount_base': float(self.amount_base),
            'original_currency': self.original_currency,
            'original_amount': float(self.original_amount),
            'card_last4': self.card_last4,
            'merchant': self.merchant,
            'category': self.category,
            'include_in_insights': self.include_in_insights,
            'occurred_at': self.occurred_at.isoformat(),
            'category_source': self.category_source,
            'converted': self.converted,
        }
