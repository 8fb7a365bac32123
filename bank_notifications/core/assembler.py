"""
Transaction Assembler

Merges regex and LLM fields into the final transaction:
1. Transfer override (keyword or LLM flag)
2. Merchant history (sticky categories)
3. LLM category (only if it is a known category)
4. Base-currency conversion (falls back to the original amount)
5. Insights inclusion
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from .currency import to_money
from .errors import MalformedInput, RateUnavailable
from .models import (
    DEFAULT_CATEGORY,
    TRANSFER_CATEGORY,
    TRANSFER_MERCHANT,
    UNKNOWN_MERCHANT,
    AIExtraction,
    ExtractedFields,
    NormalizedTransaction,
)
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)


def include_in_insights(merchant: str, category: str) -> bool:
    """Transfers and ATM withdrawals never count as spending"""
    lowered = merchant.lower()
    return 'transfer' not in lowered and 'atm' not in lowered and category != TRANSFER_CATEGORY


class TransactionAssembler:
    """
    Builds a NormalizedTransaction from extracted fields
    """

    def __init__(self,
                 rate_resolver,
                 categories: Iterable[str],
                 merchant_memory=None,
                 base_currency: str = 'EGP'):
        """
        Args:
            rate_resolver: Object with rate_to_base(currency) -> Decimal
            categories: Valid category names
            merchant_memory: Object with prior_category(merchant) (optional)
            base_currency: Currency used when nothing else is known
        """
        self.rate_resolver = rate_resolver
        self.merchant_memory = merchant_memory
        self.base_currency = base_currency.upper()
        self.categories = {c.lower(): c for c in categories}

    def assemble(self,
                 local: ExtractedFields,
                 ai: Optional[AIExtraction],
                 raw_text: str,
                 received_at: Optional[datetime] = None,
                 known_category: Optional[str] = None,
                 history_checked: bool = False) -> NormalizedTransaction:
        """
        Assemble a transaction

        Args:
            local: Regex extraction
            ai: LLM extraction (None if not requested or failed)
            raw_text: Original message
            received_at: Ingestion time (default: now, UTC)
            known_category: History hit the caller already looked up
            history_checked: The caller already queried history for this
                merchant, so a None known_category is a confirmed miss

        Returns:
            NormalizedTransaction

        Raises:
            MalformedInput: if neither merchant nor amount could be resolved
        """
        ai = ai or AIExtraction()

        merchant = local.merchant or ai.merchant
        if local.amount is not None:
            amount, currency = local.amount, local.currency
        elif ai.amount is not None:
            amount, currency = ai.amount, ai.currency
        else:
            amount, currency = None, None

        if not merchant and amount is None:
            raise MalformedInput("Could not extract amount or merchant from message")

        amount = amount if amount is not None else Decimal('0')
        currency = (currency or self.base_currency).upper()
        merchant = merchant or UNKNOWN_MERCHANT
        card_last4 = local.card_last4 or ai.card_last4

        # Step 1-3: category
        is_transfer = bool(local.is_transfer) or bool(ai.is_transfer)
        if is_transfer:
            merchant = TRANSFER_MERCHANT
            category = TRANSFER_CATEGORY
            category_source = 'transfer'
        else:
            category, category_source = self._resolve_category(
                merchant, known_category or local.category, ai.category, history_checked)

        # Step 4: conversion
        converted = True
        try:
            amount_base = to_money(amount * self.rate_resolver.rate_to_base(currency))
        except RateUnavailable as e:
            LOGGER.warning("Keeping unconverted amount %s %s: %s", amount, currency, e)
            amount_base = to_money(amount)
            converted = False

        # Step 5-6
        occurred_at = local.message_timestamp or received_at or datetime.now(timezone.utc)

        return NormalizedTransaction(
            amount_base=amount_base,
            original_currency=currency,
            original_amount=amount,
            card_last4=card_last4,
            merchant=merchant,
            category=category,
            include_in_insights=include_in_insights(merchant, category),
            occurred_at=occurred_at,
            raw_text=raw_text,
            category_source=category_source,
            converted=converted,
        )

    def _resolve_category(self,
                          merchant: str,
                          known_category: Optional[str],
                          ai_category: Optional[str],
                          history_checked: bool = False):
        """History first, then a valid LLM category, then the default"""
        prior = known_category
        if (prior is None and not history_checked
                and self.merchant_memory is not None and merchant != UNKNOWN_MERCHANT):
            prior = self.merchant_memory.prior_category(merchant)
        if prior:
            return prior, 'history'

        if ai_category:
            canonical = self.categories.get(ai_category.strip().lower())
            if canonical:
                return canonical, 'llm'
            LOGGER.info("LLM suggested unknown category %r for %r", ai_category, merchant)

        return DEFAULT_CATEGORY, 'default'
