from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bank_notifications.core.assembler import TransactionAssembler, include_in_insights
from bank_notifications.core.errors import MalformedInput, RateUnavailable
from bank_notifications.core.merchant_memory import InMemoryMerchantMemory
from bank_notifications.core.models import AIExtraction, ExtractedFields
from bank_notifications.core.pattern_extractor import PatternExtractor

from conftest import CATEGORIES, StubResolver


def test_canonical_message_end_to_end(
    extractor: PatternExtractor, assembler: TransactionAssembler, received_at: datetime
) -> None:
    text = "credit card #5233 charged EGP 150.00 at Starbucks"

    txn = assembler.assemble(extractor.extract(text), None, text, received_at=received_at)

    assert txn.card_last4 == "5233"
    assert txn.original_currency == "EGP"
    assert txn.original_amount == Decimal("150.00")
    assert txn.amount_base == Decimal("150.00")
    assert txn.merchant == "Starbucks"
    assert txn.category == "Other"
    assert txn.category_source == "default"
    assert txn.include_in_insights is True
    assert txn.occurred_at == received_at
    assert txn.raw_text == text


def test_transfer_forces_merchant_and_category(
    extractor: PatternExtractor, assembler: TransactionAssembler, memory: InMemoryMerchantMemory
) -> None:
    text = "Transfer reference 123 of EGP 5000.00 has been debited"
    memory.remember("Transfer", "Food")

    txn = assembler.assemble(extractor.extract(text), AIExtraction(category="Shopping"), text)

    assert txn.merchant == "Transfer"
    assert txn.category == "Transfers"
    assert txn.category_source == "transfer"
    assert txn.include_in_insights is False
    assert txn.amount_base == Decimal("5000.00")


def test_llm_transfer_flag_also_forces_transfer(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("100"), currency="EGP", merchant="Ahmed Ali")

    txn = assembler.assemble(local, AIExtraction(is_transfer=True), "sent 100")

    assert txn.merchant == "Transfer"
    assert txn.category == "Transfers"


def test_history_beats_llm_category(assembler: TransactionAssembler, memory: InMemoryMerchantMemory) -> None:
    memory.remember("Starbucks", "Coffee")
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Starbucks")

    txn = assembler.assemble(local, AIExtraction(category="Food"), "x")

    assert txn.category == "Coffee"
    assert txn.category_source == "history"


def test_known_category_from_caller_skips_lookup(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Starbucks", category="Coffee")

    assert assembler.assemble(local, None, "x").category == "Coffee"


def test_llm_category_is_canonicalized(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Uber")

    txn = assembler.assemble(local, AIExtraction(category=" transport "), "x")

    assert txn.category == "Transport"
    assert txn.category_source == "llm"


def test_unknown_llm_category_falls_back_to_default(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Uber")

    txn = assembler.assemble(local, AIExtraction(category="Rideshare"), "x")

    assert txn.category == "Other"
    assert txn.category_source == "default"


def test_foreign_currency_is_converted(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("20"), currency="USD", merchant="Amazon")

    txn = assembler.assemble(local, None, "x")

    assert txn.amount_base == Decimal("1000.00")
    assert txn.original_amount == Decimal("20")
    assert txn.original_currency == "USD"
    assert txn.converted is True


def test_rate_failure_keeps_original_amount() -> None:
    assembler = TransactionAssembler(
        rate_resolver=StubResolver(error=RateUnavailable("EUR", "HTTP 503")),
        categories=CATEGORIES,
    )
    local = ExtractedFields(amount=Decimal("12.345"), currency="EUR", merchant="Zara")

    txn = assembler.assemble(local, None, "x")

    assert txn.amount_base == Decimal("12.35")
    assert txn.original_currency == "EUR"
    assert txn.converted is False


def test_ai_amount_brings_its_currency(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(merchant="Amazon", currency="EGP")

    txn = assembler.assemble(local, AIExtraction(amount=Decimal("2"), currency="USD"), "x")

    assert txn.original_currency == "USD"
    assert txn.amount_base == Decimal("100.00")


def test_local_fields_win_over_ai(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("10"), currency="EGP", merchant="Gourmet", card_last4="1111")
    ai = AIExtraction(amount=Decimal("99"), currency="USD", merchant="Other Shop", card_last4="2222")

    txn = assembler.assemble(local, ai, "x")

    assert (txn.merchant, txn.card_last4, txn.amount_base) == ("Gourmet", "1111", Decimal("10.00"))


def test_missing_everything_is_rejected(assembler: TransactionAssembler) -> None:
    with pytest.raises(MalformedInput):
        assembler.assemble(ExtractedFields(card_last4="5233"), AIExtraction(category="Food"), "OTP 1234")


def test_amount_only_gets_unknown_merchant(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("45"), currency="EGP")

    txn = assembler.assemble(local, None, "x")

    assert txn.merchant == "Unknown Merchant"
    assert txn.category == "Other"


def test_merchant_only_defaults_amount_to_zero(assembler: TransactionAssembler) -> None:
    txn = assembler.assemble(ExtractedFields(merchant="Spinneys"), None, "x")

    assert txn.amount_base == Decimal("0.00")
    assert txn.original_currency == "EGP"


def test_message_timestamp_wins_over_received_at(assembler: TransactionAssembler, received_at: datetime) -> None:
    stamp = datetime(2025, 5, 31, 23, 50, tzinfo=timezone(timedelta(hours=2)))
    local = ExtractedFields(amount=Decimal("5"), merchant="Cafe", message_timestamp=stamp)

    assert assembler.assemble(local, None, "x", received_at=received_at).occurred_at == stamp


def test_occurred_at_defaults_to_now(assembler: TransactionAssembler) -> None:
    before = datetime.now(timezone.utc)

    txn = assembler.assemble(ExtractedFields(amount=Decimal("5"), merchant="Cafe"), None, "x")

    assert txn.occurred_at >= before
    assert txn.occurred_at.tzinfo is not None


@pytest.mark.parametrize(
    ("merchant", "category", "expected"),
    [
        ("Starbucks", "Coffee", True),
        ("Bank Transfer Fee", "Bills", False),
        ("CIB ATM Zamalek", "Other", False),
        ("Ahmed", "Transfers", False),
    ],
)
def test_include_in_insights(merchant: str, category: str, expected: bool) -> None:
    assert include_in_insights(merchant, category) is expected


def test_caller_supplied_history_hit(assembler: TransactionAssembler) -> None:
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Starbucks")

    txn = assembler.assemble(local, AIExtraction(category="Food"), "x", known_category="Coffee", history_checked=True)

    assert txn.category == "Coffee"
    assert txn.category_source == "history"


def test_checked_history_miss_is_not_queried_again(
    assembler: TransactionAssembler, memory: InMemoryMerchantMemory
) -> None:
    memory.remember("Starbucks", "Coffee")
    local = ExtractedFields(amount=Decimal("80"), currency="EGP", merchant="Starbucks")

    txn = assembler.assemble(local, AIExtraction(category="Food"), "x", history_checked=True)

    assert txn.category == "Food"
    assert txn.category_source == "llm"
