"""
Notification text for ingested transactions
"""
from .models import DEFAULT_CATEGORY, UNKNOWN_MERCHANT, NormalizedTransaction


def format_notification_body(txn: NormalizedTransaction, base_currency: str = 'EGP') -> str:
    """
    One-line summary, e.g. 'card 5233 spent 150.00 EGP to Starbucks under Other'
    """
    card = (txn.card_last4 or '').strip() or '0000'
    merchant = (txn.merchant or '').strip() or UNKNOWN_MERCHANT
    category = (txn.category or '').strip() or DEFAULT_CATEGORY
    return f"card {card} spent {txn.amount_base:,.2f} {base_currency} to {merchant} under {category}"
