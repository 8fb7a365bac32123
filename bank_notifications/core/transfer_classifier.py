"""
Transfer Classifier

Keyword test for peer/account transfers. A false positive only keeps a
purchase out of spending insights, so the vocabulary errs on the wide side.
"""
import re
from typing import Iterable

# English phrases (matched on word boundaries, case-insensitive)
ENGLISH_TRANSFER_PATTERNS = [
    r'transfer(?:red|s)?',
    r'wallet',
    r'cash[\s-]?out',
    r'iban',
    r'swift',
    r'instapay',
    r'insta\s+pay',
    r'ipn',
    r'vodafone\s+cash',
    r'etisalat\s+cash',
    r'orange\s+cash',
    r'remittance',
]

# Arabic phrases (substring match, Arabic has no reliable \b with prefixes like ال/ب)
ARABIC_TRANSFER_KEYWORDS = [
    'تحويل',
    'حوالة',
    'حواله',
    'محفظة',
    'محفظه',
    'انستاباي',
    'إنستاباي',
    'انستا باي',
    'فودافون كاش',
    'ايبان',
    'آيبان',
    'سويفت',
]

_ENGLISH_RE = re.compile(
    r'\b(?:' + '|'.join(ENGLISH_TRANSFER_PATTERNS) + r')\b',
    re.IGNORECASE,
)


def looks_like_transfer(text: str, extra_keywords: Iterable[str] = ()) -> bool:
    """
    Decide whether a message describes a funds transfer rather than a purchase

    Args:
        text: Raw message text
        extra_keywords: Additional configured keywords (plain substrings)

    Returns:
        True if any transfer keyword appears
    """
    if not text:
        return False

    if _ENGLISH_RE.search(text):
        return True

    if any(keyword in text for keyword in ARABIC_TRANSFER_KEYWORDS):
        return True

    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in extra_keywords if keyword)
