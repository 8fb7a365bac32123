"""
Pattern Extractor

Pulls amount/currency, merchant, card suffix and timestamp out of bank
notification text (English and Arabic).

Every field has its own ordered list of matchers `text -> Optional[value]`;
the first matcher that returns something wins. Matchers never raise on a
non-match, so a new bank format only needs one more entry in a list.
"""
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .models import ExtractedFields
from .transfer_classifier import looks_like_transfer
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)

T = TypeVar('T')
Matcher = Callable[[str], Optional[T]]

# Building blocks
NUMBER = r'(\d[\d,]*(?:\.\d+)?)'
DATE = r'\d{1,2}[/-]\d{1,2}[/-]\d{2,4}'
TIME = r'\d{1,2}:\d{2}'

# Arabic names for the base currency (Egyptian pound)
ARABIC_CURRENCY = r'(?:جنيه(?:اً|ا)?|ج\.م\.?|جم)'

# Words that mark a card-suffix clause inside a captured Arabic merchant
ARABIC_CARD_WORDS = ('المنتهية', 'بطاق')

# Arabic-Indic digits and separators
_DIGITS = str.maketrans('٠١٢٣٤٥٦٧٨٩٫٬', '0123456789.,')

TRAILING_PUNCTUATION = ' \t\r\n.,;:-'


def first_match(matchers: Iterable[Matcher], text: str) -> Optional[T]:
    """Run matchers in order and return the first non-None result"""
    for matcher in matchers:
        result = matcher(text)
        if result is not None:
            return result
    return None


def normalize_digits(text: str) -> str:
    """Convert Arabic-Indic digits and separators to ASCII"""
    return text.translate(_DIGITS)


def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """'5,000.00' -> Decimal('5000.00'); None for zero/invalid"""
    if not raw:
        return None
    try:
        amount = Decimal(raw.replace(',', ''))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def clean_merchant(raw: Optional[str]) -> Optional[str]:
    """Collapse whitespace and strip trailing punctuation"""
    if not raw:
        return None
    merchant = re.sub(r'\s+', ' ', raw).strip(TRAILING_PUNCTUATION)
    return merchant or None


def repair_arabic_merchant(captured: str) -> str:
    """
    Keep only the text after the last 'من' when a generic capture swallowed
    the 'from card ... ending in NNNN' clause.
    """
    if any(word in captured for word in ARABIC_CARD_WORDS):
        parts = re.split(r'(?:^|\s)من\s+', captured)
        if len(parts) > 1:
            return parts[-1]
    return captured


def parse_timestamp(day: str, month: str, year: str, hour: str, minute: str,
                    meridiem: Optional[str], tz: timezone) -> Optional[datetime]:
    """
    Build a tz-aware timestamp from matched components

    Returns:
        datetime in `tz`, or None if any component is out of range
    """
    d, mo, y, h, mi = int(day), int(month), int(year), int(hour), int(minute)

    if not (1 <= mo <= 12 and 1 <= d <= 31 and 0 <= h <= 23 and 0 <= mi <= 59):
        return None

    if y < 100:
        y += 2000

    if meridiem:
        marker = meridiem.lower()
        if marker in ('pm', 'م') and h < 12:
            h += 12
        elif marker in ('am', 'ص') and h == 12:
            h = 0

    try:
        return datetime(y, mo, d, h, mi, tzinfo=tz)
    except ValueError:
        # e.g. 30/02
        return None


class PatternExtractor:
    """
    Regex extraction for bank notification messages
    """

    def __init__(self,
                 currencies: Sequence[str] = ('EGP', 'USD', 'EUR', 'GBP', 'SAR', 'AED'),
                 base_currency: str = 'EGP',
                 utc_offset_hours: float = 2.0,
                 transfer_keywords: Iterable[str] = ()):
        """
        Args:
            currencies: Supported currency codes (matched as message tokens)
            base_currency: Currency implied by Arabic currency names
            utc_offset_hours: The bank's local offset for message timestamps
            transfer_keywords: Extra transfer vocabulary from configuration
        """
        self.base_currency = base_currency.upper()
        self.currencies = [c.upper() for c in currencies]
        if self.base_currency not in self.currencies:
            self.currencies.append(self.base_currency)
        self.tz = timezone(timedelta(hours=utc_offset_hours))
        self.transfer_keywords = tuple(transfer_keywords)

        cur = '(' + '|'.join(re.escape(c) for c in sorted(self.currencies, key=len, reverse=True)) + r')(?![A-Za-z])'

        # Amount + currency
        self._charged_re = re.compile(
            rf'\bcharged\s+(?:for\s+)?{cur}\s*{NUMBER}', re.IGNORECASE)
        self._debited_re = re.compile(
            rf'\bof\s+{cur}\s*{NUMBER}.*?\b(?:debited|credited)\b', re.IGNORECASE | re.DOTALL)
        self._arabic_code_re = re.compile(
            rf'مبلغ\s*(?:{cur}\s*{NUMBER}|{NUMBER}\s*{cur})', re.IGNORECASE)
        self._arabic_name_re = re.compile(
            rf'مبلغ\s*(?:{ARABIC_CURRENCY}\s*{NUMBER}|{NUMBER}\s*{ARABIC_CURRENCY})')

        # Merchant
        self._at_on_date_re = re.compile(
            rf'\bat\s+(?!{TIME})(.+?)\s+on\s+{DATE}', re.IGNORECASE)
        self._at_re = re.compile(
            rf'\bat\s+(?!{TIME})(.+?)(?=\s+(?:at\s+|on\s+)?{TIME}|\.(?:\s|$)|[\r\n]|$)',
            re.IGNORECASE)
        self._arabic_at_re = re.compile(rf'عند\s+(.+?)\s+في\s+{DATE}')
        self._arabic_card_from_re = re.compile(
            rf'المنتهية\s+ب\s*ـ*\s*[*xX]*\d{{4}}\s+من\s+(.+?)\s+في\s+{DATE}')
        self._arabic_from_re = re.compile(rf'من\s+(.+?)\s+في\s+{DATE}')

        # Card suffix
        self._hash_card_re = re.compile(r'#(\d{4})(?!\d)')
        self._masked_card_re = re.compile(r'\*{2,}\s*(\d{4})(?!\d)')
        self._arabic_ending_re = re.compile(r'المنتهية\s+ب\s*ـ*\s*[*xX]*\s*(\d{4})(?!\d)')
        self._english_ending_re = re.compile(
            r'\bending\s+(?:in|with)\s+[*xX]*(\d{4})(?!\d)', re.IGNORECASE)

        # Message timestamp
        self._timestamp_re = re.compile(
            r'(?:\bon|في)\s+(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})(?!\d)'
            r'[\s,]+(?:at\s+|الساعة\s+)?(\d{1,2}):(\d{2})(?:\s*(am|pm|ص|م)(?!\w))?',
            re.IGNORECASE)

        self.amount_matchers: List[Matcher] = [
            self.match_charged_amount,
            self.match_debited_amount,
            self.match_arabic_amount_code,
            self.match_arabic_amount_name,
        ]
        self.merchant_matchers: List[Matcher] = [
            self.match_merchant_at_on_date,
            self.match_merchant_at,
            self.match_arabic_merchant_at,
            self.match_arabic_merchant_after_card,
            self.match_arabic_merchant_from,
        ]
        self.card_matchers: List[Matcher] = [
            self.match_card_hash,
            self.match_card_masked,
            self.match_card_arabic_ending,
            self.match_card_english_ending,
        ]
        self.timestamp_matchers: List[Matcher] = [
            self.match_timestamp,
        ]

    def extract(self, text: str) -> ExtractedFields:
        """
        Extract every field independently

        Args:
            text: Raw notification text

        Returns:
            ExtractedFields with whatever could be matched
        """
        fields = ExtractedFields()
        if not text:
            return fields

        normalized = normalize_digits(text)

        amount_currency = first_match(self.amount_matchers, normalized)
        if amount_currency is not None:
            fields.amount, fields.currency = amount_currency
        else:
            LOGGER.debug("No amount pattern matched: %r", text[:80])

        fields.merchant = first_match(self.merchant_matchers, normalized)
        if fields.merchant is None:
            LOGGER.debug("No merchant pattern matched: %r", text[:80])

        fields.card_last4 = first_match(self.card_matchers, normalized)
        fields.message_timestamp = first_match(self.timestamp_matchers, normalized)
        fields.is_transfer = looks_like_transfer(text, self.transfer_keywords)
        return fields

    # Amount + currency

    def _amount_from(self, match) -> Optional[Tuple[Decimal, str]]:
        if not match:
            return None
        amount = parse_amount(match.group(2))
        if amount is None:
            return None
        return amount, match.group(1).upper()

    def match_charged_amount(self, text: str) -> Optional[Tuple[Decimal, str]]:
        """'charged [for] EGP 150.00'"""
        return self._amount_from(self._charged_re.search(text))

    def match_debited_amount(self, text: str) -> Optional[Tuple[Decimal, str]]:
        """'of EGP 5000.00 has been debited'"""
        return self._amount_from(self._debited_re.search(text))

    def match_arabic_amount_code(self, text: str) -> Optional[Tuple[Decimal, str]]:
        """'بمبلغ EGP 150.00' / 'بمبلغ 150.00 EGP'"""
        match = self._arabic_code_re.search(text)
        if not match:
            return None
        code_first, amount_first, amount_last, code_last = match.groups()
        amount = parse_amount(amount_first or amount_last)
        if amount is None:
            return None
        return amount, (code_first or code_last).upper()

    def match_arabic_amount_name(self, text: str) -> Optional[Tuple[Decimal, str]]:
        """'بمبلغ 150.00 جنيه' (base currency)"""
        match = self._arabic_name_re.search(text)
        if not match:
            return None
        amount = parse_amount(match.group(1) or match.group(2))
        if amount is None:
            return None
        return amount, self.base_currency

    # Merchant

    def match_merchant_at_on_date(self, text: str) -> Optional[str]:
        """'at STARBUCKS on 21/12/25'"""
        match = self._at_on_date_re.search(text)
        return clean_merchant(match.group(1)) if match else None

    def match_merchant_at(self, text: str) -> Optional[str]:
        """'at STARBUCKS' up to a time, a full stop or the end"""
        match = self._at_re.search(text)
        return clean_merchant(match.group(1)) if match else None

    def match_arabic_merchant_at(self, text: str) -> Optional[str]:
        """'عند MERCHANT في 21/12/25'"""
        match = self._arabic_at_re.search(text)
        return clean_merchant(match.group(1)) if match else None

    def match_arabic_merchant_after_card(self, text: str) -> Optional[str]:
        """'المنتهية بـ 1234 من MERCHANT في 21/12/25'"""
        match = self._arabic_card_from_re.search(text)
        return clean_merchant(match.group(1)) if match else None

    def match_arabic_merchant_from(self, text: str) -> Optional[str]:
        """'من MERCHANT في 21/12/25', trimming an over-captured card clause"""
        match = self._arabic_from_re.search(text)
        if not match:
            return None
        return clean_merchant(repair_arabic_merchant(match.group(1)))

    # Card suffix

    def match_card_hash(self, text: str) -> Optional[str]:
        match = self._hash_card_re.search(text)
        return match.group(1) if match else None

    def match_card_masked(self, text: str) -> Optional[str]:
        match = self._masked_card_re.search(text)
        return match.group(1) if match else None

    def match_card_arabic_ending(self, text: str) -> Optional[str]:
        match = self._arabic_ending_re.search(text)
        return match.group(1) if match else None

    def match_card_english_ending(self, text: str) -> Optional[str]:
        match = self._english_ending_re.search(text)
        return match.group(1) if match else None

    # Timestamp

    def match_timestamp(self, text: str) -> Optional[datetime]:
        """'on 21/12/25 14:05' / 'في 21/12/2025 02:05 PM'"""
        match = self._timestamp_re.search(text)
        if not match:
            return None
        timestamp = parse_timestamp(*match.groups(), tz=self.tz)
        if timestamp is None:
            LOGGER.info("Ignoring out-of-range message timestamp: %r", match.group(0))
        return timestamp
