"""
LLM Extractor

Uses Claude API to read bank notifications the regex patterns could not
fully parse.
Features:
- Fixed nullable JSON schema (merchant, card, currency, amount, category, transfer flag)
- Deterministic prompt (temperature 0)
- JSON parsing with fallback (markdown fences, prose around the object)
- Field-by-field validation: a bad field is dropped, never raised
"""
import json
import math
import os
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Protocol, Sequence

import anthropic

from .errors import OracleUnavailable
from .models import AIExtraction
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)

# Symbols and local names the model tends to echo back
CURRENCY_ALIASES = {
    '€': 'EUR',
    '$': 'USD',
    'US$': 'USD',
    '£': 'GBP',
    'E£': 'EGP',
    'LE': 'EGP',
    'L.E': 'EGP',
    'L.E.': 'EGP',
    'ج.م': 'EGP',
    'جم': 'EGP',
    'جنيه': 'EGP',
    'ر.س': 'SAR',
    'ريال': 'SAR',
    'د.إ': 'AED',
    'درهم': 'AED',
    'دولار': 'USD',
    'يورو': 'EUR',
}

SYSTEM_PROMPT = """You extract structured data from bank SMS and push notifications (English or Arabic).
Respond with ONLY a JSON object (no markdown, no explanations). Use null for anything not stated in the message."""


class ExtractionOracle(Protocol):
    """Anything that can turn message text into an AIExtraction"""

    def extract(self, text: str) -> Optional[AIExtraction]:
        ...


def parse_json_object(response_text: str) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object out of a model completion

    Tries the whole text first, then the span between the first '{' and
    the last '}' (handles markdown fences and surrounding prose).

    Returns:
        The parsed dict, or None
    """
    if not response_text:
        return None

    text = response_text.strip()

    # Remove markdown code blocks if present
    if text.startswith('```'):
        lines = text.split('\n')
        text = '\n'.join(line for line in lines if not line.strip().startswith('```'))

    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        start_idx = text.find('{')
        end_idx = text.rfind('}')
        if start_idx == -1 or end_idx <= start_idx:
            return None
        try:
            result = json.loads(text[start_idx:end_idx + 1])
        except json.JSONDecodeError:
            return None

    return result if isinstance(result, dict) else None


def normalize_currency(value: Any, supported: Sequence[str]) -> Optional[str]:
    """Map a code/symbol/name to a supported ISO code"""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    code = CURRENCY_ALIASES.get(raw) or CURRENCY_ALIASES.get(raw.upper()) or raw.upper()
    return code if code in supported else None


def normalize_amount(value: Any) -> Optional[Decimal]:
    """Coerce a number or numeric string to a finite positive Decimal"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = re.sub(r'[^\d.\-]', '', value.replace(',', ''))
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def normalize_card(value: Any) -> Optional[str]:
    """Keep the last 4 digits of whatever card reference came back"""
    if value is None or isinstance(value, bool):
        return None
    digits = re.sub(r'\D', '', str(value))
    return digits[-4:] if len(digits) >= 4 else None


def normalize_flag(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', 'yes', '1'):
            return True
        if lowered in ('false', 'no', '0'):
            return False
    return None


def normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text or text.lower() in ('null', 'none', 'unknown'):
        return None
    return text


class LLMExtractor:
    """
    Extracts transaction fields from a message using Claude API
    """

    def __init__(self,
                 categories: List[str],
                 currencies: Sequence[str] = ('EGP', 'USD', 'EUR', 'GBP', 'SAR', 'AED'),
                 api_key: Optional[str] = None,
                 model: str = "claude-sonnet-4-20250514",
                 client=None):
        """
        Args:
            categories: Valid category names offered to the model
            currencies: Supported ISO currency codes
            api_key: Anthropic API key (or read from ANTHROPIC_API_KEY env var)
            model: Claude model name
            client: Preconfigured Anthropic client (tests)
        """
        self.categories = list(categories)
        self.currencies = [c.upper() for c in currencies]
        self.model = model
        self.api_key = api_key or os.environ.get('ANTHROPIC_API_KEY')

        if client is not None:
            self.client = client
            self.enabled = True
        elif not self.api_key:
            LOGGER.warning("No ANTHROPIC_API_KEY found. LLM extraction disabled.")
            self.client = None
            self.enabled = False
        else:
            self.client = anthropic.Anthropic(api_key=self.api_key)
            self.enabled = True

    def build_prompt(self, text: str) -> str:
        """User prompt: schema, categories and the message"""
        return f"""Extract the transaction from this bank notification.

CATEGORIES:
{', '.join(self.categories)}

CURRENCIES:
{', '.join(self.currencies)}

MESSAGE:
{text}

Respond with ONLY a JSON object in this exact shape:
{{
  "merchant": "Merchant name or null",
  "card_last4": "1234 or null",
  "currency": "ISO code or null",
  "amount": 150.00,
  "category": "One of the categories or null",
  "is_transfer": false
}}

Rules:
- amount is the charged/transferred amount, never a balance or credit limit
- is_transfer is true for transfers between people or accounts, wallets, InstaPay, IBAN/SWIFT
- Choose category ONLY from the list above"""

    def extract(self, text: str) -> Optional[AIExtraction]:
        """
        Ask the model for the transaction fields

        Args:
            text: Raw message text

        Returns:
            AIExtraction, or None if the LLM is disabled or fails
        """
        if not self.enabled or not text:
            return None

        try:
            response_text = self._complete(text)
            data = parse_json_object(response_text)
            if data is None:
                raise OracleUnavailable(f"Response is not a JSON object: {response_text[:120]!r}")
        except OracleUnavailable as e:
            LOGGER.warning("LLM extraction failed: %s", e)
            return None

        return self.normalize(data)

    def normalize(self, data: Dict[str, Any]) -> AIExtraction:
        """Validate each field independently"""
        return AIExtraction(
            merchant=normalize_text(data.get('merchant')),
            card_last4=normalize_card(data.get('card_last4')),
            currency=normalize_currency(data.get('currency'), self.currencies),
            amount=normalize_amount(data.get('amount')),
            category=normalize_text(data.get('category')),
            is_transfer=normalize_flag(data.get('is_transfer')),
        )

    def _complete(self, text: str) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=300,
                temperature=0.0,  # Deterministic
                system=SYSTEM_PROMPT,
                messages=[{
                    "role": "user",
                    "content": self.build_prompt(text)
                }]
            )
        except anthropic.APIError as e:
            raise OracleUnavailable(f"Claude API error: {e}") from e

        if not message.content:
            raise OracleUnavailable("Empty completion")
        return getattr(message.content[0], 'text', '') or ''
