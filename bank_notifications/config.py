"""
Runtime configuration

Values come from the environment (a local .env file is loaded first).
Currency list, rate overrides, categories and transfer vocabulary all live
here so new bank formats don't require code changes.
"""
import json
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv


DEFAULT_CATEGORIES_FILE = Path(__file__).parent / "data" / "categories.json"
DEFAULT_FX_API_URL = "https://open.er-api.com/v6/latest/{currency}"
DEFAULT_CURRENCIES = ('EGP', 'USD', 'EUR', 'GBP', 'SAR', 'AED')


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


def parse_rate_overrides(value: Optional[str]) -> Dict[str, Decimal]:
    """
    Parse 'USD=50.5,EUR=55' into {'USD': Decimal('50.5'), 'EUR': Decimal('55')}

    Raises:
        ValueError: on a malformed pair or a non-positive rate
    """
    overrides = {}
    for pair in _split_list(value):
        code, sep, rate = pair.partition('=')
        if not sep or not code.strip():
            raise ValueError(f"Invalid rate override: {pair!r}")
        try:
            parsed = Decimal(rate.strip())
        except InvalidOperation:
            raise ValueError(f"Invalid rate override: {pair!r}") from None
        if not parsed.is_finite() or parsed <= 0:
            raise ValueError(f"Rate override must be positive: {pair!r}")
        overrides[code.strip().upper()] = parsed
    return overrides


def load_categories(categories_file: Path) -> List[str]:
    """Load category names from a categories JSON file"""
    with open(categories_file, encoding='utf-8') as f:
        raw = json.load(f)

    # Accept {"categories": [...]} or a bare list, of names or {"name": ...}
    items = raw['categories'] if isinstance(raw, dict) else raw
    names = []
    for item in items:
        name = item.get('name') if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    if not names:
        raise ValueError(f"No categories found in {categories_file}")
    return names


@dataclass
class Settings:
    """Pipeline settings"""
    base_currency: str = 'EGP'
    supported_currencies: Tuple[str, ...] = DEFAULT_CURRENCIES
    rate_overrides: Dict[str, Decimal] = field(default_factory=dict)
    fx_api_url: str = DEFAULT_FX_API_URL
    fx_timeout_seconds: float = 10.0
    fx_cache_ttl_hours: float = 6.0
    base_utc_offset_hours: float = 2.0
    categories: List[str] = field(default_factory=lambda: load_categories(DEFAULT_CATEGORIES_FILE))
    transfer_keywords: Tuple[str, ...] = ()

    # LLM extraction
    enable_llm: bool = False
    anthropic_api_key: Optional[str] = None
    llm_model: str = 'claude-sonnet-4-20250514'
    llm_categorize_new_merchants: bool = False

    def __post_init__(self):
        self.base_currency = self.base_currency.upper()
        currencies = [c.upper() for c in self.supported_currencies]
        if self.base_currency not in currencies:
            currencies.insert(0, self.base_currency)
        self.supported_currencies = tuple(currencies)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and .env)"""
        load_dotenv()

        categories_file = Path(os.getenv('CATEGORIES_FILE') or DEFAULT_CATEGORIES_FILE)

        return cls(
            base_currency=os.getenv('BASE_CURRENCY', 'EGP'),
            supported_currencies=tuple(
                _split_list(os.getenv('SUPPORTED_CURRENCIES')) or DEFAULT_CURRENCIES
            ),
            rate_overrides=parse_rate_overrides(os.getenv('RATE_OVERRIDES')),
            fx_api_url=os.getenv('FX_API_URL', DEFAULT_FX_API_URL),
            fx_timeout_seconds=float(os.getenv('FX_TIMEOUT_SECONDS', '10')),
            fx_cache_ttl_hours=float(os.getenv('FX_CACHE_TTL_HOURS', '6')),
            base_utc_offset_hours=float(os.getenv('BASE_UTC_OFFSET_HOURS', '2')),
            categories=load_categories(categories_file),
            transfer_keywords=tuple(_split_list(os.getenv('TRANSFER_KEYWORDS'))),
            enable_llm=_env_flag('ENABLE_LLM'),
            anthropic_api_key=os.getenv('ANTHROPIC_API_KEY'),
            llm_model=os.getenv('LLM_MODEL', 'claude-sonnet-4-20250514'),
            llm_categorize_new_merchants=_env_flag('LLM_CATEGORIZE_NEW_MERCHANTS'),
        )
