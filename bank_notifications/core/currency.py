"""
Currency Rate Resolver

Resolves the rate from a foreign currency to the base currency.
Lookup order:
1. Base currency (always 1)
2. Static overrides from configuration
3. Cached quote younger than the TTL
4. Public FX endpoint (single GET, no retry)
"""
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Dict, Optional

import requests

from .errors import RateUnavailable
from .models import RateQuote
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)
DEFAULT_TTL = timedelta(hours=6)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateCache:
    """
    Per-currency quote cache

    Entries are replaced whole by key, and freshness is derived from the
    quote's observed_at, so concurrent readers never see a partial entry.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL):
        self.ttl = ttl
        self._quotes: Dict[str, RateQuote] = {}

    def get(self, currency: str, now: datetime) -> Optional[RateQuote]:
        """Return the cached quote if it is still fresh"""
        quote = self._quotes.get(currency)
        if quote is None:
            return None
        if now - quote.observed_at >= self.ttl:
            return None
        return quote

    def put(self, quote: RateQuote):
        self._quotes[quote.currency] = quote

    def clear(self):
        self._quotes.clear()

    def __len__(self):
        return len(self._quotes)


class CurrencyRateResolver:
    """
    Converts currencies to the base currency
    """

    def __init__(self,
                 base_currency: str = 'EGP',
                 overrides: Optional[Dict[str, Decimal]] = None,
                 api_url: str = "https://open.er-api.com/v6/latest/{currency}",
                 timeout: float = 10.0,
                 cache: Optional[RateCache] = None,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Args:
            base_currency: Currency all amounts are normalized into
            overrides: Operator-controlled static rates (currency -> rate)
            api_url: FX endpoint template with a {currency} placeholder
            timeout: Request timeout in seconds
            cache: Quote cache (a fresh 6-hour cache if not given)
            session: requests session (injectable for tests)
            clock: Returns the current tz-aware time
        """
        self.base_currency = base_currency.upper()
        self.overrides = {k.upper(): Decimal(v) for k, v in (overrides or {}).items()}
        self.api_url = api_url
        self.timeout = timeout
        self.cache = cache if cache is not None else RateCache()
        self.session = session or requests.Session()
        self.clock = clock

    def rate_to_base(self, currency: str) -> Decimal:
        """
        Rate that converts one unit of `currency` into the base currency

        Raises:
            RateUnavailable: when no override exists and the FX service fails
        """
        currency = (currency or '').strip().upper()
        if not currency or currency == self.base_currency:
            return Decimal(1)

        override = self.overrides.get(currency)
        if override is not None and override > 0:
            return override

        now = self.clock()
        cached = self.cache.get(currency, now)
        if cached is not None:
            return cached.rate_to_base

        rate = self._fetch_rate(currency)
        self.cache.put(RateQuote(currency=currency, rate_to_base=rate, observed_at=now))
        LOGGER.info("Fetched rate %s->%s = %s", currency, self.base_currency, rate)
        return rate

    def convert(self, amount: Decimal, currency: str) -> Decimal:
        """Convert an amount to the base currency, rounded to 2 places"""
        return to_money(amount * self.rate_to_base(currency))

    def _fetch_rate(self, currency: str) -> Decimal:
        url = self.api_url.format(currency=currency)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RateUnavailable(currency, f"request failed: {e}") from e

        if response.status_code != 200:
            raise RateUnavailable(currency, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RateUnavailable(currency, "response is not JSON") from e

        rates = payload.get('rates') if isinstance(payload, dict) else None
        raw_rate = rates.get(self.base_currency) if isinstance(rates, dict) else None
        if raw_rate is None:
            raise RateUnavailable(currency, f"no {self.base_currency} rate in response")

        try:
            rate = Decimal(str(raw_rate))
        except InvalidOperation:
            raise RateUnavailable(currency, f"invalid rate {raw_rate!r}") from None
        if not rate.is_finite() or rate <= 0:
            raise RateUnavailable(currency, f"invalid rate {raw_rate!r}")
        return rate


def to_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places (half up)"""
    return Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
