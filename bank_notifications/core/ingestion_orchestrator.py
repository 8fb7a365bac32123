"""
Ingestion Orchestrator

The per-message flow:
1. Validate input
2. Regex extraction
3. LLM extraction (only when regex left gaps and it is not a transfer)
4. Assembly (history, conversion, insights flag)
5. Storage
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .assembler import TransactionAssembler
from .currency import CurrencyRateResolver, RateCache
from .errors import MalformedInput
from .llm_extractor import LLMExtractor
from .merchant_memory import InMemoryMerchantMemory, MerchantCategoryMemory
from .models import ExtractedFields, NormalizedTransaction
from .pattern_extractor import PatternExtractor
from .persistence import TransactionRepository
from ..config import Settings
from ..utils.logger import get_logger


LOGGER = get_logger(__name__)


@dataclass
class IngestionResult:
    """Assembled transaction plus its stored id (None on dry runs)"""
    transaction: NormalizedTransaction
    transaction_id: Optional[str] = None


class IngestionOrchestrator:
    """
    Runs one bank notification through the pipeline
    """

    def __init__(self,
                 extractor: PatternExtractor,
                 assembler: TransactionAssembler,
                 oracle=None,
                 repository=None,
                 categorize_new_merchants: bool = False):
        """
        Args:
            extractor: Regex extractor
            assembler: Transaction assembler (owns history + rates)
            oracle: Object with extract(text) -> Optional[AIExtraction] (optional)
            repository: Object with insert(txn) -> id (optional, dry run if None)
            categorize_new_merchants: Also ask the LLM for complete messages
                whose merchant has no category history
        """
        self.extractor = extractor
        self.assembler = assembler
        self.oracle = oracle
        self.repository = repository
        self.categorize_new_merchants = categorize_new_merchants

        # Stats (shared by API worker threads)
        self._stats_lock = threading.Lock()
        self.stats = {
            'total': 0,
            'rejected': 0,
            'llm_calls': 0,
            'history_hits': 0,
            'transfers': 0,
            'unconverted': 0,
            'persisted': 0,
        }

    def process_message(self,
                        message,
                        received_at: Optional[datetime] = None,
                        persist: bool = True) -> IngestionResult:
        """
        Process a single message

        Args:
            message: Raw notification text
            received_at: Ingestion time (used when the message has no timestamp)
            persist: Store the result (ignored when no repository is configured)

        Returns:
            IngestionResult

        Raises:
            MalformedInput: empty message, or nothing usable extracted
            PersistenceFailure: the repository insert failed
        """
        self._count('total')

        if not isinstance(message, str) or not message.strip():
            self._count('rejected')
            raise MalformedInput("Message is required")

        # Step 1: regex
        local = self.extractor.extract(message)

        # Step 2: LLM, only when it can add something
        call_oracle, history_checked, known_category = self._plan_oracle(local)
        ai = None
        if call_oracle:
            self._count('llm_calls')
            ai = self.oracle.extract(message)
            if ai is None:
                LOGGER.info("No LLM signal, continuing with regex fields only")

        # Step 3: assemble
        try:
            txn = self.assembler.assemble(
                local, ai, message,
                received_at=received_at,
                known_category=known_category,
                history_checked=history_checked,
            )
        except MalformedInput:
            self._count('rejected')
            LOGGER.warning("Rejected message (no amount or merchant): %r", message[:120])
            raise

        if txn.category_source == 'history':
            self._count('history_hits')
        if txn.category_source == 'transfer':
            self._count('transfers')
        if not txn.converted:
            self._count('unconverted')

        # Step 4: store
        transaction_id = None
        if persist and self.repository is not None:
            transaction_id = self.repository.insert(txn)
            self._count('persisted')

        LOGGER.info(
            "Ingested %s %s at %r -> %s (%s)",
            txn.original_amount, txn.original_currency, txn.merchant, txn.category, txn.category_source,
        )
        return IngestionResult(transaction=txn, transaction_id=transaction_id)

    def _plan_oracle(self, local: ExtractedFields) -> Tuple[bool, bool, Optional[str]]:
        """
        Decide whether to ask the LLM

        Returns:
            (call_oracle, history_checked, known_category); the history
            result is handed to the assembler so it is looked up once
        """
        if self.oracle is None or local.is_transfer:
            return False, False, None

        if not local.is_complete:
            return True, False, None

        if self.categorize_new_merchants and self.assembler.merchant_memory is not None:
            known_category = self.assembler.merchant_memory.prior_category(local.merchant)
            return known_category is None, True, known_category

        return False, False, None

    def _count(self, key: str):
        with self._stats_lock:
            self.stats[key] += 1

    def print_stats(self):
        """Print ingestion statistics"""
        if self.stats['total'] == 0:
            print("No messages processed yet")
            return

        total = self.stats['total']

        print("\n" + "=" * 80)
        print("📊 INGESTION STATISTICS")
        print("=" * 80)
        print(f"Messages: {total}")
        print(f"  • Rejected: {self.stats['rejected']} ({self.stats['rejected']/total*100:.1f}%)")
        print(f"  • LLM calls: {self.stats['llm_calls']}")
        print(f"  • History hits: {self.stats['history_hits']}")
        print(f"  • Transfers: {self.stats['transfers']}")
        print(f"  • Unconverted (no rate): {self.stats['unconverted']}")
        print(f"  • Stored: {self.stats['persisted']}")
        print("=" * 80)


def build_orchestrator(settings: Settings, pool=None) -> IngestionOrchestrator:
    """
    Wire the pipeline from settings

    Args:
        settings: Loaded Settings
        pool: psycopg2 connection pool; without one history is in-memory
            and nothing is stored

    Returns:
        IngestionOrchestrator
    """
    extractor = PatternExtractor(
        currencies=settings.supported_currencies,
        base_currency=settings.base_currency,
        utc_offset_hours=settings.base_utc_offset_hours,
        transfer_keywords=settings.transfer_keywords,
    )

    resolver = CurrencyRateResolver(
        base_currency=settings.base_currency,
        overrides=settings.rate_overrides,
        api_url=settings.fx_api_url,
        timeout=settings.fx_timeout_seconds,
        cache=RateCache(ttl=timedelta(hours=settings.fx_cache_ttl_hours)),
    )

    if pool is not None:
        memory = MerchantCategoryMemory(pool)
        repository = TransactionRepository(pool)
    else:
        memory = InMemoryMerchantMemory()
        repository = None

    assembler = TransactionAssembler(
        rate_resolver=resolver,
        categories=settings.categories,
        merchant_memory=memory,
        base_currency=settings.base_currency,
    )

    oracle = None
    if settings.enable_llm:
        oracle = LLMExtractor(
            categories=settings.categories,
            currencies=settings.supported_currencies,
            api_key=settings.anthropic_api_key,
            model=settings.llm_model,
        )
        if not oracle.enabled:
            LOGGER.warning("LLM extraction requested but API key not found")
            oracle = None

    return IngestionOrchestrator(
        extractor=extractor,
        assembler=assembler,
        oracle=oracle,
        repository=repository,
        categorize_new_merchants=settings.llm_categorize_new_merchants,
    )
