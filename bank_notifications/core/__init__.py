"""
Bank Notification Ingestion

Turns bank SMS/push notifications (English or Arabic) into normalized
transactions: regex extraction, optional LLM fallback, sticky merchant
categories and base-currency conversion.
"""

__version__ = "1.0.0"

# Expose main classes for easy imports
from .assembler import TransactionAssembler
from .currency import CurrencyRateResolver, RateCache
from .errors import (
    IngestionError,
    MalformedInput,
    OracleUnavailable,
    PersistenceFailure,
    RateUnavailable,
)
from .ingestion_orchestrator import IngestionOrchestrator, IngestionResult, build_orchestrator
from .llm_extractor import LLMExtractor
from .merchant_memory import InMemoryMerchantMemory, MerchantCategoryMemory
from .models import AIExtraction, ExtractedFields, NormalizedTransaction, RateQuote
from .pattern_extractor import PatternExtractor
from .transfer_classifier import looks_like_transfer

__all__ = [
    'TransactionAssembler',
    'CurrencyRateResolver',
    'RateCache',
    'IngestionError',
    'MalformedInput',
    'OracleUnavailable',
    'PersistenceFailure',
    'RateUnavailable',
    'IngestionOrchestrator',
    'IngestionResult',
    'build_orchestrator',
    'LLMExtractor',
    'InMemoryMerchantMemory',
    'MerchantCategoryMemory',
    'AIExtraction',
    'ExtractedFields',
    'NormalizedTransaction',
    'RateQuote',
    'PatternExtractor',
    'looks_like_transfer',
]
