"""
Ingestion errors

MalformedInput and PersistenceFailure reach the caller.
RateUnavailable and OracleUnavailable are recovered inside the pipeline.
"""


class IngestionError(Exception):
    """Base class for all pipeline errors"""


class MalformedInput(IngestionError):
    """Message is empty, or neither amount nor merchant could be resolved"""


class RateUnavailable(IngestionError):
    """No override and no usable rate from the FX service"""

    def __init__(self, currency: str, reason: str):
        super().__init__(f"No rate for {currency}: {reason}")
        self.currency = currency
        self.reason = reason


class OracleUnavailable(IngestionError):
    """LLM extraction could not be obtained (credentials, network, bad response)"""


class PersistenceFailure(IngestionError):
    """Storing the normalized transaction failed"""
