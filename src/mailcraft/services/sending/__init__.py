"""Send pipeline."""

from .pipeline import (
    DeliveryError,
    IndexingError,
    InvalidFromError,
    MissingConfigError,
    NoAccountError,
    SendError,
    SendPipeline,
    SendReceipt,
    StorageError,
    describe_failure,
    outcome_for,
)

__all__ = [
    "DeliveryError",
    "IndexingError",
    "InvalidFromError",
    "MissingConfigError",
    "NoAccountError",
    "SendError",
    "SendPipeline",
    "SendReceipt",
    "StorageError",
    "describe_failure",
    "outcome_for",
]
