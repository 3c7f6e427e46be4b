"""tickerbase.core: Foundation types, config, and exceptions."""

from tickerbase.core.config import (
    APIConfig,
    IngestionConfig,
    LoggingConfig,
    ProviderConfig,
    SchedulerConfig,
    StorageConfig,
    TickerbaseConfig,
    load_config,
)
from tickerbase.core.exceptions import (
    ConfigError,
    NotFoundError,
    QuoteSourceError,
    RateLimitError,
    SchedulerError,
    StorageError,
    TickerbaseError,
    UpstreamError,
)
from tickerbase.core.models import (
    DATE_RANGE_CONFIGS,
    DEFAULT_RANGE_KEY,
    Asset,
    AssetId,
    AssetType,
    BatchOutcome,
    BulkLoadSummary,
    DailyCloseSummary,
    OutcomeStatus,
    PacingStrategy,
    PricePoint,
    PriceRecord,
    QuoteSnapshot,
    RangeConfig,
    RangeKey,
    StorageBackend,
    Symbol,
    WriteResult,
)

__all__ = [
    # Type aliases
    "AssetId",
    "RangeKey",
    "Symbol",
    # Enums
    "AssetType",
    "OutcomeStatus",
    "PacingStrategy",
    "StorageBackend",
    # Models
    "Asset",
    "QuoteSnapshot",
    "PricePoint",
    "PriceRecord",
    "RangeConfig",
    "WriteResult",
    "BatchOutcome",
    "BulkLoadSummary",
    "DailyCloseSummary",
    "DATE_RANGE_CONFIGS",
    "DEFAULT_RANGE_KEY",
    # Config
    "TickerbaseConfig",
    "ProviderConfig",
    "StorageConfig",
    "IngestionConfig",
    "SchedulerConfig",
    "APIConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "TickerbaseError",
    "ConfigError",
    "QuoteSourceError",
    "NotFoundError",
    "UpstreamError",
    "RateLimitError",
    "StorageError",
    "SchedulerError",
]
