"""Custom exception hierarchy for tickerbase."""

from typing import Any


class TickerbaseError(Exception):
    """Base exception for all tickerbase errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(TickerbaseError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str: the config field that failed validation
        value: Any: the invalid value
    """


class QuoteSourceError(TickerbaseError):
    """Failed to obtain quote data from the market-data provider.

    Policy: log and record a failed outcome for the symbol. Do not abort
    the batch.

    Context keys:
        symbol: str: the symbol being fetched
        url: str: the URL that was being fetched
    """


class NotFoundError(QuoteSourceError):
    """Provider returned no result set for the symbol.

    Expected for delisted or mistyped tickers. Not fatal.

    Context keys:
        symbol: str
        range: str | None: the range requested, for historical fetches
    """


class UpstreamError(QuoteSourceError):
    """Transport, HTTP or parse failure against the data source.

    Context keys:
        status_code: int | None: HTTP status code if applicable
        error: str | None: underlying exception text
    """


class RateLimitError(UpstreamError):
    """Provider rate limit exceeded (HTTP 429) after retry exhaustion.

    Context keys:
        retry_after: int | None: seconds the provider asked us to wait
    """


class StorageError(TickerbaseError):
    """Database operation failed.

    Policy: raise immediately from reads and registration. Single-record
    price writes catch it and report it through a WriteResult instead.

    Context keys:
        operation: str: "insert", "query", "initialize", etc.
        table: str: the table involved
    """


class SchedulerError(TickerbaseError):
    """Scheduler misconfiguration (e.g. an unparseable cron spec).

    Context keys:
        job_id: str | None
        spec: str | None: the offending cron expression
    """
