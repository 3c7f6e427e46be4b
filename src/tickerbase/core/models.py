"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Type Aliases ---

Symbol = str
AssetId = int
RangeKey = str

# --- Enumerations ---


class AssetType(StrEnum):
    """Instrument classes an Asset can belong to."""

    STOCK = "STOCK"
    ETF = "ETF"
    INDEX = "INDEX"


class OutcomeStatus(StrEnum):
    """Per-symbol result of one ingestion attempt."""

    SUCCESS = "success"
    FAILED = "failed"


class StorageBackend(StrEnum):
    """Supported storage backends."""

    SQLITE = "sqlite"


class PacingStrategy(StrEnum):
    """How consecutive provider calls are throttled."""

    FIXED = "fixed"
    TOKEN_BUCKET = "token_bucket"


# --- Asset Models ---


class Asset(BaseModel):
    """A tradable instrument, identified by its uppercase ticker."""

    model_config = ConfigDict(frozen=True)

    id: AssetId
    symbol: Symbol
    name: str
    type: AssetType = AssetType.STOCK

    @field_validator("symbol")
    @classmethod
    def symbol_uppercase(cls, v: str) -> str:
        return v.strip().upper()


# --- Quote Models ---


class RangeConfig(BaseModel):
    """Provider query parameters selected by a range key."""

    model_config = ConfigDict(frozen=True)

    range: str
    interval: str

    @property
    def is_intraday(self) -> bool:
        """True when samples are finer than one day (e.g. ``15m``)."""
        return self.interval.endswith("m") and not self.interval.endswith("mo")


class QuoteSnapshot(BaseModel):
    """A single current-price observation for one symbol.

    Carries one price point only. It is not a full OHLC bar.
    """

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    regular_market_price: float
    day_high: float | None = None
    day_low: float | None = None
    volume: int | None = None
    previous_close: float | None = None
    market_time: datetime | None = None
    currency: str | None = None

    @field_validator("symbol")
    @classmethod
    def symbol_uppercase(cls, v: str) -> str:
        return v.strip().upper()


class PricePoint(BaseModel):
    """One normalized OHLCV sample from a historical series."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    open: float
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: int | None = None

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v


class PriceRecord(BaseModel):
    """A persisted price row, joined with its asset's symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    date: datetime
    open: float
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: int | None = None


# --- Ingestion Models ---


class WriteResult(BaseModel):
    """Outcome of a single price write.

    Lets callers tell "fetched and persisted" apart from "fetched but not
    persisted". Rows skipped as duplicates of an existing (asset, date)
    pair still count as a successful write.
    """

    model_config = ConfigDict(frozen=True)

    attempted: int = 0
    inserted: int = 0
    error: str | None = None

    @property
    def skipped(self) -> int:
        if self.error is not None:
            return 0
        return self.attempted - self.inserted

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchOutcome(BaseModel):
    """Per-symbol result of one ingestion attempt. Never persisted."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    status: OutcomeStatus
    records: int | None = None
    error: str | None = None

    @model_validator(mode="after")
    def error_matches_status(self) -> BatchOutcome:
        if self.status == OutcomeStatus.FAILED and not self.error:
            raise ValueError("failed outcomes must carry an error message")
        if self.status == OutcomeStatus.SUCCESS and self.error is not None:
            raise ValueError("successful outcomes must not carry an error")
        return self

    @classmethod
    def success(cls, symbol: str, records: int | None = None) -> BatchOutcome:
        return cls(symbol=symbol, status=OutcomeStatus.SUCCESS, records=records)

    @classmethod
    def failure(cls, symbol: str, error: str) -> BatchOutcome:
        return cls(symbol=symbol, status=OutcomeStatus.FAILED, error=error or "unknown error")

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class BulkLoadSummary(BaseModel):
    """Aggregate report of a historical bulk load."""

    outcomes: list[BatchOutcome] = Field(default_factory=list)
    range_key: RangeKey
    duration_seconds: float = 0.0
    asset_count: int | None = None
    price_count: int | None = None

    @property
    def total_symbols(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def total_records(self) -> int:
        return sum(o.records or 0 for o in self.outcomes)

    @property
    def average_records(self) -> float:
        """Mean records per successful symbol (0.0 when none succeeded)."""
        if self.successful == 0:
            return 0.0
        return self.total_records / self.successful

    @property
    def failures(self) -> list[BatchOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


class DailyCloseSummary(BaseModel):
    """Aggregate report of one daily-close run."""

    outcomes: list[BatchOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def processed(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def failed_symbols(self) -> list[str]:
        return [o.symbol for o in self.outcomes if not o.succeeded]


# --- Range Lookup ---

DEFAULT_RANGE_KEY: RangeKey = "1mo"

DATE_RANGE_CONFIGS: dict[RangeKey, RangeConfig] = {
    "1d": RangeConfig(range="1d", interval="15m"),
    "5d": RangeConfig(range="5d", interval="1d"),
    "1mo": RangeConfig(range="1mo", interval="1d"),
    "3mo": RangeConfig(range="3mo", interval="1d"),
    "6mo": RangeConfig(range="6mo", interval="1d"),
    "1y": RangeConfig(range="1y", interval="1d"),
    "2y": RangeConfig(range="2y", interval="1d"),
    "5y": RangeConfig(range="5y", interval="1wk"),
    "10y": RangeConfig(range="10y", interval="1mo"),
    "max": RangeConfig(range="max", interval="1mo"),
}
