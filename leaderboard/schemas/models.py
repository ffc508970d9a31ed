"""
Data models for the leaderboard service.

Defines the ranked entry, the normalized query shape used for
both store reads and cache keys, and the freshness event pushed
to live subscribers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union


DEFAULT_LIMIT = 10
MAX_LIMIT = 30
FRESHNESS_MARKER = "leaderboard_updated"


class SortField(str, Enum):
    """Columns the leaderboard can be ordered by."""
    PNL = "pnl"
    ROI = "roi"
    VOLUME = "volume"


class SortOrder(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


DEFAULT_SORT_FIELD = SortField.ROI
DEFAULT_SORT_ORDER = SortOrder.DESC


def to_decimal(value: Any) -> Decimal:
    """Coerce numeric payloads to Decimal without going through float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid decimal value: {value!r}") from e


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse ISO-8601 timestamps, treating naive values as UTC."""
    if isinstance(value, datetime):
        candidate = value
    else:
        candidate = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if candidate.tzinfo is None:
        candidate = candidate.replace(tzinfo=timezone.utc)
    return candidate


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of the leaderboard."""
    rank: int
    trader_wallet: str
    account_value: Decimal
    pnl: Decimal
    roi: Decimal
    volume: Decimal
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation (decimals as strings)."""
        return {
            "rank": self.rank,
            "traderWallet": self.trader_wallet,
            "accountValue": str(self.account_value),
            "pnl": str(self.pnl),
            "roi": str(self.roi),
            "volume": str(self.volume),
            "lastUpdated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaderboardEntry":
        """Create from the wire representation."""
        return cls(
            rank=int(data["rank"]),
            trader_wallet=data["traderWallet"],
            account_value=to_decimal(data["accountValue"]),
            pnl=to_decimal(data["pnl"]),
            roi=to_decimal(data["roi"]),
            volume=to_decimal(data["volume"]),
            last_updated=parse_timestamp(data["lastUpdated"]),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LeaderboardEntry":
        """Create from a ranked store row."""
        return cls(
            rank=int(row["rank"]),
            trader_wallet=row["trader_wallet"],
            account_value=to_decimal(row["account_value"]),
            pnl=to_decimal(row["pnl"]),
            roi=to_decimal(row["roi"]),
            volume=to_decimal(row["volume"]),
            last_updated=parse_timestamp(row["last_updated"]),
        )


@dataclass(frozen=True)
class QueryShape:
    """Normalized leaderboard query. Build instances with normalize_query()."""
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort_by: SortField = DEFAULT_SORT_FIELD
    sort_order: SortOrder = DEFAULT_SORT_ORDER

    @property
    def page(self) -> int:
        """1-based page number the offset falls on."""
        return self.offset // self.limit + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "limit": self.limit,
            "offset": self.offset,
            "page": self.page,
            "sortBy": self.sort_by.value,
            "sortOrder": self.sort_order.value,
        }


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_enum(enum_cls, value: Any, default):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def normalize_query(
    limit: Any = None,
    page: Any = None,
    offset: Any = None,
    sort_by: Any = None,
    sort_order: Any = None,
    *,
    max_limit: int = MAX_LIMIT,
    default_limit: int = DEFAULT_LIMIT,
) -> QueryShape:
    """
    Normalize raw query parameters into a QueryShape.

    Never raises: unparseable values fall back to defaults, limit is
    clamped to [1, max_limit], page is 1-based and an explicit offset
    takes precedence over page. Unknown sort fields or directions fall
    back to (roi, desc).
    """
    parsed_limit = _parse_int(limit)
    if parsed_limit is None:
        parsed_limit = default_limit
    parsed_limit = max(1, min(parsed_limit, max_limit))

    parsed_offset = _parse_int(offset)
    if parsed_offset is None:
        parsed_page = _parse_int(page)
        if parsed_page is None or parsed_page < 1:
            parsed_page = 1
        parsed_offset = (parsed_page - 1) * parsed_limit
    parsed_offset = max(0, parsed_offset)

    return QueryShape(
        limit=parsed_limit,
        offset=parsed_offset,
        sort_by=_parse_enum(SortField, sort_by, DEFAULT_SORT_FIELD),
        sort_order=_parse_enum(SortOrder, sort_order, DEFAULT_SORT_ORDER),
    )


@dataclass(frozen=True)
class FreshnessEvent:
    """Notification that the ranked store was just recomputed."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    kind: str = FRESHNESS_MARKER

    def to_message(self) -> str:
        """Wire form pushed to subscribers: the bare marker string."""
        return self.kind

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"kind": self.kind, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class PerformanceSample:
    """One externally sourced performance reading for a trader."""
    wallet_address: str
    account_value: Decimal
    pnl: Decimal
    roi: Decimal
    volume: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceSample":
        """Create from a feed record."""
        wallet = data.get("wallet_address") or data.get("walletAddress")
        if not wallet:
            raise ValueError("Performance sample is missing a wallet address")
        return cls(
            wallet_address=str(wallet).strip(),
            account_value=to_decimal(data.get("account_value", data.get("accountValue"))),
            pnl=to_decimal(data["pnl"]),
            roi=to_decimal(data["roi"]),
            volume=to_decimal(data["volume"]),
        )
