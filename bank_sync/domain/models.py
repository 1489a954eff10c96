"""Domain models - pure Python dataclasses representing sync engine entities"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class FetchStrategy(str, Enum):
    SKIP = "skip"
    INCREMENTAL = "incremental"
    FULL = "full"


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ERROR = "error"
    UNCONFIRMED = "unconfirmed"


class ErrorKind(str, Enum):
    """Classification of a failed refresh"""

    CREDENTIAL_EXPIRED = "credential_expired"
    RATE_LIMITED = "rate_limited"
    PRODUCT_NOT_READY = "product_not_ready"
    TRANSIENT_NETWORK = "transient_network"
    UNCLASSIFIED = "unclassified"
    CACHE_WRITE_FAILED = "cache_write_failed"


class AppLifecyclePhase(str, Enum):
    """Host application phase, signalled explicitly by the host"""

    LAUNCHING = "launching"
    FOREGROUND = "foreground"
    BACKGROUND = "background"
    LOGGED_OUT = "logged_out"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    SKIPPED = "skipped"  # cache fresh or planner chose Skip
    IGNORED = "ignored"  # another refresh already in flight
    DEFERRED = "deferred"  # app still launching
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    SUPERSEDED = "superseded"  # a newer run owns the cache write
    CLOSED = "closed"


@dataclass
class BankTransaction:
    """Transaction sourced from the aggregator (positive amount = outflow)"""

    transaction_id: str
    account_id: str
    name: str
    amount: float
    date: date
    pending: bool = False
    category: List[str] = field(default_factory=list)

    @property
    def identity_key(self) -> Tuple[str, float, date]:
        return (self.name, self.amount, self.date)

    @property
    def is_income(self) -> bool:
        return self.amount < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "name": self.name,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "pending": self.pending,
            "category": list(self.category),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BankTransaction":
        return cls(
            transaction_id=data["transaction_id"],
            account_id=data["account_id"],
            name=data["name"],
            amount=float(data["amount"]),
            date=date.fromisoformat(data["date"]),
            pending=bool(data.get("pending", False)),
            category=list(data.get("category") or []),
        )


@dataclass
class Account:
    """Bank account as reported by the aggregator"""

    account_id: str
    name: str
    type: str
    subtype: Optional[str] = None
    mask: Optional[str] = None
    current_balance: Optional[float] = None
    institution: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "name": self.name,
            "type": self.type,
            "subtype": self.subtype,
            "mask": self.mask,
            "current_balance": self.current_balance,
            "institution": self.institution,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            account_id=data["account_id"],
            name=data["name"],
            type=data["type"],
            subtype=data.get("subtype"),
            mask=data.get("mask"),
            current_balance=data.get("current_balance"),
            institution=data.get("institution"),
        )


@dataclass
class CacheEntry(Generic[T]):
    """Persisted snapshot with a declared, advisory TTL"""

    payload: T
    stored_at: datetime
    ttl: timedelta

    def age(self, now: datetime) -> timedelta:
        return now - self.stored_at

    def is_fresh(self, now: datetime) -> bool:
        return self.age(now) < self.ttl


@dataclass
class RecurringSuggestion:
    """Heuristically detected repeating payment or income"""

    name: str
    amount: float
    category: str
    frequency: Frequency
    occurrences: int
    last_occurrence: date
    is_income: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "amount": self.amount,
            "category": self.category,
            "frequency": self.frequency.value,
            "occurrences": self.occurrences,
            "last_occurrence": self.last_occurrence.isoformat(),
            "is_income": self.is_income,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurringSuggestion":
        return cls(
            name=data["name"],
            amount=float(data["amount"]),
            category=data["category"],
            frequency=Frequency(data["frequency"]),
            occurrences=int(data["occurrences"]),
            last_occurrence=date.fromisoformat(data["last_occurrence"]),
            is_income=bool(data["is_income"]),
        )


@dataclass(frozen=True)
class ConnectionState:
    """
    Bank-link health.

    `linked` is the connection boolean: whether a durable credential is
    believed to exist. Errors that are not credential related leave it as is.
    """

    status: ConnectionStatus
    linked: bool = False
    reason: Optional[str] = None
    recoverable: bool = False

    @classmethod
    def disconnected(cls) -> "ConnectionState":
        return cls(status=ConnectionStatus.DISCONNECTED)

    @classmethod
    def connected(cls) -> "ConnectionState":
        return cls(status=ConnectionStatus.CONNECTED, linked=True)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED


@dataclass(frozen=True)
class FetchPlan:
    """Output of a single planning decision, never persisted"""

    strategy: FetchStrategy
    window_start: Optional[date] = None
    window_end: Optional[date] = None


@dataclass
class TransactionSnapshot:
    """Payload of the transactions cache entry"""

    transactions: List[BankTransaction]
    last_known_transaction_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "last_known_transaction_date": (
                self.last_known_transaction_date.isoformat() if self.last_known_transaction_date else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionSnapshot":
        last_known = data.get("last_known_transaction_date")
        return cls(
            transactions=[BankTransaction.from_dict(t) for t in data.get("transactions", [])],
            last_known_transaction_date=date.fromisoformat(last_known) if last_known else None,
        )


@dataclass
class SyncOutcome:
    """Result of one refresh call"""

    status: SyncStatus
    strategy: Optional[FetchStrategy] = None
    fetched_count: int = 0
    total_count: int = 0
    suggestion_count: int = 0
    error_kind: Optional[ErrorKind] = None
