"""Transaction lifecycle as reported by the gateway's status check.

The harness never drives these transitions. It uses the table to check
that a reported status is one the gateway is known to produce and to
decide whether a refund request makes sense.
"""

from enum import Enum
from typing import Any


class TransactionStatus(str, Enum):
    """Gateway transaction states.

    State diagram:
        INPROGRESS ────────────────────────────────► FAIL
          │
          │ capture
          ▼
        CAPTURED ──────────┬──────────────────────► REFUNDED
          │                │                           ▲
          │ partial refund │ refund (async gateways)   │
          ▼                ▼                           │
        PARTIAL_REFUNDED ► REFUND_PENDING ─────────────┤
          │                │                           │
          │                └─► REFUND_FAILED ──────────┘ (retry via pending)
          └────────────────────────────────────────────┘
    """

    INPROGRESS = "INPROGRESS"
    CAPTURED = "CAPTURED"
    FAIL = "FAIL"
    PARTIAL_REFUNDED = "PARTIAL_REFUNDED"
    REFUND_PENDING = "REFUND_PENDING"
    REFUNDED = "REFUNDED"
    REFUND_FAILED = "REFUND_FAILED"

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        """Check if the gateway may move from this state to target."""
        return target in _TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["TransactionStatus"]:
        """Get list of valid target states."""
        return list(_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return len(_TRANSITIONS.get(self, set())) == 0

    def is_refundable(self) -> bool:
        """Check if a new refund request may be sent in this state.

        REFUNDED is included because the gateway answers a repeat refund
        with its own rejection, which the refund scenario inspects.
        """
        return self in REFUNDABLE_STATUSES

    @classmethod
    def parse(cls, value: Any) -> "TransactionStatus | None":
        """Parse a reported status, returning None for unknown values."""
        if not value:
            return None
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.INPROGRESS: {TransactionStatus.CAPTURED, TransactionStatus.FAIL},
    TransactionStatus.CAPTURED: {
        TransactionStatus.PARTIAL_REFUNDED,
        TransactionStatus.REFUND_PENDING,
        TransactionStatus.REFUNDED,
    },
    TransactionStatus.PARTIAL_REFUNDED: {
        TransactionStatus.REFUND_PENDING,
        TransactionStatus.REFUNDED,
    },
    TransactionStatus.REFUND_PENDING: {
        TransactionStatus.PARTIAL_REFUNDED,
        TransactionStatus.REFUNDED,
        TransactionStatus.REFUND_FAILED,
    },
    TransactionStatus.REFUND_FAILED: {TransactionStatus.REFUND_PENDING},
    TransactionStatus.REFUNDED: set(),  # Terminal state
    TransactionStatus.FAIL: set(),  # Terminal state
}

REFUNDABLE_STATUSES: frozenset[TransactionStatus] = frozenset(
    {
        TransactionStatus.CAPTURED,
        TransactionStatus.PARTIAL_REFUNDED,
        TransactionStatus.REFUNDED,
        TransactionStatus.REFUND_FAILED,
    }
)

# Statuses a status check may report for a transaction created by this suite.
REPORTED_STATUSES: frozenset[TransactionStatus] = frozenset(
    {
        TransactionStatus.CAPTURED,
        TransactionStatus.FAIL,
        TransactionStatus.INPROGRESS,
        TransactionStatus.REFUNDED,
        TransactionStatus.PARTIAL_REFUNDED,
    }
)


def is_refundable(status: str | None) -> bool:
    """Check whether a raw reported status accepts a new refund request."""
    parsed = TransactionStatus.parse(status)
    return parsed is not None and parsed.is_refundable()
