# src/reservation_engine/domain/point_ledger.py

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Protocol


class PointKind(str, Enum):
    EARNED = "EARNED"
    USED = "USED"


class EarnedEntry(Protocol):
    amount: int
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class ExpiringPoints:
    amount: int
    nearest_expiry: Optional[datetime]


def _remaining_after_fifo(
    earned_entries: Iterable[EarnedEntry],
    total_used: int,
):
    """
    Yields (entry, remaining) for every EARNED entry, oldest first,
    after the total USED amount has been consumed first-earned-first-spent.

    Expired entries still absorb usage: points spent before they
    expired must not be counted twice.
    """
    to_consume = abs(total_used)
    for entry in earned_entries:
        available = entry.amount
        if to_consume > 0:
            consumed = min(available, to_consume)
            available -= consumed
            to_consume -= consumed
        yield entry, available


def _is_active(entry: EarnedEntry, now: datetime) -> bool:
    return entry.expires_at is None or entry.expires_at > now


def compute_balance(
    earned_entries: Iterable[EarnedEntry],
    total_used: int,
    now: datetime,
) -> int:
    """
    FIFO balance. ``earned_entries`` must be ordered oldest first.
    """
    balance = 0
    for entry, remaining in _remaining_after_fifo(earned_entries, total_used):
        if remaining > 0 and _is_active(entry, now):
            balance += remaining
    return balance


def compute_expiring(
    earned_entries: Iterable[EarnedEntry],
    total_used: int,
    now: datetime,
    window: timedelta,
) -> ExpiringPoints:
    """
    Sums the post-FIFO, still active amounts that expire within ``window``.
    """
    threshold = now + window
    amount = 0
    nearest: Optional[datetime] = None

    for entry, remaining in _remaining_after_fifo(earned_entries, total_used):
        if remaining <= 0 or entry.expires_at is None:
            continue
        if now < entry.expires_at <= threshold:
            amount += remaining
            if nearest is None or entry.expires_at < nearest:
                nearest = entry.expires_at

    return ExpiringPoints(amount=amount, nearest_expiry=nearest)
