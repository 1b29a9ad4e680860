# src/reservation_engine/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from reservation_engine.domain.exceptions import InvalidStateTransitionError


class TransactionStatus(str, Enum):
    WAITING_PAYMENT = "WAITING_PAYMENT"
    WAITING_CONFIRMATION = "WAITING_CONFIRMATION"
    DONE = "DONE"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class TransactionStateMachine:
    """
    Central lifecycle controller for transaction transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[TransactionStatus, Set[TransactionStatus]] = {
        TransactionStatus.WAITING_PAYMENT: {
            TransactionStatus.WAITING_CONFIRMATION,
            TransactionStatus.EXPIRED,
            TransactionStatus.CANCELLED,
        },
        TransactionStatus.WAITING_CONFIRMATION: {
            TransactionStatus.DONE,
            TransactionStatus.REJECTED,
            TransactionStatus.CANCELLED,
        },
        TransactionStatus.DONE: set(),
        TransactionStatus.REJECTED: set(),
        TransactionStatus.EXPIRED: set(),
        TransactionStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: TransactionStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(
        cls, status: TransactionStatus
    ) -> Set[TransactionStatus]:
        """
        Returns allowed next states from current state.
        """
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @classmethod
    def sources_of(cls, to_status: TransactionStatus) -> Set[TransactionStatus]:
        """
        Returns every state from which ``to_status`` can be reached.
        Used as the status guard of compare-and-set updates.
        """
        cls._ensure_valid_status(to_status)
        return {
            from_status
            for from_status, targets in cls._ALLOWED_TRANSITIONS.items()
            if to_status in targets
        }

    @staticmethod
    def _ensure_valid_status(status: TransactionStatus) -> None:
        if not isinstance(status, TransactionStatus):
            raise TypeError(
                f"Expected TransactionStatus, got {type(status)}"
            )
