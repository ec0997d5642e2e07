from __future__ import annotations

from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentType(str, Enum):
    MONTHLY_RENT = "monthly_rent"
    DEPOSIT = "deposit"


# Processor callbacks may arrive out of order. A record only moves forward;
# succeeded is final, and a failed attempt may still be retried to success.
_ALLOWED_MOVES: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.SUCCEEDED}),
    PaymentStatus.SUCCEEDED: frozenset(),
}


def can_apply_payment_status(
    current: PaymentStatus | str, new: PaymentStatus | str
) -> bool:
    """Whether a status event may overwrite the stored status.

    Re-delivery of the current status returns False: it is a no-op, not a move.
    """
    return PaymentStatus(new) in _ALLOWED_MOVES[PaymentStatus(current)]
