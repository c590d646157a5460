from __future__ import annotations

from enum import Enum


class CashflowStatus(str, Enum):
    PLANNED = "PLANNED"
    OUTSTANDING = "OUTSTANDING"
    PRE_CONFIRMED = "PRE_CONFIRMED"
    CONFIRMED = "CONFIRMED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"


class CashflowType(str, Enum):
    DOWN_PAYMENT = "DOWN_PAYMENT"
    INSTALLMENT = "INSTALLMENT"
    BALLOON = "BALLOON"
    SINGLE = "SINGLE"


class RateInterval(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class CashflowAction(str, Enum):
    MAKE_OUTSTANDING = "MAKE_OUTSTANDING"
    PRE_CONFIRM = "PRE_CONFIRM"
    CONFIRM = "CONFIRM"
    SEND_BACK = "SEND_BACK"
    POSTPONE = "POSTPONE"
    CANCEL = "CANCEL"
