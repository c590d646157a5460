from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
    PAYMENT_DUE_SOON = "PAYMENT_DUE_SOON"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    INVESTMENT_SUBMITTED = "INVESTMENT_SUBMITTED"
    INVESTMENT_APPROVED = "INVESTMENT_APPROVED"
    INVESTMENT_REJECTED = "INVESTMENT_REJECTED"
    CASHFLOW_NEEDS_CONFIRMATION = "CASHFLOW_NEEDS_CONFIRMATION"
    MONTHLY_REPORT_DUE = "MONTHLY_REPORT_DUE"
    CASHFLOW_POSTPONED = "CASHFLOW_POSTPONED"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RuleTrigger(str, Enum):
    DAILY = "DAILY"
    EVENT = "EVENT"
