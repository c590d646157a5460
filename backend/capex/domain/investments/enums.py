from __future__ import annotations

from enum import Enum


class FinancingType(str, Enum):
    PURCHASE = "PURCHASE"  # single payment
    INSTALLMENT = "INSTALLMENT"
    LEASE = "LEASE"
    RENT = "RENT"


class InvestmentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class InvestmentCategory(str, Enum):
    VEHICLES = "VEHICLES"
    IT = "IT"
    MACHINERY = "MACHINERY"
    REAL_ESTATE = "REAL_ESTATE"
    OTHER = "OTHER"


class InvestmentAction(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ACTIVATE = "ACTIVATE"
    COMPLETE = "COMPLETE"
    RESET_TO_DRAFT = "RESET_TO_DRAFT"


class ApprovalDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
