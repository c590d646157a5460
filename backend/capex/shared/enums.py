from __future__ import annotations

from enum import Enum


class Env(str, Enum):
    dev = "dev"
    prod = "prod"
    test = "test"


class Role(str, Enum):
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    BOARD_APPROVER = "BOARD_APPROVER"
    BOARD_VIEWER = "BOARD_VIEWER"
    CFO = "CFO"
    MANAGING_DIRECTOR = "MANAGING_DIRECTOR"
    CASHFLOW_MANAGER = "CASHFLOW_MANAGER"
    ACCOUNTING = "ACCOUNTING"


class Permission(str, Enum):
    MANAGE_GROUPS = "MANAGE_GROUPS"
    MANAGE_COMPANIES = "MANAGE_COMPANIES"
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_ROLES = "MANAGE_ROLES"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    MANAGE_SYSTEM_SETTINGS = "MANAGE_SYSTEM_SETTINGS"


class RelatedType(str, Enum):
    INVESTMENT = "INVESTMENT"
    CASHFLOW = "CASHFLOW"
