from __future__ import annotations

import datetime as dt
import json
import os
import sys
import uuid
from collections.abc import Generator
from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Make `backend/` importable regardless of pytest import mode.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from capex.core.config import settings
from capex.core.db.base import Base
from capex.core.db.session import get_db, import_model_modules
from capex.core.security.auth import Actor, load_role_assignments
from capex.core.storage.repository import Collection, InMemoryRepository, Repository, SqlRepository
from capex.domain.investments.schemas.investments import InvestmentCreate
from capex.main import create_app
from capex.shared.enums import Env, Role

# Ensure model modules are imported so Base.metadata is complete.
import_model_modules()


@dataclass
class Org:
    """One group with two companies and a user per role."""

    repo: Repository
    group_id: uuid.UUID
    company_a: uuid.UUID
    company_b: uuid.UUID
    users: dict[str, uuid.UUID] = field(default_factory=dict)

    def actor(self, name: str) -> Actor:
        user_id = self.users[name]
        return Actor(user_id=user_id, roles=load_role_assignments(self.repo, user_id))

    def header(self, name: str) -> dict[str, str]:
        return {settings.dev_actor_header: json.dumps({"user_id": str(self.users[name])})}


# name -> (role, company key or None for group-scoped)
SEED_USERS: dict[str, tuple[Role, str | None]] = {
    "md_a": (Role.MANAGING_DIRECTOR, "a"),
    "cm_a": (Role.CASHFLOW_MANAGER, "a"),
    "md_b": (Role.MANAGING_DIRECTOR, "b"),
    "cm_b": (Role.CASHFLOW_MANAGER, "b"),
    "cfo": (Role.CFO, None),
    "board": (Role.BOARD_APPROVER, None),
    "viewer": (Role.BOARD_VIEWER, None),
    "accounting": (Role.ACCOUNTING, "a"),
    "admin": (Role.SYSTEM_ADMIN, None),
}


def seed_org(repo: Repository) -> Org:
    group = repo.create(
        Collection.GROUPS,
        {
            "name": "Acme Holding",
            "currency": "EUR",
            "fiscal_year_start": 1,
            "payment_reminder_days": 7,
            "monthly_report_deadline_day": 5,
        },
    )
    company_a = repo.create(
        Collection.COMPANIES, {"group_id": group["id"], "name": "Acme Logistics", "company_code": "ALOG", "is_active": True}
    )
    company_b = repo.create(
        Collection.COMPANIES, {"group_id": group["id"], "name": "Acme Retail", "company_code": "ARET", "is_active": True}
    )
    companies = {"a": company_a["id"], "b": company_b["id"]}

    org = Org(repo=repo, group_id=group["id"], company_a=company_a["id"], company_b=company_b["id"])
    for name, (role, company_key) in SEED_USERS.items():
        user = repo.create(Collection.USERS, {"email": f"{name}@acme.test", "name": name, "is_active": True})
        repo.create(
            Collection.USER_ROLES,
            {
                "user_id": user["id"],
                "group_id": group["id"],
                "company_id": companies[company_key] if company_key else None,
                "role": role,
            },
        )
        org.users[name] = user["id"]
    repo.commit()
    return org


def purchase_payload(company_id: uuid.UUID, *, amount: str = "10000", due: dt.date = dt.date(2026, 3, 1)) -> InvestmentCreate:
    return InvestmentCreate.model_validate(
        {
            "company_id": company_id,
            "name": "Forklift",
            "category": "MACHINERY",
            "total_amount": amount,
            "financing_type": "PURCHASE",
            "payment_structure": {"kind": "single_payment", "date": due.isoformat(), "amount": amount},
        }
    )


def installment_payload(company_id: uuid.UUID) -> InvestmentCreate:
    return InvestmentCreate.model_validate(
        {
            "company_id": company_id,
            "name": "Delivery vans",
            "category": "VEHICLES",
            "total_amount": "10000",
            "financing_type": "INSTALLMENT",
            "payment_structure": {
                "kind": "installment_plan",
                "down_payment": "2000",
                "down_payment_date": "2026-01-01",
                "number_of_rates": 12,
                "rate_amount": "667",
                "rate_interval": "MONTHLY",
                "first_rate_date": "2026-02-01",
            },
        }
    )


def lease_payload(company_id: uuid.UUID, *, financing_type: str = "LEASE", auto_confirm: bool = True) -> InvestmentCreate:
    return InvestmentCreate.model_validate(
        {
            "company_id": company_id,
            "name": "Office printers",
            "category": "IT",
            "total_amount": "12000",
            "financing_type": financing_type,
            "payment_structure": {
                "kind": "lease_schedule",
                "monthly_rate": "500",
                "duration_months": 24,
                "start_month": "2026-01-01",
                "auto_confirm": auto_confirm,
            },
        }
    )


@pytest.fixture()
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture()
def org(repo: InMemoryRepository) -> Org:
    return seed_org(repo)


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(bind=db_engine, autoflush=False, autocommit=False, class_=Session)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def sql_repo(db_session: Session) -> SqlRepository:
    return SqlRepository(db_session)


@pytest.fixture()
def sql_org(sql_repo: SqlRepository) -> Org:
    return seed_org(sql_repo)


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    settings.env = Env.dev
    app = create_app()

    def _override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)
