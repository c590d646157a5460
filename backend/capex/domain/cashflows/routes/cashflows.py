from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from capex.core.security.auth import Actor
from capex.core.security.dependencies import get_actor, get_repository
from capex.core.storage.repository import Repository
from capex.domain.cashflows import service
from capex.domain.cashflows.schemas.cashflows import (
    CashflowComment,
    CashflowPostpone,
    CashflowRecord,
    CashflowSendBack,
    CashflowStatistics,
)
from capex.domain.cashflows.services.generator import cashflow_statistics


router = APIRouter(prefix="/cashflows", tags=["Cashflows"])


@router.get("", response_model=list[CashflowRecord])
def list_monthly_cashflows(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900, le=9999),
    company_id: uuid.UUID | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.list_for_month(repo, actor=actor, month=month, year=year, company_id=company_id)


@router.get("/statistics", response_model=CashflowStatistics)
def monthly_statistics(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900, le=9999),
    company_id: uuid.UUID | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    rows = service.list_for_month(repo, actor=actor, month=month, year=year, company_id=company_id)
    return cashflow_statistics(rows)


@router.get("/{cashflow_id}", response_model=CashflowRecord)
def get_cashflow(
    cashflow_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.get_cashflow(repo, actor=actor, cashflow_id=cashflow_id)


@router.post("/{cashflow_id}/outstanding", response_model=CashflowRecord)
def make_outstanding(
    cashflow_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.make_outstanding(repo, actor=actor, cashflow_id=cashflow_id)


@router.post("/{cashflow_id}/pre-confirm", response_model=CashflowRecord)
def pre_confirm(
    cashflow_id: uuid.UUID,
    payload: CashflowComment | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.pre_confirm(repo, actor=actor, cashflow_id=cashflow_id, comment=payload.comment if payload else None)


@router.post("/{cashflow_id}/confirm", response_model=CashflowRecord)
def confirm(
    cashflow_id: uuid.UUID,
    payload: CashflowComment | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.confirm(repo, actor=actor, cashflow_id=cashflow_id, comment=payload.comment if payload else None)


@router.post("/{cashflow_id}/send-back", response_model=CashflowRecord)
def send_back(
    cashflow_id: uuid.UUID,
    payload: CashflowSendBack,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.send_back(repo, actor=actor, cashflow_id=cashflow_id, reason=payload.reason)


@router.post("/{cashflow_id}/postpone", response_model=CashflowRecord)
def postpone(
    cashflow_id: uuid.UUID,
    payload: CashflowPostpone,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.postpone(repo, actor=actor, cashflow_id=cashflow_id, new_date=payload.new_date, reason=payload.reason)


@router.post("/{cashflow_id}/cancel", response_model=CashflowRecord)
def cancel(
    cashflow_id: uuid.UUID,
    payload: CashflowSendBack | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.cancel(repo, actor=actor, cashflow_id=cashflow_id, reason=payload.reason if payload else None)
