from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from capex.core.security.auth import Actor
from capex.core.security.dependencies import get_actor, get_repository
from capex.core.storage.repository import Repository
from capex.domain.cashflows import service as cashflow_service
from capex.domain.cashflows.schemas.cashflows import CashflowRecord, CashflowStatistics, GenerationResult
from capex.domain.cashflows.services.generator import cashflow_statistics, preview_cashflows
from capex.domain.investments import service
from capex.domain.investments.enums import InvestmentStatus
from capex.domain.investments.schemas.investments import (
    CashflowPreviewRequest,
    InvestmentApprovalOut,
    InvestmentCreate,
    InvestmentDecision,
    InvestmentRecord,
    InvestmentUpdate,
    InvestmentWithSchedule,
)


router = APIRouter(prefix="/investments", tags=["Investments"])


@router.post("", response_model=InvestmentWithSchedule, status_code=status.HTTP_201_CREATED)
def create_investment(
    payload: InvestmentCreate,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    investment, result = service.create_investment(repo, actor=actor, payload=payload)
    return InvestmentWithSchedule(investment=investment, generation=result)


@router.get("", response_model=list[InvestmentRecord])
def list_investments(
    status: InvestmentStatus | None = None,
    company_id: uuid.UUID | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.list_visible_investments(repo, actor, status=status, company_id=company_id)


@router.post("/preview", response_model=GenerationResult)
def preview_schedule(payload: CashflowPreviewRequest, actor: Actor = Depends(get_actor)):
    """Expand a payment structure without persisting anything."""
    return preview_cashflows(payload.financing_type, payload.payment_structure, payload.total_amount)


@router.get("/{investment_id}", response_model=InvestmentRecord)
def get_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.get_investment(repo, actor=actor, investment_id=investment_id)


@router.patch("/{investment_id}", response_model=InvestmentWithSchedule)
def update_investment(
    investment_id: uuid.UUID,
    payload: InvestmentUpdate,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    investment, result = service.update_investment(repo, actor=actor, investment_id=investment_id, payload=payload)
    return InvestmentWithSchedule(investment=investment, generation=result)


@router.delete("/{investment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
) -> None:
    service.delete_investment(repo, actor=actor, investment_id=investment_id)


@router.post("/{investment_id}/submit", response_model=InvestmentRecord)
def submit_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.submit(repo, actor=actor, investment_id=investment_id)


@router.post("/{investment_id}/approve", response_model=InvestmentRecord)
def approve_investment(
    investment_id: uuid.UUID,
    payload: InvestmentDecision | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    comment = payload.comment if payload else None
    return service.approve(repo, actor=actor, investment_id=investment_id, comment=comment)


@router.post("/{investment_id}/reject", response_model=InvestmentRecord)
def reject_investment(
    investment_id: uuid.UUID,
    payload: InvestmentDecision,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.reject(repo, actor=actor, investment_id=investment_id, comment=payload.comment)


@router.post("/{investment_id}/activate", response_model=InvestmentRecord)
def activate_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.activate(repo, actor=actor, investment_id=investment_id)


@router.post("/{investment_id}/complete", response_model=InvestmentRecord)
def complete_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.complete(repo, actor=actor, investment_id=investment_id)


@router.post("/{investment_id}/reset", response_model=InvestmentRecord)
def reset_investment(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.reset_to_draft(repo, actor=actor, investment_id=investment_id)


@router.get("/{investment_id}/cashflows", response_model=list[CashflowRecord])
def list_investment_cashflows(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return cashflow_service.list_for_investment(repo, actor=actor, investment_id=investment_id)


@router.get("/{investment_id}/cashflows/statistics", response_model=CashflowStatistics)
def investment_cashflow_statistics(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return cashflow_statistics(cashflow_service.list_for_investment(repo, actor=actor, investment_id=investment_id))


@router.get("/{investment_id}/approvals", response_model=list[InvestmentApprovalOut])
def list_investment_approvals(
    investment_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    service.get_investment(repo, actor=actor, investment_id=investment_id)
    return service.list_approvals(repo, investment_id)
