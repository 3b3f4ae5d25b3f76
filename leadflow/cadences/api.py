from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leadflow.api.deps import domain_error_response, get_current_actor
from leadflow.cadences.schemas import (
    ApplyCadenceRequest,
    ApplyCadenceResult,
    CadenceCreate,
    CadenceRead,
    CadenceStatus,
    CadenceStepCreate,
    CadenceStepRead,
    CadenceStepReorder,
    CadenceStepUpdate,
    CadenceSummaryRead,
    CadenceUpdate,
    LeadCadenceProgressRead,
    LeadCadenceRead,
)
from leadflow.cadences.service import cadence_service, lead_cadence_service
from leadflow.core.database import get_db
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import DomainError


cadences_router = APIRouter(prefix="/api/crm/cadences", tags=["crm-cadences"])
cadence_steps_router = APIRouter(prefix="/api/crm/cadence-steps", tags=["crm-cadences"])
lead_cadences_router = APIRouter(prefix="/api/crm", tags=["crm-lead-cadences"])


@cadences_router.get("", response_model=list[CadenceSummaryRead])
def list_cadences(
    request: Request,
    cadence_status: CadenceStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    icp_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[CadenceSummaryRead] | JSONResponse:
    try:
        return cadence_service.list_cadences(db, actor, status=cadence_status, search=search, icp_id=icp_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.get("/for-icp", response_model=list[CadenceSummaryRead])
def list_cadences_for_icp(
    request: Request,
    icp_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[CadenceSummaryRead] | JSONResponse:
    try:
        return cadence_service.list_cadences_for_icp(db, actor, icp_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.post("", response_model=CadenceRead, status_code=status.HTTP_201_CREATED)
def create_cadence(
    request: Request,
    dto: CadenceCreate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> CadenceRead | JSONResponse:
    try:
        return cadence_service.create_cadence(db, actor, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.get("/{cadence_id}", response_model=CadenceRead)
def get_cadence(
    request: Request,
    cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> CadenceRead | JSONResponse:
    try:
        return cadence_service.get_cadence(db, actor, cadence_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.patch("/{cadence_id}", response_model=CadenceRead)
def update_cadence(
    request: Request,
    cadence_id: uuid.UUID,
    dto: CadenceUpdate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> CadenceRead | JSONResponse:
    try:
        return cadence_service.update_cadence(db, actor, cadence_id, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.delete("/{cadence_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_cadence(
    request: Request,
    cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> Response:
    try:
        cadence_service.delete_cadence(db, actor, cadence_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@cadences_router.post("/{cadence_id}/steps", response_model=CadenceStepRead, status_code=status.HTTP_201_CREATED)
def add_step(
    request: Request,
    cadence_id: uuid.UUID,
    dto: CadenceStepCreate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> CadenceStepRead | JSONResponse:
    try:
        return cadence_service.add_step(db, actor, cadence_id, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadences_router.put("/{cadence_id}/steps/order", response_model=list[CadenceStepRead])
def reorder_steps(
    request: Request,
    cadence_id: uuid.UUID,
    dto: CadenceStepReorder,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[CadenceStepRead] | JSONResponse:
    try:
        return cadence_service.reorder_steps(db, actor, cadence_id, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadence_steps_router.patch("/{step_id}", response_model=CadenceStepRead)
def update_step(
    request: Request,
    step_id: uuid.UUID,
    dto: CadenceStepUpdate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> CadenceStepRead | JSONResponse:
    try:
        return cadence_service.update_step(db, actor, step_id, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@cadence_steps_router.delete("/{step_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_step(
    request: Request,
    step_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> Response:
    try:
        cadence_service.delete_step(db, actor, step_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@lead_cadences_router.get("/leads/{lead_id}/cadences", response_model=list[LeadCadenceProgressRead])
def list_lead_cadences(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[LeadCadenceProgressRead] | JSONResponse:
    try:
        return lead_cadence_service.get_lead_cadences(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@lead_cadences_router.post(
    "/leads/{lead_id}/cadences",
    response_model=ApplyCadenceResult,
    status_code=status.HTTP_201_CREATED,
)
def apply_cadence(
    request: Request,
    lead_id: uuid.UUID,
    dto: ApplyCadenceRequest,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> ApplyCadenceResult | JSONResponse:
    try:
        return lead_cadence_service.apply_cadence_to_lead(db, actor, lead_id, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@lead_cadences_router.get("/leads/{lead_id}/available-cadences", response_model=list[CadenceSummaryRead])
def list_available_cadences(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[CadenceSummaryRead] | JSONResponse:
    try:
        return lead_cadence_service.get_available_cadences_for_lead(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@lead_cadences_router.post("/lead-cadences/{lead_cadence_id}/pause", response_model=LeadCadenceRead)
def pause_lead_cadence(
    request: Request,
    lead_cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadCadenceRead | JSONResponse:
    return _run_lifecycle_action(request, "pause", db, actor, lead_cadence_id)


@lead_cadences_router.post("/lead-cadences/{lead_cadence_id}/resume", response_model=LeadCadenceRead)
def resume_lead_cadence(
    request: Request,
    lead_cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadCadenceRead | JSONResponse:
    return _run_lifecycle_action(request, "resume", db, actor, lead_cadence_id)


@lead_cadences_router.post("/lead-cadences/{lead_cadence_id}/cancel", response_model=LeadCadenceRead)
def cancel_lead_cadence(
    request: Request,
    lead_cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadCadenceRead | JSONResponse:
    return _run_lifecycle_action(request, "cancel", db, actor, lead_cadence_id)


@lead_cadences_router.post("/lead-cadences/{lead_cadence_id}/complete", response_model=LeadCadenceRead)
def complete_lead_cadence(
    request: Request,
    lead_cadence_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadCadenceRead | JSONResponse:
    return _run_lifecycle_action(request, "complete", db, actor, lead_cadence_id)


def _run_lifecycle_action(
    request: Request,
    action: str,
    db: Session,
    actor: Actor | None,
    lead_cadence_id: uuid.UUID,
) -> LeadCadenceRead | JSONResponse:
    try:
        transition = getattr(lead_cadence_service, f"{action}_lead_cadence")
        return transition(db, actor, lead_cadence_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
