from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leadflow.api.deps import domain_error_response, get_current_actor
from leadflow.core.database import get_db
from leadflow.crm.schemas import ActivityRead, LeadConversionRead, LeadCreate, LeadRead, UserCreate, UserRead
from leadflow.crm.service import activity_service, lead_service, user_service
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import DomainError


users_router = APIRouter(prefix="/api/crm/users", tags=["crm-users"])
leads_router = APIRouter(prefix="/api/crm/leads", tags=["crm-leads"])
activities_router = APIRouter(prefix="/api/crm/activities", tags=["crm-activities"])


@users_router.get("", response_model=list[UserRead])
def list_users(
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[UserRead] | JSONResponse:
    try:
        return user_service.list_users(db, actor)
    except DomainError as exc:
        return domain_error_response(request, exc)


@users_router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    dto: UserCreate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> UserRead | JSONResponse:
    try:
        return user_service.create_user(db, actor, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@leads_router.get("", response_model=list[LeadRead])
def list_leads(
    request: Request,
    lead_status: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[LeadRead] | JSONResponse:
    try:
        return lead_service.list_leads(db, actor, status=lead_status)
    except DomainError as exc:
        return domain_error_response(request, exc)


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.create_lead(db, actor, dto)
    except DomainError as exc:
        return domain_error_response(request, exc)


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.get_lead(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@leads_router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> Response:
    try:
        lead_service.delete_lead(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@leads_router.post("/{lead_id}/icps/{icp_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def link_icp(
    request: Request,
    lead_id: uuid.UUID,
    icp_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> Response:
    try:
        lead_service.link_icp(db, actor, lead_id, icp_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@leads_router.post("/{lead_id}/convert", response_model=LeadConversionRead)
def convert_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> LeadConversionRead | JSONResponse:
    try:
        return lead_service.convert_lead_to_organization(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@leads_router.get("/{lead_id}/activities", response_model=list[ActivityRead])
def list_lead_activities(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[ActivityRead] | JSONResponse:
    try:
        return activity_service.list_activities_for_lead(db, actor, lead_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@activities_router.post("/{activity_id}/complete", response_model=ActivityRead)
def complete_activity(
    request: Request,
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> ActivityRead | JSONResponse:
    try:
        return activity_service.complete_activity(db, actor, activity_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@activities_router.post("/{activity_id}/reopen", response_model=ActivityRead)
def reopen_activity(
    request: Request,
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> ActivityRead | JSONResponse:
    try:
        return activity_service.reopen_activity(db, actor, activity_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
