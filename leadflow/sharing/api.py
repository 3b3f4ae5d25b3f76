from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from leadflow.api.deps import domain_error_response, error_response, get_current_actor
from leadflow.core.database import get_db
from leadflow.crm.schemas import UserRead, UserRef
from leadflow.platform.security.context import Actor
from leadflow.platform.security.errors import DomainError
from leadflow.sharing.schemas import OperationResult, SharedUserRead, ShareRequest, TransferRequest
from leadflow.sharing.service import entity_management_service


router = APIRouter(prefix="/api/crm/entities", tags=["crm-sharing"])


def _parse_uuid_list(raw: str | None) -> list[uuid.UUID]:
    if not raw:
        return []
    return [uuid.UUID(item.strip()) for item in raw.split(",") if item.strip()]


@router.get("/transfer-candidates", response_model=list[UserRead])
def list_transfer_candidates(
    request: Request,
    current_owner_id: uuid.UUID = Query(),
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[UserRead] | JSONResponse:
    try:
        return entity_management_service.get_users_for_transfer(db, actor, current_owner_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.get("/{entity_type}/shared-users", response_model=dict[str, list[UserRef]])
def list_shared_users_for_entities(
    request: Request,
    entity_type: str,
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> dict[str, list[UserRef]] | JSONResponse:
    try:
        entity_ids = _parse_uuid_list(ids)
    except ValueError:
        return error_response(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Lista de ids inválida",
            details={"ids": ids},
        )
    try:
        return entity_management_service.get_shared_users_for_entities(db, actor, entity_type, entity_ids)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.post("/{entity_type}/{entity_id}/transfer", response_model=OperationResult)
def transfer_entity(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    dto: TransferRequest,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> OperationResult | JSONResponse:
    try:
        return entity_management_service.transfer_entity(db, actor, entity_type, entity_id, dto.new_owner_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.get("/{entity_type}/{entity_id}/shares", response_model=list[SharedUserRead])
def list_shares(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[SharedUserRead] | JSONResponse:
    try:
        return entity_management_service.get_shared_users(db, actor, entity_type, entity_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.post("/{entity_type}/{entity_id}/shares", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
def share_entity(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    dto: ShareRequest,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> OperationResult | JSONResponse:
    try:
        return entity_management_service.share_entity(db, actor, entity_type, entity_id, dto.user_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.delete("/{entity_type}/{entity_id}/shares/{user_id}", response_model=OperationResult)
def unshare_entity(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> OperationResult | JSONResponse:
    try:
        return entity_management_service.unshare_entity(db, actor, entity_type, entity_id, user_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.get("/{entity_type}/{entity_id}/available-users", response_model=list[UserRef])
def list_available_users(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> list[UserRef] | JSONResponse:
    try:
        return entity_management_service.get_available_users_for_sharing(db, actor, entity_type, entity_id)
    except DomainError as exc:
        return domain_error_response(request, exc)


@router.get("/{entity_type}/{entity_id}/owner", response_model=UserRef | None)
def get_entity_owner(
    request: Request,
    entity_type: str,
    entity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_current_actor),
) -> UserRef | None | JSONResponse:
    try:
        return entity_management_service.get_entity_owner(db, actor, entity_type, entity_id)
    except DomainError as exc:
        return domain_error_response(request, exc)
