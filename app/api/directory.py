from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.auth import actor_payload
from app.api.deps import get_db, require_kinds, require_staff_role
from app.models.actor import ActorKind, StaffRole
from app.schemas.auth import ActorRead
from app.schemas.common import ListResponse
from app.schemas.directory import (
    AgencyCreate,
    AgencyRead,
    AgencyUpdate,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
)
from app.services.credentials import credentials
from app.services.directory import agencies, categories
from app.services.tokens import TokenClaims

router = APIRouter(tags=["directory"])

_admin = require_staff_role(StaffRole.admin.value)


# ------------------------------------------------------------------
# Agencies
# ------------------------------------------------------------------


@router.get("/agencies", response_model=ListResponse[AgencyRead])
def list_agencies(
    is_active: bool | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return agencies.list_response(db, is_active, order_by, order_dir, limit, offset)


@router.get("/agencies/{agency_id}", response_model=AgencyRead)
def get_agency(agency_id: str, db: Session = Depends(get_db)):
    return agencies.get(db, agency_id)


@router.post(
    "/agencies", response_model=AgencyRead, status_code=status.HTTP_201_CREATED
)
def create_agency(
    payload: AgencyCreate,
    claims: TokenClaims = Depends(_admin),
    db: Session = Depends(get_db),
):
    return agencies.create(db, payload)


@router.patch("/agencies/{agency_id}", response_model=AgencyRead)
def update_agency(
    agency_id: str,
    payload: AgencyUpdate,
    claims: TokenClaims = Depends(_admin),
    db: Session = Depends(get_db),
):
    return agencies.update(db, agency_id, payload)


@router.get("/agencies/{agency_id}/agents", response_model=list[ActorRead])
def list_agency_agents(
    agency_id: str,
    claims: TokenClaims = Depends(require_kinds(ActorKind.staff, ActorKind.agent)),
    db: Session = Depends(get_db),
):
    agency = agencies.get(db, agency_id)
    return [actor_payload(agent) for agent in credentials.agents_for_agency(db, agency.id)]


# ------------------------------------------------------------------
# Categories
# ------------------------------------------------------------------


@router.get("/categories", response_model=ListResponse[CategoryRead])
def list_categories(
    is_active: bool | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return categories.list_response(db, is_active, order_by, order_dir, limit, offset)


@router.get("/categories/{category_id}", response_model=CategoryRead)
def get_category(category_id: str, db: Session = Depends(get_db)):
    return categories.get(db, category_id)


@router.post(
    "/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED
)
def create_category(
    payload: CategoryCreate,
    claims: TokenClaims = Depends(_admin),
    db: Session = Depends(get_db),
):
    return categories.create(db, payload)


@router.patch("/categories/{category_id}", response_model=CategoryRead)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    claims: TokenClaims = Depends(_admin),
    db: Session = Depends(get_db),
):
    return categories.update(db, category_id, payload)
