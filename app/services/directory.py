import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.directory import Agency, Category
from app.schemas.directory import (
    AgencyCreate,
    AgencyUpdate,
    CategoryCreate,
    CategoryUpdate,
)
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _flush_unique(db: Session, label: str) -> None:
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"{label} name already exists")


class Agencies(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: AgencyCreate) -> Agency:
        agency = Agency(**payload.model_dump())
        db.add(agency)
        _flush_unique(db, "Agency")
        db.refresh(agency)
        logger.info("Created agency %s", agency.id)
        return agency

    @staticmethod
    def get(db: Session, agency_id: str) -> Agency:
        agency = db.get(Agency, coerce_uuid(agency_id))
        if not agency:
            raise HTTPException(status_code=404, detail="Agency not found")
        return agency

    @staticmethod
    def get_active(db: Session, agency_id) -> Agency | None:
        if agency_id is None:
            return None
        agency = db.get(Agency, coerce_uuid(agency_id))
        if agency and agency.is_active:
            return agency
        return None

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Agency]:
        stmt = select(Agency)
        if is_active is None:
            stmt = stmt.where(Agency.is_active.is_(True))
        else:
            stmt = stmt.where(Agency.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"name": Agency.name, "created_at": Agency.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, agency_id: str, payload: AgencyUpdate) -> Agency:
        agency = Agencies.get(db, agency_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(agency, key, value)
        _flush_unique(db, "Agency")
        db.refresh(agency)
        logger.info("Updated agency %s", agency.id)
        return agency


class Categories(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CategoryCreate) -> Category:
        if payload.default_agency_id:
            Agencies.get(db, payload.default_agency_id)
        category = Category(**payload.model_dump())
        db.add(category)
        _flush_unique(db, "Category")
        db.refresh(category)
        logger.info("Created category %s", category.id)
        return category

    @staticmethod
    def get(db: Session, category_id: str) -> Category:
        category = db.get(Category, coerce_uuid(category_id))
        if not category:
            raise HTTPException(status_code=404, detail="Category not found")
        return category

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Category]:
        stmt = select(Category)
        if is_active is None:
            stmt = stmt.where(Category.is_active.is_(True))
        else:
            stmt = stmt.where(Category.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"name": Category.name, "created_at": Category.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, category_id: str, payload: CategoryUpdate) -> Category:
        category = Categories.get(db, category_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("default_agency_id"):
            Agencies.get(db, data["default_agency_id"])
        for key, value in data.items():
            setattr(category, key, value)
        _flush_unique(db, "Category")
        db.refresh(category)
        logger.info("Updated category %s", category.id)
        return category

    @staticmethod
    def resolve_agency(db: Session, category: Category, override_agency_id=None):
        """Pick the routing agency: an active override, else the category default."""
        agency = Agencies.get_active(db, override_agency_id)
        if agency is not None:
            return agency
        return Agencies.get_active(db, category.default_agency_id)


agencies = Agencies()
categories = Categories()
