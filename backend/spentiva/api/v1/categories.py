# spentiva/api/v1/categories.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.responses import bad_request, not_found, success_response
from spentiva.db import models
from spentiva.schemas.category import CategoryCreate, CategoryUpdate
from spentiva.services.catalog import EXPENSE_CATEGORIES, PAYMENT_METHODS, assign_subcategory_ids
from spentiva.services.trackers import get_tracker_for

router = APIRouter(tags=["category"])

CATEGORY_NOT_FOUND = "Category not found"


def category_to_dict(cat: models.Category) -> Dict[str, Any]:
    return {
        "id": cat.id,
        "trackerId": cat.tracker_id,
        "name": cat.name,
        "subcategories": cat.subcategories or [],
        "createdAt": cat.created_at.isoformat() if cat.created_at else None,
        "updatedAt": cat.updated_at.isoformat() if cat.updated_at else None,
    }


def _get_category(db: Session, category_id: int, user: models.User, write: bool = False) -> models.Category:
    cat = db.query(models.Category).filter(models.Category.id == category_id).first()
    if not cat:
        raise not_found(CATEGORY_NOT_FOUND)
    # raises "Tracker not found" when the caller can't see the owning tracker
    get_tracker_for(db, cat.tracker_id, user, write=write)
    return cat


def _name_taken(db: Session, tracker_id: int, name: str, exclude_id: int = None) -> bool:
    q = db.query(models.Category).filter(models.Category.tracker_id == tracker_id, models.Category.name == name)
    if exclude_id is not None:
        q = q.filter(models.Category.id != exclude_id)
    return db.query(q.exists()).scalar()


@router.get("/")
def predefined_categories():
    return success_response({"categories": EXPENSE_CATEGORIES, "paymentMethods": PAYMENT_METHODS})


@router.get("/all")
def list_categories(
    trackerId: int = Query(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, trackerId, current_user)
    rows = (
        db.query(models.Category)
        .filter(models.Category.tracker_id == tracker.id)
        .order_by(models.Category.id)
        .all()
    )
    return success_response({"categories": [category_to_dict(c) for c in rows]})


@router.post("/create")
def create_category(
    payload: CategoryCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, payload.trackerId, current_user, write=True)
    name = payload.name.strip()
    if _name_taken(db, tracker.id, name):
        raise bad_request("Category already exists")
    cat = models.Category(
        tracker_id=tracker.id,
        name=name,
        subcategories=assign_subcategory_ids([s.model_dump() for s in payload.subcategories]),
    )
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return success_response({"category": category_to_dict(cat)}, "Category created successfully")


@router.get("/{category_id}")
def get_category(category_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    cat = _get_category(db, category_id, current_user)
    return success_response({"category": category_to_dict(cat)})


@router.put("/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    cat = _get_category(db, category_id, current_user, write=True)
    if payload.name is not None:
        name = payload.name.strip()
        if _name_taken(db, cat.tracker_id, name, exclude_id=cat.id):
            raise bad_request("Category already exists")
        cat.name = name
    if payload.subcategories is not None:
        cat.subcategories = assign_subcategory_ids([s.model_dump() for s in payload.subcategories])
    db.commit()
    db.refresh(cat)
    return success_response({"category": category_to_dict(cat)}, "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(category_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    cat = _get_category(db, category_id, current_user, write=True)
    db.delete(cat)
    db.commit()
    return success_response({"id": category_id}, "Category deleted successfully")
