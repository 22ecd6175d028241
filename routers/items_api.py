from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

import catalog
import crud
import guard
from dependencies import get_db
from filter_helpers import blank_to_none, normalize_item_type, parse_available
from models import DeleteResult, Item

router = APIRouter(prefix="/items", tags=["items"])


@router.post("", response_model=Item, status_code=201)
def create_item_api(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    return catalog.create_item(
        db,
        title=body.get("title"),
        type=body.get("type"),
        owner_id=body.get("owner_id"),
        description=body.get("description"),
        author=body.get("author"),
        isbn=body.get("isbn"),
    )


@router.get("", response_model=list[Item])
def list_items_api(
    available: Optional[str] = None,
    type: Optional[str] = None,
    owner_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.list_items(
        db,
        available=parse_available(available),
        type=normalize_item_type(type),
        owner_id=blank_to_none(owner_id),
    )


@router.get("/{item_id}", response_model=Item)
def get_item_api(
    item_id: str,
    db: Session = Depends(get_db),
):
    return catalog.require_item(db, item_id)


@router.patch("/{item_id}", response_model=Item)
def update_item_api(
    item_id: str,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    return catalog.update_item(db, item_id, body)


@router.delete("/{item_id}", response_model=DeleteResult)
def delete_item_api(
    item_id: str,
    db: Session = Depends(get_db),
):
    return DeleteResult(id=guard.delete_item(db, item_id))
