from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

import catalog
import crud
import guard
from dependencies import get_db
from models import DeleteResult, Member

router = APIRouter(prefix="/members", tags=["members"])


@router.post("", response_model=Member, status_code=201)
def create_member_api(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    return catalog.create_member(
        db,
        name=body.get("name"),
        email=body.get("email"),
        phone=body.get("phone"),
        student_id=body.get("student_id"),
    )


@router.get("", response_model=list[Member])
def list_members_api(db: Session = Depends(get_db)):
    return crud.list_members(db)


@router.get("/{member_id}", response_model=Member)
def get_member_api(
    member_id: str,
    db: Session = Depends(get_db),
):
    return catalog.require_member(db, member_id)


@router.delete("/{member_id}", response_model=DeleteResult)
def delete_member_api(
    member_id: str,
    db: Session = Depends(get_db),
):
    return DeleteResult(id=guard.delete_member(db, member_id))
