from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import datetime

ItemType = Literal["book", "tool", "equipment", "electronic", "other"]
LoanStatus = Literal["active", "overdue", "returned"]

ITEM_TYPES = ("book", "tool", "equipment", "electronic", "other")
LOAN_STATUSES = ("active", "overdue", "returned")
OPEN_STATUSES = ("active", "overdue")

PHONE_PATTERN = r"^[\d\s()+-]+$"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ---------- Member ----------
class MemberIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    student_id: Optional[str] = Field(default=None, max_length=50)

    @field_validator("phone", "student_id", mode="before")
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, v: str) -> str:
        return v.lower()

class Member(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    student_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ---------- Item ----------
class ItemIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    type: ItemType
    owner_id: str
    description: Optional[str] = Field(default=None, max_length=500)
    author: Optional[str] = Field(default=None, max_length=100)
    isbn: Optional[str] = Field(default=None, max_length=20)

    @field_validator("description", "author", "isbn", mode="before")
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

class ItemUpdate(BaseModel):
    # no `available`: only borrow/return change it
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[ItemType] = None
    owner_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    author: Optional[str] = Field(default=None, max_length=100)
    isbn: Optional[str] = Field(default=None, max_length=20)

    @field_validator("description", "author", "isbn", mode="before")
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

class Item(BaseModel):
    id: str
    title: str
    type: ItemType
    owner_id: str
    description: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    available: bool = True
    created_at: datetime
    updated_at: datetime


# ---------- Loan ----------
class BorrowIn(BaseModel):
    item_id: str
    borrower_member_id: str
    due_date: datetime

class Loan(BaseModel):
    id: str
    item_id: str
    borrower_member_id: str
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: LoanStatus = "active"
    created_at: datetime
    updated_at: datetime

class ItemSummary(BaseModel):
    id: str
    title: str
    type: Optional[str] = None
    author: Optional[str] = None
    owner_id: Optional[str] = None
    missing: bool = False

class MemberSummary(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    missing: bool = False

class LoanView(Loan):
    item: ItemSummary
    borrower: MemberSummary


# ---------- Reporting ----------
class OverallStats(BaseModel):
    total_members: int
    total_items: int
    available_items: int
    borrowed_items: int
    total_loans: int
    active_loans: int
    returned_loans: int
    overdue_loans: int

class ItemBorrowCount(BaseModel):
    item_id: str
    title: str
    author: Optional[str] = None
    borrow_count: int
    active_borrows: int

class MemberBorrowCount(BaseModel):
    member_id: str
    name: str
    email: Optional[str] = None
    borrow_count: int
    active_borrows: int
    returned_count: int

class DashboardStats(BaseModel):
    overall: OverallStats
    most_borrowed_items: list[ItemBorrowCount]
    borrow_counts_by_member: list[MemberBorrowCount]

class Notification(BaseModel):
    type: Literal["overdue"] = "overdue"
    message: str
    loan_id: str
    item_id: str
    borrower_id: str
    due_date: datetime
    days_overdue: int

class NotificationFeed(BaseModel):
    count: int
    has_overdue: bool
    data: list[Notification]

class DeleteResult(BaseModel):
    id: str
