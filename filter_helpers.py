from typing import Optional

from models import ITEM_TYPES, LOAN_STATUSES

VALID_STATUSES = set(LOAN_STATUSES)
VALID_ITEM_TYPES = set(ITEM_TYPES)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value == "":
        return None
    return value


def normalize_status(status: Optional[str]) -> Optional[str]:
    if status in VALID_STATUSES:
        return status
    return None


def normalize_item_type(item_type: Optional[str]) -> Optional[str]:
    if item_type and item_type.lower() in VALID_ITEM_TYPES:
        return item_type.lower()
    return None


def parse_available(value: Optional[str]) -> Optional[bool]:
    # ?available=true / ?available=false, anything else means "no filter"
    if value is None:
        return None
    v = value.strip().lower()
    if v == "true":
        return True
    if v == "false":
        return False
    return None
