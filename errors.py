from typing import Any


class LenderError(Exception):
    """Base class for failures raised by the lending core."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "status": self.status_code,
        }
        body.update(self.context)
        return body


class ValidationFailure(LenderError):
    """One or more input fields violate a constraint. Lists every violation."""

    kind = "validation"
    status_code = 400

    def __init__(self, errors: list[dict[str, str]], message: str = "Validation failed") -> None:
        super().__init__(message, details=errors)
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors]


class NotFound(LenderError):
    """A referenced member/item/loan id does not resolve."""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity.capitalize()} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class Conflict(LenderError):
    """The operation is illegal given the current state."""

    kind = "conflict"
    status_code = 409


class InconsistentState(LenderError):
    """A storage failure left (or nearly left) a multi-step write half-done."""

    kind = "internal"
    status_code = 500
