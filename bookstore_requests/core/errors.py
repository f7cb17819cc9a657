# bookstore_requests/core/errors.py
from typing import Dict, Iterable, List, Optional


class RequestError(Exception):
    """Base for every error raised by the request engine."""

    retryable = False

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": str(self)}


class RequestValidationError(RequestError):
    """Caller-correctable input problem. Carries every offending field.

    ``missing`` lists absent fields, ``invalid`` maps field name to reason.
    """

    def __init__(self, missing: Iterable[str] = (), invalid: Optional[Dict[str, str]] = None, message: Optional[str] = None):
        self.missing: List[str] = list(missing)
        self.invalid: Dict[str, str] = dict(invalid or {})
        super().__init__(message or self._build_message())

    def _build_message(self) -> str:
        parts = []
        if self.missing:
            parts.append("Missing required fields: " + ", ".join(self.missing))
        for name, reason in self.invalid.items():
            parts.append(f"{name}: {reason}")
        return "; ".join(parts) or "Invalid input"

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["missing"] = self.missing
        out["invalid"] = self.invalid
        return out


class UnknownRequestType(RequestValidationError):
    def __init__(self, request_type: str):
        self.request_type = request_type
        super().__init__(invalid={"type": f"Unknown request type: {request_type}"})


class MissingRequiredField(RequestValidationError):
    def __init__(self, names: Iterable[str]):
        super().__init__(missing=names)


class InvalidFieldFormat(RequestValidationError):
    def __init__(self, invalid: Dict[str, str]):
        super().__init__(invalid=invalid)


class RequestTypeMismatch(RequestValidationError):
    def __init__(self, request_id: str, asserted: str, stored: str):
        super().__init__(
            invalid={"request_type": f"Request {request_id} is a {stored}, not a {asserted}"}
        )


class InvalidTransition(RequestError):
    def __init__(self, from_status: str, to_status: str, request_type: str):
        self.from_status = from_status
        self.to_status = to_status
        self.request_type = request_type
        super().__init__(f"Invalid status transition from {from_status} to {to_status} for {request_type}")

    def to_dict(self) -> dict:
        out = super().to_dict()
        out.update({"from": self.from_status, "to": self.to_status, "type": self.request_type})
        return out


class RequestNotFound(RequestError):
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"No request found with ID: {request_id}")


class ConcurrentModification(RequestError):
    def __init__(self, request_id: str, expected_status: str, actual_status: Optional[str] = None):
        self.request_id = request_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        detail = f" (now {actual_status})" if actual_status else ""
        super().__init__(f"Request {request_id} is no longer in status {expected_status}{detail}")


class StoreUnavailable(RequestError):
    retryable = True

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["retryable"] = True
        return out
