"""Exception types shared across the dispatcher components."""

from typing import Optional


class DispatchError(Exception):
    """Base class for all dispatcher errors."""
    pass


class CrmError(DispatchError):
    """Raised when a project-tracking API call fails (transport or API error)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CrmTimeout(CrmError):
    """Raised when a project-tracking API call exceeds its timeout."""
    pass


class ClassificationError(DispatchError):
    """Raised when neither the transport nor the service board can be found."""
    pass


class PayloadError(DispatchError):
    """Raised when a raw API payload lacks a field the parser requires."""
    pass


class _FetchFailed:
    """Sentinel type for a refresh that failed as a whole."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "FETCH_FAILED"


FETCH_FAILED = _FetchFailed()
