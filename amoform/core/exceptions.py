from __future__ import annotations

from typing import Any


class CRMError(Exception):
    """Base class for everything raised while talking to the CRM."""


class RejectedError(CRMError):
    """The CRM refused a request (validation, auth or server error)."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class CRMUnavailableError(CRMError):
    """The CRM could not be reached."""


class CreationError(CRMError):
    """A contact or lead could not be created."""


class ReconciliationError(CRMError):
    """An existing contact could not be updated with new values."""


class LinkError(CRMError):
    """A lead was created but could not be linked to its contact."""


class FieldNotFoundError(CRMError):
    """The account has no custom field with the requested code."""
