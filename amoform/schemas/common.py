from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class RecordKind(StrEnum):
    CONTACTS = "contacts"
    LEADS = "leads"


class ContactFieldCode(StrEnum):
    EMAIL = "EMAIL"
    PHONE = "PHONE"


class ErrorResponse(BaseModel):
    detail: str
    error_code: str | None = None
