from __future__ import annotations

from .common import ContactFieldCode, ErrorResponse, RecordKind
from .crm import (
    AccountField,
    Contact,
    CustomField,
    CustomFieldValue,
    FieldIds,
    Lead,
    Submission,
)
from .forms import FormSubmissionResponse
from .health import DependencyHealth, HealthCheckResponse

__all__ = [
    # common
    "ContactFieldCode",
    "ErrorResponse",
    "RecordKind",
    # crm
    "AccountField",
    "Contact",
    "CustomField",
    "CustomFieldValue",
    "FieldIds",
    "Lead",
    "Submission",
    # forms
    "FormSubmissionResponse",
    # health
    "DependencyHealth",
    "HealthCheckResponse",
]
