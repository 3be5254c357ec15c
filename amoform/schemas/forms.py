from __future__ import annotations

from pydantic import BaseModel


class FormSubmissionResponse(BaseModel):
    lead_id: int
