from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from amoform.api.deps import get_submitter
from amoform.core.exceptions import (
    CreationError,
    CRMUnavailableError,
    FieldNotFoundError,
    ReconciliationError,
)
from amoform.schemas import ErrorResponse, FormSubmissionResponse, Submission
from amoform.services.submitter import FormSubmitter

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/submit",
    response_model=FormSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def submit_form(
    body: Submission,
    submitter: FormSubmitter = Depends(get_submitter),
) -> FormSubmissionResponse:
    """Push a form submission to amoCRM as a contact and a linked lead."""
    try:
        lead_id = await submitter.submit(body)
    except (CreationError, ReconciliationError) as exc:
        logger.error("Form submission %r failed: %s", body.lead_name, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except CRMUnavailableError as exc:
        logger.error("amoCRM unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="CRM unavailable"
        ) from exc
    except FieldNotFoundError as exc:
        logger.error("amoCRM account misconfigured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc

    return FormSubmissionResponse(lead_id=lead_id)
