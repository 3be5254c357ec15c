from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends

from amoform.integrations.crm.amocrm import AmoCRMClient
from amoform.integrations.crm.base import CRMClient
from amoform.services.submitter import FormSubmitter


async def get_crm_client() -> AsyncGenerator[CRMClient, None]:
    """Dependency yielding an amoCRM client closed after the request."""
    async with AmoCRMClient() as client:
        yield client


async def get_submitter(
    crm: CRMClient = Depends(get_crm_client),
) -> FormSubmitter:
    """Fresh submitter, and so a fresh field-id cache, per request."""
    return FormSubmitter(crm)
