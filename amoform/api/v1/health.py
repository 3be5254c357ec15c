from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from amoform.api.deps import get_crm_client
from amoform.core.config import settings
from amoform.core.exceptions import CRMError
from amoform.integrations.crm.base import CRMClient
from amoform.schemas import DependencyHealth, HealthCheckResponse

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    crm: CRMClient = Depends(get_crm_client),
) -> HealthCheckResponse:
    """Check service health and amoCRM reachability."""
    dependencies: dict[str, DependencyHealth] = {}

    try:
        start = time.monotonic()
        await crm.get_account_metadata()
        latency = (time.monotonic() - start) * 1000
        dependencies["amocrm"] = DependencyHealth(
            name="amocrm",
            status="ok",
            latency_ms=round(latency, 2),
        )
    except CRMError as exc:
        dependencies["amocrm"] = DependencyHealth(
            name="amocrm",
            status="error",
            message=str(exc),
        )

    statuses = [dep.status for dep in dependencies.values()]
    overall = "ok" if all(s == "ok" for s in statuses) else "degraded"

    return HealthCheckResponse(
        status=overall,
        version=VERSION,
        crm_url=settings.amocrm_url,
        dependencies=dependencies,
    )
