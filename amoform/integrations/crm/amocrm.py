from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from amoform.core.config import settings
from amoform.core.exceptions import CRMUnavailableError, RejectedError
from amoform.integrations.crm.base import CRMClient
from amoform.schemas import AccountField, CustomFieldValue

logger = logging.getLogger(__name__)

LINKS_PATH = "/private/api/v2/json/links/set"


def build_custom_fields(custom_fields: Mapping[int, Any]) -> list[dict[str, Any]]:
    """Convert a {field_id: value} map into the amoCRM custom_fields payload.

    A value may be a scalar, a list of (value, label) pairs, a list of
    CustomFieldValue, or a list of ready-made value dicts.
    """
    payload = []
    for field_id, raw in custom_fields.items():
        if isinstance(raw, (list, tuple)):
            values = [_build_value(item) for item in raw]
        else:
            values = [{"value": raw}]
        payload.append({"id": int(field_id), "values": values})
    return payload


def _build_value(item: Any) -> Any:
    if isinstance(item, CustomFieldValue):
        return item.model_dump(exclude_none=True)
    if isinstance(item, (list, tuple)):
        if len(item) != 2:
            raise ValueError(f"Custom field entry must be a (value, label) pair, got {item!r}")
        value, enum = item
        return {"value": value, "enum": enum}
    if isinstance(item, dict):
        return item
    return {"value": item}


class AmoCRMClient(CRMClient):
    """amoCRM v2 API client implementing the CRMClient protocol."""

    def __init__(
        self,
        base_url: str | None = None,
        login: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the amoCRM client.

        Args:
            base_url: Account root URL; defaults to settings.amocrm_url.
            login: User login sent as USER_LOGIN.
            api_key: User API key sent as USER_HASH.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url or settings.amocrm_url
        self.auth_params = {
            "USER_LOGIN": login if login is not None else settings.amocrm_login,
            "USER_HASH": api_key if api_key is not None else settings.amocrm_api_key,
        }

        # Single pooled client for the lifetime of the instance
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout or settings.amocrm_timeout),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make a single authenticated request. No retries."""
        query = {**self.auth_params, **(params or {})}
        try:
            response = await self.client.request(
                method=method,
                url=path,
                params=query,
                json=json,
            )
        except httpx.TransportError as exc:
            raise CRMUnavailableError(f"amoCRM request {method} {path} failed: {exc}") from exc

        # 204 means "nothing found" for list endpoints
        if response.status_code == 204:
            return response

        if response.is_error:
            payload = _safe_json(response)
            logger.error("amoCRM rejected %s %s: %s %s", method, path, response.status_code, payload)
            raise RejectedError(
                f"amoCRM returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
                payload=payload,
            )
        return response

    async def _list(self, kind: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._request("GET", f"/api/v2/{kind}", params=params)
        if response.status_code == 204:
            return []
        items = _safe_json(response).get("_embedded", {}).get("items", [])
        return [dict(item) for item in items]

    async def search_records(self, kind: str, query: str, limit: int = 1) -> list[dict[str, Any]]:
        """Full-text search, e.g. by email or phone."""
        return await self._list(kind, {"query": query, "limit_rows": limit})

    async def get_record_by_id(self, kind: str, record_id: int) -> dict[str, Any] | None:
        """Fetch a single record by id."""
        items = await self._list(kind, {"id": record_id, "limit_rows": 1})
        return items[0] if items else None

    async def _write(self, kind: str, action: str, record: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", f"/api/v2/{kind}", json={action: [record]})
        data = _safe_json(response)
        embedded = data.get("_embedded", {})
        if embedded.get("errors"):
            logger.error("amoCRM %s %s errors: %s", action, kind, embedded["errors"])
            raise RejectedError(
                f"amoCRM could not {action} {kind}",
                status_code=response.status_code,
                payload=embedded["errors"],
            )
        items = embedded.get("items") or []
        if not items:
            raise RejectedError(
                f"amoCRM returned no items for {action} {kind}",
                status_code=response.status_code,
                payload=data,
            )
        return dict(items[0])

    async def create_record(self, kind: str, fields: dict[str, Any]) -> int:
        """Create a record and return its id."""
        item = await self._write(kind, "add", _serialize(fields))
        return int(item["id"])

    async def update_record(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        """Patch a record. amoCRM requires updated_at on every update."""
        record = {"id": record_id, "updated_at": int(time.time()), **_serialize(fields)}
        await self._write(kind, "update", record)

    async def link_records(self, from_kind: str, from_id: int, to_kind: str, to_id: int) -> None:
        """Associate two records through the legacy links endpoint."""
        link = {"from": from_kind, "from_id": from_id, "to": to_kind, "to_id": to_id}
        response = await self._request(
            "POST",
            LINKS_PATH,
            json={"request": {"links": {"link": [link]}}},
        )
        links = _safe_json(response).get("response", {}).get("links", [])
        if not links:
            raise RejectedError(
                f"amoCRM did not link {from_kind}/{from_id} to {to_kind}/{to_id}",
                status_code=response.status_code,
                payload=_safe_json(response),
            )

    async def get_account_metadata(self) -> dict[str, list[AccountField]]:
        """Fetch the account custom-field catalog."""
        response = await self._request("GET", "/api/v2/account", params={"with": "custom_fields"})
        catalog = _safe_json(response).get("_embedded", {}).get("custom_fields", {}) or {}
        result: dict[str, list[AccountField]] = {}
        for kind, fields in catalog.items():
            # Keyed by field id; empty catalogs come back as []
            entries = fields.values() if isinstance(fields, dict) else fields
            result[kind] = [AccountField.model_validate(entry) for entry in entries]
        return result

    async def __aenter__(self) -> AmoCRMClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
    """Expand a custom_fields map into the list form amoCRM expects."""
    record = dict(fields)
    custom_fields = record.get("custom_fields")
    if isinstance(custom_fields, Mapping):
        record["custom_fields"] = build_custom_fields(custom_fields)
    return record


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}
