"""Unit tests for AmoCRMClient."""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from amoform.core.exceptions import CRMUnavailableError, RejectedError
from amoform.integrations.crm.amocrm import AmoCRMClient, build_custom_fields
from amoform.schemas import CustomFieldValue

AUTH = {"USER_LOGIN": "manager@example.com", "USER_HASH": "secret"}


def _make_response(status_code: int, json_body: dict[str, object] | None = None) -> httpx.Response:
    """Build a real httpx.Response so status helpers work correctly."""
    if json_body is None:
        return httpx.Response(status_code, request=httpx.Request("GET", "https://example.com"))
    return httpx.Response(
        status_code,
        json=json_body,
        request=httpx.Request("GET", "https://example.com"),
    )


def _client() -> AmoCRMClient:
    return AmoCRMClient(
        base_url="https://test.amocrm.ru",
        login=AUTH["USER_LOGIN"],
        api_key=AUTH["USER_HASH"],
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_records_sends_query_and_auth() -> None:
    """search_records passes the query, the row limit and the credentials."""
    client = _client()
    response_200 = _make_response(200, {"_embedded": {"items": [{"id": 1, "name": "Ann"}]}})

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = response_200
        result = await client.search_records("contacts", "ann@example.com", limit=1)

    mock_request.assert_awaited_once_with(
        method="GET",
        url="/api/v2/contacts",
        params={**AUTH, "query": "ann@example.com", "limit_rows": 1},
        json=None,
    )
    assert result == [{"id": 1, "name": "Ann"}]
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_records_not_found_204() -> None:
    """A 204 No Content from a list endpoint means no matches."""
    client = _client()

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(204)
        result = await client.search_records("contacts", "nobody@example.com")

    assert result == []
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_record_by_id() -> None:
    client = _client()

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.side_effect = [
            _make_response(200, {"_embedded": {"items": [{"id": 42}]}}),
            _make_response(204),
        ]
        found = await client.get_record_by_id("contacts", 42)
        missing = await client.get_record_by_id("contacts", 43)

    assert found == {"id": 42}
    assert missing is None
    assert mock_request.await_args_list[0].kwargs["params"] == {**AUTH, "id": 42, "limit_rows": 1}
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_record_expands_custom_fields() -> None:
    """create_record wraps the record in an add envelope and returns the new id."""
    client = _client()
    response_200 = _make_response(200, {"_embedded": {"items": [{"id": 555}]}})

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = response_200
        result = await client.create_record(
            "contacts",
            {"name": "Ann", "custom_fields": {20: [("ann@example.com", "WORK")]}},
        )

    mock_request.assert_awaited_once_with(
        method="POST",
        url="/api/v2/contacts",
        params=AUTH,
        json={
            "add": [
                {
                    "name": "Ann",
                    "custom_fields": [
                        {"id": 20, "values": [{"value": "ann@example.com", "enum": "WORK"}]}
                    ],
                }
            ]
        },
    )
    assert result == 555
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_record_embedded_errors_raise() -> None:
    """Validation errors reported in the body are rejections even on 200."""
    client = _client()
    body = {"_embedded": {"items": [], "errors": {"add": [{"code": 244, "message": "Access denied"}]}}}

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(200, body)
        with pytest.raises(RejectedError) as exc_info:
            await client.create_record("leads", {"name": "Deal"})

    assert exc_info.value.payload == body["_embedded"]["errors"]
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_http_error_raises_rejected_without_retry() -> None:
    client = _client()

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(401, {"response": {"error": "Unauthorized"}})
        with pytest.raises(RejectedError) as exc_info:
            await client.create_record("leads", {"name": "Deal"})

    assert exc_info.value.status_code == 401
    assert mock_request.await_count == 1
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_error_raises_unavailable() -> None:
    client = _client()

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(CRMUnavailableError):
            await client.search_records("contacts", "ann@example.com")

    assert mock_request.await_count == 1
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_record_adds_id_and_updated_at() -> None:
    client = _client()
    response_200 = _make_response(200, {"_embedded": {"items": [{"id": 555}]}})

    with (
        patch.object(client.client, "request", new_callable=AsyncMock) as mock_request,
        patch("amoform.integrations.crm.amocrm.time.time", return_value=1700000000.5),
    ):
        mock_request.return_value = response_200
        await client.update_record("contacts", 555, {"custom_fields": {10: [("555", "WORK")]}})

    mock_request.assert_awaited_once_with(
        method="POST",
        url="/api/v2/contacts",
        params=AUTH,
        json={
            "update": [
                {
                    "id": 555,
                    "updated_at": 1700000000,
                    "custom_fields": [{"id": 10, "values": [{"value": "555", "enum": "WORK"}]}],
                }
            ]
        },
    )
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_link_records_payload() -> None:
    client = _client()
    body = {"response": {"links": [{"from": "leads", "from_id": 777, "to": "contacts", "to_id": 555}]}}

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(200, body)
        await client.link_records("leads", 777, "contacts", 555)

    mock_request.assert_awaited_once_with(
        method="POST",
        url="/private/api/v2/json/links/set",
        params=AUTH,
        json={
            "request": {
                "links": {
                    "link": [{"from": "leads", "from_id": 777, "to": "contacts", "to_id": 555}]
                }
            }
        },
    )
    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_link_records_without_links_in_response_raises() -> None:
    client = _client()

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(200, {"response": {"links": []}})
        with pytest.raises(RejectedError):
            await client.link_records("leads", 777, "contacts", 555)

    await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_account_metadata_parses_catalog() -> None:
    """The catalog is keyed by field id; empty enums come back as lists."""
    client = _client()
    body = {
        "_embedded": {
            "custom_fields": {
                "contacts": {
                    "10": {"id": 10, "name": "Phone", "code": "PHONE", "enums": {"301": "WORK", "302": "MOB"}},
                    "20": {"id": 20, "name": "Email", "code": "EMAIL", "enums": {"401": "WORK"}},
                    "30": {"id": 30, "name": "Position", "code": "POSITION", "enums": []},
                },
                "leads": [],
            }
        }
    }

    with patch.object(client.client, "request", new_callable=AsyncMock) as mock_request:
        mock_request.return_value = _make_response(200, body)
        metadata = await client.get_account_metadata()

    assert mock_request.await_args.kwargs["params"] == {**AUTH, "with": "custom_fields"}
    assert [f.code for f in metadata["contacts"]] == ["PHONE", "EMAIL", "POSITION"]
    assert metadata["contacts"][0].enums == {"301": "WORK", "302": "MOB"}
    assert metadata["contacts"][2].enums == {}
    assert metadata["leads"] == []
    await client.close()


@pytest.mark.unit
def test_build_custom_fields_value_shapes() -> None:
    payload = build_custom_fields(
        {
            1: "plain",
            2: [("a@x.com", "WORK"), ("b@x.com", "PRIV")],
            3: [{"value": "x", "subtype": "1"}],
            4: [CustomFieldValue(value="555", enum="MOB")],
        }
    )

    assert payload == [
        {"id": 1, "values": [{"value": "plain"}]},
        {"id": 2, "values": [{"value": "a@x.com", "enum": "WORK"}, {"value": "b@x.com", "enum": "PRIV"}]},
        {"id": 3, "values": [{"value": "x", "subtype": "1"}]},
        {"id": 4, "values": [{"value": "555", "enum": "MOB"}]},
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_context_manager_closes_client() -> None:
    async with _client() as client:
        inner = client.client
    assert inner.is_closed


@pytest.mark.unit
def test_build_custom_fields_rejects_entries_that_are_not_pairs() -> None:
    with pytest.raises(ValueError, match="pair"):
        build_custom_fields({30: [["a", "b", "c"]]})
