from __future__ import annotations

from typing import Any, Protocol

from amoform.schemas import AccountField


class CRMClient(Protocol):
    """Remote CRM capability set used by the form submitter.

    Implement this protocol to plug in another CRM backend. Every call
    is attempted exactly once; implementations must not retry.
    """

    async def search_records(self, kind: str, query: str, limit: int = 1) -> list[dict[str, Any]]:
        """Full-text search for records of the given kind."""
        ...

    async def get_record_by_id(self, kind: str, record_id: int) -> dict[str, Any] | None:
        """Fetch a single record by its identifier."""
        ...

    async def create_record(self, kind: str, fields: dict[str, Any]) -> int:
        """Create a record and return its identifier. Raises RejectedError."""
        ...

    async def update_record(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        """Patch an existing record. Raises RejectedError."""
        ...

    async def link_records(self, from_kind: str, from_id: int, to_kind: str, to_id: int) -> None:
        """Associate two records. Raises RejectedError."""
        ...

    async def get_account_metadata(self) -> dict[str, list[AccountField]]:
        """Custom-field catalog of the account, keyed by record kind."""
        ...
