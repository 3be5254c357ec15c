from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from amoform.core.config import settings
from amoform.core.exceptions import (
    CreationError,
    CRMUnavailableError,
    FieldNotFoundError,
    LinkError,
    ReconciliationError,
    RejectedError,
)
from amoform.integrations.crm.base import CRMClient
from amoform.schemas import (
    Contact,
    ContactFieldCode,
    CustomFieldValue,
    FieldIds,
    Lead,
    RecordKind,
    Submission,
)

logger = logging.getLogger(__name__)

# Present for both EMAIL and PHONE in every amoCRM account
FALLBACK_ENUM = "OTHER"


class FormSubmitter:
    """Sends form submissions to the CRM as a contact plus a linked lead.

    The contact is looked up by email, then phone. A new one is created
    when nothing matches; otherwise the new email/phone is appended to the
    existing multi-value fields, never replacing what is already there.

    The custom-field id cache lives on the instance. A submitter is not
    safe to share between concurrently running submissions.
    """

    def __init__(
        self,
        client: CRMClient,
        default_enum: str | None = None,
        strict_reconciliation: bool | None = None,
    ) -> None:
        self.client = client
        self.default_enum = default_enum or settings.amocrm_default_enum
        self.strict_reconciliation = (
            settings.amocrm_strict_reconciliation
            if strict_reconciliation is None
            else strict_reconciliation
        )
        self._field_ids: FieldIds | None = None

    async def submit(self, submission: Submission) -> int:
        """Resolve the contact, create the lead and return the lead id."""
        contact = await self.resolve_contact(
            submission.email,
            submission.phone,
            submission.contact_name,
            submission.contact_custom_fields,
        )
        return await self.create_lead(
            submission.lead_name,
            contact.id,
            submission.lead_fields,
            submission.lead_custom_fields,
        )

    async def resolve_contact(
        self,
        email: str,
        phone: str = "",
        name: str = "",
        custom_fields: Mapping[int, Any] | None = None,
    ) -> Contact:
        """Find the contact matching email or phone, creating it if absent."""
        contact = await self.find_contact([email, phone])
        if contact is None:
            contact_id = await self.create_contact(email, phone, name, custom_fields)
            contact = await self.find_contact_by_id(contact_id)
            if contact is None:
                logger.warning("Contact %s created but not readable yet", contact_id)
                contact = Contact(id=contact_id, name=name)
        else:
            await self.refresh_contact(contact, email, phone, custom_fields)
        return contact

    async def create_lead(
        self,
        name: str,
        contact_id: int | None,
        fields: Mapping[str, Any] | None = None,
        custom_fields: Mapping[int, Any] | None = None,
    ) -> int:
        """Create a lead and link it to the contact, if one is given.

        A failed link is logged and does not fail the call: the lead id is
        returned either way.
        """
        lead = Lead(
            name=name,
            fields=dict(fields or {}),
            custom_fields=dict(custom_fields or {}),
            contact_id=contact_id,
        )
        payload: dict[str, Any] = {"name": lead.name, **lead.fields}
        if lead.custom_fields:
            payload["custom_fields"] = lead.custom_fields

        try:
            lead.id = await self.client.create_record(RecordKind.LEADS, payload)
        except RejectedError as exc:
            raise CreationError(f"Could not create lead {name!r}: {exc}") from exc
        logger.info("Created lead %s (%r)", lead.id, lead.name)

        if lead.contact_id:
            try:
                await self._link_lead(lead.id, lead.contact_id)
            except LinkError as exc:
                logger.warning("Lead %s left without contact: %s", lead.id, exc)

        return lead.id

    async def _link_lead(self, lead_id: int, contact_id: int) -> None:
        try:
            await self.client.link_records(
                RecordKind.LEADS, lead_id, RecordKind.CONTACTS, contact_id
            )
        except (RejectedError, CRMUnavailableError) as exc:
            raise LinkError(f"Could not link lead {lead_id} to contact {contact_id}") from exc
        logger.info("Linked lead %s to contact %s", lead_id, contact_id)

    async def find_contact(self, candidates: Iterable[str]) -> Contact | None:
        """Search by each non-empty candidate in turn, first hit wins."""
        for query in candidates:
            if not query:
                continue
            records = await self.client.search_records(RecordKind.CONTACTS, query, limit=1)
            if records:
                contact = Contact.from_api(records[0])
                logger.info("Found contact %s by %r", contact.id, query)
                return contact
        return None

    async def find_contact_by_id(self, contact_id: int) -> Contact | None:
        record = await self.client.get_record_by_id(RecordKind.CONTACTS, contact_id)
        return Contact.from_api(record) if record else None

    async def create_contact(
        self,
        email: str,
        phone: str,
        name: str = "",
        custom_fields: Mapping[int, Any] | None = None,
    ) -> int:
        """Create a contact without checking for duplicates."""
        values: dict[int, Any] = {}
        if email:
            values[await self.email_field_id()] = [(email, self.default_enum)]
        if phone:
            values[await self.phone_field_id()] = [(phone, self.default_enum)]
        if custom_fields:
            values.update(custom_fields)

        payload: dict[str, Any] = {"name": name}
        if values:
            payload["custom_fields"] = values

        try:
            contact_id = await self.client.create_record(RecordKind.CONTACTS, payload)
        except RejectedError as exc:
            raise CreationError(f"Could not create contact {name!r}: {exc}") from exc
        logger.info("Created contact %s (%r)", contact_id, name)
        return contact_id

    async def refresh_contact(
        self,
        contact: Contact,
        email: str,
        phone: str,
        custom_fields: Mapping[int, Any] | None = None,
    ) -> bool:
        """Append new email/phone to an existing contact and apply custom fields.

        Issues at most one update. Returns False if the CRM rejected it,
        or raises ReconciliationError when strict_reconciliation is set.
        """
        changes: dict[int, Any] = {}
        changed = await self._append_value(contact, ContactFieldCode.EMAIL, email, changes)
        changed |= await self._append_value(contact, ContactFieldCode.PHONE, phone, changes)
        if custom_fields:
            changed = True
            changes.update(custom_fields)

        if not changed:
            return True

        try:
            await self.client.update_record(
                RecordKind.CONTACTS, contact.id, {"custom_fields": changes}
            )
        except RejectedError as exc:
            error = ReconciliationError(f"Could not update contact {contact.id}: {exc}")
            if self.strict_reconciliation:
                raise error from exc
            logger.warning("%s; continuing with stale contact", error)
            return False

        logger.info("Updated contact %s fields %s", contact.id, sorted(changes))
        return True

    async def _append_value(
        self,
        contact: Contact,
        code: ContactFieldCode,
        value: str,
        changes: dict[int, Any],
    ) -> bool:
        if not value or contact.has_value(code, value):
            return False
        field_id = await self._field_id(code)
        values = await self.normalize_values(contact.raw_field_values(code), code)
        values.append((value, self.default_enum))
        changes[field_id] = values
        return True

    async def normalize_values(
        self, values: list[CustomFieldValue], code: str
    ) -> list[tuple[Any, str]]:
        """Turn stored entries into (value, label) pairs fit for resubmission.

        The CRM stores numeric enum tokens but accepts only display labels.
        """
        enums: dict[str, str] = {}
        if any(entry.has_enum_token for entry in values):
            enums = await self.enum_values(code)

        result = []
        for entry in values:
            label = entry.enum or self.default_enum
            if entry.has_enum_token:
                if label in enums:
                    label = enums[label]
                else:
                    logger.warning("Unknown %s enum token %s, using %s", code, label, FALLBACK_ENUM)
                    label = FALLBACK_ENUM
            result.append((entry.value, label))
        return result

    async def field_ids(self) -> FieldIds:
        """Ids of the contact EMAIL and PHONE fields, fetched once."""
        if self._field_ids is None:
            metadata = await self.client.get_account_metadata()
            ids = FieldIds()
            for field in metadata.get(RecordKind.CONTACTS, []):
                if field.code == ContactFieldCode.PHONE:
                    ids.phone = field.id
                elif field.code == ContactFieldCode.EMAIL:
                    ids.email = field.id
            self._field_ids = ids
        return self._field_ids

    async def email_field_id(self) -> int:
        return await self._field_id(ContactFieldCode.EMAIL)

    async def phone_field_id(self) -> int:
        return await self._field_id(ContactFieldCode.PHONE)

    async def _field_id(self, code: ContactFieldCode) -> int:
        ids = await self.field_ids()
        field_id = ids.email if code == ContactFieldCode.EMAIL else ids.phone
        if not field_id:
            raise FieldNotFoundError(f"Account has no contact field with code {code}")
        return field_id

    async def enum_values(self, code: str) -> dict[str, str]:
        """Enum token -> label map for a contact field. Not cached."""
        metadata = await self.client.get_account_metadata()
        for field in metadata.get(RecordKind.CONTACTS, []):
            if field.code == code:
                return field.enums
        return {}
