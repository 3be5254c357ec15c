from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CustomFieldValue(BaseModel):
    """One entry of a custom field: the value and its enum label or token."""

    value: Any = None
    enum: str | None = None

    @field_validator("enum", mode="before")
    @classmethod
    def _enum_to_str(cls, v: Any) -> Any:
        # amoCRM returns enum tokens as ints or numeric strings depending on endpoint
        if isinstance(v, int):
            return str(v)
        return v

    @property
    def has_enum_token(self) -> bool:
        """True if the label is an internal numeric token rather than a display label."""
        return self.enum is not None and self.enum.isdigit()

    def as_pair(self) -> tuple[Any, str | None]:
        return self.value, self.enum


class CustomField(BaseModel):
    id: int
    name: str = ""
    code: str | None = None
    values: list[CustomFieldValue] = Field(default_factory=list)


class Contact(BaseModel):
    id: int
    name: str = ""
    updated_at: int | None = None
    custom_fields: list[CustomField] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Contact:
        """Build a Contact from a raw amoCRM contact record."""
        return cls.model_validate(
            {
                "id": data["id"],
                "name": data.get("name") or "",
                "updated_at": data.get("updated_at"),
                "custom_fields": data.get("custom_fields") or [],
            }
        )

    def field(self, code: str) -> CustomField | None:
        for custom_field in self.custom_fields:
            if custom_field.code == code:
                return custom_field
        return None

    def raw_field_values(self, code: str) -> list[CustomFieldValue]:
        """Entries of the first custom field with this code, labels untouched."""
        custom_field = self.field(code)
        return list(custom_field.values) if custom_field else []

    def field_values(self, code: str) -> list[str]:
        return [str(v.value) for v in self.raw_field_values(code)]

    def has_value(self, code: str, value: str) -> bool:
        return value in self.field_values(code)


class Lead(BaseModel):
    id: int | None = None
    name: str
    fields: dict[str, Any] = Field(default_factory=dict)
    custom_fields: dict[int, Any] = Field(default_factory=dict)
    contact_id: int | None = None


class AccountField(BaseModel):
    """Entry of the account custom-field catalog."""

    id: int
    name: str = ""
    code: str | None = None
    enums: dict[str, str] = Field(default_factory=dict)

    @field_validator("enums", mode="before")
    @classmethod
    def _empty_enums(cls, v: Any) -> Any:
        # Fields without enums come back as [] or null
        if not v:
            return {}
        return {str(k): str(label) for k, label in v.items()}


class FieldIds(BaseModel):
    email: int | None = None
    phone: int | None = None


class Submission(BaseModel):
    lead_name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    contact_name: str = ""
    lead_fields: dict[str, Any] = Field(default_factory=dict)
    lead_custom_fields: dict[int, Any] = Field(default_factory=dict)
    contact_custom_fields: dict[int, Any] = Field(default_factory=dict)

    @field_validator("lead_name")
    @classmethod
    def _lead_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("lead_name must not be blank")
        return v.strip()

    @field_validator("email", "phone", "contact_name", mode="before")
    @classmethod
    def _strip_optional(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            # Phone numbers often arrive as JSON numbers
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("lead_custom_fields", "contact_custom_fields")
    @classmethod
    def _entries_are_pairs(cls, v: dict[int, Any]) -> dict[int, Any]:
        for field_id, raw in v.items():
            if not isinstance(raw, (list, tuple)):
                continue
            for item in raw:
                if isinstance(item, (list, tuple)) and len(item) != 2:
                    raise ValueError(
                        f"custom field {field_id}: entries must be [value, label] pairs"
                    )
        return v
