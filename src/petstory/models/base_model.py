# src/petstory/models/base_model.py
"""Shared Pydantic base model with camelCase wire names."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class PetstoryBaseModel(BaseModel):
    """Base model for API and snapshot documents.

    Fields are snake_case in Python and camelCase on the wire. Blank strings
    supplied for id references are treated as absent, matching how clients
    send cleared pickers.
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _blank_ids_to_none(cls, data: Any) -> Any:
        # Nested models run this validator on their own input
        if isinstance(data, dict):
            return {
                key: None
                if isinstance(value, str)
                and not value.strip()
                and key.lower().endswith("id")
                else value
                for key, value in data.items()
            }
        return data

    def to_wire(self) -> dict[str, Any]:
        """Return a JSON-compatible dict using wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["PetstoryBaseModel"]
