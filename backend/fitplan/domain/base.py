"""Shared pydantic configuration for domain models."""
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    """Domain models accept snake_case or camelCase and serialize camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe camelCase dict used by both stores."""
        return self.model_dump(mode="json", by_alias=True)
