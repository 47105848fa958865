"""
NOTE:
Platform responses have changed shape over time (``siteId`` vs ``data.siteId``
vs ``id``), so every model ignores unknown keys and accepts both the wire
(camelCase) names and the python field names.
"""
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict

from buildfunctions.errors import ValidationError


class ImmutableModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True
    )

    @classmethod
    def parse(cls, data: Any):
        """``model_validate`` raising :class:`buildfunctions.errors.ValidationError`."""
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Malformed {cls.__name__}: {e}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e


class DictCompatibleImmutableModel(ImmutableModel):
    """Backwards compatible wrapper where we transform dictionaries into Pydantic Models

    Allows us to access model.key with model["key"].
    """

    def __getitem__(self, key):
        return getattr(self, key)
