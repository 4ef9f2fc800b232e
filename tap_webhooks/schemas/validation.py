from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationResult(BaseModel):
    """Outcome of a single webhook verification step."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    error: str | None = None
    context: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("context", mode="after")
    @classmethod
    def _read_only_context(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def failure(
        cls, error: str, context: Mapping[str, Any] | None = None
    ) -> "ValidationResult":
        return cls(valid=False, error=error, context=context or {})

    def is_valid(self) -> bool:
        return self.valid

    def get_error(self) -> str | None:
        return self.error

    def get_context(self) -> dict[str, Any]:
        # Copy so callers can enrich it for logging without touching the result
        return dict(self.context)

    def __bool__(self) -> bool:
        return self.valid
