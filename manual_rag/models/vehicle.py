"""Vehicle descriptor, the input to every acquisition and retrieval call."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from manual_rag.utils.errors import InvalidVehicleError


class VehicleDescriptor(BaseModel):
    """A vehicle as described by its owner: year, make, model and optionally trim/VIN.

    Two descriptors that differ only in case or surrounding whitespace map
    to the same :meth:`cache_key`, and therefore to the same manual.
    """

    model_config = ConfigDict(frozen=True)

    year: int = Field(ge=1900, le=2100, description="Model year.")
    make: str = Field(min_length=1, description='Manufacturer, e.g. "Toyota".')
    model: str = Field(min_length=1, description='Model name, e.g. "Camry".')
    trim: str | None = Field(default=None, description='Trim level, e.g. "XLE".')
    vin: str | None = Field(default=None, description="17-character VIN, if known.")

    @field_validator("make", "model")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("trim", "vin")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> VehicleDescriptor:
        """Build a descriptor from untyped input, raising :class:`InvalidVehicleError`."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise InvalidVehicleError(f"Invalid vehicle description: {problems}") from exc

    def cache_key(self) -> str:
        """Return the lower-cased ``year:make:model[:trim]`` key."""
        parts = [str(self.year), self.make.lower(), self.model.lower()]
        if self.trim:
            parts.append(self.trim.lower())
        return ":".join(parts)

    def display_name(self) -> str:
        name = f"{self.year} {self.make} {self.model}"
        return f"{name} {self.trim}" if self.trim else name
