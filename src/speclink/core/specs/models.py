"""
Spec data models for speclink.

A Spec moves through an ordered sequence of phases. Its markdown document is
authoritative for content; the store record is a projection of the document
header plus bookkeeping the document does not carry (branch_name).
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_utc_seconds(value: datetime) -> datetime:
    """Return value as an aware UTC datetime truncated to whole seconds.

    Naive datetimes are taken to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=0)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime with whole seconds."""
    return to_utc_seconds(datetime.now(timezone.utc))


class Phase(str, Enum):
    """Spec lifecycle phases, in order.

    A Spec advances one step at a time; skipping or moving backwards
    requires an explicit force.
    """

    REQUIREMENTS = "requirements"
    DESIGN = "design"
    TASKS = "tasks"
    IMPLEMENTATION = "implementation"
    REVIEW = "review"
    COMPLETED = "completed"

    @classmethod
    def sequence(cls) -> list["Phase"]:
        """All phases in lifecycle order."""
        return list(cls)

    @classmethod
    def from_value(cls, value: str) -> "Phase":
        """Look up a phase by its string value (case and whitespace tolerant).

        Raises:
            ValueError: If value is not a known phase
        """
        normalized = value.strip().lower()
        for phase in cls:
            if phase.value == normalized:
                return phase
        valid = ", ".join(p.value for p in cls)
        raise ValueError(f"Unknown phase: {value!r} (expected one of: {valid})")

    @property
    def index(self) -> int:
        return list(Phase).index(self)

    def next(self) -> "Phase | None":
        """The phase that follows this one, or None for COMPLETED."""
        phases = list(Phase)
        i = phases.index(self)
        return phases[i + 1] if i + 1 < len(phases) else None


class SpecMetadata(BaseModel):
    """Canonical metadata extracted from a spec document header."""

    id: str = Field(..., min_length=1, description="Spec identifier (filename stem)")
    name: str = Field(..., min_length=1, description="Title from the first '# ' line")
    phase: Phase
    created_at: datetime
    updated_at: datetime
    description: str | None = Field(default=None, description="Optional one-line summary")

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return to_utc_seconds(v)

    @field_validator("id", "name", "description")
    @classmethod
    def single_line(cls, v: str | None) -> str | None:
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError("must be a single line")
        return v

    @field_validator("description")
    @classmethod
    def empty_description_is_none(cls, v: str | None) -> str | None:
        return v or None


class Spec(BaseModel):
    """
    A Spec as held in the local store.

    Example:
        >>> spec = Spec(id="abc123", name="Login", phase=Phase.DESIGN,
        ...             created_at=utc_now(), updated_at=utc_now())
        >>> spec.phase.next()
        <Phase.TASKS: 'tasks'>
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    phase: Phase = Phase.REQUIREMENTS
    branch_name: str | None = Field(default=None, description="Working branch for the spec")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return to_utc_seconds(v)

    @classmethod
    def from_metadata(cls, metadata: SpecMetadata, branch_name: str | None = None) -> "Spec":
        """Build a store record from parsed document metadata."""
        return cls(
            id=metadata.id,
            name=metadata.name,
            description=metadata.description or "",
            phase=metadata.phase,
            branch_name=branch_name,
            created_at=metadata.created_at,
            updated_at=metadata.updated_at,
        )

    def apply_metadata(self, metadata: SpecMetadata) -> "Spec":
        """
        Return a copy with the document's fields written over this record.

        Fields the document does not carry (branch_name, and description when
        the document has none) are kept.
        """
        update = {
            "name": metadata.name,
            "phase": metadata.phase,
            "created_at": metadata.created_at,
            "updated_at": metadata.updated_at,
        }
        if metadata.description is not None:
            update["description"] = metadata.description
        return self.model_copy(update=update)

    def to_metadata(self) -> SpecMetadata:
        return SpecMetadata(
            id=self.id,
            name=self.name,
            phase=self.phase,
            created_at=self.created_at,
            updated_at=self.updated_at,
            description=self.description or None,
        )
