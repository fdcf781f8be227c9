"""
Video project models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_STEPS = 6

STEP_COLUMNS = tuple(f"step{n}_data" for n in range(1, MAX_STEPS + 1))


def step_column(step_number: int) -> str:
    """Database column holding a step's data blob."""
    if not 1 <= step_number <= MAX_STEPS:
        raise ValueError(f"Step number must be between 1 and {MAX_STEPS}, got {step_number}")
    return f"step{step_number}_data"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VideoMode(str, Enum):
    """Which step pipeline a project follows."""
    SOCIAL_COMMERCE = "social-commerce"
    CHARACTER_VLOG = "character-vlog"


class VideoStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class VideoProject(BaseModel):
    """One row of the videos table."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    workspace_id: str
    title: str = "Untitled Video"
    mode: VideoMode
    status: VideoStatus = VideoStatus.DRAFT
    current_step: int = 1
    completed_steps: List[int] = Field(default_factory=list)
    step1_data: Optional[Dict[str, Any]] = None
    step2_data: Optional[Dict[str, Any]] = None
    step3_data: Optional[Dict[str, Any]] = None
    step4_data: Optional[Dict[str, Any]] = None
    step5_data: Optional[Dict[str, Any]] = None
    step6_data: Optional[Dict[str, Any]] = None
    # Step number (as a string) -> tracked field values captured on first completion
    step_snapshots: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    revision: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("completed_steps")
    @classmethod
    def normalize_completed_steps(cls, v: List[int]) -> List[int]:
        return sorted(set(v))

    @field_validator("step_snapshots", mode="before")
    @classmethod
    def default_step_snapshots(cls, v: Any) -> Any:
        # Rows written before the column existed carry NULL
        return v if v is not None else {}

    @field_validator("current_step")
    @classmethod
    def validate_current_step(cls, v: int) -> int:
        if not 1 <= v <= MAX_STEPS + 1:
            raise ValueError(f"current_step must be between 1 and {MAX_STEPS + 1}")
        return v

    def step_data(self, step_number: int) -> Optional[Dict[str, Any]]:
        return getattr(self, step_column(step_number))

    def completion_snapshot(self, step_number: int) -> Optional[Dict[str, Any]]:
        return self.step_snapshots.get(str(step_number))

    def all_step_data(self) -> Dict[int, Optional[Dict[str, Any]]]:
        """Step number -> stored data blob (None when cleared)."""
        return {n: self.step_data(n) for n in range(1, MAX_STEPS + 1)}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "VideoProject":
        """Build from a database row (snake_case columns)."""
        return cls.model_validate(row)

    def to_row(self) -> Dict[str, Any]:
        """Database row with snake_case columns and ISO timestamps."""
        return self.model_dump(mode="json", by_alias=False)

    def to_response(self) -> Dict[str, Any]:
        """Client representation with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
