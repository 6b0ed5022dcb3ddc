"""
Job records for question generation.

Rows come back from Supabase as plain dicts; the free-form `config` column is
parsed into JobConfig so every recognised option has a name and a default.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class JobStatus(str, Enum):
    """Status values for question generation jobs"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Partition(str, Enum):
    """Poll partitions: a job belongs to exactly one."""
    PLAIN = "plain"
    DOCUMENT = "document"


DIFFICULTY_LEVELS = {"easy": 1, "medium": 2, "hard": 3}


def _names(values: Any) -> List[str]:
    """Accept ["Law", ...] or [{"name": "Law"}, ...]."""
    if not values:
        return []
    if not isinstance(values, list):
        values = [values]
    names = []
    for value in values:
        if isinstance(value, dict):
            value = value.get("name")
        if value:
            names.append(str(value))
    return names


class JobConfig(BaseModel):
    """Typed view of a job's `config` column."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    context_id: Optional[str] = None
    quantity: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("quantity", "total_questions"),
    )
    source_document_id: Optional[str] = None
    subject_ids: List[str] = Field(default_factory=list)
    topic_ids: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    difficulty: str = "medium"
    exam_board: Optional[str] = None
    exam_year: Optional[str] = None
    extra_instructions: Optional[str] = None
    answer_format: Literal["multiple_choice", "true_false"] = "multiple_choice"

    @field_validator("context_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("source_document_id", mode="before")
    @classmethod
    def coerce_document_id(cls, v):
        # Any non-null value, blank included, selects the document partition
        return None if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, v):
        return 10 if v in (None, "", 0) else v

    @field_validator("subject_ids", "topic_ids", mode="before")
    @classmethod
    def coerce_identifier_list(cls, v):
        if not v:
            return []
        if not isinstance(v, list):
            v = [v]
        return [str(item) for item in v if item not in (None, "")]

    @field_validator("subjects", "topics", mode="before")
    @classmethod
    def coerce_names(cls, v):
        return _names(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v):
        return str(v).strip().lower() if v else "medium"

    @field_validator("exam_board", "extra_instructions", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("exam_year", mode="before")
    @classmethod
    def blank_year(cls, v):
        if v is None or v == 0:
            return None
        year = str(v).strip()
        return year or None

    @field_validator("answer_format", mode="before")
    @classmethod
    def normalize_answer_format(cls, v):
        return "true_false" if v == "true_false" else "multiple_choice"

    @property
    def is_document_backed(self) -> bool:
        return self.source_document_id is not None

    @property
    def partition(self) -> Partition:
        return Partition.DOCUMENT if self.is_document_backed else Partition.PLAIN

    @property
    def difficulty_level(self) -> Optional[int]:
        """Numeric level for a recognised difficulty name, else None."""
        return DIFFICULTY_LEVELS.get(self.difficulty)

    @property
    def primary_subject_id(self) -> Optional[str]:
        return self.subject_ids[0] if self.subject_ids else None

    def topic_id_for(self, index: int) -> Optional[str]:
        """Selected topics are used round-robin, one per chunk."""
        if not self.topic_ids:
            return None
        return self.topic_ids[index % len(self.topic_ids)]


def compute_progress(generated: int, requested: int) -> int:
    """
    Percentage of requested questions persisted, rounded half up, in [0, 100].
    """
    if requested <= 0:
        return 0
    generated = max(0, min(generated, requested))
    return (generated * 200 + requested) // (2 * requested)


@dataclass
class ChunkContext:
    """Resolved per-chunk linkage: names for the prompt, ids for the row."""
    subject_id: Optional[str] = None
    subject_name: str = "General"
    topic_id: Optional[str] = None
    topic_name: str = "General"
    document_name: Optional[str] = None
    document_text: Optional[str] = None


@dataclass
class JobOutcome:
    """What happened to one job during a pass."""
    job_id: Any
    status: str
    requested: int = 0
    generated: int = 0
    question_ids: List[Any] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def claimed(self) -> bool:
        return self.status != "skipped"


@dataclass
class PassSummary:
    """Result of one poll+process pass."""
    success: bool
    processed: int = 0
    skipped: int = 0
    error: Optional[str] = None
    partitions: Dict[str, int] = field(default_factory=dict)
    outcomes: List[JobOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "processed": self.processed,
            "skipped": self.skipped,
            "partitions": self.partitions,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
