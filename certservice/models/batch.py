from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

CompletionStatus = Literal["enrolled", "completed", "dropped"]


@dataclass(frozen=True, slots=True)
class CourseBatch:
    """A cohort of participants taking one course together (roster-owned)."""

    id: str
    course_id: str
    label: str
    instructor_name: str | None = None


@dataclass(frozen=True, slots=True)
class BatchParticipant:
    batch_id: str
    user_id: str
    completion_status: CompletionStatus = "enrolled"
    certificate_issued: bool = False
    participant_name: str | None = None
    completed_at: int | None = None
