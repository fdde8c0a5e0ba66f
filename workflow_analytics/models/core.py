"""
Core Pydantic models for workflow analytics.

This module contains the read-only record models handed to the analytics engine
by a data source: tasks, role delegations, code reviews, subtasks and role
transitions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TaskStatus(str, Enum):
    """Enumeration of task statuses."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    NEEDS_REVIEW = "needs-review"
    COMPLETED = "completed"
    NEEDS_CHANGES = "needs-changes"


class ReviewStatus(str, Enum):
    """Enumeration of code review outcomes."""

    APPROVED = "approved"
    APPROVED_WITH_RESERVATIONS = "approved_with_reservations"
    NEEDS_CHANGES = "needs_changes"
    PENDING = "pending"


class SubtaskStatus(str, Enum):
    """Enumeration of subtask statuses."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are read as UTC so every record compares with every bound."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


class TaskRecord(BaseModel):
    """Model representing a workflow task."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique task identifier")
    status: TaskStatus = Field(..., description="Current task status")
    priority: Optional[str] = Field(None, description="Task priority label")
    owner: Optional[str] = Field(None, description="Task owner")
    mode: Optional[str] = Field(None, description="Role currently holding the task")
    creation_time: datetime = Field(..., description="When the task was created")
    completion_time: Optional[datetime] = Field(None, description="When the task was completed")
    redelegation_count: int = Field(default=0, ge=0, description="Times the task was redelegated")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        """Validate task id is not empty."""
        if not v or not v.strip():
            raise ValueError("Task id cannot be empty")
        return v.strip()

    @field_validator("creation_time", "completion_time")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_completion_time(self):
        """Ensure completion_time is not before creation_time."""
        if self.completion_time is not None and self.completion_time < self.creation_time:
            raise ValueError("completion_time cannot be before creation_time")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def completion_hours(self) -> Optional[float]:
        """Hours from creation to completion, if the task has a completion time."""
        if self.completion_time is None:
            return None
        return _hours_between(self.creation_time, self.completion_time)


class DelegationEvent(BaseModel):
    """Model representing a role-to-role delegation of a task."""

    model_config = ConfigDict(frozen=True)

    task_ref: str = Field(..., description="Delegated task id")
    from_role: str = Field(..., description="Role handing the task off")
    to_role: str = Field(..., description="Role receiving the task")
    timestamp: datetime = Field(..., description="When the delegation happened")
    success: bool = Field(default=True, description="Whether the delegation succeeded")
    rejection_reason: Optional[str] = Field(None, description="Why the delegation failed")
    completion_timestamp: Optional[datetime] = Field(None, description="When the delegated work finished")
    redelegation_count: int = Field(default=0, ge=0, description="Redelegations of the owning task")

    @field_validator("from_role", "to_role")
    @classmethod
    def validate_role(cls, v):
        """Validate role names are not empty."""
        if not v or not v.strip():
            raise ValueError("Role cannot be empty")
        return v.strip()

    @field_validator("timestamp", "completion_timestamp")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @property
    def duration_hours(self) -> Optional[float]:
        """Hours between delegation and completion, when both are known."""
        if self.completion_timestamp is None:
            return None
        return _hours_between(self.timestamp, self.completion_timestamp)


class CodeReviewRecord(BaseModel):
    """Model representing a code review of a task."""

    model_config = ConfigDict(frozen=True)

    task_ref: str = Field(..., description="Reviewed task id")
    status: ReviewStatus = Field(..., description="Review outcome")
    created_at: datetime = Field(..., description="When the review started")
    updated_at: datetime = Field(..., description="When the review was last updated")
    reviewer: Optional[str] = Field(None, description="Reviewer role or name")
    issues: List[str] = Field(default_factory=list, description="Issue labels raised in the review")

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_updated_at(self):
        """Ensure updated_at is not before created_at."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        return self

    @property
    def review_hours(self) -> float:
        return _hours_between(self.created_at, self.updated_at)


class SubtaskRecord(BaseModel):
    """Model representing a subtask of an implementation plan."""

    model_config = ConfigDict(frozen=True)

    task_ref: str = Field(..., description="Parent task id")
    plan_ref: str = Field(..., description="Implementation plan id")
    batch_id: Optional[str] = Field(None, description="Batch the subtask belongs to")
    status: SubtaskStatus = Field(default=SubtaskStatus.NOT_STARTED, description="Subtask status")
    sequence_number: int = Field(default=0, ge=0, description="Order within the plan")
    estimated_duration_hours: Optional[float] = Field(None, ge=0, description="Estimated effort in hours")
    started_at: Optional[datetime] = Field(None, description="When work started")
    completed_at: Optional[datetime] = Field(None, description="When work finished")

    @field_validator("started_at", "completed_at")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @property
    def is_completed(self) -> bool:
        return self.status == SubtaskStatus.COMPLETED

    @property
    def actual_duration_hours(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return _hours_between(self.started_at, self.completed_at)


class TransitionEvent(BaseModel):
    """Model representing a workflow role transition of a task."""

    model_config = ConfigDict(frozen=True)

    task_ref: str = Field(..., description="Task id")
    from_role: str = Field(..., description="Previous role")
    to_role: str = Field(..., description="New role")
    timestamp: datetime = Field(..., description="When the transition happened")
    reason: Optional[str] = Field(None, description="Why the transition happened")

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)
