"""
Raw Data Source contract.

The persistence/query engine lives outside the analytics core. It is reached
through ``RawDataSource``: given a filter predicate, each fetch returns a
read-only record set. Reads must be repeatable and side-effect free for the
same predicate; the analytics core never retries a fetch.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..models.core import (
    CodeReviewRecord,
    DelegationEvent,
    SubtaskRecord,
    TaskRecord,
    TransitionEvent,
)
from .query_gate import FilterPredicate


logger = logging.getLogger(__name__)


class RawDataSource(ABC):
    """Read-only access to workflow execution records."""

    @abstractmethod
    async def fetch_tasks(self, predicate: FilterPredicate) -> Sequence[TaskRecord]:
        """Tasks matching the predicate."""

    @abstractmethod
    async def fetch_delegations(self, predicate: FilterPredicate) -> Sequence[DelegationEvent]:
        """Delegation events of tasks matching the predicate."""

    @abstractmethod
    async def fetch_code_reviews(self, predicate: FilterPredicate) -> Sequence[CodeReviewRecord]:
        """Code reviews of tasks matching the predicate."""

    @abstractmethod
    async def fetch_subtasks(self, predicate: FilterPredicate) -> Sequence[SubtaskRecord]:
        """Subtasks of tasks matching the predicate."""

    @abstractmethod
    async def fetch_transitions(self, predicate: FilterPredicate) -> Sequence[TransitionEvent]:
        """Role transitions of tasks matching the predicate."""


class InMemoryDataSource(RawDataSource):
    """
    Data source over in-memory record lists.

    Tasks are matched against every predicate field. Related records are
    included when their task matches; records whose task is unknown are
    matched on their own timestamp and task id and are excluded whenever an
    owner, mode or priority filter is active.
    """

    def __init__(self,
                 tasks: Iterable[TaskRecord] = (),
                 delegations: Iterable[DelegationEvent] = (),
                 code_reviews: Iterable[CodeReviewRecord] = (),
                 subtasks: Iterable[SubtaskRecord] = (),
                 transitions: Iterable[TransitionEvent] = ()):
        self._tasks: Dict[str, TaskRecord] = {task.id: task for task in tasks}
        self._delegations = tuple(delegations)
        self._code_reviews = tuple(code_reviews)
        self._subtasks = tuple(subtasks)
        self._transitions = tuple(transitions)

    def _related_matches(self, predicate: FilterPredicate, task_ref: str,
                         timestamp: Optional[datetime]) -> bool:
        task = self._tasks.get(task_ref)
        if task is not None:
            return predicate.matches_task(task)

        if predicate.owner is not None or predicate.mode is not None or predicate.priority is not None:
            return False
        if predicate.task_id is not None and task_ref != predicate.task_id:
            return False
        return predicate.in_range(timestamp)

    async def fetch_tasks(self, predicate: FilterPredicate) -> List[TaskRecord]:
        tasks = [task for task in self._tasks.values() if predicate.matches_task(task)]
        logger.debug(f"Fetched {len(tasks)} tasks for {predicate.to_dict()}")
        return tasks

    async def fetch_delegations(self, predicate: FilterPredicate) -> List[DelegationEvent]:
        events = [
            event for event in self._delegations
            if self._related_matches(predicate, event.task_ref, event.timestamp)
        ]
        return sorted(events, key=lambda event: event.timestamp)

    async def fetch_code_reviews(self, predicate: FilterPredicate) -> List[CodeReviewRecord]:
        return [
            review for review in self._code_reviews
            if self._related_matches(predicate, review.task_ref, review.created_at)
        ]

    async def fetch_subtasks(self, predicate: FilterPredicate) -> List[SubtaskRecord]:
        subtasks = [
            subtask for subtask in self._subtasks
            if self._related_matches(predicate, subtask.task_ref, subtask.started_at)
        ]
        return sorted(subtasks, key=lambda subtask: (subtask.plan_ref, subtask.sequence_number))

    async def fetch_transitions(self, predicate: FilterPredicate) -> List[TransitionEvent]:
        transitions = [
            transition for transition in self._transitions
            if self._related_matches(predicate, transition.task_ref, transition.timestamp)
        ]
        return sorted(transitions, key=lambda transition: transition.timestamp)
