"""
Flow & Bottleneck Analyzer.

Derives a delegation-flow efficiency score from delegation history and flags
roles that receive abnormally many handoffs or hold on to work for too long.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import AnalyticsSettings
from ..core.calculations import clamp_percentage, finite, percentage, safe_mean
from ..models.core import DelegationEvent, TransitionEvent
from ..models.metrics import FlowMetrics, ModeTransition, ProblemPattern, RoleTransitionAnalysis


HIGH_REDELEGATION_PATTERN = "High redelegation"
FAILURE_PATTERN = "Delegation failures"
MAX_FASTEST_PATHS = 3


class FlowAnalyzer:
    """Delegation flow efficiency, bottleneck roles and problem patterns."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None,
                 logger: Optional[logging.Logger] = None):
        self.settings = settings or AnalyticsSettings()
        self.logger = logger or logging.getLogger(__name__)

    def flow_metrics(self, events: Sequence[DelegationEvent],
                     transitions: Sequence[TransitionEvent] = ()) -> FlowMetrics:
        """
        Analyze delegation flows.

        Args:
            events: Delegation events of the period
            transitions: Role transitions of the period, counted together with
                delegations for role-to-role volume and bottleneck detection

        Returns:
            Flow metrics; the zero-valued default when there is no history
        """
        if not events and not transitions:
            return FlowMetrics.empty()

        total = len(events)
        durations = [event.duration_hours for event in events if event.duration_hours is not None]
        avg_duration = safe_mean(durations)
        successful = sum(1 for event in events if event.success)
        redelegated = sum(1 for event in events if event.redelegation_count > 0)

        success_rate = percentage(successful, total)
        redelegation_rate = percentage(redelegated, total)
        efficiency = self.flow_efficiency_score(success_rate, redelegation_rate, avg_duration) if total else 0.0

        transition_analysis = self.transition_analysis(events)

        self.logger.debug(
            f"Analyzed {total} delegation flows and {len(transitions)} transitions, "
            f"efficiency score {efficiency:.1f}"
        )

        return FlowMetrics(
            total_flows=total,
            avg_flow_duration=avg_duration,
            success_rate=success_rate,
            redelegation_rate=redelegation_rate,
            efficiency_score=efficiency,
            bottleneck_roles=self.bottleneck_roles(events, transitions),
            role_transition_counts=self.role_transition_counts(events, transitions),
            transition_analysis=transition_analysis,
            fastest_paths=self.fastest_paths(transition_analysis),
            problem_patterns=self.problem_patterns(events),
        )

    @staticmethod
    def flow_efficiency_score(success_rate: float, redelegation_rate: float, avg_flow_duration: float) -> float:
        """
        Weighted composite of success, redelegation and handoff duration.

        Every day of average handoff duration costs 10 points of the duration
        component. The result is always within [0, 100].
        """
        avg_flow_duration = finite(avg_flow_duration)
        duration_score = max(0.0, 100 - (avg_flow_duration / 24) * 10) if avg_flow_duration > 0 else 0.0
        score = (
            clamp_percentage(success_rate) * 0.5
            + (100 - clamp_percentage(redelegation_rate)) * 0.3
            + duration_score * 0.2
        )
        return clamp_percentage(score)

    @staticmethod
    def role_transition_counts(events: Sequence[DelegationEvent],
                               transitions: Sequence[TransitionEvent] = ()) -> Tuple[ModeTransition, ...]:
        counts = Counter((event.from_role, event.to_role) for event in events)
        counts.update((transition.from_role, transition.to_role) for transition in transitions)
        return tuple(
            ModeTransition(from_role=from_role, to_role=to_role, count=count)
            for (from_role, to_role), count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        )

    def bottleneck_roles(self, events: Sequence[DelegationEvent],
                         transitions: Sequence[TransitionEvent] = ()) -> Tuple[str, ...]:
        """
        Flag roles with abnormal incoming volume or slow outgoing handoffs.

        Every role that appears as a source or target counts towards the mean
        incoming volume, including roles that never receive work.
        """
        roles = set()
        incoming: Counter = Counter()
        for item in list(events) + list(transitions):
            roles.add(item.from_role)
            roles.add(item.to_role)
            incoming[item.to_role] += 1

        if not roles:
            return ()

        mean_incoming = sum(incoming.values()) / len(roles)
        incoming_limit = self.settings.bottleneck_incoming_multiplier * mean_incoming

        handoff_hours: Dict[str, List[float]] = defaultdict(list)
        for event in events:
            if event.duration_hours is not None:
                handoff_hours[event.from_role].append(event.duration_hours)

        flagged = set()
        for role in roles:
            if incoming[role] > incoming_limit:
                flagged.add(role)
            elif handoff_hours.get(role) and safe_mean(handoff_hours[role]) > self.settings.bottleneck_handoff_hours:
                flagged.add(role)

        if flagged:
            self.logger.info(f"Bottleneck roles detected: {sorted(flagged)}")
        return tuple(sorted(flagged))

    def problem_patterns(self, events: Sequence[DelegationEvent]) -> Tuple[ProblemPattern, ...]:
        threshold = self.settings.high_redelegation_threshold
        patterns = [
            ProblemPattern(
                pattern=HIGH_REDELEGATION_PATTERN,
                frequency=sum(1 for event in events if event.redelegation_count > threshold),
            ),
            ProblemPattern(
                pattern=FAILURE_PATTERN,
                frequency=sum(1 for event in events if not event.success),
            ),
        ]
        # sorted() is stable, so equal frequencies keep declaration order
        return tuple(sorted(
            (pattern for pattern in patterns if pattern.frequency > 0),
            key=lambda pattern: -pattern.frequency,
        ))

    @staticmethod
    def transition_analysis(events: Sequence[DelegationEvent]) -> Tuple[RoleTransitionAnalysis, ...]:
        """Volume, average duration and success rate per handoff path, busiest first."""
        paths: Dict[Tuple[str, str], List[DelegationEvent]] = defaultdict(list)
        for event in events:
            paths[(event.from_role, event.to_role)].append(event)

        analysis = [
            RoleTransitionAnalysis(
                from_role=from_role,
                to_role=to_role,
                count=len(path_events),
                avg_duration_hours=safe_mean(
                    event.duration_hours for event in path_events if event.duration_hours is not None
                ),
                success_rate=percentage(sum(1 for event in path_events if event.success), len(path_events)),
            )
            for (from_role, to_role), path_events in paths.items()
        ]
        return tuple(sorted(analysis, key=lambda path: -path.count))

    @staticmethod
    def fastest_paths(analysis: Sequence[RoleTransitionAnalysis]) -> Tuple[str, ...]:
        """Reliable, repeated handoff paths ordered by average duration."""
        candidates = [
            path for path in analysis
            if path.success_rate > 80 and path.avg_duration_hours > 0 and path.count > 1
        ]
        candidates.sort(key=lambda path: path.avg_duration_hours)
        return tuple(path.label for path in candidates[:MAX_FASTEST_PATHS])
