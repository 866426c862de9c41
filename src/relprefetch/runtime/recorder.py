"""
Plan recorder - accumulates the trace of one planning call.
"""

from __future__ import annotations

from typing import Optional

from ..core.query_types import (
    ErrorStep,
    Plan,
    PlanError,
    PlanMode,
    Predicate,
    PrefetchResultStep,
    PrefetchStep,
    RelationshipConfig,
    RewriteStep,
)


class PlanRecorder:
    """
    Appends plan steps in call order and builds the final Plan.

    Usage:
        recorder = PlanRecorder()
        recorder.detected(predicates)
        recorder.announce_prefetch("asset", config, where)
        plan = recorder.build()
    """

    def __init__(self):
        self.mode: PlanMode = "none"
        self.truncated = False
        self._detected: list[Predicate] = []
        self._steps: list = []
        self._errors: list[PlanError] = []

    def detected(self, predicates: list[Predicate]) -> None:
        self._detected = list(predicates)

    def announce_prefetch(self, relationship: str, config: RelationshipConfig, related_where: str) -> None:
        if self.mode == "none":
            self.mode = "prefetch"
        self._steps.append(
            PrefetchStep(
                relationship=relationship,
                related_resource=config.related_resource,
                related_where=related_where,
                select=config.select,
                root_join_field=config.root_join_field,
                related_key_field=config.related_key_field,
                max_keys=config.max_keys,
            )
        )

    def record_result(self, relationship: str, keys_returned: int, keys_used: int, truncated: bool) -> None:
        if truncated:
            self.truncated = True
        self._steps.append(
            PrefetchResultStep(
                relationship=relationship,
                keys_returned=keys_returned,
                keys_used=keys_used,
            )
        )

    def record_rewrite(
        self,
        relationship: str,
        original: str,
        replaced_with: str,
        occurrences: int = 1,
        note: Optional[str] = None,
    ) -> None:
        self._steps.append(
            RewriteStep(
                relationship=relationship,
                original=original,
                replaced_with=replaced_with,
                occurrences=occurrences,
                note=note,
            )
        )

    def record_error(self, relationship: str, message: str) -> None:
        """Resolution failure for one predicate; the call carries on."""
        self._steps.append(ErrorStep(relationship=relationship, message=message))
        self._errors.append(PlanError(relationship=relationship, message=message))

    def fail(self, message: str) -> None:
        """Unexpected failure of the whole call."""
        self.mode = "error"
        self._errors.append(PlanError(message=message))

    def build(self) -> Plan:
        return Plan(
            mode=self.mode,
            detected=self._detected,
            steps=self._steps,
            truncated=self.truncated,
            errors=self._errors,
        )
