"""
Workflow state machine.

Single authoritative state for one analysis -> project -> batch attempt.
Every forward transition is gated on its precondition; a rejected
transition raises WorkflowTransitionError and leaves the machine untouched.
"""

from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID

from modules.assignment_validator import find_unbound_sections
from shared.errors import WorkflowTransitionError, ValidationError
from shared.logging import get_logger
from shared.models import Analysis, AnalysisStatus, AssignmentSet, BatchSummary, VoiceConfig
from shared.validation import validate_variant_count

logger = get_logger("workflow")


class WorkflowState(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    SCRIPT_READY = "SCRIPT_READY"
    CLIPS_ASSIGNED = "CLIPS_ASSIGNED"
    VOICE_READY = "VOICE_READY"
    VARIANTS_CONFIGURED = "VARIANTS_CONFIGURED"
    RENDERING = "RENDERING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.DONE, WorkflowState.FAILED)


S = WorkflowState

# Tabs the operator may open in each state
_TAB_ACCESS = {
    "script": {S.SCRIPT_READY, S.CLIPS_ASSIGNED, S.VOICE_READY, S.VARIANTS_CONFIGURED, S.RENDERING, S.DONE},
    "clips": {S.SCRIPT_READY, S.CLIPS_ASSIGNED, S.VOICE_READY, S.VARIANTS_CONFIGURED, S.RENDERING, S.DONE},
    "voice": {S.CLIPS_ASSIGNED, S.VOICE_READY, S.VARIANTS_CONFIGURED, S.RENDERING, S.DONE},
    "variants": {S.VOICE_READY, S.VARIANTS_CONFIGURED, S.RENDERING, S.DONE},
    "results": {S.DONE},
}

# States in which the script may still be edited (before a project exists)
EDITABLE_STATES = (S.SCRIPT_READY, S.CLIPS_ASSIGNED, S.VOICE_READY, S.VARIANTS_CONFIGURED)


def can_access(state: WorkflowState, tab: str) -> bool:
    """Whether ``tab`` is reachable in ``state``. Unknown tabs are never reachable."""
    return state in _TAB_ACCESS.get(tab, set())


class WorkflowStateMachine:
    """Gated, forward-only workflow with a FAILED escape hatch.

    Re-submitting the stage the machine currently sits in is allowed (for
    example re-binding clips while in CLIPS_ASSIGNED). Moving backwards is
    not; the only way back is reset().
    """

    def __init__(self, max_variants: int = 10):
        self.max_variants = max_variants
        self._reset_context()

    def _reset_context(self) -> None:
        self.state: WorkflowState = WorkflowState.IDLE
        self.analysis_id: Optional[UUID] = None
        self.analysis: Optional[Analysis] = None
        self.assignments: Optional[AssignmentSet] = None
        self.voice: Optional[VoiceConfig] = None
        self.variant_count: Optional[int] = None
        self.project_id: Optional[UUID] = None
        self.variant_ids: List[UUID] = []
        self.failure_reason: Optional[str] = None
        self.history: List[Tuple[WorkflowState, WorkflowState]] = []

    # Queries

    def can_access(self, tab: str) -> bool:
        return can_access(self.state, tab)

    def require_state(self, *states: WorkflowState) -> None:
        """Raise WorkflowTransitionError unless the machine is in one of ``states``."""
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WorkflowTransitionError(
                f"Operation not allowed in state {self.state.value} (allowed: {allowed})",
                current_state=self.state.value
            )

    # Transitions

    def _reject(self, target: WorkflowState, reason: str) -> None:
        logger.warning(
            "Workflow transition rejected",
            extra={"from_state": self.state.value, "to_state": target.value, "reason": reason}
        )
        raise WorkflowTransitionError(
            f"Cannot enter {target.value} from {self.state.value}: {reason}",
            current_state=self.state.value,
            target_state=target.value
        )

    def _check_source(self, target: WorkflowState, *allowed_from: WorkflowState) -> None:
        if self.state not in allowed_from:
            self._reject(target, "transition not allowed")

    def _enter(self, target: WorkflowState) -> None:
        previous = self.state
        self.state = target
        if previous != target:
            self.history.append((previous, target))
            logger.info(
                "Workflow transition",
                extra={"from_state": previous.value, "to_state": target.value}
            )

    def begin_analysis(self, analysis_id: UUID) -> None:
        """IDLE -> ANALYZING."""
        self._check_source(S.ANALYZING, S.IDLE)
        if analysis_id is None:
            self._reject(S.ANALYZING, "analysis id is required")
        self.analysis_id = analysis_id
        self._enter(S.ANALYZING)

    def mark_script_ready(self, analysis: Analysis) -> None:
        """ANALYZING -> SCRIPT_READY once the tracked analysis completed with sections."""
        self._check_source(S.SCRIPT_READY, S.ANALYZING, S.SCRIPT_READY)
        if self.analysis_id is not None and analysis.id != self.analysis_id:
            self._reject(S.SCRIPT_READY, f"analysis {analysis.id} is not the tracked analysis")
        if analysis.status != AnalysisStatus.COMPLETED:
            self._reject(S.SCRIPT_READY, f"analysis status is {analysis.status.value}, expected completed")
        if not analysis.sections:
            self._reject(S.SCRIPT_READY, "analysis has no sections")
        self.analysis = analysis
        self._enter(S.SCRIPT_READY)

    def update_sections(self, analysis: Analysis) -> None:
        """Replace the tracked script after an operator edit, without changing state."""
        self.require_state(*EDITABLE_STATES)
        self.analysis = analysis

    def assign_clips(self, assignments: AssignmentSet) -> None:
        """SCRIPT_READY -> CLIPS_ASSIGNED when every section is bound."""
        self._check_source(S.CLIPS_ASSIGNED, S.SCRIPT_READY, S.CLIPS_ASSIGNED)
        unbound = find_unbound_sections(self.analysis.sections, assignments)
        if unbound:
            labels = ", ".join(f"#{s.order_index + 1} {s.type.value}" for s in unbound)
            self._reject(S.CLIPS_ASSIGNED, f"{len(unbound)} section(s) without a clip: {labels}")
        self.assignments = assignments
        self._enter(S.CLIPS_ASSIGNED)

    def select_voice(self, voice: VoiceConfig) -> None:
        """CLIPS_ASSIGNED -> VOICE_READY once a voice is chosen."""
        self._check_source(S.VOICE_READY, S.CLIPS_ASSIGNED, S.VOICE_READY)
        if voice is None or not voice.voice_id or not voice.voice_id.strip():
            self._reject(S.VOICE_READY, "a voice must be selected")
        self.voice = voice
        self._enter(S.VOICE_READY)

    def configure_variants(self, count: int) -> None:
        """VOICE_READY -> VARIANTS_CONFIGURED with a valid variant count."""
        self._check_source(S.VARIANTS_CONFIGURED, S.VOICE_READY, S.VARIANTS_CONFIGURED)
        try:
            validate_variant_count(count, self.max_variants)
        except ValidationError as e:
            self._reject(S.VARIANTS_CONFIGURED, e.message)
        self.variant_count = count
        self._enter(S.VARIANTS_CONFIGURED)

    def start_rendering(self, project_id: UUID) -> None:
        """VARIANTS_CONFIGURED -> RENDERING once the project exists."""
        self._check_source(S.RENDERING, S.VARIANTS_CONFIGURED)
        if project_id is None:
            self._reject(S.RENDERING, "project was not created")
        self.project_id = project_id
        self._enter(S.RENDERING)

    def record_variants(self, variant_ids: List[UUID]) -> None:
        self.require_state(S.RENDERING)
        self.variant_ids = list(variant_ids)

    def finish(self, summary: BatchSummary) -> None:
        """RENDERING -> DONE on the batch-completion signal."""
        self._check_source(S.DONE, S.RENDERING)
        if not summary.all_done:
            self._reject(S.DONE, "batch is still rendering")
        self._enter(S.DONE)

    def fail(self, reason: str) -> None:
        """Any non-terminal state -> FAILED."""
        if self.state.is_terminal:
            self._reject(S.FAILED, "workflow already finished")
        self.failure_reason = reason
        logger.error(
            "Workflow failed",
            extra={"from_state": self.state.value, "reason": reason}
        )
        self._enter(S.FAILED)

    def reset(self) -> None:
        """Drop all tracked context and return to IDLE."""
        logger.info("Workflow reset", extra={"from_state": self.state.value})
        self._reset_context()
