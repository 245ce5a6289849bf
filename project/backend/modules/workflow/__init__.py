"""
Workflow module.

Explicit state machine for the analyse -> assign -> voice -> render flow.
"""

from modules.workflow.state_machine import EDITABLE_STATES, WorkflowState, WorkflowStateMachine, can_access

__all__ = ["EDITABLE_STATES", "WorkflowState", "WorkflowStateMachine", "can_access"]
