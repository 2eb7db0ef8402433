"""Workflow execution domain concepts.

This package holds first-class types for:
- Step kinds (the tags a workflow plan is made of)
- Trigger notifications (upstream change signals)
- The step executor state machine
- Per-workflow pass exclusion

The intent is that a pass is restartable from its persisted cursor and that
its control flow is deterministic given the plan and connector outcomes.
"""

__all__: list[str] = []
