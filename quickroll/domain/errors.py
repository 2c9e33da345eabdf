"""Action error taxonomy."""

from __future__ import annotations


class ActionAborted(Exception):
    """The action stopped before producing output; nothing was consumed."""

    kind = "aborted"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ResourceDenied(ActionAborted):
    kind = "resource_denied"


class InteractionCancelled(ActionAborted):
    kind = "interaction_cancelled"


class EvaluatorFailure(RuntimeError):
    """The dice evaluator rejected a formula; fatal to the action."""
