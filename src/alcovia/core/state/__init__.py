"""状態機械モジュール"""

from .machines import (
    StudentStateMachine,
    Transition,
    TransitionOutcome,
)

__all__ = [
    "StudentStateMachine",
    "Transition",
    "TransitionOutcome",
]
