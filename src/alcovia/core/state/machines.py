"""状態機械 (State Machines)

生徒の状態遷移を管理。
遷移表にない組み合わせは InvalidTransitionError とする。

状態機械は純粋で、ストアやチャネルには触れない。
副作用（介入レコードの作成・完了、プッシュ通知）は TransitionOutcome として返し、
エンジンが永続化と配信を行う。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..errors import AlcoviaError, InvalidTransitionError, NotFoundError
from ..events import (
    InterventionAssigned,
    InterventionCompleted,
    PushEvent,
    StudentEvent,
    StudentEventType,
)
from ..models import Intervention, StudentStatus

Guard = Callable[[StudentEvent, Intervention | None], bool]


@dataclass
class Transition:
    """状態遷移の定義"""

    from_state: StudentStatus
    to_state: StudentStatus
    event_type: StudentEventType
    guard: Guard | None = None
    guard_error: type[AlcoviaError] = InvalidTransitionError
    guard_message: str = "Guard condition failed"
    ignored: bool = False


@dataclass
class TransitionOutcome:
    """遷移の結果

    Attributes:
        applied: False の場合、イベントは受理されたが状態には反映されていない
        intervention: 作成または完了した介入レコード
        notification: 永続化後に配信すべきプッシュイベント
    """

    event: StudentEvent
    from_state: StudentStatus
    to_state: StudentStatus
    applied: bool = True
    intervention: Intervention | None = None
    notification: PushEvent | None = None

    @property
    def changed(self) -> bool:
        return self.from_state != self.to_state


def _no_pending(event: StudentEvent, pending: Intervention | None) -> bool:
    return pending is None or not pending.is_pending


def _matches_pending(event: StudentEvent, pending: Intervention | None) -> bool:
    if pending is None or not pending.is_pending:
        return False
    assert isinstance(event, InterventionCompleted)
    return (
        pending.intervention_id == event.intervention_id
        and pending.student_id == event.student_id
    )


class StudentStateMachine:
    """生徒状態機械

    状態遷移:
    - ON_TRACK -> ON_TRACK (合格チェックイン)
    - ON_TRACK -> NEEDS_INTERVENTION (不合格チェックイン)
    - NEEDS_INTERVENTION -> NEEDS_INTERVENTION (チェックインは無視、メンター待ち)
    - NEEDS_INTERVENTION -> REMEDIAL_TASK (介入割り当て)
    - REMEDIAL_TASK -> ON_TRACK (保留中の介入を完了)
    - REMEDIAL_TASK -> REMEDIAL_TASK (チェックインは無視)
    """

    def __init__(self, initial_state: StudentStatus = StudentStatus.ON_TRACK):
        self.current_state = initial_state
        S, E = StudentStatus, StudentEventType
        transitions = [
            Transition(S.ON_TRACK, S.ON_TRACK, E.CHECK_IN_PASSED),
            Transition(S.ON_TRACK, S.NEEDS_INTERVENTION, E.CHECK_IN_FAILED),
            # フラグ済みの生徒はチェックインで自己解決できない
            Transition(
                S.NEEDS_INTERVENTION, S.NEEDS_INTERVENTION, E.CHECK_IN_PASSED, ignored=True
            ),
            Transition(
                S.NEEDS_INTERVENTION, S.NEEDS_INTERVENTION, E.CHECK_IN_FAILED, ignored=True
            ),
            Transition(
                S.NEEDS_INTERVENTION,
                S.REMEDIAL_TASK,
                E.INTERVENTION_ASSIGNED,
                guard=_no_pending,
                guard_message="Intervention already pending",
            ),
            Transition(
                S.REMEDIAL_TASK,
                S.ON_TRACK,
                E.INTERVENTION_COMPLETED,
                guard=_matches_pending,
                guard_error=NotFoundError,
                guard_message="No matching pending intervention",
            ),
            # 補習タスク中はチェックイン無効
            Transition(S.REMEDIAL_TASK, S.REMEDIAL_TASK, E.CHECK_IN_PASSED, ignored=True),
            Transition(S.REMEDIAL_TASK, S.REMEDIAL_TASK, E.CHECK_IN_FAILED, ignored=True),
        ]
        self._transitions = {(t.from_state, t.event_type): t for t in transitions}

    def can_transition(self, event_type: StudentEventType) -> bool:
        """指定イベントで遷移可能か確認"""
        return (self.current_state, event_type) in self._transitions

    def get_valid_events(self) -> list[StudentEventType]:
        """現在の状態から遷移可能なイベント一覧を取得"""
        return [
            event_type for (state, event_type) in self._transitions if state == self.current_state
        ]

    def transition(
        self, event: StudentEvent, pending: Intervention | None = None
    ) -> TransitionOutcome:
        """イベントを適用して状態遷移

        Args:
            event: 適用するイベント
            pending: 生徒の保留中の介入（なければNone）

        Returns:
            遷移結果

        Raises:
            InvalidTransitionError: 遷移表にない組み合わせ、または割り当て済みの介入がある場合
            NotFoundError: 完了要求の介入IDが保留中の介入と一致しない場合
        """
        key = (self.current_state, event.type)
        transition = self._transitions.get(key)

        if not transition:
            valid = [str(e) for e in self.get_valid_events()]
            raise InvalidTransitionError(
                f"Invalid transition: {self.current_state} + {event.type}. Valid events: {valid}"
            )

        if transition.guard and not transition.guard(event, pending):
            raise transition.guard_error(
                f"{transition.guard_message}: {event.type} (student {event.student_id})"
            )

        from_state = self.current_state
        if transition.ignored:
            return TransitionOutcome(
                event=event, from_state=from_state, to_state=from_state, applied=False
            )

        outcome = TransitionOutcome(
            event=event, from_state=from_state, to_state=transition.to_state
        )
        if isinstance(event, InterventionAssigned):
            intervention = Intervention(
                student_id=event.student_id,
                task_description=event.task_description,
                mentor_notes=event.mentor_notes or "",
            )
            outcome.intervention = intervention
            outcome.notification = PushEvent.intervention_assigned(intervention)
        elif isinstance(event, InterventionCompleted):
            assert pending is not None
            outcome.intervention = pending.complete()

        self.current_state = transition.to_state
        return outcome
