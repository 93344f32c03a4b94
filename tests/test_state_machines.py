"""状態機械のテスト"""

import pytest

from alcovia.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from alcovia.core.events import (
    CheckInSubmitted,
    InterventionAssigned,
    InterventionCompleted,
    PushEventType,
    StudentEventType,
)
from alcovia.core.models import Intervention, InterventionStatus, StudentStatus, Verdict
from alcovia.core.state import StudentStateMachine


def _check_in(verdict: Verdict, student_id: str = "s-1") -> CheckInSubmitted:
    score, minutes = (9, 90) if verdict == Verdict.PASS else (5, 30)
    return CheckInSubmitted(
        student_id=student_id, verdict=verdict, quiz_score=score, focus_minutes=minutes
    )


def _pending(student_id: str = "s-1") -> Intervention:
    return Intervention(student_id=student_id, task_description="Review ch.3")


class TestOnTrack:
    """ON_TRACK からの遷移"""

    def test_initial_state(self):
        """初期状態はON_TRACK"""
        sm = StudentStateMachine()
        assert sm.current_state == StudentStatus.ON_TRACK

    def test_pass_stays_on_track(self):
        """合格チェックインはON_TRACKのまま"""
        # Arrange
        sm = StudentStateMachine()

        # Act
        outcome = sm.transition(_check_in(Verdict.PASS))

        # Assert
        assert outcome.to_state == StudentStatus.ON_TRACK
        assert outcome.applied
        assert not outcome.changed
        assert outcome.notification is None

    def test_fail_needs_intervention(self):
        """不合格チェックインでNEEDS_INTERVENTIONへ"""
        # Arrange
        sm = StudentStateMachine()

        # Act
        outcome = sm.transition(_check_in(Verdict.FAIL))

        # Assert
        assert outcome.from_state == StudentStatus.ON_TRACK
        assert outcome.to_state == StudentStatus.NEEDS_INTERVENTION
        assert outcome.changed
        assert sm.current_state == StudentStatus.NEEDS_INTERVENTION

    def test_assign_is_invalid(self):
        """ON_TRACKへの介入割り当ては不正な遷移"""
        sm = StudentStateMachine()

        with pytest.raises(InvalidTransitionError):
            sm.transition(InterventionAssigned(student_id="s-1", task_description="x"))

        assert sm.current_state == StudentStatus.ON_TRACK

    def test_complete_is_invalid(self):
        """ON_TRACKでの完了要求は不正な遷移"""
        sm = StudentStateMachine()

        with pytest.raises(InvalidTransitionError):
            sm.transition(InterventionCompleted(student_id="s-1", intervention_id="i-1"))


class TestNeedsIntervention:
    """NEEDS_INTERVENTION からの遷移"""

    @pytest.mark.parametrize("verdict", [Verdict.PASS, Verdict.FAIL])
    def test_check_in_ignored(self, verdict):
        """チェックインでは自己解決できない"""
        # Arrange
        sm = StudentStateMachine(StudentStatus.NEEDS_INTERVENTION)

        # Act
        outcome = sm.transition(_check_in(verdict))

        # Assert
        assert outcome.to_state == StudentStatus.NEEDS_INTERVENTION
        assert not outcome.applied
        assert sm.current_state == StudentStatus.NEEDS_INTERVENTION

    def test_assign_moves_to_remedial_task(self):
        """介入割り当てでREMEDIAL_TASKへ、保留中の介入と通知を生成"""
        # Arrange
        sm = StudentStateMachine(StudentStatus.NEEDS_INTERVENTION)
        event = InterventionAssigned(
            student_id="s-1", task_description="Review ch.3", mentor_notes="Focus on examples"
        )

        # Act
        outcome = sm.transition(event)

        # Assert
        assert outcome.to_state == StudentStatus.REMEDIAL_TASK
        assert outcome.intervention is not None
        assert outcome.intervention.status == InterventionStatus.PENDING
        assert outcome.intervention.task_description == "Review ch.3"
        assert outcome.intervention.mentor_notes == "Focus on examples"
        assert outcome.notification is not None
        assert outcome.notification.event_type == PushEventType.INTERVENTION_ASSIGNED
        payload = outcome.notification.to_dict()
        assert payload["intervention"]["intervention_id"] == outcome.intervention.intervention_id

    def test_assign_rejected_while_pending(self):
        """保留中の介入がある場合は割り当てを拒否"""
        sm = StudentStateMachine(StudentStatus.NEEDS_INTERVENTION)

        with pytest.raises(InvalidTransitionError, match="already pending"):
            sm.transition(
                InterventionAssigned(student_id="s-1", task_description="again"), _pending()
            )

        assert sm.current_state == StudentStatus.NEEDS_INTERVENTION


class TestRemedialTask:
    """REMEDIAL_TASK からの遷移"""

    def test_complete_matching_intervention(self):
        """保留中の介入IDと一致すればON_TRACKへ"""
        # Arrange
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)
        pending = _pending()

        # Act
        outcome = sm.transition(
            InterventionCompleted(student_id="s-1", intervention_id=pending.intervention_id),
            pending,
        )

        # Assert
        assert outcome.to_state == StudentStatus.ON_TRACK
        assert outcome.intervention is not None
        assert outcome.intervention.status == InterventionStatus.COMPLETED
        assert outcome.intervention.completed_at is not None
        assert outcome.notification is None

    def test_complete_mismatch_not_found(self):
        """介入IDが一致しなければNotFoundErrorで状態は変わらない"""
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)

        with pytest.raises(NotFoundError):
            sm.transition(
                InterventionCompleted(student_id="s-1", intervention_id="wrong"), _pending()
            )

        assert sm.current_state == StudentStatus.REMEDIAL_TASK

    def test_complete_without_pending_not_found(self):
        """保留中の介入がなければNotFoundError"""
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)

        with pytest.raises(NotFoundError):
            sm.transition(InterventionCompleted(student_id="s-1", intervention_id="i-1"))

    def test_complete_other_students_intervention_not_found(self):
        """他の生徒の介入IDでは完了できない"""
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)
        other = _pending("s-2")

        with pytest.raises(NotFoundError):
            sm.transition(
                InterventionCompleted(student_id="s-1", intervention_id=other.intervention_id),
                other,
            )

    @pytest.mark.parametrize("verdict", [Verdict.PASS, Verdict.FAIL])
    def test_check_in_ignored(self, verdict):
        """補習タスク中のチェックインは無視"""
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)

        outcome = sm.transition(_check_in(verdict))

        assert not outcome.applied
        assert outcome.to_state == StudentStatus.REMEDIAL_TASK

    def test_assign_is_invalid(self):
        """補習タスク中の再割り当ては不正な遷移"""
        sm = StudentStateMachine(StudentStatus.REMEDIAL_TASK)

        with pytest.raises(InvalidTransitionError):
            sm.transition(
                InterventionAssigned(student_id="s-1", task_description="x"), _pending()
            )


class TestValidEvents:
    """遷移可能なイベント一覧"""

    def test_valid_events_per_state(self):
        """各状態で受け付けるイベント"""
        E = StudentEventType
        assert set(StudentStateMachine(StudentStatus.ON_TRACK).get_valid_events()) == {
            E.CHECK_IN_PASSED,
            E.CHECK_IN_FAILED,
        }
        assert set(StudentStateMachine(StudentStatus.NEEDS_INTERVENTION).get_valid_events()) == {
            E.CHECK_IN_PASSED,
            E.CHECK_IN_FAILED,
            E.INTERVENTION_ASSIGNED,
        }
        assert StudentStateMachine(StudentStatus.REMEDIAL_TASK).can_transition(
            E.INTERVENTION_COMPLETED
        )


class TestEventValidation:
    """不正なペイロードは生成時に拒否"""

    @pytest.mark.parametrize("student_id", ["", "   "])
    def test_missing_student_id(self, student_id):
        with pytest.raises(ValidationError, match="student_id"):
            InterventionAssigned(student_id=student_id, task_description="x")

    def test_missing_task_description(self):
        with pytest.raises(ValidationError, match="task_description"):
            InterventionAssigned(student_id="s-1", task_description="")

    def test_missing_intervention_id(self):
        with pytest.raises(ValidationError, match="intervention_id"):
            InterventionCompleted(student_id="s-1", intervention_id="")

    def test_negative_tab_switches(self):
        with pytest.raises(ValidationError):
            CheckInSubmitted(
                student_id="s-1",
                verdict=Verdict.PASS,
                quiz_score=9,
                focus_minutes=90,
                tab_switches=-1,
            )

    def test_check_in_event_type_follows_verdict(self):
        assert _check_in(Verdict.PASS).type == StudentEventType.CHECK_IN_PASSED
        assert _check_in(Verdict.FAIL).type == StudentEventType.CHECK_IN_FAILED
