"""介入エンジン

チェックイン判定・状態遷移・永続化・プッシュ配信を調停する。

処理順序:
1. 入力を検証（失敗時は何も変更しない）
2. 生徒IDのロックを取得し、ストアから現在の状態を読む
3. 状態機械で遷移を計算
4. ストアにコミット（タイムアウト付き）
5. コミット成功後にのみプッシュ配信
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from .channel import NotificationChannel
from .errors import NotFoundError, StoreUnavailableError, ValidationError
from .evaluator import PASS_FOCUS_MINUTES, PASS_QUIZ_SCORE, evaluate
from .events import CheckInSubmitted, InterventionAssigned, InterventionCompleted
from .locks import KeyedLock
from .models import CheckInLogEntry, Intervention, Student, StudentStatus, Verdict
from .state import StudentStateMachine, TransitionOutcome
from .store import StudentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT_SECONDS = 3.0
DEFAULT_STUDENT_NAME = "Demo Student"

MESSAGE_PASSED = "Great job! Keep it up!"
MESSAGE_FAILED = "Your performance needs attention. A mentor will review shortly."
MESSAGE_AWAITING_MENTOR = "Check-ins are paused until a mentor reviews your progress."
MESSAGE_REMEDIAL_PENDING = "Check-ins are disabled until your remedial task is completed."
MESSAGE_ASSIGNED = "Intervention assigned successfully"
MESSAGE_COMPLETED = "Task completed! You are back on track."


@dataclass
class StudentState:
    """生徒の現在状態（同期読み出し用）"""

    student: Student
    pending_intervention: Intervention | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "student": self.student.model_dump(mode="json"),
            "pendingIntervention": (
                self.pending_intervention.model_dump(mode="json")
                if self.pending_intervention
                else None
            ),
        }


@dataclass
class CheckInResult:
    """チェックイン結果"""

    status: StudentStatus
    message: str
    verdict: Verdict
    applied: bool
    log_entry: CheckInLogEntry


@dataclass
class AssignmentResult:
    """介入割り当て結果"""

    intervention: Intervention
    status: StudentStatus
    delivered: int
    message: str = MESSAGE_ASSIGNED


@dataclass
class CompletionResult:
    """介入完了結果"""

    intervention: Intervention
    status: StudentStatus
    message: str = MESSAGE_COMPLETED


class InterventionEngine:
    """生徒ごとの状態遷移を直列化して適用するエンジン"""

    def __init__(
        self,
        store: StudentStore,
        channel: NotificationChannel,
        *,
        store_timeout: float = DEFAULT_STORE_TIMEOUT_SECONDS,
        pass_quiz_score: float = PASS_QUIZ_SCORE,
        pass_focus_minutes: float = PASS_FOCUS_MINUTES,
        auto_enroll: bool = True,
        default_name: str = DEFAULT_STUDENT_NAME,
    ) -> None:
        self.store = store
        self.channel = channel
        self.store_timeout = store_timeout
        self.pass_quiz_score = pass_quiz_score
        self.pass_focus_minutes = pass_focus_minutes
        self.auto_enroll = auto_enroll
        self.default_name = default_name
        self._locks = KeyedLock()

    # =========================================================================
    # ストアアクセス
    # =========================================================================

    async def _store_call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """タイムアウト付きでストア操作を実行"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except TimeoutError as e:
            logger.error(f"ストア操作がタイムアウトしました: {operation}")
            raise StoreUnavailableError(f"Store timed out during {operation}") from e
        except OSError as e:
            logger.exception(f"ストア操作に失敗しました: {operation}")
            raise StoreUnavailableError(f"Store unavailable during {operation}: {e}") from e

    async def _require_student(self, student_id: str) -> Student:
        student = await self._store_call("get_student", self.store.get_student(student_id))
        if student is None:
            raise NotFoundError(f"Student not found: {student_id}")
        return student

    # =========================================================================
    # 読み取り
    # =========================================================================

    async def get_state(self, student_id: str) -> StudentState:
        """生徒の現在状態と保留中の介入を取得"""
        student = await self._require_student(student_id)
        pending = await self._store_call(
            "get_pending_intervention", self.store.get_pending_intervention(student_id)
        )
        return StudentState(student=student, pending_intervention=pending)

    async def recent_logs(self, student_id: str, limit: int | None = None) -> list[CheckInLogEntry]:
        """最近のチェックインログを新しい順で取得"""
        await self._require_student(student_id)
        return await self._store_call(
            "recent_logs", self.store.recent_logs(student_id, limit=limit)
        )

    # =========================================================================
    # 書き込み
    # =========================================================================

    async def enroll(self, student_id: str, name: str | None = None) -> tuple[Student, bool]:
        """生徒を登録（登録済みなら既存レコードを返す）

        Returns:
            (生徒, 新規作成したか)
        """
        if not student_id or not student_id.strip():
            raise ValidationError("Missing required field: student_id")

        async with self._locks.hold(student_id):
            existing = await self._store_call("get_student", self.store.get_student(student_id))
            if existing is not None:
                return existing, False
            student = Student(student_id=student_id, name=name or self.default_name)
            await self._store_call("commit", self.store.commit(student))
        logger.info(f"生徒を登録しました: {student_id}")
        return student, True

    async def submit_check_in(
        self,
        student_id: str,
        quiz_score: Any,
        focus_minutes: Any,
        tab_switches: int = 0,
    ) -> CheckInResult:
        """チェックインを判定して状態に適用

        NEEDS_INTERVENTION / REMEDIAL_TASK 中のチェックインは状態を変えず、
        applied=False のログとして記録する。
        """
        verdict = evaluate(
            quiz_score,
            focus_minutes,
            pass_quiz_score=self.pass_quiz_score,
            pass_focus_minutes=self.pass_focus_minutes,
        )
        event = CheckInSubmitted(
            student_id=student_id,
            verdict=verdict,
            quiz_score=float(quiz_score),
            focus_minutes=float(focus_minutes),
            tab_switches=tab_switches,
        )
        logger.info(
            f"チェックイン: student={student_id} score={quiz_score} "
            f"focus={focus_minutes} verdict={verdict}"
        )

        async with self._locks.hold(student_id):
            student = await self._store_call("get_student", self.store.get_student(student_id))
            if student is None:
                if not self.auto_enroll:
                    raise NotFoundError(f"Student not found: {student_id}")
                student = Student(student_id=student_id, name=self.default_name)
                logger.info(f"未登録の生徒を自動登録します: {student_id}")

            outcome = StudentStateMachine(student.status).transition(event)
            log_entry = CheckInLogEntry(
                student_id=student_id,
                quiz_score=event.quiz_score,
                focus_minutes=event.focus_minutes,
                tab_switches=tab_switches,
                verdict=verdict,
                status_before=outcome.from_state,
                status_after=outcome.to_state,
                applied=outcome.applied,
            )
            updated = student.with_status(outcome.to_state) if outcome.changed else student
            await self._store_call("commit", self.store.commit(updated, log_entry=log_entry))

        self._log_outcome(outcome)
        return CheckInResult(
            status=outcome.to_state,
            message=self._check_in_message(outcome),
            verdict=verdict,
            applied=outcome.applied,
            log_entry=log_entry,
        )

    async def assign_intervention(
        self,
        student_id: str,
        task_description: str,
        mentor_notes: str | None = None,
    ) -> AssignmentResult:
        """メンター承認済みの介入を割り当て、生徒に通知"""
        event = InterventionAssigned(
            student_id=student_id,
            task_description=task_description,
            mentor_notes=mentor_notes or "",
        )

        async with self._locks.hold(student_id):
            student = await self._require_student(student_id)
            pending = await self._store_call(
                "get_pending_intervention", self.store.get_pending_intervention(student_id)
            )
            outcome = StudentStateMachine(student.status).transition(event, pending)
            assert outcome.intervention is not None
            await self._store_call(
                "commit",
                self.store.commit(
                    student.with_status(outcome.to_state), intervention=outcome.intervention
                ),
            )

        self._log_outcome(outcome)
        # 永続化が完了してから配信する
        delivered = 0
        if outcome.notification is not None:
            delivered = self.channel.publish(student_id, outcome.notification)
        return AssignmentResult(
            intervention=outcome.intervention, status=outcome.to_state, delivered=delivered
        )

    async def complete_intervention(
        self, student_id: str, intervention_id: str
    ) -> CompletionResult:
        """生徒が補習タスクを完了し、ON_TRACK に戻る"""
        event = InterventionCompleted(student_id=student_id, intervention_id=intervention_id)

        async with self._locks.hold(student_id):
            student = await self._require_student(student_id)
            pending = await self._store_call(
                "get_pending_intervention", self.store.get_pending_intervention(student_id)
            )
            outcome = StudentStateMachine(student.status).transition(event, pending)
            assert outcome.intervention is not None
            await self._store_call(
                "commit",
                self.store.commit(
                    student.with_status(outcome.to_state), intervention=outcome.intervention
                ),
            )

        self._log_outcome(outcome)
        return CompletionResult(intervention=outcome.intervention, status=outcome.to_state)

    # =========================================================================
    # ヘルパー
    # =========================================================================

    @staticmethod
    def _log_outcome(outcome: TransitionOutcome) -> None:
        if not outcome.applied:
            logger.info(
                f"イベントを無視しました: student={outcome.event.student_id} "
                f"state={outcome.from_state} event={outcome.event.type}"
            )
        elif outcome.changed:
            logger.info(
                f"状態遷移: student={outcome.event.student_id} "
                f"{outcome.from_state} -> {outcome.to_state}"
            )

    @staticmethod
    def _check_in_message(outcome: TransitionOutcome) -> str:
        if outcome.from_state == StudentStatus.NEEDS_INTERVENTION:
            return MESSAGE_AWAITING_MENTOR
        if outcome.from_state == StudentStatus.REMEDIAL_TASK:
            return MESSAGE_REMEDIAL_PENDING
        if outcome.to_state == StudentStatus.ON_TRACK:
            return MESSAGE_PASSED
        return MESSAGE_FAILED
