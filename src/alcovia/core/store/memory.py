"""インメモリストア

テストおよび永続化不要のデプロイ向け。
"""

from __future__ import annotations

from collections import deque

from ..models import CheckInLogEntry, Intervention, Student
from .base import DEFAULT_LOG_RETENTION, StudentStore


class MemoryStudentStore(StudentStore):
    """辞書ベースのストア

    モデルはイミュータブルなのでコピーせずにそのまま保持する。
    """

    def __init__(self, log_retention: int = DEFAULT_LOG_RETENTION) -> None:
        super().__init__(log_retention)
        self._students: dict[str, Student] = {}
        self._interventions: dict[str, Intervention] = {}
        self._logs: dict[str, deque[CheckInLogEntry]] = {}

    async def get_student(self, student_id: str) -> Student | None:
        return self._students.get(student_id)

    async def get_intervention(self, intervention_id: str) -> Intervention | None:
        return self._interventions.get(intervention_id)

    async def get_pending_intervention(self, student_id: str) -> Intervention | None:
        for record in self._interventions.values():
            if record.student_id == student_id and record.is_pending:
                return record
        return None

    async def list_interventions(self, student_id: str) -> list[Intervention]:
        return [r for r in self._interventions.values() if r.student_id == student_id]

    async def recent_logs(self, student_id: str, limit: int | None = None) -> list[CheckInLogEntry]:
        entries = self._logs.get(student_id)
        if not entries:
            return []
        return list(reversed(entries))[: self._effective_limit(limit)]

    async def commit(
        self,
        student: Student,
        intervention: Intervention | None = None,
        log_entry: CheckInLogEntry | None = None,
    ) -> None:
        self._apply(student, intervention, log_entry)

    def _apply(
        self,
        student: Student,
        intervention: Intervention | None,
        log_entry: CheckInLogEntry | None,
    ) -> None:
        """メモリキャッシュに反映（await を挟まないので途中で割り込まれない）"""
        self._students[student.student_id] = student
        if intervention is not None:
            self._interventions[intervention.intervention_id] = intervention
        if log_entry is not None:
            logs = self._logs.get(log_entry.student_id)
            if logs is None:
                logs = deque(maxlen=self.log_retention)
                self._logs[log_entry.student_id] = logs
            logs.append(log_entry)
