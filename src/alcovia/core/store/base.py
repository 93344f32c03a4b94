"""ストアの抽象インターフェース

生徒・介入・チェックインログの永続化。ビジネスロジックは持たない。
全ての操作はI/Oとして扱い、非同期で呼び出す。
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import CheckInLogEntry, Intervention, Student

DEFAULT_LOG_RETENTION = 10


class StudentStore(ABC):
    """永続化ストアの基底クラス

    書き込みは commit() の1操作のみ。
    生徒の状態・介入・ログを1単位として適用し、部分的な書き込みは残さない。
    """

    def __init__(self, log_retention: int = DEFAULT_LOG_RETENTION) -> None:
        self.log_retention = log_retention

    @abstractmethod
    async def get_student(self, student_id: str) -> Student | None:
        """生徒を取得"""

    @abstractmethod
    async def get_intervention(self, intervention_id: str) -> Intervention | None:
        """介入を取得"""

    @abstractmethod
    async def get_pending_intervention(self, student_id: str) -> Intervention | None:
        """生徒の保留中の介入を取得"""

    @abstractmethod
    async def list_interventions(self, student_id: str) -> list[Intervention]:
        """生徒の介入一覧を作成順で取得"""

    @abstractmethod
    async def recent_logs(self, student_id: str, limit: int | None = None) -> list[CheckInLogEntry]:
        """最近のチェックインログを新しい順で取得

        Args:
            limit: 取得件数（log_retention を上限とする）
        """

    @abstractmethod
    async def commit(
        self,
        student: Student,
        intervention: Intervention | None = None,
        log_entry: CheckInLogEntry | None = None,
    ) -> None:
        """生徒の状態と付随レコードを1単位として書き込む"""

    def _effective_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.log_retention
        return max(0, min(limit, self.log_retention))
