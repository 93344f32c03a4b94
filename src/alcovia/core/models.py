"""ドメインモデル

生徒・介入・チェックインログのPydanticモデル。
全てイミュータブルで、更新は model_copy で新しいインスタンスを作る。
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field
from ulid import ULID


def generate_id() -> str:
    """レコードIDを生成 (ULID形式)"""
    return str(ULID())


def utcnow() -> datetime:
    """現在時刻 (UTC)"""
    return datetime.now(UTC)


class StudentStatus(StrEnum):
    """生徒の状態"""

    ON_TRACK = "On Track"
    NEEDS_INTERVENTION = "Needs Intervention"
    REMEDIAL_TASK = "Remedial Task"


class InterventionStatus(StrEnum):
    """介入のライフサイクル状態"""

    PENDING = "Pending"
    COMPLETED = "Completed"


class Verdict(StrEnum):
    """ロジックゲートの判定結果"""

    PASS = "Pass"
    FAIL = "Fail"


class Student(BaseModel):
    """生徒レコード"""

    model_config = ConfigDict(frozen=True)

    student_id: str = Field(..., min_length=1, description="生徒ID")
    name: str = Field(..., description="表示名")
    status: StudentStatus = Field(default=StudentStatus.ON_TRACK, description="現在の状態")
    created_at: datetime = Field(default_factory=utcnow, description="作成時刻 (UTC)")
    updated_at: datetime = Field(default_factory=utcnow, description="最終更新時刻 (UTC)")

    @computed_field
    @property
    def id(self) -> str:
        """クライアント向けの識別子 (student_id と同じ)"""
        return self.student_id

    def with_status(self, status: StudentStatus) -> Student:
        """状態を更新したコピーを返す"""
        return self.model_copy(update={"status": status, "updated_at": utcnow()})


class Intervention(BaseModel):
    """メンターが割り当てた補習タスク"""

    model_config = ConfigDict(frozen=True)

    intervention_id: str = Field(default_factory=generate_id, description="介入ID (ULID)")
    student_id: str = Field(..., min_length=1, description="対象生徒ID")
    task_description: str = Field(..., min_length=1, description="タスク内容")
    mentor_notes: str = Field(default="", description="メンターのメモ")
    status: InterventionStatus = Field(default=InterventionStatus.PENDING, description="状態")
    created_at: datetime = Field(default_factory=utcnow, description="作成時刻 (UTC)")
    completed_at: datetime | None = Field(default=None, description="完了時刻 (UTC)")

    @computed_field
    @property
    def id(self) -> str:
        """クライアント向けの識別子 (intervention_id と同じ)"""
        return self.intervention_id

    @property
    def is_pending(self) -> bool:
        return self.status == InterventionStatus.PENDING

    def complete(self) -> Intervention:
        """完了状態にしたコピーを返す"""
        return self.model_copy(
            update={"status": InterventionStatus.COMPLETED, "completed_at": utcnow()}
        )


class CheckInLogEntry(BaseModel):
    """チェックインログ

    状態に反映されなかったチェックイン（applied=False）も記録する。
    tab_switches はクライアントからの参考値で、サーバー側では検証しない。
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=generate_id, description="ログID (ULID)")
    student_id: str = Field(..., min_length=1)
    quiz_score: float
    focus_minutes: float
    tab_switches: int = Field(default=0, ge=0)
    verdict: Verdict
    status_before: StudentStatus
    status_after: StudentStatus
    applied: bool = Field(default=True, description="状態機械に適用されたか")
    logged_at: datetime = Field(default_factory=utcnow)
