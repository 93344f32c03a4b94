"""API リクエスト/レスポンスモデル

FastAPIエンドポイントで使用するPydanticモデル。
"""

from pydantic import BaseModel, Field

from ..core.models import CheckInLogEntry, Intervention, Student, StudentStatus, Verdict

# --- Student モデル ---


class EnrollStudentRequest(BaseModel):
    """生徒登録リクエスト"""

    student_id: str = Field(..., min_length=1, max_length=200, description="生徒ID")
    name: str | None = Field(default=None, max_length=200, description="表示名")


class StudentStateResponse(BaseModel):
    """生徒状態レスポンス"""

    student: Student
    pending_intervention: Intervention | None = Field(
        default=None, serialization_alias="pendingIntervention"
    )


# --- Check-in モデル ---


class CheckInRequest(BaseModel):
    """デイリーチェックインリクエスト

    tab_switches はクライアントのタイマーが検知したタブ切り替え回数（参考値）。
    """

    student_id: str = Field(..., min_length=1, max_length=200)
    quiz_score: float = Field(..., ge=0, le=10, description="クイズ得点 (0-10)")
    focus_minutes: float = Field(..., ge=0, description="集中時間（分）")
    tab_switches: int = Field(default=0, ge=0, description="タブ切り替え回数（検証しない）")


class CheckInResponse(BaseModel):
    """デイリーチェックインレスポンス"""

    status: StudentStatus
    message: str
    verdict: Verdict
    applied: bool


# --- Intervention モデル ---


class AssignInterventionRequest(BaseModel):
    """介入割り当てリクエスト（メンター承認後のオートメーションから）"""

    student_id: str = Field(..., min_length=1, max_length=200)
    task_description: str = Field(..., min_length=1, max_length=2000, description="タスク内容")
    mentor_notes: str | None = Field(default=None, max_length=5000, description="メンターのメモ")


class AssignInterventionResponse(BaseModel):
    """介入割り当てレスポンス"""

    success: bool = True
    message: str
    intervention: Intervention
    delivered: int = Field(..., description="プッシュを受け渡した接続数")


class CompleteInterventionRequest(BaseModel):
    """介入完了リクエスト"""

    student_id: str = Field(..., min_length=1, max_length=200)
    intervention_id: str = Field(..., min_length=1, max_length=200)


class CompleteInterventionResponse(BaseModel):
    """介入完了レスポンス"""

    success: bool = True
    message: str
    status: StudentStatus
    intervention: Intervention


# --- Log モデル ---


class LogsResponse(BaseModel):
    """チェックインログレスポンス（新しい順）"""

    logs: list[CheckInLogEntry]
    count: int


# --- System モデル ---


class HealthResponse(BaseModel):
    """ヘルスチェックレスポンス"""

    status: str
    message: str
    version: str
    subscribers: int


class ErrorResponse(BaseModel):
    """エラーレスポンス"""

    kind: str
    message: str
