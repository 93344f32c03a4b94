"""Log エンドポイント

生徒のチェックインログ（新しい順、保持件数まで）。
"""

from fastapi import APIRouter, Query

from ..dependencies import EngineDep
from ..models import LogsResponse

router = APIRouter(prefix="/api", tags=["Logs"])


@router.get("/logs/{student_id}", response_model=LogsResponse)
async def get_logs(
    student_id: str,
    engine: EngineDep,
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> LogsResponse:
    """最近のチェックインログを取得"""
    logs = await engine.recent_logs(student_id, limit=limit)
    return LogsResponse(logs=logs, count=len(logs))
