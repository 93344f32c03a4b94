"""Daily Check-in エンドポイント

ロジックゲート: クイズ得点と集中時間でチェックインを判定する。
"""

from fastapi import APIRouter

from ..dependencies import EngineDep
from ..models import CheckInRequest, CheckInResponse

router = APIRouter(prefix="/api", tags=["Check-ins"])


@router.post("/daily-checkin", response_model=CheckInResponse)
async def daily_checkin(request: CheckInRequest, engine: EngineDep) -> CheckInResponse:
    """デイリーチェックインを提出

    不合格なら生徒は Needs Intervention になり、メンターの確認を待つ。
    Needs Intervention / Remedial Task 中のチェックインは状態を変えない。
    """
    result = await engine.submit_check_in(
        request.student_id,
        request.quiz_score,
        request.focus_minutes,
        tab_switches=request.tab_switches,
    )
    return CheckInResponse(
        status=result.status,
        message=result.message,
        verdict=result.verdict,
        applied=result.applied,
    )
