"""Intervention エンドポイント

メンター承認後の介入割り当てと、生徒による完了。
"""

from fastapi import APIRouter, Depends

from ..auth import require_mentor_key
from ..dependencies import EngineDep
from ..models import (
    AssignInterventionRequest,
    AssignInterventionResponse,
    CompleteInterventionRequest,
    CompleteInterventionResponse,
)

router = APIRouter(prefix="/api", tags=["Interventions"])


@router.post(
    "/assign-intervention",
    response_model=AssignInterventionResponse,
    dependencies=[Depends(require_mentor_key)],
)
async def assign_intervention(
    request: AssignInterventionRequest, engine: EngineDep
) -> AssignInterventionResponse:
    """介入を割り当て

    メンター承認ワークフローから呼ばれる。生徒は Remedial Task に遷移し、
    登録中の全接続に intervention_assigned イベントが配信される。
    """
    result = await engine.assign_intervention(
        request.student_id,
        request.task_description,
        request.mentor_notes,
    )
    return AssignInterventionResponse(
        message=result.message,
        intervention=result.intervention,
        delivered=result.delivered,
    )


@router.post("/complete-intervention", response_model=CompleteInterventionResponse)
async def complete_intervention(
    request: CompleteInterventionRequest, engine: EngineDep
) -> CompleteInterventionResponse:
    """補習タスクを完了して On Track に戻る"""
    result = await engine.complete_intervention(request.student_id, request.intervention_id)
    return CompleteInterventionResponse(
        message=result.message,
        status=result.status,
        intervention=result.intervention,
    )
