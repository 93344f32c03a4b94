"""Student エンドポイント

生徒の現在状態の取得と登録。
"""

from fastapi import APIRouter, Response, status

from ...core.models import Student
from ..dependencies import EngineDep
from ..models import EnrollStudentRequest, StudentStateResponse

router = APIRouter(prefix="/api", tags=["Students"])


@router.get("/student/{student_id}", response_model=StudentStateResponse)
async def get_student_state(student_id: str, engine: EngineDep) -> StudentStateResponse:
    """生徒の現在状態と保留中の介入を取得

    クライアントはリアルタイムチャネルへの（再）接続時にこのエンドポイントで
    状態を取り直す。チャネルは取りこぼしたイベントを再送しない。
    """
    state = await engine.get_state(student_id)
    return StudentStateResponse(
        student=state.student,
        pending_intervention=state.pending_intervention,
    )


@router.post("/students", response_model=Student, status_code=status.HTTP_201_CREATED)
async def enroll_student(
    request: EnrollStudentRequest, response: Response, engine: EngineDep
) -> Student:
    """生徒を登録（ON_TRACK で開始）

    登録済みの場合は既存レコードを 200 で返す。
    """
    student, created = await engine.enroll(request.student_id, request.name)
    if not created:
        response.status_code = status.HTTP_200_OK
    return student
