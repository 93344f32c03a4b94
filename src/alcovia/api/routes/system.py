"""System エンドポイント

ヘルスチェックなどシステム系のエンドポイント。
"""

from fastapi import APIRouter

from ... import __version__
from ..dependencies import ChannelDep
from ..models import HealthResponse

router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check(channel: ChannelDep) -> HealthResponse:
    """ヘルスチェック"""
    return HealthResponse(
        status="ok",
        message="Alcovia Intervention Engine is running",
        version=__version__,
        subscribers=channel.subscriber_count(),
    )
