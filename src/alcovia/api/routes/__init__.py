"""API ルート

FastAPIルーターを機能別に分割。
"""

from .checkins import router as checkins_router
from .interventions import router as interventions_router
from .logs import router as logs_router
from .realtime import router as realtime_router
from .students import router as students_router
from .system import router as system_router

__all__ = [
    "checkins_router",
    "interventions_router",
    "logs_router",
    "realtime_router",
    "students_router",
    "system_router",
]
