"""Alcovia Core API

FastAPIベースのREST API + WebSocket。
チェックイン、介入の割り当て・完了、ログ取得、リアルタイム通知を提供。
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..core import (
    AlcoviaError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
    get_settings,
)
from .dependencies import AppState, build_store
from .routes import (
    checkins_router,
    interventions_router,
    logs_router,
    realtime_router,
    students_router,
    system_router,
)

logger = logging.getLogger(__name__)

# エラー種別 -> HTTPステータス
ERROR_STATUS_CODES: dict[type[AlcoviaError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# --- ライフサイクル ---


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """アプリケーションライフサイクル"""
    # 起動時（テストで差し替え済みならそのまま使う）
    state = AppState.get_instance()
    if not state.has_store:
        state.store = build_store(get_settings())
    logger.info(f"Alcovia Intervention Engine v{__version__} を起動しました")

    yield

    # シャットダウン時
    AppState.reset()


# --- FastAPIアプリケーション ---

app = FastAPI(
    title="Alcovia Intervention Engine",
    description="生徒の学習コンプライアンスを判定し、メンター介入をリアルタイムに通知するAPI",
    version=__version__,
    lifespan=lifespan,
)

# CORS設定（設定ファイルから読み込み）
settings = get_settings()
cors_config = settings.server.cors
if cors_config.enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.allow_origins,
        allow_credentials=cors_config.allow_credentials,
        allow_methods=cors_config.allow_methods,
        allow_headers=cors_config.allow_headers,
    )


# --- エラーハンドラー ---


@app.exception_handler(AlcoviaError)
async def handle_alcovia_error(request: Request, exc: AlcoviaError) -> JSONResponse:
    """型付きエラーを安定したステータスコードに変換"""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 失敗: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """リクエスト検証エラーは 400 validation_error として返す"""
    errors = exc.errors()
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in errors]
    missing = [f for f, e in zip(fields, errors) if e.get("type") == "missing"]
    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    else:
        message = f"Invalid fields: {', '.join(fields)}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ValidationError(message).to_dict(),
    )


# ルーターを登録
app.include_router(system_router)
app.include_router(students_router)
app.include_router(checkins_router)
app.include_router(interventions_router)
app.include_router(logs_router)
app.include_router(realtime_router)
