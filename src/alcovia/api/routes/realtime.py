"""Realtime エンドポイント

1本のWebSocketエンドポイントで全生徒の通知を多重化する。

プロトコル:
- クライアント -> サーバー: {"type": "register", "student_id": "..."}
  接続直後に送る。登録前の接続には何も配信しない。再送すると登録先を切り替える。
- サーバー -> クライアント: {"type": "registered", "student_id": "..."}
- サーバー -> クライアント: {"type": "intervention_assigned", "intervention": {...}, ...}
- クライアント -> サーバー: {"type": "ping"} に対して {"type": "pong"}
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...core.channel import NotificationChannel, Subscription
from ..dependencies import ChannelDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class _Connection:
    """1接続分の登録状態"""

    def __init__(self, websocket: WebSocket, channel: NotificationChannel) -> None:
        self.websocket = websocket
        self.channel = channel
        self.subscription: Subscription | None = None
        self._pump: asyncio.Task[None] | None = None

    async def register(self, student_id: str) -> None:
        self.release()
        self.subscription = self.channel.subscribe(student_id)
        await self.websocket.send_json({"type": "registered", "student_id": student_id})
        self._pump = asyncio.create_task(self._forward_events(self.subscription))
        logger.info(f"Student {student_id} registered for real-time updates")

    async def _forward_events(self, subscription: Subscription) -> None:
        """購読キューのイベントをWebSocketに送出

        送出に失敗したら購読を解除する。以降の通知はこの接続に数えない。
        """
        while True:
            event = await subscription.get()
            try:
                await self.websocket.send_json(event.to_dict())
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(
                    f"プッシュ配信失敗: student={subscription.student_id} "
                    f"event={event.event_id}: {e}"
                )
                break

        self.channel.unsubscribe(subscription)
        if self.subscription is subscription:
            self.subscription = None
            self._pump = None

    def release(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            self._pump = None
        if self.subscription is not None:
            self.channel.unsubscribe(self.subscription)
            self.subscription = None


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"type": "error", "kind": "validation_error", "message": message})


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket, channel: ChannelDep) -> None:
    """リアルタイム通知チャネル

    再接続時、クライアントは登録後に GET /api/student/{id} で状態を取り直すこと。
    """
    await websocket.accept()
    connection = _Connection(websocket, channel)
    logger.info("Client connected")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message: Any = json.loads(raw)
            except ValueError:
                await _send_error(websocket, "Message must be JSON")
                continue
            if not isinstance(message, dict):
                await _send_error(websocket, "Message must be a JSON object")
                continue

            message_type = message.get("type")
            if message_type == "register":
                student_id = str(message.get("student_id") or "").strip()
                if not student_id:
                    await _send_error(websocket, "Missing required field: student_id")
                    continue
                await connection.register(student_id)
            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await _send_error(websocket, f"Unknown message type: {message_type}")
    except WebSocketDisconnect:
        logger.info("Client disconnected")
    finally:
        connection.release()
