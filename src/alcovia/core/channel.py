"""リアルタイム通知チャネル

生徒IDをキーとした購読レジストリ。
1つの生徒IDに複数の接続（エンドポイント）を登録でき、publish は全てに配信する。

配信はベストエフォート:
- 購読者がいなければイベントは破棄する（キューイングもリプレイもしない）
- publish は配信完了を待たない
- 配信失敗はログに記録するのみで、再送しない
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from uuid import uuid4

from .errors import TransientDeliveryFailure
from .events import PushEvent

logger = logging.getLogger(__name__)

# 接続ごとの未配信イベント上限
DEFAULT_MAX_QUEUE_SIZE = 100


class Subscription:
    """1接続分のエンドポイントハンドル

    イベントループ上の asyncio.Queue を保持する。
    publish が別スレッドから呼ばれた場合はループ経由で受け渡す。
    """

    def __init__(self, student_id: str, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self.subscription_id = uuid4().hex[:12]
        self.student_id = student_id
        self._queue: asyncio.Queue[PushEvent] = asyncio.Queue(maxsize=max_queue_size)
        self._loop = asyncio.get_running_loop()
        self.closed = False

    def offer(self, event: PushEvent) -> None:
        """イベントを非同期に受け渡す（ブロックしない）

        Raises:
            TransientDeliveryFailure: 接続が閉じている、またはキューが満杯の場合
        """
        if self.closed:
            raise TransientDeliveryFailure(f"Subscription {self.subscription_id} is closed")

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._put(event)
            return

        try:
            self._loop.call_soon_threadsafe(self._put_logged, event)
        except RuntimeError as e:
            raise TransientDeliveryFailure(
                f"Subscription {self.subscription_id} loop unavailable: {e}"
            ) from e

    def _put(self, event: PushEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as e:
            raise TransientDeliveryFailure(
                f"Subscription {self.subscription_id} queue is full"
            ) from e

    def _put_logged(self, event: PushEvent) -> None:
        try:
            self._put(event)
        except TransientDeliveryFailure as e:
            logger.warning(f"プッシュ配信失敗: {e.message}")

    async def get(self) -> PushEvent:
        """次のイベントを待つ"""
        return await self._queue.get()

    def pending_count(self) -> int:
        """未取得のイベント数"""
        return self._queue.qsize()

    def close(self) -> None:
        self.closed = True


class NotificationChannel:
    """生徒IDで多重化された通知チャネル

    購読レジストリへの追加・削除・参照はロックで保護する。
    """

    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self._max_queue_size = max_queue_size
        self._subscriptions: dict[str, dict[str, Subscription]] = defaultdict(dict)
        self._lock = threading.Lock()

    def subscribe(self, student_id: str) -> Subscription:
        """生徒IDに新しいエンドポイントを登録

        実行中のイベントループ内から呼ぶこと。
        """
        subscription = Subscription(student_id, max_queue_size=self._max_queue_size)
        with self._lock:
            self._subscriptions[student_id][subscription.subscription_id] = subscription
        logger.info(f"生徒 {student_id} が通知を購読しました ({subscription.subscription_id})")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """エンドポイントを解除"""
        subscription.close()
        with self._lock:
            subs = self._subscriptions.get(subscription.student_id)
            if subs is None:
                return
            subs.pop(subscription.subscription_id, None)
            if not subs:
                del self._subscriptions[subscription.student_id]
        logger.info(
            f"生徒 {subscription.student_id} の購読を解除しました ({subscription.subscription_id})"
        )

    def publish(self, student_id: str, event: PushEvent) -> int:
        """生徒IDの全エンドポイントにイベントを配信

        Returns:
            イベントを受け渡したエンドポイント数（購読者なしなら0）
        """
        with self._lock:
            targets = list(self._subscriptions.get(student_id, {}).values())

        if not targets:
            logger.info(f"生徒 {student_id} の購読者がいないためイベントを破棄: {event.event_type}")
            return 0

        delivered = 0
        for subscription in targets:
            try:
                subscription.offer(event)
                delivered += 1
            except TransientDeliveryFailure as e:
                logger.warning(f"プッシュ配信失敗: {e.message}")
        return delivered

    def subscriber_count(self, student_id: str | None = None) -> int:
        """購読中のエンドポイント数"""
        with self._lock:
            if student_id is not None:
                return len(self._subscriptions.get(student_id, {}))
            return sum(len(subs) for subs in self._subscriptions.values())
