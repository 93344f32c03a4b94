"""リアルタイム通知 (WebSocket /ws) のテスト"""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from alcovia.api.routes.realtime import _Connection
from alcovia.core.channel import NotificationChannel
from alcovia.core.events import PushEvent
from alcovia.core.models import Intervention


def _fail(client: TestClient, student_id: str) -> None:
    client.post(
        "/api/daily-checkin",
        json={"student_id": student_id, "quiz_score": 5, "focus_minutes": 30},
    )


def _assign(client: TestClient, student_id: str, task: str = "Read chapter 4"):
    return client.post(
        "/api/assign-intervention",
        json={"student_id": student_id, "task_description": task},
    )


def _register(ws, student_id: str) -> None:
    ws.send_json({"type": "register", "student_id": student_id})
    ack = ws.receive_json()
    assert ack == {"type": "registered", "student_id": student_id}


def _wait_for_subscribers(client: TestClient, expected: int, timeout: float = 2.0) -> int:
    """切断後の購読解除は非同期なのでポーリングで待つ"""
    deadline = time.monotonic() + timeout
    count = client.get("/health").json()["subscribers"]
    while count != expected and time.monotonic() < deadline:
        time.sleep(0.02)
        count = client.get("/health").json()["subscribers"]
    return count


class TestRegistration:
    """登録プロトコル"""

    def test_register_ack(self, client):
        """登録すると registered が返る"""
        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-1")

            assert client.get("/health").json()["subscribers"] == 1

    def test_ping_pong(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "ping"})

            assert ws.receive_json() == {"type": "pong"}

    def test_invalid_json(self, client):
        """JSONでないメッセージはエラーを返し接続は維持"""
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            error = ws.receive_json()
            ws.send_json({"type": "ping"})

            assert error["type"] == "error"
            assert error["kind"] == "validation_error"
            assert ws.receive_json() == {"type": "pong"}

    def test_non_object_message(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json(["register", "s-1"])

            assert ws.receive_json()["type"] == "error"

    def test_register_without_student_id(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "register"})

            error = ws.receive_json()
            assert error["type"] == "error"
            assert "student_id" in error["message"]

    def test_unknown_message_type(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe"})

            assert ws.receive_json()["message"] == "Unknown message type: subscribe"

    def test_disconnect_unsubscribes(self, client):
        """切断すると購読が解除される"""
        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-1")

        assert _wait_for_subscribers(client, 0) == 0


class TestPush:
    """介入割り当ての通知"""

    def test_assigned_event_is_pushed(self, client):
        """割り当てると登録済みの接続に通知される"""
        # Arrange
        _fail(client, "s-1")

        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-1")

            # Act
            response = _assign(client, "s-1")
            event = ws.receive_json()

        # Assert
        assert response.json()["delivered"] == 1
        assert event["type"] == "intervention_assigned"
        assert event["student_id"] == "s-1"
        assert (
            event["intervention"]["intervention_id"]
            == response.json()["intervention"]["intervention_id"]
        )
        assert event["intervention"]["task_description"] == "Read chapter 4"

    def test_fan_out_to_all_connections(self, client):
        """同じ生徒の全接続（複数タブ）に配信"""
        _fail(client, "s-1")

        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            _register(first, "s-1")
            _register(second, "s-1")

            response = _assign(client, "s-1")

            assert response.json()["delivered"] == 2
            assert first.receive_json()["type"] == "intervention_assigned"
            assert second.receive_json()["type"] == "intervention_assigned"

    def test_other_student_not_notified(self, client):
        """他の生徒の接続には届かない"""
        # Arrange
        _fail(client, "s-1")
        _fail(client, "s-2")

        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-2")

            # Act
            _assign(client, "s-1", task="For s-1")
            _assign(client, "s-2", task="For s-2")

            # Assert: s-2 の接続が最初に受け取るのは s-2 宛の通知
            event = ws.receive_json()
            assert event["student_id"] == "s-2"
            assert event["intervention"]["task_description"] == "For s-2"

    def test_re_register_switches_student(self, client):
        """再登録すると登録先が切り替わる"""
        _fail(client, "s-1")
        _fail(client, "s-2")

        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-1")
            _register(ws, "s-2")

            _assign(client, "s-1", task="For s-1")
            response = _assign(client, "s-2", task="For s-2")

            assert response.json()["delivered"] == 1
            assert ws.receive_json()["intervention"]["task_description"] == "For s-2"

    def test_not_pushed_before_register(self, client):
        """登録前の接続には何も配信しない"""
        _fail(client, "s-1")

        with client.websocket_connect("/ws") as ws:
            response = _assign(client, "s-1")
            ws.send_json({"type": "ping"})

            assert response.json()["delivered"] == 0
            assert ws.receive_json() == {"type": "pong"}

    def test_reconnect_recovers_from_snapshot(self, client):
        """切断中の通知は再送されず、再接続後は状態取得で復元する"""
        # Arrange
        _fail(client, "s-1")
        assigned = _assign(client, "s-1").json()

        # Act
        with client.websocket_connect("/ws") as ws:
            _register(ws, "s-1")
            state = client.get("/api/student/s-1").json()
            ws.send_json({"type": "ping"})
            first_message = ws.receive_json()

        # Assert
        assert assigned["delivered"] == 0
        assert first_message == {"type": "pong"}
        assert state["student"]["status"] == "Remedial Task"
        assert (
            state["pendingIntervention"]["intervention_id"]
            == assigned["intervention"]["intervention_id"]
        )


class _ClosedAfterAck:
    """登録応答だけ送れて、以降の送出は失敗するソケット"""

    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_json(self, data: dict) -> None:
        if self.sent:
            raise RuntimeError("Cannot call send once a close message has been sent")
        self.sent.append(data)


class TestSendFailure:
    """送出に失敗した接続の後始末"""

    @pytest.mark.asyncio
    async def test_failed_send_releases_subscription(self):
        """送出に失敗すると購読が解除され、以降の通知は数えない"""
        # Arrange
        channel = NotificationChannel()
        connection = _Connection(_ClosedAfterAck(), channel)
        await connection.register("s-1")
        intervention = Intervention(student_id="s-1", task_description="Read chapter 4")

        # Act
        first = channel.publish("s-1", PushEvent.intervention_assigned(intervention))
        for _ in range(20):
            if channel.subscriber_count("s-1") == 0:
                break
            await asyncio.sleep(0.01)
        second = channel.publish("s-1", PushEvent.intervention_assigned(intervention))

        # Assert
        assert first == 1
        assert channel.subscriber_count("s-1") == 0
        assert second == 0
        assert connection.subscription is None

    @pytest.mark.asyncio
    async def test_release_after_failed_send(self):
        """送出失敗後に切断処理が走っても問題ない"""
        channel = NotificationChannel()
        connection = _Connection(_ClosedAfterAck(), channel)
        await connection.register("s-1")
        intervention = Intervention(student_id="s-1", task_description="Read chapter 4")
        channel.publish("s-1", PushEvent.intervention_assigned(intervention))
        await asyncio.sleep(0.05)

        connection.release()

        assert channel.subscriber_count() == 0
