"""Integration tests for the WebSocket and HTTP endpoints.

These drive the real Starlette app over the test client with MessagePack
frames, covering the transport guards the unit tests cannot reach.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chat.messaging.types import ErrorCode, RoomErrorCode, ServerMessageType
from chat.server.app import create_app
from chat.server.settings import ChatServerSettings
from chat.session.broker import SessionBroker
from chat.tests.helpers import recv_ws, scripted_codes, send_ws


def _make_client(tmp_path, **overrides) -> TestClient:
    (tmp_path / "index.html").write_text("<!doctype html><title>chat</title>")
    settings = ChatServerSettings(static_dir=str(tmp_path), cors_origins=[], **overrides)
    broker = SessionBroker(code_factory=scripted_codes("ROOM42"))
    return TestClient(create_app(settings=settings, broker=broker))


def _expect(ws, message_type: str) -> dict:
    message = recv_ws(ws)
    assert message["type"] == message_type, message
    return message


class TestWebSocketIntegration:
    @pytest.fixture
    def client(self, tmp_path):
        with _make_client(tmp_path) as client:
            yield client

    def test_connect_reports_user_count(self, client):
        with client.websocket_connect("/ws") as ws:
            assert recv_ws(ws) == {"type": ServerMessageType.USER_COUNT, "count": 1}

    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": ServerMessageType.PONG}

    def test_random_pairing_chat_and_partner_disconnect(self, client):
        with client.websocket_connect("/ws") as a:
            _expect(a, ServerMessageType.USER_COUNT)
            with client.websocket_connect("/ws") as b:
                assert _expect(b, ServerMessageType.USER_COUNT)["count"] == 2
                assert _expect(a, ServerMessageType.USER_COUNT)["count"] == 2

                send_ws(a, {"type": "find-random-partner"})
                _expect(a, ServerMessageType.WAITING)

                send_ws(b, {"type": "find-random-partner"})
                room_id = _expect(b, ServerMessageType.CHAT_START)["room_id"]
                assert _expect(b, ServerMessageType.INITIATOR)["initiator"] is True
                assert _expect(a, ServerMessageType.CHAT_START)["room_id"] == room_id

                send_ws(b, {"type": "offer", "room_id": room_id, "offer": {"type": "offer", "sdp": "v=0"}})
                assert recv_ws(a) == {"type": ServerMessageType.OFFER, "offer": {"type": "offer", "sdp": "v=0"}}

                send_ws(b, {"type": "send-message", "room_id": room_id, "message": "what the fuck"})
                received = _expect(a, ServerMessageType.RECEIVE_MESSAGE)
                assert received["message"] == "what the ****"
                assert isinstance(received["timestamp"], int)

                status = client.get("/status").json()
                assert (status["online"], status["rooms"], status["waiting"]) == (2, 1, 0)

            _expect(a, ServerMessageType.PARTNER_DISCONNECTED)
            assert _expect(a, ServerMessageType.USER_COUNT)["count"] == 1

            send_ws(a, {"type": "find-random-partner"})
            _expect(a, ServerMessageType.WAITING)

    def test_code_pairing(self, client):
        with client.websocket_connect("/ws") as creator:
            _expect(creator, ServerMessageType.USER_COUNT)
            send_ws(creator, {"type": "create-room"})
            assert recv_ws(creator) == {"type": ServerMessageType.ROOM_CREATED, "code": "ROOM42"}

            with client.websocket_connect("/ws") as joiner:
                _expect(joiner, ServerMessageType.USER_COUNT)
                _expect(creator, ServerMessageType.USER_COUNT)

                send_ws(joiner, {"type": "join-room", "code": "room42"})
                assert _expect(joiner, ServerMessageType.CHAT_START)["room_id"] == "ROOM42"
                _expect(joiner, ServerMessageType.INITIATOR)
                assert _expect(creator, ServerMessageType.CHAT_START)["room_id"] == "ROOM42"

    def test_join_bad_code(self, client):
        with client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            send_ws(ws, {"type": "join-room", "code": "BADCODE"})

            response = _expect(ws, ServerMessageType.ROOM_ERROR)
            assert response["code"] == RoomErrorCode.ROOM_NOT_FOUND

    def test_invalid_msgpack_returns_error_and_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            ws.send_bytes(b"\xc1")

            response = _expect(ws, ServerMessageType.ERROR)
            assert response["code"] == ErrorCode.INVALID_MESSAGE

            send_ws(ws, {"type": "ping"})
            _expect(ws, ServerMessageType.PONG)

    def test_unknown_message_type(self, client):
        with client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            send_ws(ws, {"type": "dance"})
            assert _expect(ws, ServerMessageType.ERROR)["code"] == ErrorCode.INVALID_MESSAGE


class TestTransportGuards:
    def test_repeated_decode_errors_disconnect(self, tmp_path):
        with _make_client(tmp_path, max_decode_errors=3) as client, client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            for _ in range(3):
                ws.send_bytes(b"\xc1")
                _expect(ws, ServerMessageType.ERROR)
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_bytes()
            assert exc_info.value.code == 4004

    def test_decode_error_counter_resets_on_valid_message(self, tmp_path):
        with _make_client(tmp_path, max_decode_errors=3) as client, client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            for _ in range(2):
                ws.send_bytes(b"\xc1")
                _expect(ws, ServerMessageType.ERROR)

            send_ws(ws, {"type": "ping"})
            _expect(ws, ServerMessageType.PONG)

            for _ in range(2):
                ws.send_bytes(b"\xc1")
                _expect(ws, ServerMessageType.ERROR)
            send_ws(ws, {"type": "ping"})
            _expect(ws, ServerMessageType.PONG)

    def test_rate_limited_message_returns_error(self, tmp_path):
        with (
            _make_client(tmp_path, rate_limit_burst=2, rate_limit_per_second=0.01) as client,
            client.websocket_connect("/ws") as ws,
        ):
            _expect(ws, ServerMessageType.USER_COUNT)
            for _ in range(2):
                send_ws(ws, {"type": "ping"})
                _expect(ws, ServerMessageType.PONG)

            send_ws(ws, {"type": "ping"})
            response = _expect(ws, ServerMessageType.ERROR)
            assert response["code"] == ErrorCode.RATE_LIMITED
            assert "retry in" in response["message"]

    def test_foreign_origin_rejected_before_accept(self, tmp_path):
        with _make_client(tmp_path, ws_allowed_origin="https://chat.example.com") as client:
            with pytest.raises(WebSocketDisconnect) as exc_info, client.websocket_connect(
                "/ws",
                headers={"origin": "https://evil.example.com"},
            ):
                pass
            assert exc_info.value.code == 4003

            with client.websocket_connect("/ws", headers={"origin": "https://chat.example.com"}) as ws:
                _expect(ws, ServerMessageType.USER_COUNT)


class TestHttpEndpoints:
    @pytest.fixture
    def client(self, tmp_path):
        with _make_client(tmp_path) as client:
            yield client

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data
        assert "commit" in data

    def test_status_starts_empty(self, client):
        data = client.get("/status").json()
        assert data["status"] == "ok"
        assert (data["online"], data["rooms"], data["waiting"]) == (0, 0, 0)
        assert data["uptime_seconds"] >= 0

    def test_status_counts_waiting(self, client):
        with client.websocket_connect("/ws") as ws:
            _expect(ws, ServerMessageType.USER_COUNT)
            send_ws(ws, {"type": "find-random-partner"})
            _expect(ws, ServerMessageType.WAITING)

            data = client.get("/status").json()
            assert (data["online"], data["waiting"]) == (1, 1)

    def test_static_index_served(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "<title>chat</title>" in response.text

    def test_missing_static_dir_still_serves_api(self, tmp_path):
        settings = ChatServerSettings(static_dir=str(tmp_path / "missing"))
        with TestClient(create_app(settings=settings, broker=SessionBroker())) as client:
            assert client.get("/health").status_code == 200
            assert client.get("/").status_code == 404
