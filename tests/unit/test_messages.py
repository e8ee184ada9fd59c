"""Unit tests for WebSocket message decoding and encoding."""

import json

import pytest

from dockfleet.models.deployment import DeploymentOutcome, DeploymentStatus
from dockfleet.models.errors import ProtocolError
from dockfleet.models.messages import (
    ConnectedEvent,
    DeployComposeMessage,
    DeployContainerMessage,
    DeploymentCompleteEvent,
    ErrorEvent,
    LogsEvent,
    PongMessage,
    StatsEvent,
    SubscribeMessage,
    TerminalEndEvent,
    TerminalResizeMessage,
    Topic,
    decode_client_message,
)
from dockfleet.models.stats import MetricsSnapshot


class TestDecodeClientMessage:
    """Tests for decode_client_message."""

    def test_subscribe_with_options(self):
        message = decode_client_message('{"type": "subscribe", "topic": "logs", "options": {"tail": 50}}')

        assert isinstance(message, SubscribeMessage)
        assert message.topic == Topic.LOGS
        assert message.options.tail == 50
        assert message.options.timestamps is None

    def test_bytes_frame(self):
        assert isinstance(decode_client_message(b'{"type": "pong"}'), PongMessage)

    def test_deploy_container_accepts_dashboard_key(self):
        message = decode_client_message(
            json.dumps({"type": "deploy_container", "deployConfig": {"image": "nginx", "cpuShares": 256}})
        )

        assert isinstance(message, DeployContainerMessage)
        assert message.spec.cpu_shares == 256

    def test_deploy_compose(self):
        message = decode_client_message(
            json.dumps(
                {
                    "type": "deploy_compose",
                    "composeConfig": {"projectName": "p", "services": {"web": {"image": "nginx"}}},
                }
            )
        )

        assert isinstance(message, DeployComposeMessage)
        assert message.plan.scoped_name("data") == "p_data"

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"text"'])
    def test_malformed_frames(self, raw):
        with pytest.raises(ProtocolError) as exc_info:
            decode_client_message(raw)

        assert exc_info.value.topic is None

    def test_unknown_type(self):
        with pytest.raises(ProtocolError):
            decode_client_message('{"type": "shutdown"}')

    def test_unknown_topic(self):
        with pytest.raises(ProtocolError):
            decode_client_message('{"type": "subscribe", "topic": "metrics"}')

    def test_resize_bounds(self):
        with pytest.raises(ProtocolError):
            decode_client_message('{"type": "terminal_resize", "rows": 0, "cols": 80}')
        assert isinstance(
            decode_client_message('{"type": "terminal_resize", "rows": 24, "cols": 80}'), TerminalResizeMessage
        )

    def test_deploy_errors_tagged_with_deployment_topic(self):
        with pytest.raises(ProtocolError) as exc_info:
            decode_client_message('{"type": "deploy_compose", "composeConfig": {"projectName": "p"}}')

        assert exc_info.value.topic == "deployment"
        assert "services" in exc_info.value.message


class TestServerMessages:
    """Tests for outbound event serialization."""

    def test_connected_uses_camel_case(self):
        payload = json.loads(ConnectedEvent(container_id="abc", connection_id="ws-abc-1").to_json())

        assert payload == {"type": "connected", "containerId": "abc", "connectionId": "ws-abc-1"}

    def test_error_without_topic_omits_it(self):
        assert json.loads(ErrorEvent(error="boom").to_json()) == {"type": "error", "error": "boom"}

    def test_error_with_topic(self):
        payload = json.loads(ErrorEvent(topic=Topic.STATS, error="boom").to_json())

        assert payload["topic"] == "stats"

    def test_logs_event_topics(self):
        assert json.loads(LogsEvent(data="x").to_json())["topic"] == "logs"
        assert json.loads(LogsEvent(topic="deployment", data="x").to_json())["topic"] == "deployment"

    def test_stats_event(self):
        payload = json.loads(StatsEvent(data=MetricsSnapshot(cpu_percent=12.5, memory_usage=10)).to_json())

        assert payload["data"]["cpu_percent"] == 12.5
        assert payload["data"]["memory_usage"] == 10

    def test_terminal_end(self):
        assert json.loads(TerminalEndEvent(container_id="abc").to_json()) == {
            "type": "terminal_end",
            "containerId": "abc",
        }

    def test_deployment_complete(self):
        event = DeploymentCompleteEvent(
            data=DeploymentOutcome(status=DeploymentStatus.SUCCESS, container_ids=["a", "b"])
        )

        payload = json.loads(event.to_json())

        assert payload == {
            "type": "deployment_complete",
            "topic": "deployment",
            "data": {"status": "success", "containerIds": ["a", "b"]},
        }
