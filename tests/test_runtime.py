"""Tests for configuration, heartbeat, event replay, and the orchestrator."""

import json
from pathlib import Path

import anyio
import pytest
from pydantic import ValidationError

from smipmqtt.bus.message_bus import MessageBus
from smipmqtt.config import Settings, default_data_root
from smipmqtt.core.messages import Message, MessageType
from smipmqtt.runtime.__main__ import build_parser, load_settings
from smipmqtt.runtime.heartbeat import (
    DeviceIdentity,
    HeartbeatPublisher,
    load_identity,
    well_known_topics,
)
from smipmqtt.runtime.orchestrator import Orchestrator, OrchestratorState
from smipmqtt.runtime.sources import parse_event_line, replay


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_root=tmp_path,
        heartbeat_topic="svc/heartbeat",
        identity_topic="svc/identity",
        heartbeat_interval_seconds=60,
    )


class TestSettings:
    def test_defaults(self, tmp_path) -> None:
        settings = Settings(data_root=tmp_path)
        assert settings.hierarchy_separator == "/"
        assert settings.virtual_separator == "/:/"
        assert settings.catalog_path == tmp_path / "MqttTopicList.txt"
        assert settings.subscription_path == tmp_path / "CloudAcquiredTagList.txt"
        assert settings.history_root == tmp_path / "MqttHist"
        assert settings.identity_path is None

    def test_default_data_root_is_absolute(self) -> None:
        assert default_data_root().name == "DataRoot"

    def test_environment_overrides(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("SMIP_MQTT_DATA_ROOT", str(tmp_path))
        monkeypatch.setenv("SMIP_MQTT_VIRTUAL_SEPARATOR", "|")
        monkeypatch.setenv("SMIP_MQTT_LOG_LEVEL", "debug")
        settings = Settings()
        assert settings.data_root == tmp_path
        assert settings.virtual_separator == "|"
        assert settings.log_level == "DEBUG"

    def test_relative_identity_file(self, tmp_path) -> None:
        settings = Settings(data_root=tmp_path, identity_file=Path("identity.json"))
        assert settings.identity_path == tmp_path / "identity.json"

    def test_rejects_multiline_separator(self, tmp_path) -> None:
        with pytest.raises(ValidationError):
            Settings(data_root=tmp_path, virtual_separator="/\n/")

    def test_rejects_undotted_extension(self, tmp_path) -> None:
        with pytest.raises(ValidationError):
            Settings(data_root=tmp_path, history_extension="txt")

    def test_command_line_overrides(self, tmp_path) -> None:
        args = build_parser().parse_args(
            ["--data-root", str(tmp_path), "--log-format", "json", "--heartbeat-interval", "5"]
        )
        settings = load_settings(args)
        assert settings.data_root == tmp_path
        assert settings.log_format == "json"
        assert settings.heartbeat_interval_seconds == 5


class TestIdentity:
    def test_load_identity(self, tmp_path) -> None:
        path = tmp_path / "identity.json"
        path.write_text(json.dumps({"device_id": "gw-01", "site": "north"}), encoding="utf-8")

        identity = load_identity(path)

        assert identity is not None
        assert identity.device_id == "gw-01"
        assert identity.model_extra == {"site": "north"}

    def test_missing_or_invalid_identity(self, tmp_path) -> None:
        assert load_identity(None) is None
        assert load_identity(tmp_path / "missing.json") is None

        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert load_identity(bad) is None

        wrong = tmp_path / "wrong.json"
        wrong.write_text('{"name": "no id"}', encoding="utf-8")
        assert load_identity(wrong) is None

    def test_well_known_topics(self, settings: Settings) -> None:
        assert well_known_topics(settings, None) == ["svc/heartbeat"]
        identity = DeviceIdentity(device_id="gw-01")
        assert well_known_topics(settings, identity) == ["svc/heartbeat", "svc/identity"]


class TestHeartbeatPublisher:
    @pytest.mark.asyncio
    async def test_beat_and_announce(self, settings: Settings) -> None:
        bus = MessageBus()
        received: list[Message] = []

        async def handler(msg: Message) -> None:
            received.append(msg)

        await bus.subscribe("svc/#", handler)
        publisher = HeartbeatPublisher(settings, DeviceIdentity(device_id="gw-01"))
        publisher.set_message_bus(bus)

        await publisher.announce()
        await publisher.beat()
        await publisher.beat()

        assert [m.type for m in received] == [
            MessageType.IDENTITY,
            MessageType.HEARTBEAT,
            MessageType.HEARTBEAT,
        ]
        assert received[0].retain
        body = json.loads(received[2].payload)
        assert body["sequence"] == 2
        assert body["client_id"] == settings.client_id

    @pytest.mark.asyncio
    async def test_no_identity_no_announcement(self, settings: Settings) -> None:
        publisher = HeartbeatPublisher(settings)
        publisher.set_message_bus(MessageBus())
        assert await publisher.announce() is None


class TestEventFeed:
    def test_parse_event_line(self) -> None:
        message = parse_event_line('{"topic": "a/b", "payload": "21.5"}')
        assert message is not None
        assert message.topic == "a/b"
        assert message.payload == b"21.5"

    def test_structured_payload_is_serialized(self) -> None:
        message = parse_event_line('{"topic": "a", "payload": {"v": 1}}')
        assert message is not None
        assert json.loads(message.payload) == {"v": 1}

    def test_invalid_lines(self) -> None:
        assert parse_event_line("") is None
        assert parse_event_line("not json") is None
        assert parse_event_line('{"payload": "x"}') is None
        assert parse_event_line("[1, 2]") is None

    @pytest.mark.asyncio
    async def test_replay(self) -> None:
        bus = MessageBus()
        topics: list[str] = []

        async def handler(msg: Message) -> None:
            topics.append(msg.topic)

        await bus.subscribe("#", handler)
        lines = ['{"topic": "a"}', "garbage", '{"topic": "b", "payload": null}']

        assert await replay(bus, lines) == 2
        assert topics == ["a", "b"]


class TestOrchestrator:
    def test_create_orchestrator(self, settings: Settings) -> None:
        orchestrator = Orchestrator(settings)
        assert orchestrator.state == OrchestratorState.CREATED
        assert orchestrator.service_registry.list_names() == ["discovery_engine", "heartbeat"]

    @pytest.mark.asyncio
    async def test_lifecycle_with_replay(self, settings: Settings) -> None:
        settings.subscription_path.write_text("dev/1/:/battery\n", encoding="utf-8")
        orchestrator = Orchestrator(settings, heartbeat_enabled=False)

        async with orchestrator.run_context():
            assert orchestrator.is_running
            await replay(
                orchestrator.message_bus,
                [
                    '{"topic": "dev/1", "payload": {"battery": 50, "status": {"ok": true}}}',
                    '{"topic": "dev/2", "payload": "offline"}',
                ],
            )
            health = orchestrator.get_health()
            assert health["state"] == "RUNNING"
            assert health["services"]["total"] == 1

        assert orchestrator.state == OrchestratorState.STOPPED
        catalog = settings.catalog_path.read_text(encoding="utf-8").splitlines()
        assert catalog == [
            "svc/heartbeat",
            "dev",
            "dev/1",
            "dev/1/:/battery",
            "dev/1/:/status/:/ok",
            "dev/2",
        ]
        assert orchestrator.engine.history.topics() == ["dev/1"]

    @pytest.mark.asyncio
    async def test_identity_topic_is_seeded(self, settings: Settings, tmp_path) -> None:
        (tmp_path / "identity.json").write_text('{"device_id": "gw-01"}', encoding="utf-8")
        settings = settings.model_copy(update={"identity_file": Path("identity.json")})
        orchestrator = Orchestrator(settings)

        async with orchestrator.run_context():
            assert orchestrator.heartbeat is not None
            assert orchestrator.heartbeat.identity is not None

        names = orchestrator.engine.catalog.names
        assert names[:2] == ["svc/heartbeat", "svc/identity"]

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, settings: Settings) -> None:
        orchestrator = Orchestrator(settings, heartbeat_enabled=False)
        async with orchestrator.run_context():
            async with anyio.create_task_group() as tg:
                with pytest.raises(RuntimeError, match="Cannot start"):
                    await orchestrator.start(tg)
