"""Tests for the in-process bus, messages, and services."""

import pytest

from smipmqtt.bus.message_bus import MessageBus
from smipmqtt.bus.topics import Topic
from smipmqtt.core.messages import Message, MessageType
from smipmqtt.core.registry import ServiceRegistry
from smipmqtt.core.service import Service, ServiceMetadata, ServiceState


class RecordingService(Service):
    def __init__(self, name: str = "recorder", topics: frozenset[str] = frozenset()) -> None:
        super().__init__(
            ServiceMetadata(
                name=name,
                display_name="Recorder",
                description="Records messages",
                subscribed_topics=topics,
            )
        )
        self.received: list[Message] = []

    async def handle_message(self, message: Message) -> None:
        if message.payload == b"boom":
            raise ValueError("boom")
        self.received.append(message)


class TestTopic:
    def test_topic_matching(self) -> None:
        topic = Topic("plant/line1/temp")
        assert topic.matches("plant/line1/temp")
        assert topic.matches("plant/+/temp")
        assert topic.matches("plant/#")
        assert topic.matches("#")
        assert not topic.matches("other/line1/temp")
        assert not topic.matches("plant/line1")
        assert not topic.matches("plant/+")

    def test_multi_wildcard_matches_parent(self) -> None:
        assert Topic("plant").matches("plant/#")

    def test_topic_segments(self) -> None:
        topic = Topic("a/b/c")
        assert topic.segments == ["a", "b", "c"]
        assert topic.root == "a"
        assert not topic.is_pattern
        assert Topic("a/+/c").is_pattern


class TestMessage:
    def test_event_encodes_text(self) -> None:
        message = Message.event("a/b", '{"v": 1}')
        assert message.type == MessageType.EVENT
        assert message.payload == b'{"v": 1}'
        assert message.payload_text == '{"v": 1}'
        assert not message.retain
        assert not message.is_expired

    def test_heartbeat_and_identity(self) -> None:
        beat = Message.heartbeat("hb", "svc", {"sequence": 1})
        assert beat.type == MessageType.HEARTBEAT
        assert beat.payload == b'{"sequence": 1}'

        ident = Message.identity("id", "svc", '{"device_id": "d1"}')
        assert ident.type == MessageType.IDENTITY
        assert ident.retain


class TestMessageBus:
    @pytest.mark.asyncio
    async def test_publish_subscribe(self) -> None:
        bus = MessageBus()
        received: list[Message] = []

        async def handler(msg: Message) -> None:
            received.append(msg)

        await bus.subscribe("test/topic", handler)
        delivered = await bus.publish(Message.event("test/topic", b"data"))

        assert delivered == 1
        assert received[0].payload == b"data"

    @pytest.mark.asyncio
    async def test_wildcard_subscription(self) -> None:
        bus = MessageBus()
        received: list[Message] = []

        async def handler(msg: Message) -> None:
            received.append(msg)

        await bus.subscribe("test/#", handler)

        await bus.publish(Message.event("test/a"))
        await bus.publish(Message.event("test/b/c"))
        await bus.publish(Message.event("other/x"))

        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        bus = MessageBus()
        received: list[Message] = []

        async def handler(msg: Message) -> None:
            received.append(msg)

        sub_id = await bus.subscribe("test", handler)
        assert await bus.unsubscribe(sub_id)
        assert not await bus.unsubscribe(sub_id)

        await bus.publish(Message.event("test"))
        assert received == []
        assert bus.get_subscriptions() == []

    @pytest.mark.asyncio
    async def test_handler_failure_is_isolated(self) -> None:
        bus = MessageBus()
        received: list[Message] = []

        async def broken(msg: Message) -> None:
            raise RuntimeError("handler broke")

        async def handler(msg: Message) -> None:
            received.append(msg)

        await bus.subscribe("#", broken)
        await bus.subscribe("#", handler)

        delivered = await bus.publish(Message.event("a"))

        assert delivered == 1
        assert len(received) == 1
        assert bus.stats.total_errors == 1


class TestService:
    @pytest.mark.asyncio
    async def test_lifecycle_and_subscriptions(self) -> None:
        bus = MessageBus()
        service = RecordingService(topics=frozenset(["a/#"]))
        service.set_message_bus(bus)

        await service.start()
        assert service.is_running
        await bus.publish(Message.event("a/b"))
        await bus.publish(Message.event("a/c", b"boom"))

        assert len(service.received) == 1
        assert service.stats.total_messages_received == 2
        assert service.stats.total_errors == 1

        await service.stop()
        assert service.service_state == ServiceState.STOPPED
        assert bus.stats.total_subscriptions == 0

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self) -> None:
        service = RecordingService()
        await service.start()
        with pytest.raises(RuntimeError, match="Cannot start"):
            await service.start()

    @pytest.mark.asyncio
    async def test_publish_requires_bus(self) -> None:
        service = RecordingService()
        with pytest.raises(RuntimeError, match="No message bus"):
            await service.publish(Message.event("a"))


class TestServiceRegistry:
    def test_register_and_lookup(self) -> None:
        registry = ServiceRegistry()
        service = RecordingService()
        registry.register(service)

        assert "recorder" in registry
        assert registry.get("recorder") is service
        assert registry.list_names() == ["recorder"]
        assert len(registry) == 1

    def test_duplicate_name_rejected(self) -> None:
        registry = ServiceRegistry()
        registry.register(RecordingService())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(RecordingService())

    def test_unregister(self) -> None:
        registry = ServiceRegistry()
        registry.register(RecordingService())
        assert registry.unregister("recorder")
        assert not registry.unregister("recorder")

    def test_rejects_non_service(self) -> None:
        registry = ServiceRegistry()
        with pytest.raises(TypeError):
            registry.register("not a service")  # type: ignore[arg-type]
