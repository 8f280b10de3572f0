import asyncio
import logging

from apilabs.services.notifications import LoggingPublisher, WebSocketHub, account_topic, user_topic


class FakeSocket:
    def __init__(self, name, fail=False):
        self.client = name
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)


async def _drain():
    for _ in range(3):
        await asyncio.sleep(0)


async def test_publish_reaches_only_room_members():
    hub = WebSocketHub()
    alice, bob = FakeSocket("alice"), FakeSocket("bob")
    hub.subscribe(alice, "user_1")
    hub.subscribe(bob, "user_2")

    hub.publish("user_1", {"event": "transfer_completed"})
    await _drain()

    assert alice.sent == [{"room": "user_1", "event": "transfer_completed"}]
    assert bob.sent == []


async def test_publish_without_subscribers_is_a_noop():
    hub = WebSocketHub()
    hub.publish("user_404", {"event": "transfer_received"})
    await _drain()
    assert hub.rooms == {}


async def test_failed_delivery_drops_subscriber():
    hub = WebSocketHub()
    broken = FakeSocket("broken", fail=True)
    healthy = FakeSocket("healthy")
    hub.subscribe(broken, "account_1")
    hub.subscribe(broken, "user_9")
    hub.subscribe(healthy, "account_1")

    hub.publish("account_1", {"event": "transaction_created"})
    await _drain()

    assert healthy.sent == [{"room": "account_1", "event": "transaction_created"}]
    assert hub.rooms == {"account_1": {healthy}}


async def test_disconnect_leaves_every_room():
    hub = WebSocketHub()
    sock = FakeSocket("s")
    hub.subscribe(sock, "user_1")
    hub.subscribe(sock, "account_1")

    hub.disconnect(sock)

    assert hub.rooms == {}


def test_topic_names():
    assert user_topic("abc") == "user_abc"
    assert account_topic("xyz") == "account_xyz"


def test_logging_publisher_logs_event(caplog):
    caplog.set_level(logging.INFO, logger="apilabs.services.notifications")

    LoggingPublisher().publish("user_7", {"event": "transfer_received"})

    assert "transfer_received -> user_7" in caplog.text
