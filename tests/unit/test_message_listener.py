import json
import re
from pathlib import Path

from app.config import settings
from app.realtime.message_listener import MessageListener

SCHEMA = Path(__file__).resolve().parents[2] / "sql" / "schema.sql"


def _payload(receiver_id: str, sender_id: str = "alice", message_id: str = "m1") -> str:
    return json.dumps({"id": message_id, "sender_id": sender_id, "receiver_id": receiver_id})


def test_dispatch_routes_by_receiver():
    listener = MessageListener(conninfo="postgresql://test")
    received = {"me": [], "bob": []}
    listener.subscribe("me", received["me"].append)
    listener.subscribe("bob", received["bob"].append)

    handled = listener.dispatch(_payload("me"))

    assert handled == 1
    assert [event.id for event in received["me"]] == ["m1"]
    assert received["bob"] == []


def test_unsubscribe_stops_delivery():
    listener = MessageListener(conninfo="postgresql://test")
    received = []
    unsubscribe = listener.subscribe("me", received.append)

    unsubscribe()
    unsubscribe()

    assert listener.dispatch(_payload("me")) == 0
    assert listener.subscriber_count("me") == 0


def test_malformed_payload_is_ignored():
    listener = MessageListener(conninfo="postgresql://test")
    listener.subscribe("me", lambda event: None)

    assert listener.dispatch("not json") == 0
    assert listener.dispatch(json.dumps({"id": "m1"})) == 0


def test_failing_handler_does_not_block_others():
    listener = MessageListener(conninfo="postgresql://test")
    received = []

    def broken(event):
        raise RuntimeError("handler bug")

    listener.subscribe("me", broken)
    listener.subscribe("me", received.append)

    assert listener.dispatch(_payload("me")) == 1
    assert len(received) == 1


def test_trigger_notifies_the_channel_the_listener_subscribes_to():
    match = re.search(r"pg_notify\(\s*'([^']+)'", SCHEMA.read_text())

    assert match is not None
    assert match.group(1) == settings.REALTIME_MESSAGE_CHANNEL
