"""
Tests for grouping a message snapshot into per-counterparty conversations.
"""

import random

import pytest

from app.models.domain.message_domain import Conversation
from app.services.conversation_service import (
    MalformedMessageError,
    aggregate_conversations,
    counterparty_id,
    sort_conversations,
)
from tests.factories import make_message, make_profile

ME = "me"


def test_empty_snapshot_yields_no_conversations():
    assert aggregate_conversations([], ME) == []


def test_single_received_unread_message():
    alice = make_profile("alice", "Alice")
    m1 = make_message("m1", "alice", ME, minutes=0, sender_profile=alice)

    [conversation] = aggregate_conversations([m1], ME)

    assert conversation.other_user_id == "alice"
    assert conversation.other_user_profile == alice
    assert conversation.last_message == m1
    assert conversation.unread_count == 1


def test_mixed_directions_picks_latest_and_counts_only_received_unread():
    m1 = make_message("m1", "alice", ME, minutes=0, read=False)
    m2 = make_message("m2", ME, "alice", minutes=1, read=False)
    m3 = make_message("m3", "alice", ME, minutes=2, read=True)

    [conversation] = aggregate_conversations([m3, m2, m1], ME)

    assert conversation.last_message.id == "m3"
    assert conversation.unread_count == 1


def test_conversations_ordered_newest_first():
    messages = [
        make_message("a1", "alice", ME, minutes=10),
        make_message("b1", ME, "bob", minutes=20),
        make_message("c1", "carol", ME, minutes=5),
    ]

    result = aggregate_conversations(messages, ME)

    assert [c.other_user_id for c in result] == ["bob", "alice", "carol"]


def test_sent_only_conversation_has_no_profile_and_zero_unread():
    m1 = make_message("m1", ME, "dave", minutes=0)

    [conversation] = aggregate_conversations([m1], ME)

    assert conversation.other_user_id == "dave"
    assert conversation.other_user_profile is None
    assert conversation.unread_count == 0


def test_profile_taken_from_counterparty_messages_only():
    alice = make_profile("alice", "Alice")
    me = make_profile(ME, "Me")
    messages = [
        make_message("m1", ME, "alice", minutes=3, sender_profile=me),
        make_message("m2", "alice", ME, minutes=1, read=True, sender_profile=alice),
    ]

    [conversation] = aggregate_conversations(messages, ME)

    assert conversation.other_user_profile == alice


def test_tied_timestamps_keep_earliest_in_input_order():
    first = make_message("first", "alice", ME, minutes=5)
    second = make_message("second", ME, "alice", minutes=5)

    [conversation] = aggregate_conversations([first, second], ME)
    assert conversation.last_message.id == "first"

    [conversation] = aggregate_conversations([second, first], ME)
    assert conversation.last_message.id == "second"


def test_result_independent_of_input_order():
    messages = [
        make_message(f"m{i}", "alice" if i % 2 else ME, ME if i % 2 else "bob", minutes=i)
        for i in range(12)
    ]
    expected = aggregate_conversations(messages, ME)

    shuffled = list(messages)
    random.Random(7).shuffle(shuffled)

    assert aggregate_conversations(shuffled, ME) == expected


def test_unread_totals_and_one_entry_per_counterparty():
    messages = [
        make_message("m1", "alice", ME, minutes=1),
        make_message("m2", "alice", ME, minutes=2),
        make_message("m3", "bob", ME, minutes=3),
        make_message("m4", "bob", ME, minutes=4, read=True),
        make_message("m5", ME, "carol", minutes=5),
    ]

    result = aggregate_conversations(messages, ME)

    ids = [c.other_user_id for c in result]
    assert len(ids) == len(set(ids)) == 3
    assert ME not in ids
    assert sum(c.unread_count for c in result) == 3


def test_aggregation_does_not_mutate_input():
    messages = [make_message("m1", "alice", ME), make_message("m2", ME, "alice", minutes=1)]
    before = [m.model_copy() for m in messages]

    aggregate_conversations(messages, ME)

    assert messages == before


def test_counterparty_of_sent_and_received_messages():
    assert counterparty_id(make_message("m1", ME, "bob"), ME) == "bob"
    assert counterparty_id(make_message("m2", "bob", ME), ME) == "bob"


@pytest.mark.parametrize(
    "sender_id,receiver_id",
    [("", ME), (ME, ""), ("alice", "bob")],
)
def test_malformed_messages_are_rejected(sender_id, receiver_id):
    message = make_message("bad", sender_id, receiver_id)

    with pytest.raises(MalformedMessageError):
        aggregate_conversations([message], ME)


def test_sort_puts_conversations_without_last_message_at_end():
    undated_a = Conversation(other_user_id="x")
    undated_b = Conversation(other_user_id="y")
    dated = Conversation(
        other_user_id="alice", last_message=make_message("m1", "alice", ME, minutes=1)
    )

    result = sort_conversations([undated_a, dated, undated_b])

    assert [c.other_user_id for c in result] == ["alice", "x", "y"]
