"""
Unit tests for conversation keying and ConversationMemory.
"""
import threading

import pytest

from restaurant_assistant.models import ChatMessage, MessageRole
from restaurant_assistant.services.conversation_memory import (
    DEFAULT_CONVERSATION_ID,
    ConversationMemory,
    get_conversation_id,
)

from conftest import assistant, user


class TestGetConversationId:
    """Tests for deriving the conversation key."""

    def test_key_from_first_user_message(self):
        messages = [user("How many orders did we have today?")]
        assert get_conversation_id(messages) == "conv_how_many_orders_did_we_have_to"

    def test_key_ignores_later_messages(self):
        first = [user("Revenue this week?")]
        later = [
            user("Revenue this week?"),
            assistant("R$ 12.000"),
            user("And last week?"),
        ]
        assert get_conversation_id(first) == get_conversation_id(later)

    def test_key_skips_leading_non_user_messages(self):
        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content="Be brief"),
            user("Top products"),
        ]
        assert get_conversation_id(messages) == "conv_top_products"

    def test_key_strips_punctuation_and_accents(self):
        assert get_conversation_id([user("Olá, tudo bem?")]) == "conv_ol_tudo_bem"

    def test_whitespace_runs_become_single_underscore(self):
        assert get_conversation_id([user("a  \n\t b")]) == "conv_a_b"

    def test_no_user_message_uses_default_key(self):
        assert get_conversation_id([assistant("Hello!")]) == DEFAULT_CONVERSATION_ID
        assert get_conversation_id([]) == DEFAULT_CONVERSATION_ID

    def test_key_is_deterministic(self):
        messages = [user("Same question")]
        assert get_conversation_id(messages) == get_conversation_id(list(messages))


class TestConversationMemory:
    """Tests for bounded per-conversation storage."""

    def test_read_unknown_conversation(self, memory):
        assert memory.read("missing") == []

    def test_append_and_read_in_order(self, memory):
        memory.append("c1", user("q1"))
        memory.append("c1", assistant("a1"))

        assert [m.content for m in memory.read("c1")] == ["q1", "a1"]

    def test_read_returns_copy(self, memory):
        memory.append("c1", user("q1"))
        snapshot = memory.read("c1")
        snapshot.append(user("injected"))

        assert len(memory.read("c1")) == 1

    def test_each_role_bounded_independently(self, memory):
        for i in range(7):
            memory.append("c1", user(f"q{i}"))
            memory.append("c1", assistant(f"a{i}"))

        stored = memory.read("c1")
        users = [m.content for m in stored if m.role == MessageRole.USER]
        assistants = [m.content for m in stored if m.role == MessageRole.ASSISTANT]

        assert users == ["q2", "q3", "q4", "q5", "q6"]
        assert assistants == ["a2", "a3", "a4", "a5", "a6"]
        # Relative order survives eviction
        assert [m.content for m in stored] == [
            "q2", "a2", "q3", "a3", "q4", "a4", "q5", "a5", "q6", "a6",
        ]

    def test_user_burst_does_not_evict_assistant_messages(self, memory):
        memory.append("c1", assistant("only answer"))
        for i in range(8):
            memory.append("c1", user(f"q{i}"))

        stored = memory.read("c1")
        assert stored[0].content == "only answer"
        assert sum(1 for m in stored if m.role == MessageRole.USER) == 5

    def test_system_messages_not_bounded(self):
        memory = ConversationMemory(max_messages_per_role=1)
        for i in range(3):
            memory.append("c1", ChatMessage(role=MessageRole.SYSTEM, content=f"s{i}"))

        assert len(memory.read("c1")) == 3

    def test_zero_bound_keeps_no_turns(self):
        memory = ConversationMemory(max_messages_per_role=0)
        memory.append("c1", user("q"))
        memory.append("c1", assistant("a"))
        memory.append("c1", ChatMessage(role=MessageRole.SYSTEM, content="s"))

        assert memory.max_messages_per_role == 0
        assert [m.content for m in memory.read("c1")] == ["s"]

    def test_conversations_are_isolated(self, memory):
        memory.append("c1", user("for c1"))
        memory.append("c2", user("for c2"))

        assert [m.content for m in memory.read("c1")] == ["for c1"]
        assert [m.content for m in memory.read("c2")] == ["for c2"]

    def test_clear(self, memory):
        memory.append("c1", user("q"))

        assert memory.clear("c1") is True
        assert memory.read("c1") == []
        assert memory.clear("c1") is False

    def test_tail(self, memory):
        for i in range(4):
            memory.append("c1", user(f"q{i}"))

        assert [m.content for m in memory.tail("c1", 2)] == ["q2", "q3"]
        assert memory.tail("c1", 0) == []
        # Defaults to the per-role bound
        assert len(memory.tail("c1")) == 4

    def test_last_update_time(self, memory):
        assert memory.last_update_time("c1") is None
        memory.append("c1", user("q"))
        assert memory.last_update_time("c1") is not None

    def test_get_stats(self, memory):
        memory.append("c1", user("q"))
        memory.append("c2", user("q"))
        memory.append("c2", assistant("a"))

        assert memory.get_stats() == {
            "conversations": 2,
            "messages": 3,
            "max_messages_per_role": 5,
        }

    def test_concurrent_appends_keep_bound(self):
        memory = ConversationMemory(max_messages_per_role=5)

        def writer(prefix):
            for i in range(50):
                memory.append("shared", user(f"{prefix}{i}"))

        threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(memory.read("shared")) == 5


class TestChatMessage:
    """Tests for the message model itself."""

    def test_messages_are_immutable(self):
        message = user("hello")
        with pytest.raises(Exception):
            message.content = "changed"

    def test_to_api_dict(self):
        assert assistant("hi").to_api_dict() == {"role": "assistant", "content": "hi"}
