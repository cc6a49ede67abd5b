"""Unit tests for the chat view."""
import asyncio

import pytest

from ai_chat_demo.plugins.chat_plugin import BOT_AUTHOR, USER_AUTHOR, ChatMessage, ChatPlugin, MessageList

from conftest import FakeAgent


class TestMessageList:
    def test_append_text_preserves_order(self):
        message = ChatMessage("", BOT_AUTHOR)
        for token in ["a", "b", "c", "d"]:
            message.append_text(token)

        assert message.text == "abcd"

    def test_add_item_and_last(self):
        messages = MessageList()
        assert messages.last() is None

        first = messages.add_item(ChatMessage("hi", USER_AUTHOR))
        second = messages.add_item(ChatMessage("", BOT_AUTHOR))

        assert len(messages) == 2
        assert messages.items == [first, second]
        assert messages.last() is second


class TestChatSubmit:
    """Tests for ChatPlugin.submit."""

    @pytest.mark.asyncio
    async def test_appends_user_then_bot(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent(["Hello", " there"]))
        await chat.set_websocket(fake_websocket)

        await chat.submit("Hi")

        authors = [item.author for item in chat.message_list.items]
        assert authors == [USER_AUTHOR, BOT_AUTHOR]
        assert chat.message_list.items[0].text == "Hi"
        assert chat.message_list.items[1].text == "Hello there"
        assert chat.agent.prompts == ["Hi"]

    @pytest.mark.asyncio
    async def test_tokens_appended_in_arrival_order(self, fake_websocket):
        tokens = [f"t{i} " for i in range(200)]
        chat = ChatPlugin(agent=FakeAgent(tokens))
        await chat.set_websocket(fake_websocket)

        response = await chat.submit("go")

        assert response.text == "".join(tokens)
        token_events = [e for e in fake_websocket.sent() if e["type"] == "token"]
        assert [e["text"] for e in token_events] == tokens
        assert {e["message_id"] for e in token_events} == {response.message_id}

    @pytest.mark.asyncio
    async def test_ui_events_sequence(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent(["ok"]))
        await chat.set_websocket(fake_websocket)

        await chat.submit("Hi")

        events = fake_websocket.sent()
        summary = [(e["type"], e.get("author") or e.get("status") or e.get("text")) for e in events]
        assert summary == [
            ("state", ChatPlugin.IDLE),
            ("message_added", USER_AUTHOR),
            ("message_added", BOT_AUTHOR),
            ("state", ChatPlugin.STREAMING),
            ("token", "ok"),
            ("state", ChatPlugin.IDLE),
        ]
        assert events[2]["text"] == ""

    @pytest.mark.asyncio
    async def test_state_returns_to_idle_on_error(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent(["par"], error=RuntimeError("boom")))
        await chat.set_websocket(fake_websocket)

        with pytest.raises(RuntimeError):
            await chat.submit("Hi")

        assert chat.status == ChatPlugin.IDLE
        assert chat.message_list.last().text == "par"

    @pytest.mark.asyncio
    async def test_without_websocket(self):
        chat = ChatPlugin(agent=FakeAgent(["x"]))

        response = await chat.submit("Hi")

        assert response.text == "x"


class TestMessageLoop:
    """Tests for queued processing."""

    async def _run_until_processed(self, chat, count):
        task = asyncio.create_task(chat.message_loop())
        try:
            for _ in range(100):
                if len(chat.message_list) >= count * 2:
                    break
                await asyncio.sleep(0.01)
            # Let the last stream finish
            await asyncio.sleep(0.01)
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    @pytest.mark.asyncio
    async def test_submissions_processed_in_order(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent(["reply"]))
        await chat.set_websocket(fake_websocket)
        await chat.add_message({"type": "user_message", "content": "first"})
        await chat.add_message({"type": "user_message", "content": "second"})

        await self._run_until_processed(chat, 2)

        texts = [(item.author, item.text) for item in chat.message_list.items]
        assert texts == [
            (USER_AUTHOR, "first"),
            (BOT_AUTHOR, "reply"),
            (USER_AUTHOR, "second"),
            (BOT_AUTHOR, "reply"),
        ]

    @pytest.mark.asyncio
    async def test_blank_messages_ignored(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent(["reply"]))
        await chat.set_websocket(fake_websocket)
        await chat.add_message({"type": "user_message", "content": "   "})
        await chat.add_message({"type": "user_message", "content": "real"})

        await self._run_until_processed(chat, 1)

        assert [item.text for item in chat.message_list.items] == ["real", "reply"]

    @pytest.mark.asyncio
    async def test_non_string_content_does_not_stop_loop(self, fake_websocket):
        """Test that a malformed message is skipped and later ones still run."""
        chat = ChatPlugin(agent=FakeAgent(["reply"]))
        await chat.set_websocket(fake_websocket)
        await chat.add_message({"type": "user_message", "content": 42})
        await chat.add_message({"type": "user_message", "content": ["a", "b"]})
        await chat.add_message({"type": "user_message", "content": "real"})

        await self._run_until_processed(chat, 1)

        assert [item.text for item in chat.message_list.items] == ["real", "reply"]
        assert chat.agent.prompts == ["real"]

    @pytest.mark.asyncio
    async def test_stream_error_sent_to_ui(self, fake_websocket):
        chat = ChatPlugin(agent=FakeAgent([], error=RuntimeError("model down")))
        await chat.set_websocket(fake_websocket)
        await chat.add_message({"type": "user_message", "content": "Hi"})

        await self._run_until_processed(chat, 1)

        errors = [e for e in fake_websocket.sent() if e["type"] == "error"]
        assert errors[0]["content"] == "Sorry, I encountered an error: model down"
        assert chat.status == ChatPlugin.IDLE
