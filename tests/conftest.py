"""Pytest configuration and shared fixtures."""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest


def text_delta(text):
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def message_done(text, role="assistant"):
    item = SimpleNamespace(
        type="message", role=role, content=[SimpleNamespace(text=text)]
    )
    return SimpleNamespace(type="response.output_item.done", item=item)


def function_call_done(name, arguments, call_id):
    item = SimpleNamespace(
        type="function_call", name=name, arguments=arguments, call_id=call_id
    )
    return SimpleNamespace(type="response.output_item.done", item=item)


def completed(output):
    return SimpleNamespace(
        type="response.completed", response=SimpleNamespace(output=output)
    )


class FakeStream:
    """Async iterable standing in for an OpenAI response stream."""

    def __init__(self, events):
        self.events = events

    async def __aiter__(self):
        for event in self.events:
            yield event


class FakeResponses:
    """Scripted replacement for ``client.responses``; one event list per call."""

    def __init__(self, scripted):
        self.scripted = list(scripted)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return FakeStream(self.scripted.pop(0))


@pytest.fixture
def fake_client():
    """Build a fake OpenAI client from a list of scripted responses."""

    def build(*scripted):
        return SimpleNamespace(responses=FakeResponses(scripted))

    return build


class FakeAgent:
    """Agent stand-in that streams a fixed list of tokens."""

    def __init__(self, tokens, error=None):
        self.tokens = tokens
        self.error = error
        self.prompts = []
        self.conversation_id = "test-conversation"

    async def stream(self, message):
        self.prompts.append(message)
        for token in self.tokens:
            yield token
        if self.error:
            raise self.error


@pytest.fixture
def fake_websocket():
    """Websocket double that records every JSON payload sent to it."""
    websocket = SimpleNamespace(send_text=AsyncMock())

    def sent():
        return [json.loads(call.args[0]) for call in websocket.send_text.call_args_list]

    websocket.sent = sent
    return websocket
