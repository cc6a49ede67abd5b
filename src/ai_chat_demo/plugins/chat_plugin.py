import asyncio
import json
import logging
import uuid
from datetime import datetime

from fastapi import WebSocket

logger = logging.getLogger(__name__)

USER_AUTHOR = "You"
BOT_AUTHOR = "Bot"


class ChatMessage:
    """One entry of the message list; text grows while tokens stream in."""

    def __init__(self, text: str, author: str):
        self.message_id = str(uuid.uuid4())
        self.text = text
        self.author = author
        self.timestamp = datetime.now().isoformat()

    def append_text(self, token: str) -> None:
        self.text += token

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "author": self.author,
            "text": self.text,
            "timestamp": self.timestamp,
        }


class MessageList:
    def __init__(self):
        self.items = []

    def add_item(self, item: ChatMessage) -> ChatMessage:
        self.items.append(item)
        return item

    def last(self):
        return self.items[-1] if self.items else None

    def __len__(self) -> int:
        return len(self.items)


class ChatPlugin:
    """Chat view bound to one websocket: a message list fed by the agent's token stream.

    The view is either idle or streaming. Submissions are queued and handled
    one at a time by ``message_loop``, so a message sent while a response is
    streaming waits for that response to finish.
    """

    IDLE = "Idle"
    STREAMING = "Streaming"

    def __init__(self, agent=None):
        self.agent = agent
        self.message_queue = asyncio.Queue()
        self.message_list = MessageList()
        self.status = self.IDLE
        self.websocket = None

    async def set_websocket(self, websocket: WebSocket):
        self.websocket = websocket
        await self._send_state_update()

    async def _send_to_ui(self, message_data: dict):
        if self.websocket:
            await self.websocket.send_text(json.dumps(message_data, ensure_ascii=False))

    async def _send_state_update(self):
        await self._send_to_ui({"type": "state", "status": self.status})

    async def _send_error(self, content: str):
        await self._send_to_ui(
            {
                "type": "error",
                "content": content,
                "timestamp": datetime.now().isoformat(),
            }
        )

    async def add_message(self, message_data: dict):
        """Queue a message received from the browser.

        Expected format:
        {
            "type": "user_message",
            "content": str
        }
        """
        await self.message_queue.put(message_data)

    async def _add_item(self, item: ChatMessage) -> ChatMessage:
        self.message_list.add_item(item)
        await self._send_to_ui({"type": "message_added", **item.to_dict()})
        return item

    async def submit(self, prompt: str) -> ChatMessage:
        """Show the prompt and an empty bot reply, then stream the model's answer into it."""
        await self._add_item(ChatMessage(prompt, USER_AUTHOR))
        response_item = await self._add_item(ChatMessage("", BOT_AUTHOR))

        self.status = self.STREAMING
        await self._send_state_update()
        try:
            async for token in self.agent.stream(prompt):
                response_item.append_text(token)
                await self._send_to_ui(
                    {
                        "type": "token",
                        "message_id": response_item.message_id,
                        "text": token,
                    }
                )
        finally:
            self.status = self.IDLE
            await self._send_state_update()

        return response_item

    async def message_loop(self):
        """Process queued submissions one at a time."""
        while True:
            message_data = await self.message_queue.get()
            prompt = message_data.get("content", "")
            if not isinstance(prompt, str):
                logger.warning(f"SYSTEM: Ignoring message with {type(prompt).__name__} content")
                continue
            if not prompt.strip():
                continue
            try:
                await self.submit(prompt)
            except Exception as e:
                logger.error(f"ERROR: Error processing message: {e}")
                await self._send_error(f"Sorry, I encountered an error: {str(e)}")

    def hook_provide_system_prompt(self):
        """Return system prompt addition describing the chat UI."""
        return """
## User Interface

- Your reply is streamed into a chat message list as you write it.
- The message list renders Markdown, so you can use lists, code blocks and tables.
""".strip()
