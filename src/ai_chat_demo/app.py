import asyncio
import json
import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from .agent import Agent
from .layout import layout_context, menu, menu_entries, templates
from .memory import ChatMemory
from .plugins.chat_plugin import ChatPlugin
from .plugins.sample_plugin import SamplePlugin

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI()

# Conversation history for every connected chat, keyed by conversation id.
# Built on first use so a bad setting surfaces as a readable error.
chat_memory: Optional[ChatMemory] = None


def get_default_system_prompt() -> str:
    """Get the default system prompt."""
    return os.getenv("AI_CHAT_SYSTEM_PROMPT") or (
        "You are a helpful AI assistant in a chat interface. "
        "Be concise, friendly, and direct in your responses. "
        "Use the available tools whenever they can answer the question."
    )


def get_int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def parse_mcp_servers(value: Optional[str]) -> Dict[str, str]:
    """Parse ``label=url`` pairs separated by commas into a label -> URL mapping.

    Example: ``AI_CHAT_MCP_SERVERS="deepwiki=https://mcp.deepwiki.com/mcp"``
    """
    servers = {}
    if not value:
        return servers
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        label, sep, url = part.partition("=")
        label, url = label.strip(), url.strip()
        if not sep or not label or not url.startswith(("http://", "https://")):
            raise ValueError(
                f"AI_CHAT_MCP_SERVERS entries must look like label=https://host/path, got {part!r}"
            )
        servers[label] = url
    return servers


def get_chat_memory() -> ChatMemory:
    global chat_memory
    if chat_memory is None:
        chat_memory = ChatMemory(
            max_messages=get_int_setting("AI_CHAT_MEMORY_MAX_MESSAGES", 20)
        )
    return chat_memory


def create_chat_agent(chat_plugin: ChatPlugin) -> Agent:
    """Create the agent behind one chat view."""
    plugins = [SamplePlugin(), chat_plugin]
    agent = Agent(
        plugins,
        model_name=os.getenv("AI_CHAT_MODEL", "gpt-4.1-mini"),
        system_prompt=get_default_system_prompt(),
        memory=get_chat_memory(),
        reasoning_effort=os.getenv("AI_CHAT_REASONING_EFFORT") or None,
        mcp_servers=parse_mcp_servers(os.getenv("AI_CHAT_MCP_SERVERS")),
    )
    chat_plugin.agent = agent
    return agent


@app.get("/", response_class=HTMLResponse)
@menu(title="AI Chat", path="/", order=0)
async def ai_chat(request: Request):
    return templates.TemplateResponse(
        request, "chat.html", layout_context("AI Chat", active_path="/")
    )


@app.get("/api/menu")
async def get_menu():
    return [
        {"title": entry.title, "path": entry.path} for entry in menu_entries()
    ]


async def handle_websocket_session(websocket: WebSocket):
    """Run one chat view for the lifetime of a websocket connection."""
    chat_plugin = ChatPlugin()
    try:
        agent = create_chat_agent(chat_plugin)
    except ValueError as e:
        logger.error(f"ERROR: Invalid configuration: {e}")
        await websocket.close(code=1011, reason="Server misconfigured")
        return
    await chat_plugin.set_websocket(websocket)

    processing_task = asyncio.create_task(chat_plugin.message_loop())

    try:
        while True:
            data = await websocket.receive_text()
            message_data = json.loads(data)
            if not isinstance(message_data, dict):
                logger.warning("SYSTEM: Ignoring non-object message")
            elif message_data.get("type", "user_message") == "user_message":
                await chat_plugin.add_message(message_data)
            else:
                logger.warning(f"SYSTEM: Ignoring message type {message_data.get('type')}")
    except WebSocketDisconnect:
        logger.info("SYSTEM: Client disconnected")
    except Exception as e:
        logger.error(f"ERROR: WebSocket error: {e}")
    finally:
        processing_task.cancel()
        try:
            await processing_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"ERROR: Message loop crashed: {e}")
        chat_plugin.websocket = None
        get_chat_memory().clear(agent.conversation_id)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    await handle_websocket_session(websocket)
