import logging
import os
import uuid
from typing import AsyncIterator, Dict, Optional

from openai import AsyncOpenAI

from .memory import ChatMemory
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class AgentLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects agent_id into structured logs."""

    def __init__(self, logger, agent_id):
        self.agent_id = agent_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["agent_id"] = self.agent_id
        return msg, kwargs


class Environment:
    """Environment owns tools, the system prompt and stream event handling."""

    def __init__(
        self,
        base_system_prompt: str,
        plugins: list,
        logger: logging.Logger,
        mcp_servers: Optional[Dict[str, str]] = None,
    ):
        self.base_system_prompt = base_system_prompt
        self.plugins = plugins
        self.logger = logger
        self.mcp_servers = mcp_servers or {}  # server_label -> server_url

        self.tool_registry = ToolRegistry()
        for plugin in plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    self.tool_registry.register_callable(method)

        self._instructions = self._assemble_system_prompt()

    def _assemble_system_prompt(self) -> str:
        instructions = self.base_system_prompt
        additions = []
        for plugin in self.plugins:
            if hasattr(plugin, "hook_provide_system_prompt"):
                try:
                    addition = plugin.hook_provide_system_prompt()
                    if addition and addition.strip():
                        additions.append(addition.strip())
                except Exception as e:
                    self.logger.error(
                        f"Error collecting system prompt from {plugin.__class__.__name__}: {e}"
                    )
        if additions:
            instructions = f"{instructions}\n\n" + "\n\n".join(additions)
        return instructions

    def instructions(self) -> str:
        """Return the assembled system prompt."""
        return self._instructions

    def tool_schemas(self) -> list:
        """Local function tools followed by remote MCP servers."""
        mcp_tools = [
            {
                "type": "mcp",
                "server_label": label,
                "server_url": url,
                "require_approval": "never",
            }
            for label, url in self.mcp_servers.items()
        ]
        return self.tool_registry.get_schemas() + mcp_tools

    def log_item(self, item_type: str, extra: dict):
        structured = {"log_type": item_type, **extra}
        self.logger.info(
            f"{item_type.replace('_', ' ').title()} received", extra={"structured": structured}
        )

    async def step(self, chunk):
        """Handle one non-text stream event; returns a tool result dict for function calls."""
        if chunk.type == "response.output_item.done":
            item = chunk.item
            if item.type == "function_call":
                self.log_item(
                    "tool_call",
                    {
                        "tool_name": item.name,
                        "arguments": item.arguments,
                        "call_id": item.call_id,
                    },
                )
                tool_result = await self.tool_registry.execute_tool_openai_response_api(item)
                self.log_item(
                    "tool_result", {"tool_name": item.name, "result": tool_result["output"]}
                )
                return tool_result

            if item.type == "reasoning":
                reasoning_content = "\n".join([x.text for x in item.summary])
                if reasoning_content.strip():
                    self.log_item("reasoning", {"content": reasoning_content})
                return None

            if item.type == "message":
                content_text = "".join(
                    c.text if hasattr(c, "text") else str(c) for c in item.content
                )
                self.log_item("message", {"role": item.role, "content": content_text})
                return None

            if item.type == "mcp_call":
                # Executed by the API; only the outcome is visible here
                self.log_item(
                    "mcp_call",
                    {
                        "server_label": item.server_label,
                        "tool_name": item.name,
                        "arguments": item.arguments,
                        "result": item.error or item.output,
                    },
                )
                return None

            if item.type == "mcp_list_tools":
                self.log_item(
                    "mcp_list_tools",
                    {
                        "server_label": item.server_label,
                        "tools": [tool.name for tool in item.tools],
                    },
                )
                return None

            self.logger.info(f"STREAM: UNKNOWN ITEM: {item}")
            return None

        if chunk.type in ("error", "response.failed"):
            self.logger.error(f"Stream error: {chunk}")
        return None


class Agent:
    """Chat-completion client: memory, tools and streaming over the OpenAI Responses API."""

    def __init__(
        self,
        plugins: list,
        model_name: str = "gpt-4.1-mini",
        system_prompt: str = "You are a helpful assistant.",
        memory: Optional[ChatMemory] = None,
        conversation_id: Optional[str] = None,
        max_iterations: int = 10,
        reasoning_effort: Optional[str] = None,
        mcp_servers: Optional[Dict[str, str]] = None,
        agent_id: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        self.plugins = plugins
        self.memory = memory if memory is not None else ChatMemory()
        self.conversation_id = conversation_id or str(uuid.uuid4())

        self.max_iterations = max_iterations  # Prevent infinite tool call loops
        self.model_name = model_name
        self.reasoning_effort = reasoning_effort

        self.logger = AgentLoggerAdapter(logger, agent_id or "main")

        self.env = Environment(
            system_prompt, self.plugins, self.logger, mcp_servers=mcp_servers
        )

    async def stream(self, message: str) -> AsyncIterator[str]:
        """Send a user message and yield the model's text fragments as they arrive.

        Tool calls requested by the model are executed and fed back until the
        model answers without calling a tool.
        """
        self.env.log_item("user_input", {"content": message})
        self.memory.add(self.conversation_id, [{"role": "user", "content": message}])

        iterations = 0
        while iterations < self.max_iterations:
            tool_results = []
            async for token in self._stream_response(tool_results):
                yield token

            if not tool_results:
                return

            self.memory.add(self.conversation_id, tool_results)
            iterations += 1

        self.logger.warning(
            f"Tool loop stopped after {self.max_iterations} iterations",
            extra={
                "structured": {
                    "log_type": "tool_signal",
                    "signal": "max_iterations",
                    "content": "Tool call loop reached its iteration limit",
                }
            },
        )

    async def run(self, message: str) -> str:
        """Send a user message and return the complete response text."""
        parts = []
        async for token in self.stream(message):
            parts.append(token)
        return "".join(parts)

    def _create_args(self) -> dict:
        create_args = {
            "model": self.model_name,
            "input": self.memory.get(self.conversation_id),
            "instructions": self.env.instructions(),
            "tools": self.env.tool_schemas(),
            "tool_choice": "auto",
            "store": False,  # History lives in ChatMemory
            "stream": True,
            "parallel_tool_calls": True,
        }
        if self.reasoning_effort:
            create_args["reasoning"] = {"summary": "auto", "effort": self.reasoning_effort}
            create_args["include"] = ["reasoning.encrypted_content"]
        return create_args

    async def _stream_response(self, tool_results: list) -> AsyncIterator[str]:
        """Stream one model response, yielding text and collecting tool outputs."""
        try:
            stream = await self.client.responses.create(**self._create_args())
        except Exception as e:
            logger.error(f"Error creating response: {e}")
            raise

        async for chunk in stream:
            if chunk.type == "response.output_text.delta":
                yield chunk.delta
                continue

            result = await self.env.step(chunk)
            if result:
                tool_results.append(result)

            if chunk.type == "response.completed":
                self.memory.add(self.conversation_id, list(chunk.response.output))
            elif chunk.type in ("error", "response.failed"):
                raise RuntimeError(f"Model stream failed: {_stream_error_message(chunk)}")


def _stream_error_message(chunk) -> str:
    message = getattr(chunk, "message", None)
    if message:
        return message
    response = getattr(chunk, "response", None)
    error = getattr(response, "error", None)
    return getattr(error, "message", None) or chunk.type
