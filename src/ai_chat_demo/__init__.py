"""
AI Chat Demo - a streaming chat UI backed by an OpenAI agent with tools.

The agent can compute exact factorials and fetch today's electricity
prices; replies stream token by token into a browser message list.
"""

__version__ = "0.1.0"

from .agent import Agent
from .memory import ChatMemory
from .tool_registry import ToolRegistry, callable_to_tool_schema

__all__ = ["Agent", "ChatMemory", "ToolRegistry", "callable_to_tool_schema"]
