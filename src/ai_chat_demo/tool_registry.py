"""
Tool registry for automatic schema generation and tool execution.

Maps Python callables to OpenAI Responses API function schemas and runs
them when the model asks for them.
"""

import asyncio
import inspect
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, get_type_hints

logger = logging.getLogger(__name__)

_ARG_LINE = re.compile(r"^(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+)$")
_ARG_SECTIONS = ("Args:", "Arguments:", "Parameters:")


def parse_docstring(doc: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """Split a Google-style docstring into a summary and per-argument descriptions."""
    if not doc:
        return "", {}

    lines = inspect.cleandoc(doc).splitlines()

    summary = []
    for line in lines:
        if not line.strip() or line.strip() in _ARG_SECTIONS:
            break
        summary.append(line.strip())

    arg_docs: Dict[str, str] = {}
    in_args = False
    arg_indent = None
    current = None
    for line in lines:
        stripped = line.strip()
        if not line.startswith(" "):
            # Top-level line: section header, blank line or prose
            in_args = stripped in _ARG_SECTIONS
            arg_indent = None
            current = None
            continue
        if not in_args:
            continue
        indent = len(line) - len(line.lstrip())
        match = _ARG_LINE.match(stripped)
        if match and (arg_indent is None or indent <= arg_indent):
            arg_indent = indent
            current = match.group(1)
            arg_docs[current] = match.group(2).strip()
        elif current:
            arg_docs[current] += " " + stripped

    return " ".join(summary), arg_docs


def callable_to_tool_schema(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Convert a Python callable (function or method) to OpenAI tool schema format.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description

    Returns:
        OpenAI tool schema dictionary
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)
    summary, arg_docs = parse_docstring(inspect.getdoc(callable_func))

    if description is None:
        description = summary or f"Execute {name}"

    # Schema format for Responses API
    schema = {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": {"type": "object", "properties": {}, "required": []},
    }

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_type = type_hints.get(param_name, str)

        if param_type is str:
            json_type = "string"
        elif param_type is bool:
            json_type = "boolean"
        elif param_type is int:
            json_type = "integer"
        elif param_type is float:
            json_type = "number"
        else:
            json_type = "string"  # Default fallback

        param_schema = {
            "type": json_type,
            "description": arg_docs.get(param_name, f"The {param_name} parameter"),
        }

        schema["parameters"]["properties"][param_name] = param_schema

        if param.default is inspect.Parameter.empty:
            schema["parameters"]["required"].append(param_name)

    return schema


class ToolRegistry:
    """Registry for managing tools and their schemas."""

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> callable
        self.schemas: List[Dict[str, Any]] = []  # OpenAI schemas

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """
        Register a callable (function or method) and auto-generate its OpenAI tool schema.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description
        """
        tool_name = name or callable_func.__name__
        schema = callable_to_tool_schema(callable_func, tool_name, description)

        self.tools[tool_name] = callable_func
        self.schemas.append(schema)

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for OpenAI API."""
        return self.schemas

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        return list(self.tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self.tools

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute a registered tool by name.

        Blocking callables run in a worker thread so the event loop keeps
        delivering UI updates.

        Raises:
            KeyError: If tool is not registered
        """
        if name not in self.tools:
            raise KeyError(f"Tool '{name}' not found in registry")

        callable_func = self.tools[name]

        if inspect.iscoroutinefunction(callable_func):
            return await callable_func(**args)
        else:
            return await asyncio.to_thread(callable_func, **args)

    async def execute_tool_openai_response_api(self, item: Any) -> Dict[str, Any]:
        """
        Execute a tool from an OpenAI Responses API chunk item and return a tool result dictionary.

        Args:
            item: The chunk.item from response.output_item.done event (must have name, arguments, call_id).

        Returns:
            A tool result dictionary for the OpenAI Responses API format.
        """
        name = item.name

        try:
            args = json.loads(item.arguments) if item.arguments else {}

            result = await self.execute_tool(name, args)
            output = str(result) if result is not None else "Tool executed successfully"
        except json.JSONDecodeError as e:
            logger.info(f"TOOL JSON ERROR: {name} - {str(e)}")
            output = f"Error parsing arguments: {str(e)}"
        except KeyError as e:
            # str(KeyError) wraps the message in quotes
            message = e.args[0] if e.args else str(e)
            logger.info(f"TOOL ERROR: {name} - {message}")
            output = f"Error: {message}"
        except Exception as e:
            logger.info(f"TOOL ERROR: {name} - {str(e)}")
            output = f"Error: {str(e)}"

        return {
            "type": "function_call_output",
            "call_id": item.call_id,
            "output": output,
        }

    def clear(self) -> None:
        """Clear all registered tools."""
        self.tools.clear()
        self.schemas.clear()

    def __len__(self) -> int:
        """Get number of registered tools."""
        return len(self.tools)
