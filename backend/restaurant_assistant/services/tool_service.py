"""
Tool Service for the assistant's tool use.

This service provides:
- Tool registration with schemas and executor functions
- Tool schema generation in Anthropic format (converted for OpenAI downstream)
- Tool execution that reports failures as error results instead of raising
- Concurrent execution of the tool calls of one model step
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ToolCategory(str, Enum):
    """Categories for organizing tools."""
    REPORTS = "reports"


class ToolInputError(ValueError):
    """Raised by an executor when the model supplied unusable input."""


@dataclass
class ToolResult:
    """Result from a tool execution."""
    tool_use_id: str
    content: str
    is_error: bool = False


@dataclass
class ToolDefinition:
    """Definition of a tool including its schema and executor."""
    name: str
    description: str
    input_schema: Dict[str, Any]
    executor: Callable[..., Awaitable[str]]
    category: ToolCategory


class ToolService:
    """
    Registry of the tools the model may call.

    Executors are async callables taking the tool input as keyword
    arguments and returning the text handed back to the model.
    """

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register_tool(
        self,
        name: str,
        description: str,
        input_schema: Dict[str, Any],
        executor: Callable[..., Awaitable[str]],
        category: ToolCategory = ToolCategory.REPORTS,
    ) -> None:
        """
        Register a new tool.

        Args:
            name: Unique tool name (snake_case)
            description: Description shown to the model
            input_schema: JSON Schema for the tool's input
            executor: Async function that executes the tool
            category: Tool category for filtering
        """
        if name in self._tools:
            logger.warning(f"[TOOLS] Tool '{name}' already registered, overwriting")

        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            input_schema=input_schema,
            executor=executor,
            category=category,
        )
        logger.debug(f"[TOOLS] Registered tool: {name} (category={category.value})")

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def list_tools(self, categories: Optional[List[ToolCategory]] = None) -> List[ToolDefinition]:
        tools = list(self._tools.values())
        if categories:
            tools = [t for t in tools if t.category in set(categories)]
        return tools

    def get_tool_schemas(
        self,
        categories: Optional[List[ToolCategory]] = None,
        names: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Tool schemas in Anthropic API format.

        Args:
            categories: Filter by categories (None = all)
            names: Restrict to these tool names (None = all)
        """
        tools = self.list_tools(categories=categories)
        if names is not None:
            tools = [t for t in tools if t.name in names]

        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            }
            for tool in tools
        ]

    async def execute_tool(
        self,
        tool_use_id: str,
        tool_name: str,
        tool_input: Dict[str, Any],
    ) -> ToolResult:
        """Execute a single tool. Never raises; failures become error results."""
        tool = self._tools.get(tool_name)

        if not tool:
            logger.error(f"[TOOLS] Tool not found: {tool_name}")
            return ToolResult(
                tool_use_id=tool_use_id,
                content=f"Error: Tool '{tool_name}' not found",
                is_error=True,
            )

        try:
            logger.info(f"[TOOLS] Executing {tool_name}")
            result = await tool.executor(**tool_input)
            logger.info(f"[TOOLS] {tool_name} completed (result length: {len(result)})")
            return ToolResult(tool_use_id=tool_use_id, content=result)
        except ToolInputError as e:
            logger.warning(f"[TOOLS] Invalid input for {tool_name}: {e}")
            return ToolResult(
                tool_use_id=tool_use_id,
                content=f"Error: Invalid input for tool '{tool_name}': {e}",
                is_error=True,
            )
        except Exception as e:
            error_msg = f"Error executing tool '{tool_name}': {str(e)}"
            logger.exception(f"[TOOLS] {error_msg}")
            return ToolResult(tool_use_id=tool_use_id, content=error_msg, is_error=True)

    async def execute_tools(self, tool_calls: List[Dict[str, Any]]) -> List[ToolResult]:
        """
        Execute the tool calls of one step concurrently.

        Args:
            tool_calls: Dicts with id, name and input

        Returns:
            ToolResults in the same order as the calls
        """
        if not tool_calls:
            return []

        results = await asyncio.gather(*(
            self.execute_tool(
                tool_use_id=call["id"],
                tool_name=call["name"],
                tool_input=call.get("input") or {},
            )
            for call in tool_calls
        ))
        return list(results)


# Singleton instance
tool_service = ToolService()
