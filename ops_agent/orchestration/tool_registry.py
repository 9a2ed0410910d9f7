"""Tool registry for orchestration.

The registry holds the read-only capabilities (log queries, metrics
queries, documentation search) that planners may schedule. It is an
explicitly constructed object: the process wires one at start-up and hands
it to the orchestrator; tests build a fresh one per case.

Writers serialize on a lock and publish a new immutable snapshot, so
readers always see a consistent view and never wait on a writer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import asyncio
import inspect
import logging
import threading

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from .errors import ToolExecutionError, ToolInputError, ToolNotFoundError

logger = logging.getLogger(__name__)


class ToolCategory(str, Enum):
    OBSERVABILITY = "observability"
    DATABASE = "database"
    KNOWLEDGE = "knowledge"
    UTILITY = "utility"
    MCP = "mcp"
    CUSTOM = "custom"


class CallerType(str, Enum):
    """Which agent flavours may see a tool."""
    CHAT = "chat"
    PLAN_EXECUTE = "plan_execute"
    KNOWLEDGE = "knowledge"
    ALL = "all"


class Tool(ABC):
    """Base class for all tools.

    A tool takes a structured input (a JSON object) and returns text. Input
    is checked against :attr:`parameters` before :meth:`invoke` runs.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this tool."""
        pass

    @property
    def description(self) -> str:
        """Human-readable description, shown to planners."""
        return ""

    @property
    def parameters(self) -> Dict[str, Any]:
        """JSON schema for the input object."""
        return {"type": "object"}

    @abstractmethod
    async def invoke(self, input: Dict[str, Any]) -> str:
        """Run the tool and return its text output."""
        pass

    def validate_input(self, input: Any) -> None:
        """Raise ``ToolInputError`` if ``input`` does not match :attr:`parameters`."""
        if not isinstance(input, dict):
            raise ToolInputError(self.name, f"expected an object, got {type(input).__name__}")
        schema = self.parameters
        if not schema:
            return
        try:
            errors = sorted(Draft202012Validator(schema).iter_errors(input), key=lambda e: list(e.path))
        except SchemaError as e:
            raise ToolInputError(self.name, f"tool schema is invalid: {e.message}") from e
        if errors:
            details = []
            for err in errors:
                location = ".".join(str(p) for p in err.path)
                details.append(f"{location}: {err.message}" if location else err.message)
            raise ToolInputError(self.name, "; ".join(details))

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


ToolHandler = Callable[[Dict[str, Any]], Union[str, Awaitable[str]]]


class FunctionTool(Tool):
    """Adapts a plain function (sync or async) taking the input dict."""

    def __init__(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
    ):
        if not name:
            raise ValueError("Tool name must not be empty")
        self._name = name
        self._handler = handler
        self._description = description
        self._parameters = parameters if parameters is not None else {"type": "object"}

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> Dict[str, Any]:
        return self._parameters

    async def invoke(self, input: Dict[str, Any]) -> str:
        result = self._handler(input)
        if inspect.isawaitable(result):
            result = await result
        return result if isinstance(result, str) else str(result)


@dataclass(frozen=True)
class ToolMetadata:
    """Registry-owned facts about a tool."""
    name: str
    category: ToolCategory = ToolCategory.CUSTOM
    enabled: bool = True
    allowed_caller_types: Tuple[str, ...] = (CallerType.ALL.value,)
    description: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def allows(self, caller_type: Optional[str]) -> bool:
        if not caller_type or caller_type == CallerType.ALL.value:
            return True
        allowed = self.allowed_caller_types
        return CallerType.ALL.value in allowed or caller_type in allowed


@dataclass(frozen=True)
class _Entry:
    tool: Tool
    metadata: ToolMetadata


def _normalize_caller_types(caller_types: Optional[Iterable[Union[str, CallerType]]]) -> Tuple[str, ...]:
    if not caller_types:
        return (CallerType.ALL.value,)
    return tuple(c.value if isinstance(c, CallerType) else str(c) for c in caller_types)


class ToolRegistry:
    """Registry of tools with enable/disable and caller-type filtering."""

    def __init__(self):
        self._entries: Mapping[str, _Entry] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def _publish(self, entries: Dict[str, _Entry]) -> None:
        self._entries = MappingProxyType(entries)

    def register(self, tool: Tool, metadata: Optional[ToolMetadata] = None) -> None:
        """Register a tool. An existing entry with the same name is replaced.

        Raises:
            TypeError: If ``tool`` is not a :class:`Tool`
            ValueError: If the name is empty or does not match ``metadata.name``
        """
        if not isinstance(tool, Tool):
            raise TypeError(f"Tool must inherit from Tool base class, got {type(tool)}")
        if not tool.name:
            raise ValueError("Tool name must not be empty")
        if metadata is None:
            metadata = ToolMetadata(name=tool.name, description=tool.description)
        elif metadata.name != tool.name:
            raise ValueError(
                f"Metadata name '{metadata.name}' does not match tool name '{tool.name}'"
            )

        with self._write_lock:
            entries = dict(self._entries)
            replaced = tool.name in entries
            entries[tool.name] = _Entry(tool, metadata)
            self._publish(entries)

        logger.info(
            f"{'Replaced' if replaced else 'Registered'} tool '{tool.name}'",
            extra={"tool": tool.name, "category": metadata.category.value, "enabled": metadata.enabled}
        )

    def register_function(
        self,
        name: str,
        handler: ToolHandler,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
        category: ToolCategory = ToolCategory.CUSTOM,
        caller_types: Optional[Iterable[Union[str, CallerType]]] = None,
        enabled: bool = True,
    ) -> Tool:
        tool = FunctionTool(name, handler, description=description, parameters=parameters)
        self.register(
            tool,
            ToolMetadata(
                name=name,
                category=category,
                enabled=enabled,
                allowed_caller_types=_normalize_caller_types(caller_types),
                description=description,
            ),
        )
        return tool

    def register_category(
        self,
        category: ToolCategory,
        tools: Iterable[Tool],
        caller_types: Optional[Iterable[Union[str, CallerType]]] = None,
        enabled: bool = True,
    ) -> None:
        allowed = _normalize_caller_types(caller_types)
        for tool in tools:
            self.register(
                tool,
                ToolMetadata(
                    name=tool.name,
                    category=category,
                    enabled=enabled,
                    allowed_caller_types=allowed,
                    description=tool.description,
                ),
            )

    def unregister(self, name: str) -> bool:
        with self._write_lock:
            if name not in self._entries:
                return False
            entries = dict(self._entries)
            del entries[name]
            self._publish(entries)
        logger.info(f"Unregistered tool '{name}'")
        return True

    def get(self, name: str) -> Optional[Tool]:
        """Return the tool, or None if it is absent or disabled."""
        entry = self._entries.get(name)
        if entry is None or not entry.metadata.enabled:
            return None
        return entry.tool

    def get_all(self, caller_type: Optional[str] = None) -> List[Tool]:
        """Every enabled tool visible to ``caller_type`` (empty or 'all' means every one)."""
        entries = self._entries
        return [
            entries[name].tool
            for name in sorted(entries)
            if entries[name].metadata.enabled and entries[name].metadata.allows(caller_type)
        ]

    def enable(self, name: str) -> None:
        self._set_enabled(name, True)

    def disable(self, name: str) -> None:
        self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> None:
        with self._write_lock:
            entry = self._entries.get(name)
            if entry is None:
                raise ToolNotFoundError(name)
            if entry.metadata.enabled == enabled:
                return
            entries = dict(self._entries)
            entries[name] = _Entry(entry.tool, replace(entry.metadata, enabled=enabled))
            self._publish(entries)
        logger.info(f"{'Enabled' if enabled else 'Disabled'} tool '{name}'", extra={"tool": name})

    def get_metadata(self, name: str) -> Optional[ToolMetadata]:
        entry = self._entries.get(name)
        return entry.metadata if entry else None

    def list_metadata(self) -> List[ToolMetadata]:
        entries = self._entries
        return [entries[name].metadata for name in sorted(entries)]

    def filter_by_category(self, category: Union[str, ToolCategory]) -> List[Tool]:
        category = ToolCategory(category)
        entries = self._entries
        return [
            entries[name].tool
            for name in sorted(entries)
            if entries[name].metadata.enabled and entries[name].metadata.category == category
        ]

    def get_by_prefix(self, prefix: str) -> List[Tool]:
        entries = self._entries
        return [
            entries[name].tool
            for name in sorted(entries)
            if name.startswith(prefix) and entries[name].metadata.enabled
        ]

    def has_tool(self, name: str) -> bool:
        """True if registered, enabled or not."""
        return name in self._entries

    def count(self) -> int:
        return len(self._entries)

    def count_enabled(self) -> int:
        return sum(1 for e in self._entries.values() if e.metadata.enabled)

    def clear(self) -> None:
        with self._write_lock:
            self._publish({})
        logger.info("Cleared all registered tools")

    def catalog(self, caller_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Name, description and input schema of each visible tool (for prompts)."""
        return [tool.describe() for tool in self.get_all(caller_type)]


async def invoke_tool(tool: Tool, input: Dict[str, Any]) -> str:
    """Invoke ``tool`` and wrap its failure in ``ToolExecutionError``.

    Errors that already carry orchestration or resilience meaning (and
    deadline errors) pass through unchanged.
    """
    try:
        return await tool.invoke(input)
    except ToolExecutionError:
        raise
    except asyncio.TimeoutError:
        raise
    except Exception as e:
        if getattr(e, "is_retryable", None) is False:
            raise
        raise ToolExecutionError(tool.name, e) from e
