"""Tool invocation: argument binding, execution and fault mapping."""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Dict

from pydantic import ValidationError
from pydantic_core import to_json

from .registry import ToolDescriptor
from .utils.errors import ToolArgumentError

logger = logging.getLogger(__name__)

VOID_RESULT = "Success"


@dataclass(frozen=True)
class ToolOutcome:
    """Normalized result of one tool call."""

    text: str
    is_error: bool = False

    @classmethod
    def success(cls, text: str) -> "ToolOutcome":
        return cls(text=text)

    @classmethod
    def failure(cls, text: str) -> "ToolOutcome":
        return cls(text=text, is_error=True)


def fault_message(exc: BaseException) -> str:
    """Non-empty diagnostic text for a fault: its message, else its type name."""
    message = str(exc)
    if message and message.strip():
        return message
    return type(exc).__name__


def serialize_result(value: Any) -> str:
    """Text form of a tool's return value.

    Strings pass through unchanged, ``None`` becomes ``"Success"`` and
    everything else is rendered as compact JSON.
    """
    if value is None:
        return VOID_RESULT
    if isinstance(value, str):
        return value
    return to_json(value, fallback=str).decode("utf-8")


def bind_arguments(tool: ToolDescriptor, arguments: Any) -> Dict[str, Any]:
    """Map a decoded ``arguments`` value onto the tool's declared parameters.

    Each parameter is looked up by name first, then by its positional alias
    (``arg0``, ``arg1``, ...). A non-object ``arguments`` value carries no
    bindable arguments.
    """
    if not tool.parameters:
        return {}

    supplied = arguments if isinstance(arguments, dict) else {}
    bound: Dict[str, Any] = {}
    for name in tool.parameters:
        if name in supplied:
            bound[name] = supplied[name]
            continue
        alias = tool.positional_aliases[name]
        if alias in supplied:
            bound[name] = supplied[alias]
        elif name in tool.required:
            raise ToolArgumentError(f"Missing required argument: {name}")
    return bound


def validate_arguments(tool: ToolDescriptor, bound: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce bound arguments to the tool's declared parameter types.

    Descriptors without an arguments model pass through unchanged. Parameters
    the caller did not supply stay omitted so the callable's defaults apply.
    """
    if tool.arguments_model is None or not bound:
        return bound

    try:
        validated = tool.arguments_model.model_validate(bound)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ToolArgumentError(f"Invalid arguments: {problems}") from e
    return {name: value for name, value in validated if name in bound}


class ToolInvoker:
    """Executes tools and converts every outcome into a ``ToolOutcome``.

    Coroutine handlers run on the event loop; plain callables run in a worker
    thread so a blocking tool never stalls the transport's read loop.
    """

    async def invoke(self, tool: ToolDescriptor, arguments: Any) -> ToolOutcome:
        try:
            kwargs = validate_arguments(tool, bind_arguments(tool, arguments))
            if inspect.iscoroutinefunction(tool.handler):
                result = await tool.handler(**kwargs)
            else:
                result = await asyncio.to_thread(tool.handler, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            return ToolOutcome.success(serialize_result(result))
        except Exception as e:
            message = fault_message(e)
            logger.warning(f"Tool '{tool.name}' failed: {message}")
            return ToolOutcome.failure(message)
