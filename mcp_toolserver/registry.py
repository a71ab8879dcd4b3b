"""Tool descriptors and the immutable tool registry."""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

from .utils.errors import DuplicateToolNameError

logger = logging.getLogger(__name__)

# Metadata keys that map onto MCP tool annotations
TITLE = "title"
TITLE_ANNOTATION = "title_annotation"
READ_ONLY_HINT = "readOnlyHint"
DESTRUCTIVE_HINT = "destructiveHint"
IDEMPOTENT_HINT = "idempotentHint"
OPEN_WORLD_HINT = "openWorldHint"
ANNOTATION_HINTS = (READ_ONLY_HINT, DESTRUCTIVE_HINT, IDEMPOTENT_HINT, OPEN_WORLD_HINT)


def empty_object_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


class ToolSchema(BaseModel):
    """A tool entry as returned by ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    inputSchema: Dict[str, Any] = Field(default_factory=empty_object_schema)
    title: Optional[str] = None
    annotations: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = Field(default=None, alias="_meta")


@dataclass(frozen=True)
class ToolDescriptor:
    """A named, schema-described callable exposed through ``tools/call``.

    Declared parameters are the keys of ``input_schema["properties"]`` in
    insertion order. The positional aliases ``arg0``, ``arg1``, ... follow the
    same order and are resolved once here, not per call.

    ``arguments_model`` is set for descriptors built by ``from_function``;
    bound arguments are validated against it before the handler runs.
    """

    name: str
    handler: Callable[..., Any]
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    arguments_model: Optional[Type[BaseModel]] = field(default=None, repr=False, compare=False)
    parameters: Tuple[str, ...] = field(init=False)
    required: frozenset = field(init=False)
    positional_aliases: Dict[str, str] = field(init=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Tool name must be a non-empty string")
        if not callable(self.handler):
            raise TypeError(f"Tool handler for '{self.name}' is not callable")

        schema = self.input_schema or {}
        properties = schema.get("properties") or {}
        parameters = tuple(properties.keys())
        object.__setattr__(self, "parameters", parameters)
        object.__setattr__(self, "required", frozenset(schema.get("required") or ()))
        object.__setattr__(
            self,
            "positional_aliases",
            {name: f"arg{index}" for index, name in enumerate(parameters)},
        )

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ToolDescriptor":
        """Describe a plain Python function as a tool.

        Parameter types come from annotations (unannotated parameters accept
        any JSON value) and are enforced at call time, so an ``int`` parameter
        receives an ``int`` and a model parameter receives a model instance.
        Parameters without a default are required. The description defaults
        to the first line of the docstring.
        """
        signature = inspect.signature(func)
        fields: Dict[str, Any] = {}
        for parameter in signature.parameters.values():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            annotation = Any if parameter.annotation is parameter.empty else parameter.annotation
            default = ... if parameter.default is parameter.empty else parameter.default
            fields[parameter.name] = (annotation, default)

        tool_name = name or func.__name__
        arguments_model = create_model(f"{tool_name}_arguments", **fields)
        schema = arguments_model.model_json_schema()
        input_schema = {
            "type": "object",
            "properties": schema.get("properties", {}),
            "required": schema.get("required", []),
        }
        if "$defs" in schema:
            input_schema["$defs"] = schema["$defs"]

        if description is None and func.__doc__ and func.__doc__.strip():
            description = inspect.cleandoc(func.__doc__).splitlines()[0]

        return cls(
            name=tool_name,
            handler=func,
            description=description,
            input_schema=input_schema,
            metadata=dict(metadata or {}),
            arguments_model=arguments_model,
        )

    def to_schema(self) -> ToolSchema:
        """Map the descriptor to its ``tools/list`` entry."""
        input_schema = dict(self.input_schema) if self.input_schema else empty_object_schema()
        input_schema.setdefault("type", "object")

        title = None
        annotations: Dict[str, Any] = {}
        meta: Dict[str, Any] = {}
        for key, value in self.metadata.items():
            if key == TITLE:
                title = value
            elif key == TITLE_ANNOTATION:
                annotations["title"] = value
            elif key in ANNOTATION_HINTS:
                annotations[key] = value
            else:
                meta[key] = value

        return ToolSchema(
            name=self.name,
            description=self.description,
            inputSchema=input_schema,
            title=title,
            annotations=annotations or None,
            meta=meta or None,
        )


class ToolRegistry:
    """Ordered, read-only collection of tools keyed by unique name."""

    def __init__(self, tools: List[ToolDescriptor]):
        by_name: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in by_name:
                raise DuplicateToolNameError(tool.name)
            by_name[tool.name] = tool
        self._tools = by_name
        self._schemas = [tool.to_schema() for tool in by_name.values()]
        logger.info(f"Registered {len(by_name)} MCP tools")

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def find(self, name: str) -> Optional[ToolDescriptor]:
        """Look up a tool by name."""
        return self._tools.get(name)

    def list(self) -> List[ToolDescriptor]:
        """All tools in registration order."""
        return list(self._tools.values())

    def list_tools(self) -> List[Dict[str, Any]]:
        """List all registered tools in ``tools/list`` form."""
        return [
            schema.model_dump(by_alias=True, exclude_none=True)
            for schema in self._schemas
        ]
