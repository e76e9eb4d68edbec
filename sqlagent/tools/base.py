"""Tool base class and JSON schema derivation from handler signatures."""

from __future__ import annotations

import inspect
import logging
import types
from abc import ABC, abstractmethod
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from sqlagent.llm.models import ToolSchema

logger = logging.getLogger(__name__)
NONE_TYPE = type(None)


class Tool(ABC):
    """
    A capability the model can call.

    Subclasses set ``name`` and ``description`` and implement an async
    ``handle`` whose keyword parameters and type hints define the tool's
    parameters. ``param_descriptions`` adds prose for each parameter.
    """

    name: str = ""
    description: str = ""
    param_descriptions: dict[str, str] = {}

    @abstractmethod
    async def handle(self, **kwargs: Any) -> Any:
        """Run the tool. Raise to report a failure to the model."""

    def parameters_schema(self) -> dict[str, Any]:
        schema = _extract_parameters_schema(self.handle)
        for param_name, prose in self.param_descriptions.items():
            if param_name in schema["properties"]:
                schema["properties"][param_name]["description"] = prose
        for param_name, override in self.schema_overrides().items():
            if param_name in schema["properties"]:
                schema["properties"][param_name].update(override)
        return schema

    def schema_overrides(self) -> dict[str, dict[str, Any]]:
        """Per-parameter schema fragments known only at runtime (e.g. enums)."""
        return {}

    def definition(self) -> ToolSchema:
        return ToolSchema(
            name=self.name,
            description=self.description,
            parameters=self.parameters_schema(),
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def _extract_parameters_schema(func: Any) -> dict[str, Any]:
    signature = inspect.signature(func)
    type_hints = get_type_hints(func, include_extras=True)
    properties: dict[str, Any] = {}
    required: list[str] = []

    for name, param in signature.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        resolved_annotation = type_hints.get(name, param.annotation)
        param_schema = _annotation_to_json_schema(resolved_annotation)
        if param.default is inspect.Parameter.empty:
            required.append(name)
        elif param.default is not None:
            param_schema["default"] = param.default
        properties[name] = param_schema

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def _annotation_to_json_schema(annotation: Any) -> dict[str, Any]:
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {}

    origin = get_origin(annotation)
    if origin is not None:
        return _origin_to_schema(origin, get_args(annotation))

    if annotation is bool:
        return {"type": "boolean"}
    if annotation is int:
        return {"type": "integer"}
    if annotation is float:
        return {"type": "number"}
    if annotation is str:
        return {"type": "string"}
    if annotation is dict:
        return {"type": "object", "additionalProperties": True}
    if annotation in (list, tuple, set, frozenset):
        return {"type": "array", "items": {}}

    if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
        schema = annotation.model_json_schema()
        schema.pop("title", None)
        return schema

    return {"type": "string"}


def _origin_to_schema(origin: Any, args: tuple[Any, ...]) -> dict[str, Any]:
    if origin is Literal:
        values = list(args)
        schema: dict[str, Any] = {"enum": values}
        value_types = {type(value) for value in values}
        if value_types == {str}:
            schema["type"] = "string"
        elif value_types == {int}:
            schema["type"] = "integer"
        elif value_types == {bool}:
            schema["type"] = "boolean"
        return schema

    if origin in (list, tuple, set, frozenset):
        item_schema = _annotation_to_json_schema(args[0]) if args else {}
        return {"type": "array", "items": item_schema}

    if origin is dict:
        value_schema = _annotation_to_json_schema(args[1]) if len(args) > 1 else {}
        return {"type": "object", "additionalProperties": value_schema or True}

    if origin in (Union, types.UnionType):
        return _union_to_schema(args)

    return _annotation_to_json_schema(origin)


def _union_to_schema(args: tuple[Any, ...]) -> dict[str, Any]:
    # Optional parameters are expressed by leaving them out of "required"
    non_none = [arg for arg in args if arg is not NONE_TYPE]
    if len(non_none) == 1:
        return _annotation_to_json_schema(non_none[0])
    return {"anyOf": [_annotation_to_json_schema(arg) for arg in non_none]}
