from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import AllowInfNan, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictStr, ValidationError, create_model

from forge.schemas import SchemaIssue


class FieldKind(str, Enum):
    """Tagged variants of an output field declaration."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ANY = "any"

    @classmethod
    def from_tag(cls, tag: Any) -> "FieldKind":
        """Map a declared type tag to a kind; unknown or absent tags accept anything."""

        if isinstance(tag, str):
            for kind in (cls.STRING, cls.NUMBER, cls.BOOLEAN):
                if tag == kind.value:
                    return kind
        return cls.ANY


# StrictFloat accepts JSON integers and rejects booleans or numeric strings.
# nan and inf are not JSON numbers.
_ANNOTATIONS: Dict[FieldKind, Any] = {
    FieldKind.STRING: StrictStr,
    FieldKind.NUMBER: Annotated[StrictFloat, AllowInfNan(False)],
    FieldKind.BOOLEAN: StrictBool,
    FieldKind.ANY: Optional[Any],
}


class OutputSchema:
    """Runtime validator for a blueprint's flat output shape."""

    def __init__(self, fields: Tuple[Tuple[str, FieldKind], ...], model: Type[BaseModel]) -> None:
        self.fields = fields
        self._model = model

    def validate(self, value: Any) -> List[SchemaIssue]:
        """Return one issue per mismatch; empty when the value conforms."""

        try:
            self._model.model_validate(value)
        except ValidationError as exc:
            return [
                SchemaIssue(path=_format_loc(error["loc"]), message=error["msg"])
                for error in exc.errors(include_url=False)
            ]
        return []


def _format_loc(loc: Tuple[Any, ...]) -> str:
    if not loc:
        return "(root)"
    return ".".join(str(part) for part in loc)


@lru_cache(maxsize=256)
def _compile(fields: Tuple[Tuple[str, FieldKind], ...]) -> OutputSchema:
    definitions: Dict[str, Any] = {}
    for index, (name, kind) in enumerate(fields):
        # Declared names may be arbitrary strings, so they live in aliases.
        default = None if kind is FieldKind.ANY else ...
        definitions[f"field_{index}"] = (_ANNOTATIONS[kind], Field(default, alias=name))
    model = create_model(
        "BlueprintOutput",
        __config__=ConfigDict(extra="ignore", populate_by_name=False),
        **definitions,
    )
    return OutputSchema(fields, model)


def build_output_schema(output_schema: Mapping[str, Any]) -> OutputSchema:
    """Compile a `{field: type_tag}` mapping into a reusable validator."""

    fields = tuple((str(name), FieldKind.from_tag(tag)) for name, tag in output_schema.items())
    return _compile(fields)
