"""
Compile resolved JSON-Schema into pydantic validators.

Object schemas become ``create_model`` models that allow extra keys, string
enums become ``Literal`` sets, and numeric/length bounds become ``Field``
constraints. Anything the compiler cannot represent degrades to ``Any`` with a
logged diagnostic instead of raising.
"""

import keyword
import logging
import re
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    TypeAdapter,
    ValidationError,
    create_model,
)

from falforge.utils.error_handling import ToolValidationError

logger = logging.getLogger(__name__)

MODEL_CONFIG = ConfigDict(extra="allow", protected_namespaces=(), regex_engine="python-re")

_STRING_CONSTRAINTS = {"minLength": "min_length", "maxLength": "max_length", "pattern": "pattern"}
_NUMBER_CONSTRAINTS = {
    "minimum": "ge",
    "maximum": "le",
    "exclusiveMinimum": "gt",
    "exclusiveMaximum": "lt",
    "multipleOf": "multiple_of",
}
_ARRAY_CONSTRAINTS = {"minItems": "min_length", "maxItems": "max_length"}

_RESERVED_NAMES = set(dir(BaseModel))


def _require_number(value: Any) -> Any:
    # bool is an int subclass and strings would be parsed by lax mode
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Input should be a number, got {type(value).__name__}")
    return value


# Integral floats such as 3.0 still pass as integers; 3.5 fails int validation
StrictInteger = Annotated[int, BeforeValidator(_require_number)]
StrictNumber = Annotated[float, BeforeValidator(_require_number)]


class SchemaValidator:
    """
    Runtime validator compiled from a resolved JSON-Schema.

    Attributes:
        name: Name of the root model
        schema: The resolved schema the validator was compiled from
        annotation: The pydantic type used for validation
    """

    def __init__(self, name: str, schema: Dict[str, Any], annotation: Any):
        self.name = name
        self.schema = schema
        self.annotation = annotation
        self._adapter = _build_adapter(annotation)

    def validate(self, data: Any, endpoint_id: Optional[str] = None) -> Any:
        """
        Validate and normalize input.

        Args:
            data: Candidate input
            endpoint_id: Endpoint the input is meant for, used in errors

        Returns:
            The parsed value with defaults applied and unset optional fields dropped

        Raises:
            ToolValidationError: If the input does not satisfy the schema
        """
        try:
            value = self._adapter.validate_python(data)
        except ValidationError as e:
            errors = [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in e.errors(include_url=False)
            ]
            raise ToolValidationError(errors, endpoint_id=endpoint_id) from e

        return _to_plain(value)

    def is_valid(self, data: Any) -> bool:
        """Whether ``data`` passes validation."""
        try:
            self.validate(data)
            return True
        except ToolValidationError:
            return False

    def json_schema(self) -> Dict[str, Any]:
        """JSON schema of the compiled validator."""
        return self._adapter.json_schema()


def compile_schema(resolved: Any, name: str = "ToolInput") -> SchemaValidator:
    """
    Compile a resolved schema into a validator.

    Args:
        resolved: JSON-Schema tree without ``$ref`` keys
        name: Name of the root model

    Returns:
        SchemaValidator for the schema
    """
    schema = resolved if isinstance(resolved, dict) else {}
    annotation = _compile(schema, _model_name(name))
    try:
        return SchemaValidator(name, schema, annotation)
    except Exception as e:
        logger.warning(f"Could not build validator for {name}, accepting any input: {e}")
        return SchemaValidator(name, schema, Any)


def _build_adapter(annotation: Any) -> TypeAdapter:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return TypeAdapter(annotation)
    return TypeAdapter(annotation, config=ConfigDict(regex_engine="python-re"))


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        data = {}
        for field_name, field in type(value).model_fields.items():
            field_value = getattr(value, field_name)
            if field_value is None and not field.is_required() and field.default is None:
                continue
            data[field.alias or field_name] = _to_plain(field_value)
        for key, extra in (value.model_extra or {}).items():
            data[key] = _to_plain(extra)
        return data
    if isinstance(value, list):
        return [_to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_plain(item) for key, item in value.items()}
    return value


def _model_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name) or "Model"
    return cleaned if not cleaned[0].isdigit() else f"M{cleaned}"


def _field_name(prop: str, index: int, taken: set) -> str:
    candidate = re.sub(r"\W", "_", prop)
    if (
        not candidate
        or candidate[0] == "_"
        or candidate[0].isdigit()
        or keyword.iskeyword(candidate)
        or candidate in _RESERVED_NAMES
        or candidate.startswith("model_")
        or candidate in taken
    ):
        candidate = f"field_{index}"
        suffix = 1
        while candidate in taken:
            candidate = f"field_{index}_{suffix}"
            suffix += 1
    taken.add(candidate)
    return candidate


def _constraints(schema: Mapping[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {target: schema[source] for source, target in mapping.items()
            if source in schema and not isinstance(schema[source], bool)}


def _constrain(base: Any, constraints: Dict[str, Any]) -> Any:
    if not constraints:
        return base
    return Annotated[base, Field(**constraints)]


def _is_object_schema(schema: Any) -> bool:
    return isinstance(schema, Mapping) and (schema.get("type") == "object" or "properties" in schema)


def _compile(schema: Any, name: str) -> Any:
    try:
        return _compile_node(schema, name)
    except Exception as e:
        logger.warning(f"Could not compile schema node {name}, accepting any value: {e}")
        return Any


def _compile_node(schema: Any, name: str) -> Any:
    if not isinstance(schema, Mapping):
        return Any

    annotation = _compile_type(schema, name)

    if schema.get("nullable") is True:
        annotation = Optional[annotation]

    return annotation


def _compile_type(schema: Mapping[str, Any], name: str) -> Any:
    if "const" in schema:
        return Literal[schema["const"]]

    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        return Literal[tuple(enum)]

    for keyword_name in ("anyOf", "oneOf"):
        branches = schema.get(keyword_name)
        if isinstance(branches, list) and branches:
            return _compile_union(branches, name)

    branches = schema.get("allOf")
    if isinstance(branches, list) and branches:
        return _compile_all_of(schema, branches, name)

    schema_type = schema.get("type")

    if isinstance(schema_type, list):
        nullable = "null" in schema_type
        members = [
            _compile_type({**schema, "type": member}, name)
            for member in schema_type if member != "null"
        ]
        annotation = _union(members) if members else type(None)
        return Optional[annotation] if nullable and members else annotation

    if schema_type == "string":
        constraints = _constraints(schema, _STRING_CONSTRAINTS)
        if "pattern" in constraints:
            try:
                re.compile(constraints["pattern"])
            except (re.error, TypeError):
                logger.warning(f"Ignoring invalid pattern in {name}: {constraints['pattern']!r}")
                constraints.pop("pattern")
        return _constrain(StrictStr, constraints)

    if schema_type == "integer":
        return _constrain(StrictInteger, _constraints(schema, _NUMBER_CONSTRAINTS))

    if schema_type == "number":
        return _constrain(StrictNumber, _constraints(schema, _NUMBER_CONSTRAINTS))

    if schema_type == "boolean":
        return StrictBool

    if schema_type == "null":
        return type(None)

    if schema_type == "array":
        items = schema.get("items")
        item_type = _compile(items, f"{name}_item") if isinstance(items, Mapping) else Any
        return _constrain(List[item_type], _constraints(schema, _ARRAY_CONSTRAINTS))

    if _is_object_schema(schema):
        return _compile_object(schema, name)

    if schema_type is not None:
        logger.warning(f"Unknown schema type '{schema_type}' in {name}, accepting any value")
    else:
        logger.debug(f"No type in schema {name}, accepting any value")
    return Any


def _union(members: List[Any]) -> Any:
    if len(members) == 1:
        return members[0]
    return Union[tuple(members)]


def _compile_union(branches: List[Any], name: str) -> Any:
    nullable = any(isinstance(b, Mapping) and b.get("type") == "null" for b in branches)
    members = [
        _compile(branch, f"{name}_{index}")
        for index, branch in enumerate(branches)
        if not (isinstance(branch, Mapping) and branch.get("type") == "null")
    ]
    if not members:
        return type(None)
    annotation = _union(members)
    return Optional[annotation] if nullable else annotation


def _compile_all_of(schema: Mapping[str, Any], branches: List[Any], name: str) -> Any:
    if all(_is_object_schema(branch) for branch in branches):
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for branch in branches:
            properties.update(branch.get("properties") or {})
            required.extend(r for r in branch.get("required") or [] if r not in required)
        merged = {key: value for key, value in schema.items() if key != "allOf"}
        merged.update({"type": "object", "properties": properties, "required": required})
        return _compile_object(merged, name)

    # Intersection of non-object branches has no single pydantic type
    logger.warning(f"allOf in {name} mixes non-object branches, validating against the first branch only")
    first = branches[0]
    if isinstance(first, Mapping):
        first = {**{k: v for k, v in schema.items() if k != "allOf"}, **first}
    return _compile(first, name)


def _compile_object(schema: Mapping[str, Any], name: str) -> Any:
    properties = schema.get("properties")

    if not isinstance(properties, Mapping) or not properties:
        additional = schema.get("additionalProperties")
        if isinstance(additional, Mapping) and additional:
            return Dict[str, _compile(additional, f"{name}_value")]
        return Dict[str, Any]

    required = set(schema.get("required") or [])
    fields: Dict[str, Tuple[Any, Any]] = {}
    taken: set = set()

    for index, (prop, prop_schema) in enumerate(properties.items()):
        prop_schema = prop_schema if isinstance(prop_schema, Mapping) else {}
        annotation = _compile(prop_schema, f"{name}_{_model_name(str(prop))}")
        field_kwargs: Dict[str, Any] = {"alias": prop}
        if prop_schema.get("description"):
            field_kwargs["description"] = prop_schema["description"]

        if prop in required:
            field_info = Field(..., **field_kwargs)
        elif "default" in prop_schema:
            field_info = Field(default=prop_schema["default"], **field_kwargs)
        else:
            annotation = Optional[annotation]
            field_info = Field(default=None, **field_kwargs)

        fields[_field_name(str(prop), index, taken)] = (annotation, field_info)

    return create_model(name, __config__=MODEL_CONFIG, **fields)
