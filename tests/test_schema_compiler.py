import pytest

from falforge.schema.compiler import compile_schema
from falforge.schema.resolver import resolve_refs
from falforge.utils.error_handling import ToolValidationError


@pytest.fixture
def prompt_schema():
    return {
        "type": "object",
        "properties": {
            "prompt": {"type": "string"},
            "seed": {"type": "integer"},
        },
        "required": ["prompt"],
    }


def test_required_and_optional_fields(prompt_schema):
    """Missing required fields are rejected, optional ones may be omitted."""
    validator = compile_schema(prompt_schema)

    with pytest.raises(ToolValidationError) as exc_info:
        validator.validate({"seed": 3})
    assert exc_info.value.fields == ["prompt"]

    assert validator.validate({"prompt": "cat", "seed": 3}) == {"prompt": "cat", "seed": 3}
    assert validator.validate({"prompt": "cat"}) == {"prompt": "cat"}


def test_no_required_array_makes_everything_optional():
    validator = compile_schema({
        "type": "object",
        "properties": {"prompt": {"type": "string"}, "seed": {"type": "integer"}},
    })

    assert validator.validate({}) == {}


def test_defaults_are_applied():
    validator = compile_schema({
        "type": "object",
        "properties": {
            "prompt": {"type": "string"},
            "num_images": {"type": "integer", "default": 1},
            "enable_safety_checker": {"type": "boolean", "default": True},
        },
        "required": ["prompt"],
    })

    assert validator.validate({"prompt": "cat"}) == {
        "prompt": "cat",
        "num_images": 1,
        "enable_safety_checker": True,
    }


def test_string_enum_is_a_closed_set():
    validator = compile_schema({
        "type": "object",
        "properties": {"size": {"type": "string", "enum": ["square", "portrait"]}},
    })

    assert validator.is_valid({"size": "square"})
    assert not validator.is_valid({"size": "landscape"})


def test_string_length_and_pattern_constraints():
    validator = compile_schema({
        "type": "object",
        "properties": {"code": {"type": "string", "minLength": 2, "maxLength": 4, "pattern": "^[a-z]+$"}},
    })

    assert validator.is_valid({"code": "abc"})
    assert not validator.is_valid({"code": "a"})
    assert not validator.is_valid({"code": "abcde"})
    assert not validator.is_valid({"code": "AB"})


def test_invalid_pattern_is_ignored():
    validator = compile_schema({
        "type": "object",
        "properties": {"code": {"type": "string", "pattern": "(unclosed"}},
    })

    assert validator.is_valid({"code": "anything"})


def test_numeric_bounds():
    validator = compile_schema({
        "type": "object",
        "properties": {
            "steps": {"type": "integer", "minimum": 1, "maximum": 12},
            "guidance": {"type": "number", "exclusiveMinimum": 0, "exclusiveMaximum": 20},
        },
    })

    assert validator.is_valid({"steps": 1, "guidance": 3.5})
    assert validator.is_valid({"guidance": 7})
    assert not validator.is_valid({"steps": 0})
    assert not validator.is_valid({"steps": 13})
    assert not validator.is_valid({"guidance": 0})
    assert not validator.is_valid({"guidance": 20})


def test_integer_rejects_fractional_values():
    validator = compile_schema({"type": "object", "properties": {"seed": {"type": "integer"}}})

    assert not validator.is_valid({"seed": 3.5})


def test_array_items_and_length():
    validator = compile_schema({
        "type": "object",
        "properties": {"loras": {"type": "array", "items": {"type": "string"}, "minItems": 1, "maxItems": 2}},
    })

    assert validator.is_valid({"loras": ["a"]})
    assert not validator.is_valid({"loras": []})
    assert not validator.is_valid({"loras": ["a", "b", "c"]})
    assert not validator.is_valid({"loras": [{"path": "a"}]})


def test_array_without_items_accepts_anything():
    validator = compile_schema({"type": "object", "properties": {"values": {"type": "array"}}})

    assert validator.validate({"values": [1, "two", {"three": 3}]}) == {"values": [1, "two", {"three": 3}]}


def test_any_of_union(flux_spec):
    components = flux_spec["components"]
    resolved = resolve_refs(components["schemas"]["SchnellTextToImageInput"], components)
    validator = compile_schema(resolved, name="SchnellTextToImageInput")

    assert validator.is_valid({"prompt": "cat", "image_size": "square_hd"})
    assert validator.is_valid({"prompt": "cat", "image_size": {"width": 640, "height": 480}})
    assert not validator.is_valid({"prompt": "cat", "image_size": "huge"})

    parsed = validator.validate({"prompt": "cat"})
    assert parsed["image_size"] == "landscape_4_3"
    assert parsed["num_inference_steps"] == 4


def test_nested_error_locations(flux_spec):
    components = flux_spec["components"]
    resolved = resolve_refs(components["schemas"]["SchnellTextToImageInput"], components)
    validator = compile_schema(resolved)

    with pytest.raises(ToolValidationError) as exc_info:
        validator.validate({"prompt": "cat", "num_inference_steps": 50}, endpoint_id="fal-ai/flux/schnell")

    error = exc_info.value
    assert "num_inference_steps" in error.fields
    assert error.endpoint_id == "fal-ai/flux/schnell"
    assert error.details["endpoint_id"] == "fal-ai/flux/schnell"


def test_all_of_merges_object_branches():
    validator = compile_schema({
        "allOf": [
            {"type": "object", "properties": {"prompt": {"type": "string"}}, "required": ["prompt"]},
            {"type": "object", "properties": {"seed": {"type": "integer"}}},
        ]
    })

    assert validator.is_valid({"prompt": "cat", "seed": 1})
    assert not validator.is_valid({"seed": 1})


def test_all_of_with_non_object_branch_keeps_first(caplog):
    validator = compile_schema({
        "type": "object",
        "properties": {
            "size": {"allOf": [{"type": "string", "maxLength": 3}, {"type": "integer"}]},
        },
    })

    assert validator.is_valid({"size": "abc"})
    assert not validator.is_valid({"size": "abcd"})
    assert "allOf" in caplog.text


def test_nullable_and_type_lists():
    validator = compile_schema({
        "type": "object",
        "properties": {
            "seed": {"type": ["integer", "null"]},
            "negative_prompt": {"type": "string", "nullable": True},
        },
        "required": ["seed", "negative_prompt"],
    })

    assert validator.is_valid({"seed": None, "negative_prompt": None})
    assert validator.is_valid({"seed": 1, "negative_prompt": "blurry"})


def test_extra_keys_are_kept():
    validator = compile_schema({"type": "object", "properties": {"prompt": {"type": "string"}}})

    assert validator.validate({"prompt": "cat", "sync_mode": True}) == {"prompt": "cat", "sync_mode": True}


def test_property_names_that_are_not_identifiers():
    validator = compile_schema({
        "type": "object",
        "properties": {
            "model_name": {"type": "string"},
            "_private": {"type": "integer"},
            "json": {"type": "boolean"},
            "guidance-scale": {"type": "number"},
        },
        "required": ["model_name"],
    })

    data = {"model_name": "x", "_private": 1, "json": True, "guidance-scale": 2.5}
    assert validator.validate(data) == data


@pytest.mark.parametrize("schema", [
    {},
    {"type": "mystery"},
    {"type": "object"},
    {"type": "object", "properties": {"x": {"type": "string", "enum": [{"unhashable": 1}]}}},
    {"type": "array", "items": "not a schema"},
    {"anyOf": []},
    {"type": "object", "properties": {"x": "oops"}},
    {"type": "object", "properties": {"x": {"type": "integer", "minimum": "low"}}},
])
def test_compile_never_raises(schema):
    validator = compile_schema(schema)

    assert validator is not None


def test_unknown_type_accepts_anything():
    validator = compile_schema({"type": "object", "properties": {"blob": {"type": "mystery"}}})

    assert validator.validate({"blob": [1, 2]}) == {"blob": [1, 2]}


def test_json_schema_lists_fields(prompt_schema):
    schema = compile_schema(prompt_schema).json_schema()

    assert set(schema["properties"]) == {"prompt", "seed"}
    assert schema["required"] == ["prompt"]


@pytest.fixture
def typed_schema():
    return {
        "type": "object",
        "properties": {
            "prompt": {"type": "string"},
            "seed": {"type": "integer"},
            "sync_mode": {"type": "boolean"},
            "guidance_scale": {"type": "number"},
        },
        "required": ["prompt"],
    }


@pytest.mark.parametrize("data", [
    {"prompt": "cat", "seed": "3"},
    {"prompt": "cat", "seed": True},
    {"prompt": "cat", "sync_mode": "yes"},
    {"prompt": "cat", "sync_mode": 1},
    {"prompt": "cat", "guidance_scale": "3.5"},
    {"prompt": "cat", "guidance_scale": False},
    {"prompt": 42},
])
def test_wrong_types_are_rejected_not_coerced(typed_schema, data):
    validator = compile_schema(typed_schema)

    with pytest.raises(ToolValidationError):
        validator.validate(data)


def test_numbers_accept_json_numeric_forms(typed_schema):
    validator = compile_schema(typed_schema)

    parsed = validator.validate({"prompt": "cat", "seed": 3.0, "guidance_scale": 7, "sync_mode": False})

    assert parsed["seed"] == 3
    assert isinstance(parsed["seed"], int)
    assert parsed["guidance_scale"] == 7.0
    assert parsed["sync_mode"] is False


def test_fallback_field_names_do_not_collide():
    validator = compile_schema({
        "type": "object",
        "properties": {
            "field_1": {"type": "string"},
            "_b": {"type": "integer"},
        },
        "required": ["field_1", "_b"],
    })

    assert not validator.is_valid({"_b": 2})
    assert not validator.is_valid({"field_1": "x"})
    assert validator.validate({"field_1": "x", "_b": 2}) == {"field_1": "x", "_b": 2}
