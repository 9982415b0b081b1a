"""
Data models for the Tool Builder component.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from falforge.schema.compiler import SchemaValidator
from falforge.tool_executor.models import ExecutionResult


class ToolParameter(BaseModel):
    """One top-level input parameter of a generated tool."""
    name: str
    param_type: str = "any"
    description: str = ""
    required: bool = False
    default_value: Optional[Any] = None


def schema_type_label(schema: Dict[str, Any]) -> str:
    """Short type label for a JSON-Schema node, e.g. ``string`` or ``integer|null``."""
    if "enum" in schema:
        return "enum"

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return "|".join(str(t) for t in schema_type)
    if schema_type:
        return str(schema_type)

    branches = schema.get("anyOf") or schema.get("oneOf")
    if isinstance(branches, list):
        labels = [schema_type_label(b) for b in branches if isinstance(b, dict)]
        return "|".join(dict.fromkeys(labels)) or "any"

    return "any"


class ToolDefinition(BaseModel):
    """
    A generated tool: everything an agent needs to describe, validate and run
    one FAL endpoint.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    endpoint_id: str
    input_schema: Dict[str, Any]
    validator: SchemaValidator = Field(exclude=True)
    execute: Callable[[Dict[str, Any]], Awaitable[ExecutionResult]] = Field(exclude=True)
    base_url: str
    submit_path: str
    category: str = ""
    created_at: str = Field(default_factory=lambda: str(datetime.now().isoformat()))

    @property
    def parameters(self) -> List[ToolParameter]:
        properties = self.input_schema.get("properties") or {}
        required = set(self.input_schema.get("required") or [])

        return [
            ToolParameter(
                name=name,
                param_type=schema_type_label(schema if isinstance(schema, dict) else {}),
                description=(schema.get("description") or "") if isinstance(schema, dict) else "",
                required=name in required,
                default_value=schema.get("default") if isinstance(schema, dict) else None,
            )
            for name, schema in properties.items()
        ]

    def validate_input(self, input: Any) -> Any:
        """
        Validate input against the compiled schema.

        Raises:
            ToolValidationError: If the input is rejected
        """
        return self.validator.validate(input, endpoint_id=self.endpoint_id)

    def describe(self) -> str:
        """Description followed by one line per parameter."""
        lines = [self.description]

        parameters = self.parameters
        if parameters:
            lines.append("")
            lines.append("Available parameters:")
            for param in parameters:
                requirement = "required" if param.required else "optional"
                line = f"- {param.name} ({requirement}): {param.param_type}"
                if param.description:
                    line += f" - {param.description}"
                lines.append(line)

        return "\n".join(lines)

    def to_openai_tool(self) -> Dict[str, Any]:
        """OpenAI function-tool schema for this tool."""
        parameters = dict(self.input_schema)
        parameters.setdefault("type", "object")
        if parameters["type"] != "object":
            parameters = {"type": "object", "properties": {}}

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            }
        }
