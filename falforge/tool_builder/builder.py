"""
Tool Synthesizer: turns a catalog model into a callable tool definition.
"""

import functools
import logging
import re
from typing import Any, Dict, Optional, Union

from falforge.catalog.client import ModelCatalogClient
from falforge.catalog.models import ModelRecord, OpenAPISpecDocument
from falforge.schema.compiler import compile_schema
from falforge.schema.resolver import resolve_refs
from falforge.tool_builder.models import ToolDefinition
from falforge.tool_executor.executor import ExecutionAdapter
from falforge.tool_executor.models import ExecutionResult
from falforge.utils.error_handling import catch_and_log

logger = logging.getLogger(__name__)


def derive_tool_name(endpoint_id: str) -> str:
    """Function-safe tool name: every character outside ``[A-Za-z0-9_]`` becomes ``_``."""
    return re.sub(r"[^A-Za-z0-9_]", "_", endpoint_id)


def find_input_schema_name(spec: OpenAPISpecDocument) -> Optional[str]:
    """
    Name of the component schema describing the endpoint input.

    The JSON body of the submit path wins. Otherwise the first schema whose
    name does not contain Output, Status or Image, or does contain Input.
    """
    schemas = spec.schemas

    body_schema = spec.request_schema_name()
    if body_schema and isinstance(schemas.get(body_schema), dict):
        return body_schema

    for key in schemas:
        if ("Output" not in key and "Status" not in key and "Image" not in key) or "Input" in key:
            return key

    return None


class ToolSynthesizer:
    """
    Build tool definitions from catalog models and their OpenAPI documents.
    """

    def __init__(
        self,
        catalog: ModelCatalogClient,
        executor: ExecutionAdapter,
        execution_mode: Optional[str] = None,
    ):
        """
        Initialize the Tool Synthesizer.

        Args:
            catalog: Catalog client used to fetch OpenAPI documents
            executor: Adapter the generated tools run through
            execution_mode: ``submit`` to return once queued, ``subscribe`` to wait
                for completion; defaults to the executor's settings
        """
        self.catalog = catalog
        self.executor = executor
        self.execution_mode = execution_mode or executor.settings.execution_mode
        self.logger = logging.getLogger(__name__)

    def _resolve_model(self, model: Union[ModelRecord, str]) -> ModelRecord:
        if isinstance(model, ModelRecord):
            return model
        return self.catalog.get_model(model) or ModelRecord(id=model, title=model)

    @catch_and_log("tool_builder")
    async def synthesize(self, model: Union[ModelRecord, str]) -> Optional[ToolDefinition]:
        """
        Generate a tool for a model.

        Args:
            model: Catalog record or endpoint identifier

        Returns:
            ToolDefinition, or None when the model has no usable OpenAPI input
            schema or generation fails
        """
        record = self._resolve_model(model)
        self.logger.info(f"Creating tool for model {record.id}")

        spec = await self.catalog.fetch_spec(record.id)
        if spec is None:
            self.logger.warning(f"No OpenAPI spec available for {record.id}")
            return None

        return self.build_tool(record, spec)

    def build_tool(self, record: ModelRecord, spec: OpenAPISpecDocument) -> Optional[ToolDefinition]:
        """
        Build a tool from a record and an already fetched OpenAPI document.

        Returns:
            ToolDefinition, or None when no input schema can be found
        """
        if not spec.schemas:
            self.logger.warning(f"No schemas found for model {record.id}")
            return None

        schema_name = find_input_schema_name(spec)
        if not schema_name:
            self.logger.warning(f"No suitable input schema found for model {record.id}")
            return None

        input_schema = spec.schemas[schema_name]
        if not isinstance(input_schema, dict):
            self.logger.warning(f"Invalid input schema for model {record.id}")
            return None

        resolved = resolve_refs(input_schema, spec.components)
        tool_name = derive_tool_name(record.id)
        validator = compile_schema(resolved, name=schema_name)

        base_url = spec.base_url
        submit_path = spec.find_submit_path() or f"/{record.id}"

        tool = ToolDefinition(
            name=tool_name,
            description=f"{record.title}: {record.description}",
            endpoint_id=record.id,
            input_schema=resolved,
            validator=validator,
            execute=self._bind_execute(record.id, tool_name, base_url, submit_path),
            base_url=base_url,
            submit_path=submit_path,
            category=record.category or spec.category or "",
        )

        self.logger.info(f"Created tool {tool_name} for model {record.id} from schema {schema_name}")
        return tool

    def _bind_execute(self, endpoint_id: str, tool_name: str, base_url: str, submit_path: str):
        if self.execution_mode == "subscribe":
            return functools.partial(
                self._subscribe, endpoint_id=endpoint_id, tool_name=tool_name,
                base_url=base_url, submit_path=submit_path,
            )
        return functools.partial(
            self._invoke, endpoint_id=endpoint_id, tool_name=tool_name,
            base_url=base_url, submit_path=submit_path,
        )

    async def _invoke(self, input: Dict[str, Any], *, endpoint_id: str, tool_name: str,
                      base_url: str, submit_path: str) -> ExecutionResult:
        self.logger.info(f"Executing tool {tool_name} ({endpoint_id}) at {base_url}{submit_path}")
        return await self.executor.invoke(endpoint_id, base_url, submit_path, input, tool_name=tool_name)

    async def _subscribe(self, input: Dict[str, Any], *, endpoint_id: str, tool_name: str,
                         base_url: str, submit_path: str) -> ExecutionResult:
        self.logger.info(f"Executing tool {tool_name} ({endpoint_id}) and waiting for the result")
        return await self.executor.subscribe(
            endpoint_id, input, base_url=base_url, post_path=submit_path, tool_name=tool_name,
        )
