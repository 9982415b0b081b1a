"""
Tool Registry implementation for the tools generated in a session.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from falforge.catalog.models import ModelRecord
from falforge.tool_builder.builder import ToolSynthesizer
from falforge.tool_builder.models import ToolDefinition
from falforge.tool_executor.models import ExecutionResult
from falforge.utils.error_handling import ToolNotFoundError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Keeps the tools generated for a session, keyed by endpoint identifier.

    Generation is single-flight: concurrent ``generate`` calls for the same
    endpoint share one synthesis.
    """

    def __init__(self, synthesizer: ToolSynthesizer):
        """
        Initialize the Tool Registry.

        Args:
            synthesizer: Synthesizer used to build missing tools
        """
        self.synthesizer = synthesizer
        self._tools: Dict[str, ToolDefinition] = {}
        self._inflight: Dict[str, "asyncio.Task[Optional[ToolDefinition]]"] = {}
        self._epoch = 0
        self.logger = logging.getLogger(__name__)

    def has_tool(self, endpoint_id: str) -> bool:
        return endpoint_id in self._tools

    def get_tool(self, endpoint_id: str) -> Optional[ToolDefinition]:
        return self._tools.get(endpoint_id)

    def get_tool_by_name(self, name: str) -> Optional[ToolDefinition]:
        for tool in self._tools.values():
            if tool.name == name:
                return tool
        return None

    def all_tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def tool_names(self) -> List[str]:
        return [tool.name for tool in self._tools.values()]

    def clear(self) -> None:
        """
        Drop every registered tool.

        Generations still running keep serving their current waiters but no
        longer register their tool, and the next ``generate`` starts afresh.
        """
        self._epoch += 1
        self._tools.clear()
        self._inflight.clear()

    async def generate(self, model: Union[ModelRecord, str]) -> Optional[ToolDefinition]:
        """
        Return the tool for an endpoint, generating it if needed.

        Args:
            model: Catalog record or endpoint identifier

        Returns:
            The registered ToolDefinition, or None if it could not be generated
        """
        endpoint_id = model.id if isinstance(model, ModelRecord) else model

        existing = self._tools.get(endpoint_id)
        if existing is not None:
            self.logger.debug(f"Tool for {endpoint_id} already registered")
            return existing

        task = self._inflight.get(endpoint_id)
        if task is None:
            task = asyncio.ensure_future(self._generate(endpoint_id, model, self._epoch))
            self._inflight[endpoint_id] = task
        else:
            self.logger.debug(f"Waiting for in-flight generation of {endpoint_id}")

        return await asyncio.shield(task)

    async def _generate(self, endpoint_id: str, model: Union[ModelRecord, str],
                        epoch: int) -> Optional[ToolDefinition]:
        task = asyncio.current_task()
        try:
            tool = await self.synthesizer.synthesize(model)
            if epoch != self._epoch:
                self.logger.debug(f"Registry cleared while generating {endpoint_id}, not registering")
            elif tool is not None:
                self._tools[endpoint_id] = tool
                self.logger.info(f"Registered tool {tool.name} for {endpoint_id}")
            else:
                self.logger.warning(f"Could not generate tool for {endpoint_id}")
            return tool
        finally:
            if self._inflight.get(endpoint_id) is task:
                del self._inflight[endpoint_id]

    async def generate_many(self, models: Iterable[Union[ModelRecord, str]]) -> List[ToolDefinition]:
        """
        Generate tools concurrently.

        Returns:
            The tools that could be generated, in input order
        """
        results = await asyncio.gather(*(self.generate(model) for model in models))
        return [tool for tool in results if tool is not None]

    def get_description(self, endpoint_id: str) -> str:
        """
        Human-readable description of a tool and its parameters.

        Raises:
            ToolNotFoundError: If no tool was generated for the endpoint
        """
        tool = self._tools.get(endpoint_id)
        if tool is None:
            raise ToolNotFoundError(endpoint_id)
        return tool.describe()

    async def execute(self, endpoint_id: str, input: Dict[str, Any]) -> ExecutionResult:
        """
        Validate input and run the tool for an endpoint.

        Args:
            endpoint_id: Endpoint identifier
            input: Tool input

        Returns:
            ExecutionResult from the execution adapter

        Raises:
            ToolNotFoundError: If no tool was generated for the endpoint
            ToolValidationError: If the input is rejected
            UpstreamError: If the queue API rejects the request
        """
        tool = self._tools.get(endpoint_id)
        if tool is None:
            raise ToolNotFoundError(endpoint_id)

        params = tool.validate_input(input)
        self.logger.info(f"Executing tool {tool.name} for {endpoint_id}")
        return await tool.execute(params)
