"""
Agent Core: composition root for a falforge session.

Wires the catalog client, ranker, synthesizer, registry and execution adapter
together, exposes the meta-tools an agent uses to work with FAL models, and
runs the OpenAI tool-calling loop.
"""

from typing import Any, AsyncIterator, Callable, Dict, List, Optional
import json
import logging
import traceback
from datetime import datetime

from falforge.config import Settings, settings as default_settings
from falforge.agent_core.models import AgentResponse, ToolCallRecord, ToolResult
from falforge.catalog.client import ModelCatalogClient
from falforge.catalog.models import ModelRecord
from falforge.ranking.ranker import ModelRanker
from falforge.ranking.selector import LLMModelSelector
from falforge.tool_builder.builder import ToolSynthesizer
from falforge.tool_builder.models import ToolDefinition
from falforge.tool_executor.executor import ExecutionAdapter
from falforge.tool_registry.registry import ToolRegistry
from falforge.utils.error_handling import FalForgeError
from falforge.utils.openai_client import get_tool_completion, stream_completion

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a creative agent with access to FAL AI generation models. "
    "Help the user plan their creative goal, pick the best tool for it and call it "
    "with appropriate parameters. If the task is complicated, plan multiple steps and "
    "call tools multiple times. Some tools require image_url; only use those when "
    "you have existing images. Report which tool was used, the parameters and the result."
)

META_TOOL_SCHEMAS = [
    {
        "type": "function",
        "function": {
            "name": "find_fal_models",
            "description": "Search for FAL AI models by query string or category. Returns a list of available models with their details.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query to find models by title, description, or tags"
                    },
                    "category": {
                        "type": "string",
                        "description": "Filter by model category (e.g., \"text-to-image\", \"image-to-video\")"
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of results to return (default: 10)"
                    }
                }
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "generate_fal_tool",
            "description": "Generate a dynamic tool for a specific FAL AI model endpoint",
            "parameters": {
                "type": "object",
                "properties": {
                    "endpoint_id": {
                        "type": "string",
                        "description": "Endpoint identifier, e.g. fal-ai/flux/schnell"
                    }
                },
                "required": ["endpoint_id"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "execute_fal_tool",
            "description": "Execute a dynamically generated FAL AI tool with given parameters",
            "parameters": {
                "type": "object",
                "properties": {
                    "endpoint_id": {
                        "type": "string",
                        "description": "Endpoint identifier of a generated tool"
                    },
                    "input": {
                        "type": "object",
                        "description": "Input parameters for the tool"
                    }
                },
                "required": ["endpoint_id", "input"]
            }
        }
    },
]


class FalForgeSession:
    """
    Owns the components of one agent session, including its tool registry.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[ModelCatalogClient] = None,
        executor: Optional[ExecutionAdapter] = None,
        ranker: Optional[ModelRanker] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        """
        Initialize the session.

        Args:
            settings: Settings to use, defaults to the global settings
            catalog: Catalog client, built from settings when omitted
            executor: Execution adapter, built from settings when omitted
            ranker: Model ranker, built from the catalog when omitted
            registry: Tool registry, built from the catalog and executor when omitted
        """
        self.settings = settings or default_settings
        self.catalog = catalog or ModelCatalogClient(self.settings)
        self.executor = executor or ExecutionAdapter(self.settings)
        self.ranker = ranker or ModelRanker(
            self.catalog,
            LLMModelSelector(model=self.settings.openai_selector_model),
            search_limit=self.settings.catalog_search_limit,
        )
        self.registry = registry or ToolRegistry(
            ToolSynthesizer(self.catalog, self.executor, self.settings.execution_mode)
        )
        self.model = self.settings.openai_model
        self.system_prompt = SYSTEM_PROMPT

        self.meta_tools: Dict[str, Callable[..., Any]] = {
            "find_fal_models": self.find_models,
            "generate_fal_tool": self.generate_tool,
            "execute_fal_tool": self.execute_tool,
        }

        self.usage_stats = {
            "total_queries": 0,
            "tool_executions": 0,
            "tools_generated": 0,
            "session_start": datetime.now()
        }

    async def discover_tools(self, prompt: str, limit: Optional[int] = None,
                             has_image_input: Optional[bool] = None) -> List[ToolDefinition]:
        """
        Rank models for a prompt and generate tools for them.

        Args:
            prompt: The user request
            limit: Number of models to rank, defaults to settings
            has_image_input: Whether an image was supplied; detected when None

        Returns:
            Generated tools in ranking order
        """
        limit = limit or self.settings.ranker_result_limit
        models = await self.ranker.rank(prompt, has_image_input=has_image_input, limit=limit)
        tools = await self.registry.generate_many(models)
        self.usage_stats["tools_generated"] = len(self.registry.all_tools())
        logger.info(f"Discovered {len(tools)} tools for prompt: {prompt[:50]}")
        return tools

    async def find_models(self, query: Optional[str] = None, category: Optional[str] = None,
                          limit: int = 10) -> ToolResult:
        """Search the loaded catalog by text and category."""
        try:
            await self.catalog.initialize()

            if query or category:
                models = self.catalog.search_loaded(query or "", category)
            else:
                models = self.catalog.all_models()

            if not models and not self.catalog.all_models():
                return ToolResult(success=False, error="No FAL models available. The catalog may not be loaded.")

            limited = models[:max(1, min(limit or 10, 20))]
            return ToolResult(success=True, data={
                "count": len(limited),
                "total_available": len(models),
                "models": [model.summary() for model in limited],
                "search_query": query,
                "search_category": category,
            })
        except Exception as e:
            logger.error(f"Error searching FAL models: {e}")
            return ToolResult(success=False, error=str(e) or "Unknown error occurred while searching FAL models")

    async def generate_tool(self, endpoint_id: Optional[str] = None) -> ToolResult:
        """Generate the tool for an endpoint unless it already exists."""
        if not endpoint_id:
            return ToolResult(success=False, error="endpoint_id is required")

        try:
            if self.registry.has_tool(endpoint_id):
                return ToolResult(success=True, data={
                    "endpoint_id": endpoint_id,
                    "status": "exists",
                    "message": f"Tool for {endpoint_id} already exists",
                    "tool_description": self.registry.get_description(endpoint_id),
                })

            tool = await self.registry.generate(endpoint_id)
            if tool is None:
                return ToolResult(
                    success=False,
                    error=(
                        f"Failed to generate tool for {endpoint_id}. The endpoint may not exist "
                        f"or may not have a valid OpenAPI spec."
                    )
                )

            self.usage_stats["tools_generated"] = len(self.registry.all_tools())
            return ToolResult(success=True, data={
                "endpoint_id": endpoint_id,
                "status": "created",
                "message": f"Successfully generated tool for {endpoint_id}",
                "tool_description": self.registry.get_description(endpoint_id),
            })
        except Exception as e:
            logger.error(f"Error generating tool for {endpoint_id}: {e}")
            return ToolResult(success=False, error=str(e) or "Unknown error occurred")

    async def execute_tool(self, endpoint_id: Optional[str] = None,
                           input: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Run a generated tool, reporting failures in the result."""
        if not endpoint_id:
            return ToolResult(success=False, error="endpoint_id is required")
        if not input:
            return ToolResult(success=False, error="input parameters are required")
        if not self.registry.has_tool(endpoint_id):
            return ToolResult(
                success=False,
                error=f"Tool for {endpoint_id} not found. Generate it first using generate_fal_tool."
            )

        try:
            result = await self.registry.execute(endpoint_id, input)
            self.usage_stats["tool_executions"] += 1
            return ToolResult(success=True, data=result.to_output())
        except FalForgeError as e:
            logger.error(f"Error executing tool for {endpoint_id}: {e.message}")
            return ToolResult(success=False, error=e.message, data=e.details or None)
        except Exception as e:
            logger.error(f"Error executing tool for {endpoint_id}: {e}")
            return ToolResult(success=False, error=str(e) or "Unknown error occurred")

    def tool_schemas(self) -> List[Dict[str, Any]]:
        """OpenAI tool schemas for the generated tools followed by the meta-tools."""
        return [tool.to_openai_tool() for tool in self.registry.all_tools()] + META_TOOL_SCHEMAS

    async def execute_tool_call(self, tool_call: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute one OpenAI tool call.

        Args:
            tool_call: ``{"id": ..., "function": {"name": ..., "arguments": "<json>"}}``

        Returns:
            ``{"tool_call_id": ..., "output": "<json>"}``
        """
        function_name = tool_call["function"]["name"]
        tool_call_id = tool_call.get("id", "unknown")

        try:
            arguments = json.loads(tool_call["function"].get("arguments") or "{}")
        except json.JSONDecodeError:
            logger.error(f"Invalid JSON in arguments: {tool_call['function'].get('arguments')}")
            return {
                "tool_call_id": tool_call_id,
                "output": json.dumps({"error": f"Invalid JSON in arguments: {tool_call['function'].get('arguments')}"})
            }

        handler = self.meta_tools.get(function_name)
        if handler is not None:
            try:
                result = await handler(**arguments)
            except TypeError as e:
                result = ToolResult(success=False, error=f"Invalid arguments for {function_name}: {e}")
            return {"tool_call_id": tool_call_id, "output": result.model_dump_json(exclude_none=True)}

        tool = self.registry.get_tool_by_name(function_name)
        if tool is None:
            logger.error(f"Tool '{function_name}' not found")
            return {
                "tool_call_id": tool_call_id,
                "output": json.dumps({"error": f"Tool '{function_name}' not found"})
            }

        try:
            result = await self.registry.execute(tool.endpoint_id, arguments)
            self.usage_stats["tool_executions"] += 1
            return {"tool_call_id": tool_call_id, "output": json.dumps(result.to_output())}
        except Exception as e:
            logger.error(f"Error executing tool {function_name}: {e}")
            logger.debug(traceback.format_exc())

            error_details = {
                "error": f"Error executing tool: {e}",
                "error_type": type(e).__name__,
                "tool_name": function_name
            }
            if isinstance(e, FalForgeError):
                error_details["details"] = e.details

            return {"tool_call_id": tool_call_id, "output": json.dumps(error_details, default=str)}

    async def run(self, prompt: str, has_image_input: Optional[bool] = None) -> AgentResponse:
        """
        Answer a prompt, letting the LLM call generated tools.

        Args:
            prompt: The user request
            has_image_input: Whether an image was supplied; detected when None

        Returns:
            AgentResponse with the final text and every tool call made
        """
        self.usage_stats["total_queries"] += 1

        tools = await self.discover_tools(prompt, has_image_input=has_image_input)
        response = AgentResponse(tools=[tool.name for tool in tools])

        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": prompt},
        ]

        for step in range(1, self.settings.agent_max_steps + 1):
            response.steps = step
            message = await get_tool_completion(messages, tools=self.tool_schemas(), model=self.model)

            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls:
                response.content = message.content or ""
                return response

            calls = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.function.name, "arguments": call.function.arguments},
                }
                for call in tool_calls
            ]
            messages.append({"role": "assistant", "content": message.content, "tool_calls": calls})

            for call in calls:
                logger.info(f"Tool call {call['function']['name']} ({call['id']})")
                result = await self.execute_tool_call(call)
                messages.append({
                    "role": "tool",
                    "tool_call_id": result["tool_call_id"],
                    "content": result["output"],
                })

                try:
                    arguments = json.loads(call["function"]["arguments"] or "{}")
                except json.JSONDecodeError:
                    arguments = {}
                response.tool_calls.append(ToolCallRecord(
                    tool_call_id=call["id"],
                    name=call["function"]["name"],
                    arguments=arguments if isinstance(arguments, dict) else {},
                    output=json.loads(result["output"]),
                ))

        logger.warning(f"Agent stopped after {self.settings.agent_max_steps} steps")
        response.content = response.content or "Stopped before reaching a final answer."
        return response

    def stream(self, prompt: str) -> AsyncIterator[Any]:
        """Stream a plain reply as text-delta events closed by a terminal event."""
        self.usage_stats["total_queries"] += 1
        return stream_completion(prompt, system_message=self.system_prompt, model=self.model)

    async def rank(self, prompt: str, has_image_input: Optional[bool] = None,
                   limit: Optional[int] = None) -> List[ModelRecord]:
        return await self.ranker.rank(prompt, has_image_input=has_image_input,
                                      limit=limit or self.settings.ranker_result_limit)
