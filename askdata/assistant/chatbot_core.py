"""
Core Conversation Orchestration Module
Question -> SQL -> rows -> chart specification
"""
import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from askdata.core.logger import get_logger, log_context
from askdata.db.metadata import DatabaseMetadata

from .chart_generator import ChartSpecBuilder
from .chart_spec import ChartHint, ChartSpec
from .config import chatbot_config
from .errors import (
    DatabaseNotFound,
    ExternalCollaboratorFailure,
    QueryExecutionError,
    ServiceUnavailable,
    UnparseableModelReply,
)
from .llm_providers import LLMProvider
from .prompt_builder import PromptBuilder
from .tabular import TabularResult

logger = get_logger(__name__)


def parse_json_response(content: Optional[str]) -> Optional[Any]:
    """
    Attempt to parse JSON content with common LLM formatting quirks handled.

    This trims code fences like ```json blocks and tries to extract the first
    balanced JSON object when extra prose slips into the response.
    """
    if not content:
        return None

    candidates: List[str] = []
    stripped = content.strip()
    candidates.append(stripped)
    fenced_match = re.search(r"```(?:json)?\s*(.*?)```", stripped, re.DOTALL | re.IGNORECASE)
    if fenced_match:
        candidates.append(fenced_match.group(1).strip())

    extracted_object = _extract_first_json_object(stripped)
    if extracted_object:
        candidates.append(extracted_object)

    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    return None


def _extract_first_json_object(text: str) -> Optional[str]:
    """Extract the first balanced JSON object from the text."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
            continue

        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    return None


@dataclass
class ChatReply:
    """Structured answer parsed from the conversational model call."""

    message: str
    query: Optional[str] = None
    visualization: Any = None
    usage: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "query": self.query,
            "visualization": self.visualization,
        }


@dataclass
class ConversationResult:
    """Outcome of one question: reply text plus, when a query ran, rows and chart."""

    message: str
    query: Optional[str] = None
    data: Optional[List[Dict[str, Any]]] = None
    chart: Optional[ChartSpec] = None
    notice: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "response": self.message,
            "query": self.query,
            "data": self.data,
            "chart": self.chart.to_payload() if self.chart is not None else None,
            "notice": self.notice,
            "usage": self.usage,
        }


class ConversationOrchestrator:
    """Drives the chat model, the database and the chart builder for one request"""

    def __init__(
        self,
        provider: LLMProvider,
        metadata: DatabaseMetadata,
        chart_builder: Optional[ChartSpecBuilder] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        """
        Initialize orchestrator

        Args:
            provider: Chat model collaborator
            metadata: Connection registry used for schema lookup and query execution
            chart_builder: Builder for chart specifications (palette from config if None)
            prompt_builder: Prompt assembly (config sample size/history if None)
        """
        self.provider = provider
        self.metadata = metadata
        self.chart_builder = chart_builder or ChartSpecBuilder()
        self.prompt_builder = prompt_builder or PromptBuilder(
            sample_rows=chatbot_config.visualization_sample_rows,
            max_history=chatbot_config.max_conversation_history,
        )

    async def chat(
        self,
        messages: Optional[Sequence[Any]],
        database_id: Optional[str],
        context: Any = None,
    ) -> ChatReply:
        """
        Ask the model to answer the latest question, optionally with a SQL query

        Args:
            messages: Prior conversation, oldest first, ending with the user's question
            database_id: Identifier of the target data source
            context: The chart currently shown to the user, if any

        Returns:
            ChatReply; a reply that is not a JSON object becomes a plain message
        """
        database = self.metadata.find_database(database_id)
        api_messages = self.prompt_builder.build_chat_messages(messages, database, context)
        options = chatbot_config.chat_options

        with log_context.scope(database=database_id, stage="chat"):
            completion = await self.provider.chat(
                api_messages,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
            content = self.provider.extract_content(completion)
            self._log_llm_exchange("chat", api_messages, content)

        usage = completion.get("usage") or {}
        parsed = parse_json_response(content)
        if not isinstance(parsed, dict):
            logger.info("Chat reply was not a JSON object; returning it as plain text")
            return ChatReply(message=content, usage=usage)

        message = parsed.get("message")
        query = parsed.get("query")
        return ChatReply(
            message=message if isinstance(message, str) else content,
            query=query if isinstance(query, str) and query.strip() else None,
            visualization=parsed.get("visualization"),
            usage=usage,
        )

    async def suggest_visualization(self, data: Any, query: Optional[str] = None) -> ChartHint:
        """
        Ask the model for a chart hint tailored to ``data``

        Raises:
            UnparseableModelReply: the reply is not a JSON object
            ExternalCollaboratorFailure: the model call itself failed
        """
        result = TabularResult.from_rows(data)
        api_messages = self.prompt_builder.build_visualization_messages(query, result)
        options = chatbot_config.visualization_options

        with log_context.scope(stage="visualize"):
            completion = await self.provider.chat(
                api_messages,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
            content = self.provider.extract_content(completion)
            self._log_llm_exchange("visualize", api_messages, content)

        parsed = parse_json_response(content)
        if not isinstance(parsed, dict):
            raise UnparseableModelReply("Visualization suggestion was not valid JSON", content)
        return ChartHint.from_raw(parsed)

    async def visualize(self, data: Any, query: Optional[str] = None) -> Optional[ChartSpec]:
        """Build a chart for ``data``, using the fallback heuristic if no hint can be obtained."""
        result = TabularResult.from_rows(data)
        if result.is_empty:
            return None

        hint: Optional[ChartHint] = None
        try:
            hint = await self.suggest_visualization(result, query)
        except (UnparseableModelReply, ExternalCollaboratorFailure, ServiceUnavailable) as exc:
            logger.warning("Visualization suggestion failed, using fallback heuristic: %s", exc)

        return self.chart_builder.build(result, hint)

    async def answer(
        self,
        messages: Optional[Sequence[Any]],
        database_id: str,
        context: Any = None,
    ) -> ConversationResult:
        """
        Process a question end-to-end

        A failing chat call propagates. A failing query is reported in
        ``notice`` so the reply text still reaches the user.
        """
        reply = await self.chat(messages, database_id, context)
        result = ConversationResult(
            message=reply.message or "I processed your request.",
            query=reply.query,
            usage=reply.usage,
        )
        if not reply.query:
            return result

        try:
            rows = await asyncio.to_thread(self.metadata.execute_query, database_id, reply.query)
        except (QueryExecutionError, DatabaseNotFound) as exc:
            logger.warning("Generated query failed: %s", exc)
            result.notice = f"I generated a query but encountered an error: {exc}"
            return result

        result.data = rows
        result.chart = await self.visualize(rows, reply.query)
        if result.chart is None:
            result.notice = "The query returned no data to visualize."
        return result

    def _log_llm_exchange(
        self,
        stage: str,
        messages: Sequence[Dict[str, str]],
        response_content: str,
    ) -> None:
        """Log prompts and responses for observability/troubleshooting."""
        logger.info("LLM exchange stage=%s provider=%s", stage, self.provider.name)
        for message in messages:
            logger.debug("%s prompt [%s]: %s", message["role"], stage, message["content"])
        logger.debug("Response [%s]: %s", stage, response_content)
