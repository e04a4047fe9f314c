"""Prompt assembly utilities for the assistant.

This module centralizes the prompt construction for the two model calls the
assistant makes: the conversational call that may propose a SQL query, and
the visualization call that proposes a chart hint for a concrete result set.
Both calls must come back as JSON, so the prompts spell out the contract.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .tabular import TabularResult

VISUALIZATION_SYSTEM_PROMPT = "You are a data visualization expert. Always return valid JSON."

ALLOWED_ROLES = ("system", "user", "assistant")


class PromptBuilder:
    """Construct structured prompts for assistant calls."""

    APP_HEADER = "You are a data analytics assistant."

    def __init__(self, sample_rows: int = 5, max_history: int = 20):
        self.sample_rows = sample_rows
        self.max_history = max_history

    def build_chat_system_prompt(
        self,
        database: Optional[Mapping[str, Any]],
        context: Any = None,
    ) -> str:
        """Build the system prompt with the target schema and prior visualization context."""

        db_type = (database or {}).get("type") or "Oracle"
        tables = (database or {}).get("tables") or []

        return (
            f"{self.APP_HEADER} You have access to an {db_type} database with the"
            " following schema:\n\n"
            f"{json.dumps(tables, indent=2, default=str)}\n\n"
            "Generate SQL queries and provide insights based on user questions."
            " Always return responses in JSON format with:\n"
            "- message: A clear explanation\n"
            "- query: The SQL query to execute (if applicable)\n"
            "- visualization: Suggested visualization type (line, bar, scatter, donut)\n\n"
            f"Previous context: {json.dumps(self._summarize_context(context), default=str)}"
        )

    def build_chat_messages(
        self,
        history: Optional[Sequence[Any]],
        database: Optional[Mapping[str, Any]],
        context: Any = None,
    ) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.build_chat_system_prompt(database, context)},
            *self.format_history(history),
        ]

    def build_visualization_prompt(self, query: Optional[str], data: TabularResult) -> str:
        """Build the user prompt asking for a chart hint for ``data``."""

        sample = json.dumps(data.sample(self.sample_rows), indent=2, default=str)
        return f"""Based on this SQL query and data, suggest the best visualization.

Query: {query or "(not provided)"}
Data sample: {sample}
Total rows: {data.row_count}

Analyze the data structure and suggest ONE of these chart types:
- "line": For time series or trends over continuous data
- "bar": For comparing categories or discrete values
- "scatter": For showing correlation between two or more numeric variables
- "donut": For showing composition/distribution of categories (max 10 categories)

Return a JSON object with:
{{
  "type": "line|bar|scatter|donut",
  "title": "descriptive chart title",
  "description": "brief explanation of why this chart type",

  // For line/bar charts:
  "xKey": "column name for x-axis",
  "yKeys": ["array", "of", "columns", "for", "y-axis"],

  // For scatter charts:
  "xKey": "numeric column 1",
  "yKey": "numeric column 2",
  "zKey": "optional numeric column for bubble size",
  "scatterSeries": [{{"name": "series name", "color": "#hex"}}],

  // For donut charts:
  "nameKey": "category column",
  "valueKey": "numeric value column"
}}

Consider:
- Use "donut" if there are <=10 distinct categories and one numeric value
- Use "scatter" if there are >=2 numeric columns and you want to show correlation
- Use "line" for time-based or sequential data
- Use "bar" for categorical comparisons"""

    def build_visualization_messages(
        self, query: Optional[str], data: TabularResult
    ) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": VISUALIZATION_SYSTEM_PROMPT},
            {"role": "user", "content": self.build_visualization_prompt(query, data)},
        ]

    def format_history(self, history: Optional[Sequence[Any]]) -> List[Dict[str, str]]:
        """Keep the most recent well-formed messages, reduced to role and content."""
        if not history:
            return []

        formatted = []
        for message in history:
            if not isinstance(message, Mapping):
                continue
            role = message.get("role")
            content = message.get("content")
            if role not in ALLOWED_ROLES or not isinstance(content, str):
                continue
            formatted.append({"role": role, "content": content})
        return formatted[-self.max_history:] if self.max_history > 0 else formatted

    @staticmethod
    def _summarize_context(context: Any) -> Any:
        # Drop embedded rows; keep the chart shape and a row count.
        if isinstance(context, Mapping) and isinstance(context.get("data"), list):
            summary = {key: value for key, value in context.items() if key != "data"}
            summary["rowCount"] = len(context["data"])
            return summary
        return context if context is not None else {}
