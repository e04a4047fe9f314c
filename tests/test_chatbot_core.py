import asyncio
import json

import pytest

from askdata.assistant.chart_spec import BarChartSpec, DonutChartSpec, LineChartSpec
from askdata.assistant.chatbot_core import ConversationOrchestrator, parse_json_response
from askdata.assistant.errors import LLMProviderError, UnparseableModelReply


def _reply(message, query=None, visualization=None):
    return json.dumps({"message": message, "query": query, "visualization": visualization})


def _question(text):
    return [{"role": "user", "content": text}]


def test_parse_json_response_handles_fences_and_prose():
    fenced = "```json\n{\"message\": \"hi\"}\n```"
    prose = 'Sure! Here you go: {"message": "a {nested} brace", "query": null} Thanks.'

    assert parse_json_response(fenced) == {"message": "hi"}
    assert parse_json_response(prose) == {"message": "a {nested} brace", "query": None}
    assert parse_json_response("just words") is None
    assert parse_json_response("") is None


def test_chat_uses_conversation_options_and_schema(sqlite_metadata, stub_provider):
    provider = stub_provider([_reply("Top segments", "SELECT * FROM segments")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    reply = asyncio.run(orchestrator.chat(_question("Top segments?"), "analytics"))

    assert reply.message == "Top segments"
    assert reply.query == "SELECT * FROM segments"
    assert reply.usage == {"total_tokens": 42}
    call = provider.calls[0]
    assert (call["temperature"], call["max_tokens"]) == (0.7, 2000)
    system = call["messages"][0]
    assert system["role"] == "system"
    assert "sqlite database" in system["content"]
    assert "daily_signups" in system["content"]
    assert call["messages"][1:] == _question("Top segments?")


def test_chat_wraps_plain_text_reply(sqlite_metadata, stub_provider):
    provider = stub_provider(["I can only answer questions about your data."])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    reply = asyncio.run(orchestrator.chat(_question("Hello"), "analytics"))

    assert reply.message == "I can only answer questions about your data."
    assert reply.query is None
    assert reply.visualization is None


def test_chat_drops_blank_query_and_malformed_history(sqlite_metadata, stub_provider):
    provider = stub_provider([_reply("No query needed", "   ")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)
    history = [
        {"role": "user", "content": "first", "id": 1},
        {"role": "tool", "content": "ignored"},
        "not a message",
        {"role": "assistant", "content": None},
        {"role": "user", "content": "second"},
    ]

    reply = asyncio.run(orchestrator.chat(history, "analytics"))

    assert reply.query is None
    assert provider.calls[0]["messages"][1:] == [
        {"role": "user", "content": "first"},
        {"role": "user", "content": "second"},
    ]


def test_chat_summarizes_previous_chart_context(sqlite_metadata, stub_provider):
    provider = stub_provider([_reply("ok")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)
    context = {"type": "bar", "xKey": "segment", "data": [{"segment": "SECRET-ROW"}] * 3}

    asyncio.run(orchestrator.chat(_question("and now?"), "analytics", context))

    system = provider.calls[0]["messages"][0]["content"]
    assert '"rowCount": 3' in system
    assert "SECRET-ROW" not in system


def test_suggest_visualization_uses_visualization_options(stub_provider, sqlite_metadata):
    provider = stub_provider(['{"type": "pie", "nameKey": "segment", "valueKey": "revenue"}'])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)
    data = [{"segment": "A", "revenue": 1}]

    hint = asyncio.run(orchestrator.suggest_visualization(data, "SELECT ..."))

    assert hint.type == "donut"
    call = provider.calls[0]
    assert (call["temperature"], call["max_tokens"]) == (0.3, 1000)
    assert call["messages"][0]["content"] == "You are a data visualization expert. Always return valid JSON."
    assert "Total rows: 1" in call["messages"][1]["content"]


def test_suggest_visualization_rejects_non_json(stub_provider, sqlite_metadata):
    orchestrator = ConversationOrchestrator(stub_provider(["a bar chart"]), sqlite_metadata)

    with pytest.raises(UnparseableModelReply) as excinfo:
        asyncio.run(orchestrator.suggest_visualization([{"a": 1}]))

    assert excinfo.value.raw_content == "a bar chart"


@pytest.mark.parametrize("reply", ["not json at all", LLMProviderError("gateway down")])
def test_visualize_falls_back_when_no_hint_is_available(stub_provider, sqlite_metadata, reply):
    orchestrator = ConversationOrchestrator(stub_provider([reply]), sqlite_metadata)
    data = [
        {"segment": "Enterprise", "revenue": 5200.5},
        {"segment": "SMB", "revenue": 3100},
    ]

    chart = asyncio.run(orchestrator.visualize(data, "SELECT segment, revenue FROM segments"))

    assert isinstance(chart, DonutChartSpec)
    assert (chart.name_key, chart.value_key) == ("segment", "revenue")
    assert chart.title == "Distribution Analysis"


def test_visualize_skips_model_for_empty_data(stub_provider, sqlite_metadata):
    provider = stub_provider([])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    assert asyncio.run(orchestrator.visualize([])) is None
    assert provider.calls == []


def test_answer_runs_query_and_builds_chart(stub_provider, sqlite_metadata):
    provider = stub_provider(
        [
            _reply(
                "Revenue by segment",
                "SELECT segment, revenue FROM segments ORDER BY revenue DESC",
                "bar",
            ),
            '{"type": "bar", "title": "Revenue", "xKey": "segment", "yKeys": ["revenue"]}',
        ]
    )
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    result = asyncio.run(orchestrator.answer(_question("Revenue by segment?"), "analytics"))

    assert result.message == "Revenue by segment"
    assert result.data[0] == {"segment": "Enterprise", "revenue": 5200.5}
    assert len(result.data) == 5
    assert isinstance(result.chart, BarChartSpec)
    assert result.chart.data == result.data
    assert result.notice is None

    payload = result.to_payload()
    assert payload["response"] == "Revenue by segment"
    assert payload["chart"]["xKey"] == "segment"
    assert payload["chart"]["bars"][0]["key"] == "revenue"


def test_answer_uses_fallback_for_time_series(stub_provider, sqlite_metadata):
    provider = stub_provider(
        [_reply("Signups per day", "SELECT day, signups FROM daily_signups ORDER BY day"), "???"]
    )
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    result = asyncio.run(orchestrator.answer(_question("Daily signups"), "analytics"))

    assert isinstance(result.chart, LineChartSpec)
    assert result.chart.x_key == "day"
    assert [line.key for line in result.chart.lines] == ["signups"]
    assert len(result.chart.data) == 30


def test_answer_reports_failing_query(stub_provider, sqlite_metadata):
    provider = stub_provider([_reply("Here you go", "SELECT * FROM missing_table")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    result = asyncio.run(orchestrator.answer(_question("?"), "analytics"))

    assert result.message == "Here you go"
    assert result.query == "SELECT * FROM missing_table"
    assert result.data is None
    assert result.chart is None
    assert result.notice.startswith("I generated a query but encountered an error:")
    assert len(provider.calls) == 1


def test_answer_reports_empty_result(stub_provider, sqlite_metadata):
    provider = stub_provider([_reply("Nothing matched", "SELECT * FROM segments WHERE 1 = 0")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    result = asyncio.run(orchestrator.answer(_question("?"), "analytics"))

    assert result.data == []
    assert result.chart is None
    assert result.notice == "The query returned no data to visualize."


def test_answer_without_query_only_returns_message(stub_provider, sqlite_metadata):
    provider = stub_provider([_reply("")])
    orchestrator = ConversationOrchestrator(provider, sqlite_metadata)

    result = asyncio.run(orchestrator.answer(_question("thanks"), "analytics"))

    assert result.message == "I processed your request."
    assert result.query is None
    assert result.data is None


def test_answer_propagates_chat_failure(stub_provider, sqlite_metadata):
    orchestrator = ConversationOrchestrator(
        stub_provider([LLMProviderError("upstream 500")]), sqlite_metadata
    )

    with pytest.raises(LLMProviderError):
        asyncio.run(orchestrator.answer(_question("?"), "analytics"))
