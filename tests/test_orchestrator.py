"""
Unit tests for orchestrator module.

Tests the tool-calling loop with a scripted model: tool execution order,
error routing, the iteration cap, history trimming and the event stream.
"""

import json
import pytest
from unittest.mock import AsyncMock, Mock
from jira_assistant.config import Settings
from jira_assistant.errors import ConfigurationError, IssueNotFoundError, LLMError
from jira_assistant.executor import ToolExecutor
from jira_assistant.models import ChatMessage, ModelResponse, ToolCall
from jira_assistant.orchestrator import (
    Orchestrator,
    OrchestrationResult,
    StreamEvent,
    ToolResponse,
    trim_history,
    history_from_dicts
)
from jira_assistant.resolver import AmbiguousNameError
from jira_assistant.models import Member
from jira_assistant.tools import TOOL_DEFINITIONS
from jira_assistant.validation import InvalidSprintIdsError


class ScriptedModel:
    """Returns canned responses in order and records what it was sent."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, messages, tools):
        self.calls.append((list(messages), list(tools)))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def user(text):
    return [ChatMessage(role='user', content=text)]


ISSUES_RESULT = {'total_issues': 2, 'total_story_points': 5, 'sprints': {}}


class TestRun:
    """Test Orchestrator.run."""

    @pytest.mark.asyncio
    async def test_direct_answer(self):
        """Test a response without tool calls ends the loop."""
        model = ScriptedModel([ModelResponse(content="Hello!")])
        executor = AsyncMock()

        result = await Orchestrator(model, executor).run(user("hi"))

        assert result == OrchestrationResult(answer="Hello!", complete=True, iterations=1)
        executor.execute.assert_not_called()
        assert model.calls[0][1] == TOOL_DEFINITIONS

    @pytest.mark.asyncio
    async def test_tool_round_trip(self):
        """Test tool results are appended as tool messages before the next round."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("get_sprint_issues", {'sprint_ids': [9887]})]),
            ModelResponse(content="There are 2 issues."),
        ])
        executor = AsyncMock()
        executor.execute.return_value = ISSUES_RESULT

        result = await Orchestrator(model, executor, system_prompt="SYSTEM").run(user("how many?"))

        assert result.answer == "There are 2 issues."
        assert result.iterations == 2
        assert result.structured_data == ISSUES_RESULT
        assert [r.to_dict() for r in result.tool_responses] == [
            {'tool': "get_sprint_issues", 'arguments': {'sprint_ids': [9887]}, 'result': ISSUES_RESULT}
        ]

        second_round = model.calls[1][0]
        assert [m.role for m in second_round] == ['system', 'user', 'assistant', 'tool']
        assert second_round[0].content == "SYSTEM"
        assistant, tool = second_round[2], second_round[3]
        assert assistant.tool_calls[0].id == "call_0"
        assert tool.tool_call_id == "call_0"
        assert tool.name == "get_sprint_issues"
        assert json.loads(tool.content) == ISSUES_RESULT

    @pytest.mark.asyncio
    async def test_tool_calls_run_in_order(self):
        """Test several calls in one response run in the returned order."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[
                ToolCall("prepare_search", {'names': ["John"]}, id="a"),
                ToolCall("get_issue", {'issue_key': "ODPP-1"}, id="b"),
            ]),
            ModelResponse(content="done"),
        ])
        executor = AsyncMock()
        executor.execute.side_effect = [{'people': []}, {'key': "ODPP-1"}]

        result = await Orchestrator(model, executor).run(user("q"))

        called = [c.args[0].name for c in executor.execute.call_args_list]
        assert called == ["prepare_search", "get_issue"]
        tool_ids = [m.tool_call_id for m in model.calls[1][0] if m.role == 'tool']
        assert tool_ids == ["a", "b"]
        assert result.structured_data is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        InvalidSprintIdsError([42]),
        AmbiguousNameError("Daniel", [Member("Daniel Lima", "d1@x"), Member("Daniel Souza", "d2@x")]),
        IssueNotFoundError(issue_key="ODPP-404", details="Issue does not exist"),
    ])
    async def test_recoverable_errors_become_tool_results(self, error):
        """Test validation, resolution and backend errors are fed back to the model."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("get_issue", {'issue_key': "ODPP-404"})]),
            ModelResponse(content="Sorry."),
        ])
        executor = AsyncMock()
        executor.execute.side_effect = error

        result = await Orchestrator(model, executor).run(user("q"))

        assert result.answer == "Sorry."
        response = result.tool_responses[0]
        assert response.error is not None
        assert str(error) in response.error
        tool_message = [m for m in model.calls[1][0] if m.role == 'tool'][0]
        assert json.loads(tool_message.content) == {'error': response.error}

    @pytest.mark.asyncio
    async def test_malformed_arguments_reported_to_model(self):
        """Test argument text that is not JSON comes back as a tool error."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("prepare_search", '{"names": ["John"')]),
            ModelResponse(content="Let me retry."),
        ])
        client = AsyncMock()
        executor = ToolExecutor(client, Mock(), Settings(board_id=10))

        result = await Orchestrator(model, executor).run(user("Who is John?"))

        assert "not valid JSON" in result.tool_responses[0].error
        client.get_board_info.assert_not_called()
        tool_message = [m for m in model.calls[1][0] if m.role == 'tool'][0]
        assert "Arguments for prepare_search are not valid JSON" in json.loads(tool_message.content)['error']

    @pytest.mark.asyncio
    async def test_backend_error_includes_body(self):
        """Test the backend response body reaches the model."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("get_issue", {'issue_key': "X-1"})]),
            ModelResponse(content="ok"),
        ])
        executor = AsyncMock()
        executor.execute.side_effect = IssueNotFoundError(issue_key="X-1", details="Issue does not exist")

        result = await Orchestrator(model, executor).run(user("q"))
        assert "Issue does not exist" in result.tool_responses[0].error

    @pytest.mark.asyncio
    async def test_configuration_error_aborts(self):
        """Test a missing board id propagates verbatim."""
        model = ScriptedModel([ModelResponse(tool_calls=[ToolCall("prepare_search")])])
        executor = AsyncMock()
        executor.execute.side_effect = ConfigurationError("DEFAULT_BOARD_ID not configured in environment")

        with pytest.raises(ConfigurationError, match="DEFAULT_BOARD_ID not configured in environment"):
            await Orchestrator(model, executor).run(user("q"))

    @pytest.mark.asyncio
    async def test_model_error_propagates(self):
        """Test transport failures propagate."""
        model = AsyncMock(side_effect=LLMError(500, "boom"))
        with pytest.raises(LLMError):
            await Orchestrator(model, AsyncMock()).run(user("q"))

    @pytest.mark.asyncio
    async def test_iteration_cap(self):
        """Test a model that never stops calling tools gets a degraded result."""
        model = ScriptedModel([ModelResponse(tool_calls=[ToolCall("prepare_search")])])
        executor = AsyncMock()
        executor.execute.return_value = {'all_team': True}

        result = await Orchestrator(model, executor, max_iterations=3).run(user("q"))

        assert result.complete is False
        assert result.iterations == 3
        assert "3 tool steps" in result.answer
        assert len(model.calls) == 3
        assert executor.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_call_ids_unique_across_rounds(self):
        """Test generated call ids do not repeat between rounds."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("prepare_search")]),
            ModelResponse(tool_calls=[ToolCall("prepare_search")]),
            ModelResponse(content="done"),
        ])
        executor = AsyncMock()
        executor.execute.return_value = {}

        await Orchestrator(model, executor).run(user("q"))

        ids = [m.tool_call_id for m in model.calls[2][0] if m.role == 'tool']
        assert ids == ["call_0", "call_1"]

    @pytest.mark.asyncio
    async def test_system_prompt_callable(self):
        """Test the system prompt can be rendered per run."""
        model = ScriptedModel([ModelResponse(content="ok")])
        prompt = AsyncMock(return_value="RENDERED")

        await Orchestrator(model, AsyncMock(), system_prompt=prompt).run(user("q"))

        prompt.assert_awaited_once()
        assert model.calls[0][0][0] == ChatMessage(role='system', content="RENDERED")


class TestTrimHistory:
    """Test history window trimming."""

    def test_keeps_last_exchanges_and_current(self):
        """Test only the last N exchanges plus the current message survive."""
        history = []
        for i in range(4):
            history.append(ChatMessage('user', f"q{i}"))
            history.append(ChatMessage('assistant', f"a{i}"))
        history.append(ChatMessage('user', "now"))

        trimmed = trim_history(history, 2)
        assert [m.content for m in trimmed] == ["q2", "a2", "q3", "a3", "now"]

    def test_zero_window(self):
        """Test a zero window keeps only the current message."""
        history = [ChatMessage('user', "old"), ChatMessage('assistant', "x"), ChatMessage('user', "now")]
        assert [m.content for m in trim_history(history, 0)] == ["now"]

    def test_drops_non_conversation_roles(self):
        """Test stray system or tool messages are dropped from prior history."""
        history = [ChatMessage('system', "s"), ChatMessage('user', "q"), ChatMessage('user', "now")]
        assert [m.content for m in trim_history(history, 2)] == ["q", "now"]

    def test_empty(self):
        """Test empty history."""
        assert trim_history([], 2) == []

    @pytest.mark.asyncio
    async def test_window_applied_in_run(self):
        """Test the orchestrator forwards only the window."""
        model = ScriptedModel([ModelResponse(content="ok")])
        history = [ChatMessage('user', "q0"), ChatMessage('assistant', "a0"), ChatMessage('user', "now")]

        await Orchestrator(model, AsyncMock(), context_window=0).run(history)
        assert [m.content for m in model.calls[0][0]] == ["now"]

    def test_history_from_dicts(self):
        """Test conversion from plain mappings."""
        messages = history_from_dicts([{'role': 'assistant', 'content': "hi"}, {'content': None}])
        assert messages == [ChatMessage('assistant', "hi"), ChatMessage('user', "")]


class TestStream:
    """Test Orchestrator.stream."""

    @pytest.mark.asyncio
    async def test_event_sequence(self):
        """Test events for a tool round followed by a completed answer."""
        model = ScriptedModel([
            ModelResponse(tool_calls=[ToolCall("get_sprint_issues", {'sprint_ids': [1]})]),
            ModelResponse(content="Two issues."),
        ])
        executor = AsyncMock()
        executor.execute.return_value = ISSUES_RESULT

        events = [e async for e in Orchestrator(model, executor).stream(user("q"))]

        assert [e.type for e in events] == ['tool_call', 'tool_result', 'structured_data', 'chunk', 'done']
        assert events[0].arguments == {'sprint_ids': [1]}
        assert events[1].data == {
            'tool': "get_sprint_issues", 'arguments': {'sprint_ids': [1]}, 'result': ISSUES_RESULT
        }
        assert events[2].data == ISSUES_RESULT
        assert events[3].content == "Two issues."
        assert events[4].data == {'complete': True, 'iterations': 2}

    @pytest.mark.asyncio
    async def test_streams_final_answer(self):
        """Test the final answer is streamed token by token when streaming is available."""
        model = ScriptedModel([ModelResponse(content="ignored")])

        async def stream_tokens(messages):
            for token in ["Hel", "lo"]:
                yield token

        events = [e async for e in Orchestrator(model, AsyncMock(), stream=stream_tokens).stream(user("q"))]

        assert [e.content for e in events if e.type == 'chunk'] == ["Hel", "lo"]
        assert events[-1].type == 'done'

    @pytest.mark.asyncio
    async def test_error_event(self):
        """Test fatal failures end the stream with an error event."""
        model = ScriptedModel([ModelResponse(tool_calls=[ToolCall("prepare_search")])])
        executor = AsyncMock()
        executor.execute.side_effect = ConfigurationError("DEFAULT_BOARD_ID not configured in environment")

        events = [e async for e in Orchestrator(model, executor).stream(user("q"))]

        assert events[-1] == StreamEvent('error', content="DEFAULT_BOARD_ID not configured in environment")
        assert 'done' not in [e.type for e in events]

    def test_event_to_dict_omits_empty_fields(self):
        """Test serialization drops unset fields."""
        assert StreamEvent('chunk', content="x").to_dict() == {'type': 'chunk', 'content': "x"}


class TestToolResponse:
    """Test ToolResponse serialization."""

    def test_error_only_when_present(self):
        """Test error key appears only on failures."""
        assert 'error' not in ToolResponse("t", {}, {'ok': 1}).to_dict()
        assert ToolResponse("t", {}, {'error': "e"}, error="e").to_dict()['error'] == "e"
