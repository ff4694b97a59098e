"""
Tool-calling orchestration loop.

Sends the conversation plus tool definitions to the model, executes the
tool calls it requests, feeds the results back as tool messages, and
repeats until the model answers in plain text or the iteration cap is hit.
"""
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union
)

from .constants import Defaults
from .errors import JiraAPIError
from .models import ChatMessage, ModelResponse, ToolCall
from .resolver import NameResolutionError
from .tools import TOOL_DEFINITIONS, ToolName
from .validation import ValidationError

logger = logging.getLogger(__name__)

CompleteFn = Callable[[Sequence[ChatMessage], Sequence[Dict[str, Any]]], Awaitable[ModelResponse]]
StreamFn = Callable[[Sequence[ChatMessage]], AsyncIterator[str]]
PromptSource = Union[str, Callable[[], Awaitable[str]]]

# Errors a tool may raise that the model can recover from by changing its call
RECOVERABLE_TOOL_ERRORS = (ValidationError, NameResolutionError, JiraAPIError)

CONVERSATION_ROLES = ('user', 'assistant')


@dataclass
class ToolResponse:
    """One executed tool call and what it produced"""
    tool: str
    arguments: Union[Dict[str, Any], str]
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'tool': self.tool, 'arguments': self.arguments, 'result': self.result}
        if self.error is not None:
            data['error'] = self.error
        return data


@dataclass
class OrchestrationResult:
    """Outcome of one orchestration run"""
    answer: str
    complete: bool = True
    iterations: int = 0
    tool_responses: List[ToolResponse] = field(default_factory=list)
    structured_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'answer': self.answer,
            'complete': self.complete,
            'iterations': self.iterations,
            'tool_responses': [r.to_dict() for r in self.tool_responses],
            'structured_data': self.structured_data,
        }


@dataclass
class StreamEvent:
    """
    Progress event emitted while a run is in flight.

    type is one of: tool_call, tool_result, structured_data, chunk, error, done.
    """
    type: str
    content: Optional[str] = None
    tool: Optional[str] = None
    arguments: Union[Dict[str, Any], str, None] = None
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


def trim_history(history: Sequence[ChatMessage], context_window: int) -> List[ChatMessage]:
    """
    Keep the last `context_window` user/assistant exchanges plus the current message.

    The last message of `history` is the current user message. Messages with
    other roles in the prior history are dropped.
    """
    if not history:
        return []

    *prior, current = history
    prior = [m for m in prior if m.role in CONVERSATION_ROLES]
    keep = context_window * 2
    recent = prior[-keep:] if keep > 0 else []
    return recent + [current]


def history_from_dicts(messages: Sequence[Dict[str, Any]]) -> List[ChatMessage]:
    """Build ChatMessages from {role, content} mappings."""
    return [
        ChatMessage(role=str(m.get('role', 'user')), content=str(m.get('content') or ""))
        for m in messages
    ]


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _error_message(error: Exception) -> str:
    message = str(error)
    # Backend errors carry the response body; the model needs it to self-correct
    if isinstance(error, JiraAPIError) and isinstance(error.details, str) and error.details:
        message = f"{message} {error.details[:500]}"
    return message


class Orchestrator:
    """
    Drives the model through tool calls to a final answer.

    Example:
        orchestrator = Orchestrator(llm.complete, executor, system_prompt=prompt, stream=llm.stream)
        result = await orchestrator.run([ChatMessage('user', 'What is in the current sprint?')])
    """

    def __init__(
        self,
        complete: CompleteFn,
        executor: Any,
        system_prompt: Optional[PromptSource] = None,
        tools: Sequence[Dict[str, Any]] = TOOL_DEFINITIONS,
        max_iterations: int = Defaults.MAX_TOOL_ITERATIONS,
        context_window: int = Defaults.CONTEXT_WINDOW,
        stream: Optional[StreamFn] = None
    ):
        """
        Args:
            complete: One completion round with tools attached
            executor: Object with an async execute(ToolCall) method
            system_prompt: Prompt text, or an async callable rendering it per run
            tools: Tool definitions sent with every round
            max_iterations: Cap on completion rounds
            context_window: Prior user/assistant exchanges kept per run
            stream: Optional token-streaming capability for the final answer
        """
        self.complete = complete
        self.executor = executor
        self.system_prompt = system_prompt
        self.tools = list(tools)
        self.max_iterations = max_iterations
        self.context_window = context_window
        self.stream_tokens = stream

    async def _initial_messages(self, history: Sequence[ChatMessage]) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        if self.system_prompt is not None:
            prompt = self.system_prompt
            if callable(prompt):
                prompt = await prompt()
            messages.append(ChatMessage(role='system', content=prompt))
        messages.extend(trim_history(history, self.context_window))
        return messages

    async def _execute_tool(self, call: ToolCall) -> ToolResponse:
        """
        Run one tool call, turning recoverable failures into error results.

        ConfigurationError and anything unexpected propagate.
        """
        try:
            result = await self.executor.execute(call)
        except RECOVERABLE_TOOL_ERRORS as e:
            message = _error_message(e)
            logger.warning(f"Tool {call.name} failed: {message}")
            return ToolResponse(call.name, call.arguments, {"error": message}, error=message)
        return ToolResponse(call.name, call.arguments, result)

    async def _events(
        self,
        history: Sequence[ChatMessage],
        stream_answer: bool
    ) -> AsyncIterator[StreamEvent]:
        messages = await self._initial_messages(history)
        call_counter = 0

        for iteration in range(1, self.max_iterations + 1):
            response = await self.complete(messages, self.tools)

            if not response.tool_calls:
                logger.info(f"Final answer after {iteration} iteration(s)")
                if stream_answer and self.stream_tokens is not None:
                    async for token in self.stream_tokens(messages):
                        yield StreamEvent('chunk', content=token)
                elif response.content:
                    yield StreamEvent('chunk', content=response.content)
                yield StreamEvent('done', data={'complete': True, 'iterations': iteration})
                return

            calls = []
            for call in response.tool_calls:
                if not call.id:
                    call = dataclasses.replace(call, id=f"call_{call_counter}")
                call_counter += 1
                calls.append(call)

            messages.append(ChatMessage(
                role='assistant', content=response.content or "", tool_calls=calls
            ))

            for call in calls:
                yield StreamEvent('tool_call', tool=call.name, arguments=call.arguments)
                tool_response = await self._execute_tool(call)
                yield StreamEvent('tool_result', tool=call.name, data=tool_response)

                messages.append(ChatMessage(
                    role='tool',
                    content=_to_json(tool_response.result),
                    tool_call_id=call.id,
                    name=call.name,
                ))

                if call.name == ToolName.GET_SPRINT_ISSUES.value and tool_response.error is None:
                    yield StreamEvent('structured_data', tool=call.name, data=tool_response.result)

        logger.warning(f"Reached the tool iteration cap ({self.max_iterations}) without a final answer")
        yield StreamEvent(
            'chunk',
            content=(
                f"I could not finish answering within {self.max_iterations} tool steps. "
                "Please try a more specific question."
            )
        )
        yield StreamEvent('done', data={'complete': False, 'iterations': self.max_iterations})

    async def run(self, history: Sequence[ChatMessage]) -> OrchestrationResult:
        """
        Run the loop to completion.

        Args:
            history: Prior conversation, ending with the current user message

        Returns:
            OrchestrationResult (complete=False when the iteration cap is hit)

        Raises:
            ConfigurationError: Board id missing while executing a tool
            LLMError: Model transport failure
        """
        chunks: List[str] = []
        tool_responses: List[ToolResponse] = []
        structured_data = None
        complete = True
        iterations = 0

        async for event in self._events(history, stream_answer=False):
            if event.type == 'chunk':
                chunks.append(event.content or "")
            elif event.type == 'tool_result':
                tool_responses.append(event.data)
            elif event.type == 'structured_data':
                structured_data = event.data
            elif event.type == 'done':
                complete = event.data['complete']
                iterations = event.data['iterations']

        return OrchestrationResult(
            answer="".join(chunks),
            complete=complete,
            iterations=iterations,
            tool_responses=tool_responses,
            structured_data=structured_data,
        )

    async def stream(self, history: Sequence[ChatMessage]) -> AsyncIterator[StreamEvent]:
        """
        Run the loop, yielding progress events as they happen.

        Failures that end the run are reported as a final error event.
        """
        try:
            async for event in self._events(history, stream_answer=True):
                if event.type == 'tool_result':
                    yield StreamEvent('tool_result', tool=event.tool, data=event.data.to_dict())
                else:
                    yield event
        except Exception as e:
            logger.error(f"Orchestration failed: {e}", exc_info=True)
            yield StreamEvent('error', content=str(e))
