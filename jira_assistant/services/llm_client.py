"""
Chat-completions transport
OpenAI-compatible endpoint (Groq by default) with tool calling and token streaming
"""
import json
import logging
from typing import List, Dict, Any, Optional, AsyncIterator, Sequence

import httpx

from ..config import Settings
from ..constants import Defaults
from ..errors import LLMError
from ..log_sanitizer import sanitize_log_message
from ..models import ChatMessage, ModelResponse, ToolCall

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
SSE_DONE = "[DONE]"


def message_to_payload(message: ChatMessage) -> Dict[str, Any]:
    """Serialize a ChatMessage into the chat-completions wire format"""
    payload: Dict[str, Any] = {'role': message.role, 'content': message.content}
    if message.tool_calls:
        payload['tool_calls'] = [
            {
                'id': call.id or f"call_{idx}",
                'type': 'function',
                'function': {
                    'name': call.name,
                    'arguments': (
                        call.arguments if isinstance(call.arguments, str)
                        else json.dumps(call.arguments)
                    ),
                },
            }
            for idx, call in enumerate(message.tool_calls)
        ]
    if message.tool_call_id:
        payload['tool_call_id'] = message.tool_call_id
    if message.name and message.role == 'tool':
        payload['name'] = message.name
    return payload


def parse_completion(data: Dict[str, Any]) -> ModelResponse:
    """Turn a chat-completions response body into a ModelResponse"""
    choices = data.get('choices') or []
    if not choices:
        raise LLMError(None, "Response contained no choices")
    message = choices[0].get('message') or {}

    tool_calls: List[ToolCall] = []
    for raw in message.get('tool_calls') or []:
        function = raw.get('function') or {}
        arguments = function.get('arguments') or "{}"
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError:
                # Kept raw so dispatch can report it back to the model
                logger.warning(f"Unparseable arguments for {function.get('name')}: {arguments[:200]}")
        tool_calls.append(ToolCall(
            name=function.get('name', ''),
            arguments=arguments,
            id=raw.get('id'),
        ))

    return ModelResponse(content=message.get('content') or "", tool_calls=tool_calls)


async def iter_sse_content(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Decode streamed SSE text into content deltas.

    Text arrives in arbitrary pieces. Complete lines are processed as soon
    as they are seen; a trailing partial line is held back until the next
    piece completes it.
    """
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        lines = buffer.split("\n")
        buffer = lines.pop()

        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(SSE_DATA_PREFIX):
                continue
            data = line[len(SSE_DATA_PREFIX):]
            if data.strip() == SSE_DONE:
                return
            try:
                parsed = json.loads(data)
            except json.JSONDecodeError:
                continue
            choices = parsed.get('choices') or [{}]
            content = (choices[0].get('delta') or {}).get('content')
            if content:
                yield content


class ChatCompletionClient:
    """Client for an OpenAI-compatible chat-completions endpoint"""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = Defaults.LLM_API_URL,
        model: str = Defaults.LLM_MODEL,
        max_output_tokens: int = Defaults.MAX_OUTPUT_TOKENS,
        timeout: int = Defaults.HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ChatCompletionClient":
        return cls(
            api_key=settings.llm_api_key,
            api_url=settings.llm_api_url,
            model=settings.llm_model,
            max_output_tokens=settings.max_output_tokens,
            timeout=settings.http_timeout_seconds,
            **kwargs
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy load the HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[Dict[str, Any]]
    ) -> ModelResponse:
        """
        Run one completion round with tool definitions attached

        Args:
            messages: Full conversation, system prompt first
            tools: Tool definitions in chat-completions format

        Returns:
            ModelResponse with content and any requested tool calls

        Raises:
            LLMError: Non-success HTTP status
        """
        body = {
            'model': self.model,
            'messages': [message_to_payload(m) for m in messages],
            'max_tokens': self.max_output_tokens,
        }
        if tools:
            body['tools'] = list(tools)
            body['tool_choice'] = 'auto'

        try:
            response = await self.client.post(self.api_url, headers=self._headers(), json=body)
        except httpx.RequestError as e:
            raise LLMError(None, sanitize_log_message(str(e)))

        if response.status_code >= 400:
            text = sanitize_log_message(response.text)
            logger.error(f"LLM API error: {response.status_code} - {text[:500]}")
            raise LLMError(response.status_code, text)

        result = parse_completion(response.json())
        logger.debug(
            f"Completion returned {len(result.tool_calls)} tool call(s), "
            f"{len(result.content)} chars of content"
        )
        return result

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """
        Stream a plain (tool-less) completion token by token

        Yields:
            Content deltas as they arrive
        """
        body = {
            'model': self.model,
            'messages': [message_to_payload(m) for m in messages],
            'max_tokens': self.max_output_tokens,
            'stream': True,
        }

        try:
            async with self.client.stream(
                "POST", self.api_url, headers=self._headers(), json=body
            ) as response:
                if response.status_code >= 400:
                    text = sanitize_log_message((await response.aread()).decode('utf-8', 'replace'))
                    raise LLMError(response.status_code, text)

                async for content in iter_sse_content(response.aiter_text()):
                    yield content
        except httpx.RequestError as e:
            raise LLMError(None, sanitize_log_message(str(e)))
