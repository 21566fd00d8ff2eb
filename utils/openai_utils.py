import asyncio
import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion, ChatCompletionMessageParam

__all__ = ["safe_chat_completion", "extract_json_object"]

_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


async def safe_chat_completion(
    client: AsyncOpenAI,
    *,
    model: str,
    messages: Iterable[dict[str, Any]],
    logger: logging.Logger | None = None,
    retry_attempts: int = 1,
    retry_backoff: float = 0.5,
    **kwargs,
) -> ChatCompletion:
    """Invoke the OpenAI chat completion endpoint with retries.

    Parameters
    ----------
    client:
        An initialised ``openai.AsyncOpenAI`` client.
    model:
        The model name to call (e.g. ``"gpt-4o-mini"``).
    messages:
        The messages for the chat completion endpoint.
    logger:
        Optional logger for diagnostics; defaults to the module logger.
    retry_attempts:
        Total attempts before giving up.
    retry_backoff:
        Base back-off in seconds; the delay doubles after every failed attempt.
    **kwargs:
        Forwarded to ``client.chat.completions.create``.

    Raises
    ------
    Exception
        The last error once every attempt has failed. Callers bound the total
        wait with their own timeout.
    """
    if client is None:
        raise RuntimeError("OpenAI client is not initialised.")
    if not isinstance(client, AsyncOpenAI):
        raise TypeError("safe_chat_completion requires an AsyncOpenAI client.")

    logger = logger or logging.getLogger(__name__)
    typed_messages: Iterable[ChatCompletionMessageParam] = messages  # type: ignore[assignment]
    last_exc: Exception | None = None
    attempts = max(retry_attempts, 1)

    for attempt in range(1, attempts + 1):
        try:
            started = asyncio.get_running_loop().time()
            completion = await client.chat.completions.create(
                model=model,
                messages=typed_messages,
                **kwargs,
            )
            logger.debug(
                "OpenAI completions.create succeeded | model=%s | latency=%.2fs",
                model,
                asyncio.get_running_loop().time() - started,
            )
            return completion
        except Exception as exc:  # noqa: BLE001
            last_exc = exc
            logger.warning("OpenAI call failed (attempt %s/%s): %s", attempt, attempts, exc)
            if attempt < attempts:
                await asyncio.sleep(retry_backoff * (2 ** (attempt - 1)))

    assert last_exc is not None
    raise last_exc


def extract_json_object(completion: ChatCompletion) -> dict[str, Any]:
    """Return the first JSON object in the completion text.

    Raises ValueError when the reply is empty or holds no parseable object.
    """
    if not completion.choices:
        raise ValueError("Completion has no choices")
    content = completion.choices[0].message.content or ""
    match = _JSON_BLOCK_RE.search(content)
    if not match:
        raise ValueError("No JSON object found in completion content")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("Completion JSON is not an object")
    return parsed
