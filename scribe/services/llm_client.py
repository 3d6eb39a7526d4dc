"""Thin Bedrock client wrapper for text-generation calls.

The model is chosen once: ``resolve_text_generator`` walks the configured
candidate model ids, keeps the first one that answers a probe and memoises
the resulting client. Request paths only ever see that single handle (or
``None`` when no backend is usable).
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from scribe.config.settings import settings
from scribe.services.aws import create_boto3_client

logger = logging.getLogger(__name__)

_PROBE_PROMPT = "Reply with the single word: ready"


class LlmInvocationError(RuntimeError):
    """Raised when the Bedrock invocation fails."""


class LlmTimeoutError(LlmInvocationError):
    """Raised when the Bedrock invocation exceeds its timeout."""


def _decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except (binascii.Error, ValueError):
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


class BedrockLlmClient:
    """Invoke one Amazon Bedrock model with standard configuration."""

    def __init__(self, model_id: str, client: object | None = None) -> None:
        self.model_id = model_id
        if client is not None:
            self._client = client
            return

        key_pair = None
        if settings.bedrock.api_key:
            key_pair = _decode_bedrock_api_key(settings.bedrock.api_key.get_secret_value())
        self._client = create_boto3_client(
            "bedrock-runtime",
            region_name=settings.bedrock.region,
            key_pair=key_pair,
            read_timeout=settings.bedrock.timeout_seconds,
        )

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Run a Bedrock `converse` call and return the aggregate text output."""

        inference_cfg = {
            "maxTokens": max_tokens or settings.bedrock.max_tokens,
            "temperature": (
                temperature
                if temperature is not None
                else settings.bedrock.temperature
            ),
            "topP": top_p if top_p is not None else settings.bedrock.top_p,
        }

        def _call() -> str:
            response = self._client.converse(
                modelId=self.model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        limit = timeout if timeout is not None else settings.bedrock.timeout_seconds
        try:
            result = await asyncio.wait_for(run_in_threadpool(_call), timeout=limit)
        except asyncio.TimeoutError as exc:
            raise LlmTimeoutError(
                f"Bedrock call to {self.model_id} exceeded {limit:.1f}s"
            ) from exc
        except (BotoCoreError, ClientError) as exc:
            raise LlmInvocationError(f"Bedrock call to {self.model_id} failed: {exc}") from exc

        return result or None


async def select_model(
    candidates: Sequence[str],
    *,
    client: object | None = None,
) -> BedrockLlmClient | None:
    """Return a client bound to the first candidate model that answers a probe."""

    for model_id in candidates:
        try:
            llm = BedrockLlmClient(model_id, client=client)
            await llm.invoke(
                system_prompt="You are a health check.",
                user_prompt=_PROBE_PROMPT,
                max_tokens=5,
            )
        except (LlmInvocationError, BotoCoreError, ClientError) as exc:
            logger.info("Bedrock model %s unavailable: %s", model_id, exc)
            continue
        logger.info("Bedrock text generation bound to model %s", model_id)
        return llm

    logger.warning("No Bedrock model answered; generative stages use fallbacks")
    return None


_resolved: BedrockLlmClient | None = None
_resolved_done = False
_resolve_lock: asyncio.Lock | None = None


async def resolve_text_generator() -> BedrockLlmClient | None:
    """Memoised model selection; ``None`` when Bedrock is disabled or unreachable."""

    global _resolved, _resolved_done, _resolve_lock

    if _resolved_done:
        return _resolved
    if not settings.bedrock.enabled:
        _resolved_done = True
        return None

    if _resolve_lock is None:
        _resolve_lock = asyncio.Lock()
    async with _resolve_lock:
        if not _resolved_done:
            _resolved = await select_model(settings.bedrock.model_candidates)
            _resolved_done = True
    return _resolved


def reset_text_generator() -> None:
    """Forget the memoised selection (used on shutdown and in tests)."""

    global _resolved, _resolved_done, _resolve_lock
    _resolved = None
    _resolved_done = False
    _resolve_lock = None


__all__ = [
    "BedrockLlmClient",
    "LlmInvocationError",
    "LlmTimeoutError",
    "reset_text_generator",
    "resolve_text_generator",
    "select_model",
]
