"""Summarization adapter: generative enhancement, formatting and summaries.

Every public coroutine has a deterministic answer when the text generator is
missing, slow or failing. An unconfigured backend and a failing one take the
same path; only the log level and the fallback ``reason`` label differ.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

from scribe.config.settings import settings
from scribe.services.llm_client import (
    LlmInvocationError,
    LlmTimeoutError,
    resolve_text_generator,
)
from scribe.telemetry import record_fallback

logger = logging.getLogger("scribe.pipelines.session")

_SPEAKER_PATTERN = re.compile(r"Speaker [A-Z]\b")
_STAMP_PATTERN = re.compile(r"\[(\d{2,}:\d{2})\]")
_DECISION_KEYWORDS = ("decide", "decision", "agree")
_ACTION_KEYWORDS = ("action", "follow up", "follow-up", "next step", "todo")
_PREVIEW_CHARS = 200


class TextGenerator(Protocol):
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
        ...


GeneratorProvider = Callable[[], Awaitable["TextGenerator | None"]]


_ENHANCE_SYSTEM_PROMPT = (
    "You repair live speech-to-text fragments. Given the recent conversation "
    "and the newest fragment, return the newest fragment corrected so it reads "
    "naturally in context. If it is already clear return it unchanged. Return "
    "only the corrected fragment, without quotes or commentary."
)

_FORMAT_SYSTEM_PROMPT = (
    "You format raw speech-to-text output into a readable transcript. Keep the "
    "speakers' actual words, fix obvious recognition errors, prefix each line "
    "with an [MM:SS] timestamp consistent with the recording duration and label "
    "likely speakers as Speaker A, Speaker B and so on. Return only the transcript."
)

_SUMMARY_SYSTEM_PROMPT = (
    "You summarize meeting transcripts. Base every statement only on the "
    "transcript you are given. Use these sections: Key Points, Decisions Made, "
    "Action Items, Duration, Participants, Meeting Insights."
)

_TEXT_SUMMARY_SYSTEM_PROMPT = (
    "You summarize transcripts extracted from uploaded videos. Base every "
    "statement only on the text you are given. Use these sections: Main Topics, "
    "Key Insights, Action Items, Summary."
)


@dataclass(frozen=True)
class TranscriptStats:
    """Structural facts about a transcript used by the fallback summary."""

    line_count: int
    word_count: int
    speakers: tuple[str, ...]
    timestamps: tuple[str, ...]
    has_decisions: bool
    has_action_items: bool


def truncate_input(text: str, limit: int | None = None) -> str:
    """Cut ``text`` to the configured character budget before a generative call."""

    budget = limit if limit is not None else settings.bedrock.max_input_chars
    if len(text) <= budget:
        return text
    return text[:budget]


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes:02d}:{secs:02d}"


def analyze_transcript(transcript: str) -> TranscriptStats:
    lines = [line for line in transcript.splitlines() if line.strip()]
    speakers: list[str] = []
    timestamps: list[str] = []
    for line in lines:
        for speaker in _SPEAKER_PATTERN.findall(line):
            if speaker not in speakers:
                speakers.append(speaker)
        stamp = _STAMP_PATTERN.search(line)
        if stamp:
            timestamps.append(stamp.group(1))

    lowered = transcript.lower()
    return TranscriptStats(
        line_count=len(lines),
        word_count=len(transcript.split()),
        speakers=tuple(speakers),
        timestamps=tuple(timestamps),
        has_decisions=any(word in lowered for word in _DECISION_KEYWORDS),
        has_action_items=any(word in lowered for word in _ACTION_KEYWORDS),
    )


def build_structural_summary(transcript: str) -> str:
    """Summary built only from transcript statistics; never from text generation."""

    stats = analyze_transcript(transcript)
    if stats.timestamps:
        span = f"{stats.timestamps[0]} - {stats.timestamps[-1]}"
    else:
        span = "Unknown"
    if stats.speakers:
        participants = f"{len(stats.speakers)} speaker(s): {', '.join(stats.speakers)}"
    else:
        participants = "Speakers not identified"

    decisions = (
        "- Decisions were discussed (see transcript for details)"
        if stats.has_decisions
        else "- No explicit decisions identified in the recording"
    )
    actions = (
        "- Follow-up actions mentioned (see transcript for details)"
        if stats.has_action_items
        else "- No specific action items identified in the recording"
    )

    return "\n".join(
        [
            "Meeting Summary",
            "",
            "Key Points:",
            f"- Transcript has {stats.line_count} line(s) and {stats.word_count} word(s)",
            f"- {participants}",
            "",
            "Decisions Made:",
            decisions,
            "",
            "Action Items:",
            actions,
            "",
            f"Duration: {span}",
            f"Participants: {participants}",
        ]
    )


def build_text_summary(text: str) -> str:
    """Fallback summary for free text such as an extracted video transcript."""

    stats = analyze_transcript(text)
    sentences = [part for part in re.split(r"[.!?]+", text) if part.strip()]
    preview = text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")
    return "\n".join(
        [
            "Content Summary",
            "",
            "Content Analysis:",
            f"- {stats.word_count} word(s) in {len(sentences)} sentence(s)",
            f"- Decisions mentioned: {'yes' if stats.has_decisions else 'no'}",
            f"- Action items mentioned: {'yes' if stats.has_action_items else 'no'}",
            "",
            f"Content: {preview}" if preview else "Content: (no speech detected)",
        ]
    )


def build_fallback_transcript(
    fragments: Sequence[tuple[int, str]],
    *,
    chunk_count: int,
    duration: int,
    chunk_interval: int,
) -> str:
    """Concatenation transcript; identical fragments always give identical text.

    ``fragments`` holds ``(sequence, text)`` pairs. Each line is stamped with
    ``(sequence - 1) * chunk_interval`` seconds.
    """

    lines = [
        "Audio Transcript",
        "",
        f"Recording Duration: {duration // 60}:{duration % 60:02d}",
        f"Audio Chunks: {chunk_count}",
        "",
    ]
    body = [
        f"[{format_clock((sequence - 1) * chunk_interval)}] {text.strip()}"
        for sequence, text in fragments
        if text and text.strip()
    ]
    lines.extend(body or ["(no speech captured)"])
    return "\n".join(lines)


class SummarizationAdapter:
    """Generative text capability with deterministic fallbacks."""

    def __init__(
        self,
        generator_provider: GeneratorProvider = resolve_text_generator,
        *,
        max_input_chars: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._provider = generator_provider
        self._max_input_chars = max_input_chars or settings.bedrock.max_input_chars
        self._timeout = timeout_seconds or settings.bedrock.timeout_seconds
        self._resolution: asyncio.Task | None = None

    async def _current_generator(self, stage: str, limit: float) -> tuple[TextGenerator | None, bool]:
        """Generator handle and whether it resolved within ``limit``.

        Resolution runs as its own task and is shielded, so a caller that gives
        up leaves model probing to finish for later calls.
        """

        loop = asyncio.get_running_loop()
        task = self._resolution
        if (
            task is None
            or task.get_loop() is not loop
            or (task.done() and (task.cancelled() or task.exception() is not None))
        ):
            task = self._resolution = loop.create_task(self._provider())
        if not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=limit)
            except asyncio.TimeoutError:
                logger.warning("Text generator still resolving after %.1fs; %s uses fallback", limit, stage)
                return None, False
            except Exception as exc:
                logger.warning("Text generator resolution failed during %s: %s", stage, exc)
                return None, False
        return task.result(), True

    async def _generate(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        *,
        timeout: float | None = None,
    ) -> str | None:
        """Return generated text, or ``None`` after recording why the fallback applies.

        ``timeout`` bounds the whole call, model resolution included.
        """

        limit = timeout or self._timeout
        deadline = asyncio.get_running_loop().time() + limit
        generator, resolved = await self._current_generator(stage, limit)
        if generator is None:
            if resolved:
                logger.debug("No text generator configured; %s uses fallback", stage)
            record_fallback(stage, "unavailable")
            return None
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.001)
        try:
            result = await asyncio.wait_for(
                generator.invoke(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    timeout=remaining,
                ),
                timeout=remaining,
            )
        except (asyncio.TimeoutError, LlmTimeoutError):
            logger.warning("Text generation timed out during %s after %.1fs", stage, limit)
            record_fallback(stage, "timeout")
            return None
        except LlmInvocationError as exc:
            logger.warning("Text generation failed during %s: %s", stage, exc)
            record_fallback(stage, "error")
            return None
        except Exception as exc:
            logger.warning("Unexpected text generation error during %s: %s", stage, exc)
            record_fallback(stage, "error")
            return None

        if not result or not result.strip():
            record_fallback(stage, "empty")
            return None
        return result.strip()

    async def enhance_fragment(
        self,
        context: Sequence[str],
        fragment: str,
        *,
        timeout: float | None = None,
    ) -> str:
        """Disambiguate ``fragment`` using recent fragments; unchanged on any failure."""

        if not fragment.strip():
            return fragment
        user_prompt = truncate_input(
            f"Conversation context: {' '.join(context)}\n\nNewest fragment: {fragment}",
            self._max_input_chars,
        )
        enhanced = await self._generate(
            "enhancement", _ENHANCE_SYSTEM_PROMPT, user_prompt, timeout=timeout
        )
        if enhanced is None:
            return fragment
        return enhanced.replace('"', "").replace("\n", " ").strip() or fragment

    async def format_transcript(
        self,
        fragments: Sequence[str],
        *,
        chunk_count: int,
        duration: int,
    ) -> str | None:
        """Formatted/diarized transcript, or ``None`` when the caller should fall back."""

        joined = " ".join(part for part in fragments if part.strip())
        if not joined:
            return None
        user_prompt = (
            f"Recording duration: {duration} seconds\n"
            f"Audio chunks processed: {chunk_count}\n\n"
            f"Transcribed speech:\n{truncate_input(joined, self._max_input_chars)}"
        )
        formatted = await self._generate("formatting", _FORMAT_SYSTEM_PROMPT, user_prompt)
        if formatted is None:
            return None
        return "\n".join(
            [
                "Audio Transcript",
                "",
                f"Recording Duration: {duration // 60}:{duration % 60:02d}",
                f"Audio Chunks: {chunk_count}",
                "",
                formatted,
            ]
        )

    async def summarize_transcript(self, transcript: str) -> str:
        """Summary of a finalized transcript; structural fallback on failure."""

        summary = await self._generate(
            "summary",
            _SUMMARY_SYSTEM_PROMPT,
            truncate_input(transcript, self._max_input_chars),
        )
        return summary if summary is not None else build_structural_summary(transcript)

    async def summarize(self, text: str) -> str:
        """Summary of free text (uploaded video transcripts)."""

        summary = await self._generate(
            "summary",
            _TEXT_SUMMARY_SYSTEM_PROMPT,
            truncate_input(text, self._max_input_chars),
        )
        return summary if summary is not None else build_text_summary(text)


__all__ = [
    "SummarizationAdapter",
    "TextGenerator",
    "TranscriptStats",
    "analyze_transcript",
    "build_fallback_transcript",
    "build_structural_summary",
    "build_text_summary",
    "format_clock",
    "truncate_input",
]
