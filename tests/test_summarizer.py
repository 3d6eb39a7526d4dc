from __future__ import annotations

import asyncio

from scribe.services.summarizer import (
    SummarizationAdapter,
    analyze_transcript,
    build_structural_summary,
    build_text_summary,
    format_clock,
)

from conftest import FailingGenerator, StaticGenerator, no_generator, provider_for


class SlowGenerator:
    async def invoke(self, **kwargs):
        await asyncio.sleep(1)
        return "too late"


def test_analyze_transcript_counts_speakers_and_stamps():
    stats = analyze_transcript(
        "[00:00] Speaker A: hello\n[00:03] Speaker B: we decide now\n[00:06] Speaker A: todo list"
    )

    assert stats.line_count == 3
    assert stats.speakers == ("Speaker A", "Speaker B")
    assert stats.timestamps == ("00:00", "00:03", "00:06")
    assert stats.has_decisions
    assert stats.has_action_items


def test_structural_summary_reports_span_and_participants():
    summary = build_structural_summary("[00:00] Speaker A: hi\n[01:30] Speaker B: bye")

    assert "Duration: 00:00 - 01:30" in summary
    assert "2 speaker(s): Speaker A, Speaker B" in summary
    assert "No explicit decisions identified" in summary


def test_text_summary_previews_long_text():
    summary = build_text_summary("word " * 100)

    assert summary.startswith("Content Summary")
    assert "100 word(s)" in summary
    assert summary.rstrip().endswith("...")


def test_format_clock():
    assert format_clock(0) == "00:00"
    assert format_clock(75) == "01:15"
    assert format_clock(-3) == "00:00"


def test_unavailable_generator_falls_back():
    adapter = SummarizationAdapter(no_generator)

    summary = asyncio.run(adapter.summarize_transcript("[00:00] hello"))

    assert summary == build_structural_summary("[00:00] hello")


def test_failing_and_unavailable_generators_share_the_fallback():
    text = "[00:00] Speaker A: we agree"
    failing = asyncio.run(SummarizationAdapter(provider_for(FailingGenerator())).summarize_transcript(text))
    missing = asyncio.run(SummarizationAdapter(no_generator).summarize_transcript(text))

    assert failing == missing


def test_slow_generator_times_out_into_fallback():
    adapter = SummarizationAdapter(provider_for(SlowGenerator()), timeout_seconds=0.01)

    summary = asyncio.run(adapter.summarize("Plain words here."))

    assert summary == build_text_summary("Plain words here.")


def test_blank_reply_is_treated_as_failure():
    adapter = SummarizationAdapter(provider_for(StaticGenerator("   ")))

    assert asyncio.run(adapter.summarize_transcript("x")) == build_structural_summary("x")
    assert asyncio.run(adapter.format_transcript(["x"], chunk_count=1, duration=3)) is None


def test_generator_input_is_truncated_but_fallback_sees_everything():
    generator = StaticGenerator(None)
    adapter = SummarizationAdapter(provider_for(generator), max_input_chars=100)
    text = "decision " * 50

    summary = asyncio.run(adapter.summarize_transcript(text))

    assert len(generator.prompts[0]) == 100
    assert "50 word(s)" in summary


def test_enhancement_returns_fragment_unchanged_on_failure():
    adapter = SummarizationAdapter(provider_for(FailingGenerator()))

    result = asyncio.run(adapter.enhance_fragment(["a", "b"], "c", timeout=0.5))

    assert result == "c"


def test_format_transcript_without_fragments_skips_generation():
    generator = StaticGenerator("formatted")
    adapter = SummarizationAdapter(provider_for(generator))

    assert asyncio.run(adapter.format_transcript(["", " "], chunk_count=2, duration=6)) is None
    assert generator.prompts == []
