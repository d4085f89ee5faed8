from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

from devstream.offline import (
    FALLBACK_SUMMARY,
    OfflineSummarizer,
    extractive_summary,
    target_sentence_count,
)

UNIQUE = [
    "Alpha bravo charlie delta echo foxtrot golf.",
    "Hotel india juliet kilo lima mike november.",
    "Oscar papa quebec romeo sierra tango uniform.",
    "Victor whiskey xray yankee zulu amber basalt.",
    "Copper dune ember fjord glacier harbor island.",
    "Jasper kettle lantern meadow nectar orchid pebble.",
]
S1 = "Cache latency requests shape cache latency requests first."
S4 = "Cache latency requests shape cache latency requests second."
S7 = "Cache latency requests shape cache latency requests third."
S9 = "Cache latency requests shape cache latency requests cache latency requests."

# 十个句子，S9 得分最高但位于最后
SENTENCES = [
    UNIQUE[0], S1, UNIQUE[1], UNIQUE[2], S4, UNIQUE[3], UNIQUE[4], S7, UNIQUE[5], S9,
]
TEXT = " ".join(SENTENCES)


def test_target_sentence_count_is_clamped():
    assert target_sentence_count(1) == 3
    assert target_sentence_count(10) == 4
    assert target_sentence_count(14) == 5
    assert target_sentence_count(40) == 6


def test_extractive_selects_salient_sentences_in_document_order():
    summary = extractive_summary(TEXT)
    chosen = summary.split("\n\n")

    assert 3 <= len(chosen) <= 6
    assert chosen == [S1, S4, S7, S9]
    indices = [SENTENCES.index(s) for s in chosen]
    assert indices == sorted(indices)


def test_extractive_is_deterministic():
    assert extractive_summary(TEXT) == extractive_summary(TEXT)


def test_extractive_normalizes_whitespace():
    spaced = "\n\n".join(SENTENCES).replace(" ", "   ")
    assert extractive_summary(spaced) == extractive_summary(TEXT)


def test_extractive_returns_all_when_fewer_than_minimum():
    text = "This sentence is comfortably longer than thirty characters. So is this second one, by a wide margin."
    summary = extractive_summary(text)
    assert summary.split("\n\n") == [
        "This sentence is comfortably longer than thirty characters.",
        "So is this second one, by a wide margin.",
    ]


def test_extractive_without_long_sentences_returns_prefix():
    text = "Short one. Tiny! Ok? " * 60
    summary = extractive_summary(text)
    assert len(summary) == 520
    assert summary.startswith("Short one. Tiny! Ok?")


def test_extractive_empty_text():
    assert extractive_summary("") == FALLBACK_SUMMARY
    assert extractive_summary("   \n ") == FALLBACK_SUMMARY


def test_empty_input_returns_fallback():
    summarizer = OfflineSummarizer()
    assert asyncio.run(summarizer.summarize("  ")) == FALLBACK_SUMMARY


def test_disabled_model_uses_extractive():
    summarizer = OfflineSummarizer(enabled=False)
    with patch.object(summarizer, "_create_pipeline") as create:
        result = asyncio.run(summarizer.summarize(TEXT))

    assert result == extractive_summary(TEXT)
    create.assert_not_called()


def test_model_summary_returned():
    pipeline = MagicMock(return_value=[{"summary_text": "  Model summary.  "}])
    summarizer = OfflineSummarizer()
    with patch.object(summarizer, "_create_pipeline", return_value=pipeline):
        result = asyncio.run(summarizer.summarize(TEXT))

    assert result == "Model summary."
    kwargs = pipeline.call_args.kwargs
    assert kwargs["min_length"] == 100
    assert kwargs["max_length"] == 200


def test_empty_model_output_is_soft_failure():
    pipeline = MagicMock(return_value=[{"summary_text": "   "}])
    summarizer = OfflineSummarizer()
    with patch.object(summarizer, "_create_pipeline", return_value=pipeline) as create:
        first = asyncio.run(summarizer.summarize(TEXT))
        second = asyncio.run(summarizer.summarize(TEXT))

    assert first == second == extractive_summary(TEXT)
    assert summarizer.model_unavailable is False
    create.assert_called_once()
    assert pipeline.call_count == 2


def test_load_failure_is_permanent(tmp_path):
    cache_dir = tmp_path / "models"
    cache_dir.mkdir()
    (cache_dir / "weights.bin").write_bytes(b"\x00")

    summarizer = OfflineSummarizer(cache_dir=cache_dir)
    with patch.object(summarizer, "_create_pipeline", side_effect=OSError("no model")) as create:
        first = asyncio.run(summarizer.summarize(TEXT))
        second = asyncio.run(summarizer.summarize(TEXT))

    assert first == second == extractive_summary(TEXT)
    assert summarizer.model_unavailable is True
    create.assert_called_once()
    assert not cache_dir.exists()


def test_invocation_failure_is_permanent():
    pipeline = MagicMock(side_effect=RuntimeError("inference crashed"))
    summarizer = OfflineSummarizer()
    with patch.object(summarizer, "_create_pipeline", return_value=pipeline):
        result = asyncio.run(summarizer.summarize(TEXT))
        asyncio.run(summarizer.summarize(TEXT))

    assert result == extractive_summary(TEXT)
    assert summarizer.model_unavailable is True
    pipeline.assert_called_once()


def test_concurrent_calls_share_initialization():
    pipeline = MagicMock(return_value=[{"summary_text": "Shared."}])
    summarizer = OfflineSummarizer()

    async def run_all():
        return await asyncio.gather(*(summarizer.summarize(TEXT) for _ in range(4)))

    with patch.object(summarizer, "_create_pipeline", return_value=pipeline) as create:
        results = asyncio.run(run_all())

    assert results == ["Shared."] * 4
    create.assert_called_once()
