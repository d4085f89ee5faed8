"""离线摘要模块

优先使用本地 transformers 摘要模型；模型不可用或输出为空时，
退回到基于词频的抽取式摘要（纯函数，结果确定）。

模型状态：未初始化 → 初始化中 → 就绪 | 永久不可用。
一旦进入永久不可用状态，不再尝试加载模型。
"""

import asyncio
import logging
import math
import re
import shutil
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Summary unavailable for this article."

MODEL_MIN_LENGTH = 100
MODEL_MAX_LENGTH = 200

MIN_FALLBACK_SENTENCES = 3
MAX_FALLBACK_SENTENCES = 6
FALLBACK_RATIO = 0.35
MIN_SENTENCE_LENGTH = 30
NO_SENTENCE_PREVIEW_CHARS = 520

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "he", "in", "is",
    "it", "its", "of", "on", "or", "that", "the", "to", "was", "were", "will", "with", "this",
    "these", "those", "their", "there", "about", "into", "than", "then", "them", "they", "you",
    "your", "we", "our", "can", "could", "should", "would", "if", "not", "no", "but",
})

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
WORD_RE = re.compile(r"[a-z0-9][a-z0-9'-]*")


def _words(sentence: str) -> list[str]:
    return [
        word
        for word in WORD_RE.findall(sentence.lower())
        if len(word) >= 3 and word not in STOPWORDS
    ]


def _word_frequency(sentences: list[str]) -> dict[str, int]:
    freq: dict[str, int] = {}
    for sentence in sentences:
        for word in _words(sentence):
            freq[word] = freq.get(word, 0) + 1
    return freq


def _score_sentence(sentence: str, freq: dict[str, int]) -> float:
    words = _words(sentence)
    if not words:
        return 0.0
    return sum(freq.get(word, 0) for word in words) / len(words)


def target_sentence_count(sentence_count: int) -> int:
    """clamp(ceil(0.35 × n), 3, 6)"""
    return min(
        MAX_FALLBACK_SENTENCES,
        max(MIN_FALLBACK_SENTENCES, math.ceil(sentence_count * FALLBACK_RATIO)),
    )


def extractive_summary(text: str) -> str:
    """抽取式摘要

    按词频给句子打分，选出得分最高的若干句，再按原文顺序拼接。
    """
    normalized = re.sub(r"\s+", " ", text or "").strip()
    if not normalized:
        return FALLBACK_SUMMARY

    sentences = [
        s.strip()
        for s in SENTENCE_SPLIT_RE.split(normalized)
        if len(s.strip()) > MIN_SENTENCE_LENGTH
    ]
    if not sentences:
        return normalized[:NO_SENTENCE_PREVIEW_CHARS]

    freq = _word_frequency(sentences)
    scored = [
        (index, sentence, _score_sentence(sentence, freq))
        for index, sentence in enumerate(sentences)
    ]

    # sorted 稳定：同分时保持原文顺序
    top = sorted(scored, key=lambda item: item[2], reverse=True)
    selected = sorted(top[: target_sentence_count(len(sentences))], key=lambda item: item[0])

    summary = "\n\n".join(sentence for _, sentence, _ in selected).strip()
    return summary or FALLBACK_SUMMARY


def _summary_text(result: Any) -> str:
    """取出 pipeline 输出中的 summary_text"""
    if isinstance(result, list) and result:
        first = result[0]
        if isinstance(first, dict):
            return str(first.get("summary_text") or "").strip()
    return ""


class OfflineSummarizer:
    """离线摘要器"""

    def __init__(
        self,
        model_name: str = "t5-small",
        enabled: bool = True,
        cache_dir: Optional[Path] = None,
    ):
        self.model_name = model_name
        self.enabled = enabled
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.model_unavailable = False
        self._pipeline = None
        self._init_task: Optional[asyncio.Future] = None

    def _create_pipeline(self):
        """加载 transformers 摘要 pipeline（在工作线程中执行）"""
        logger.info(f"正在加载离线摘要模型: {self.model_name}")

        # 重量级依赖延迟导入
        from transformers import pipeline

        kwargs = {}
        if self.cache_dir:
            kwargs["model_kwargs"] = {"cache_dir": str(self.cache_dir)}
        return pipeline("summarization", model=self.model_name, **kwargs)

    async def _get_pipeline(self):
        """并发调用共享同一个初始化任务"""
        if self._pipeline is not None:
            return self._pipeline

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(asyncio.to_thread(self._create_pipeline))
        task = self._init_task

        try:
            self._pipeline = await asyncio.shield(task)
        except Exception:
            # 允许之后的调用重新初始化
            if self._init_task is task:
                self._init_task = None
            raise
        return self._pipeline

    def _mark_unavailable(self, error: Exception):
        if not self.model_unavailable:
            logger.warning(f"离线模型不可用，改用抽取式摘要: {error}")
        self.model_unavailable = True
        self._pipeline = None
        self._init_task = None
        self._clear_model_cache()

    def _clear_model_cache(self):
        """删除已下载的模型文件"""
        if self.cache_dir and self.cache_dir.exists():
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            logger.info(f"已清理模型缓存: {self.cache_dir}")

    async def summarize(self, text: str) -> str:
        """生成摘要，始终返回字符串"""
        plain_text = (text or "").strip()
        if not plain_text:
            return FALLBACK_SUMMARY

        if not self.enabled or self.model_unavailable:
            return extractive_summary(plain_text)

        try:
            summarizer = await self._get_pipeline()
            result = await asyncio.to_thread(
                summarizer,
                plain_text,
                max_length=MODEL_MAX_LENGTH,
                min_length=MODEL_MIN_LENGTH,
                truncation=True,
            )
            summary = _summary_text(result)
        except Exception as e:
            self._mark_unavailable(e)
            return extractive_summary(plain_text)

        if not summary:
            logger.debug("离线模型输出为空，使用抽取式摘要")
            return extractive_summary(plain_text)
        return summary
