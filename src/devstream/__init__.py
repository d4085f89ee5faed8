"""DevStream - 技术博客订阅聚合与摘要"""

from .config import Config
from .sources import BLOG_SOURCES, BlogSource
from .models import Article
from .store import KeyValueStore
from .fetcher import FeedFetcher
from .aggregator import FeedAggregator
from .offline import OfflineSummarizer, extractive_summary
from .summarizer import SummarizationRouter, SummarizerMode

__version__ = "1.0.0"
__all__ = [
    "Config",
    "BLOG_SOURCES",
    "BlogSource",
    "Article",
    "KeyValueStore",
    "FeedFetcher",
    "FeedAggregator",
    "OfflineSummarizer",
    "extractive_summary",
    "SummarizationRouter",
    "SummarizerMode",
]
