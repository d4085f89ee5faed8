"""命令行入口"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .aggregator import FeedAggregator
from .config import Config
from .fetcher import FeedFetcher
from .models import Article
from .sources import BLOG_SOURCES, get_source
from .store import HINT_DISMISSED_KEY, KeyValueStore
from .summarizer import SummarizationRouter, SummarizerMode

logger = logging.getLogger(__name__)

HINT = "Tip: [n]ext  [p]revious  [s]kip this source  [m]ode <offline|claude|openai>  [q]uit"


def setup_logging(verbose: bool = False):
    """配置日志"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # 减少第三方库日志
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("transformers").setLevel(logging.WARNING)


def list_sources():
    """列出所有订阅源"""
    print("\n📰 Sources\n")
    for i, source in enumerate(BLOG_SOURCES, 1):
        print(f"  {i}. {source.name}: {source.rss_url}")
    print()


def print_article(aggregator: FeedAggregator, article: Article, as_json: bool = False):
    """打印当前文章卡片"""
    if as_json:
        print(json.dumps(article.to_dict(), ensure_ascii=False))
        return

    position = f"{aggregator.current_index + 1}/{len(aggregator.articles)}"
    print()
    print(f"[{position}] {article.source_name}")
    print(f"  {article.title}")
    if article.published_date:
        print(f"  {article.published_date}")
    print(f"  {article.url}")
    if article.image_url:
        print(f"  🖼  {article.image_url}")


async def show_current(
    aggregator: FeedAggregator,
    router: SummarizationRouter,
    as_json: bool = False,
    prefetch: bool = True,
):
    """显示当前文章与摘要；prefetch 为真时在后台预取后续文章"""
    article = aggregator.current_article
    if article is None:
        print(aggregator.load_error or "No article selected.")
        return

    print_article(aggregator, article, as_json)
    if prefetch:
        router.prefetch_ahead(aggregator)

    if router.get_cached(article.url) is None:
        print("  …summarizing")
    summary = await router.summarize(article)
    if as_json:
        print(json.dumps({"url": article.url, "summary": summary}, ensure_ascii=False))
    else:
        print()
        print(summary)
        print()


def dismiss_hint(store: KeyValueStore):
    if HINT_DISMISSED_KEY not in store:
        store.set(HINT_DISMISSED_KEY, "1")


async def interactive(
    aggregator: FeedAggregator,
    router: SummarizationRouter,
    store: KeyValueStore,
):
    """交互式浏览"""
    await show_current(aggregator, router)

    while True:
        if HINT_DISMISSED_KEY not in store:
            print(HINT)
        try:
            command = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            break

        if not command:
            continue
        action, _, arg = command.partition(" ")

        if action in ("q", "quit"):
            break
        elif action in ("n", "next", "p", "prev"):
            delta = 1 if action in ("n", "next") else -1
            if aggregator.navigate(delta):
                dismiss_hint(store)
                await show_current(aggregator, router)
            else:
                print("No more articles in that direction.")
        elif action in ("s", "skip"):
            article = aggregator.current_article
            if article is None:
                continue
            aggregator.skip_source(article.source_name)
            print(f"Skipped {article.source_name}.")
            if aggregator.load_error:
                print(aggregator.load_error)
                break
            await show_current(aggregator, router)
        elif action in ("m", "mode"):
            try:
                router.set_mode(SummarizerMode(arg.strip()))
            except ValueError:
                print("Mode must be one of: offline, claude, openai")
                continue
            await show_current(aggregator, router)
        else:
            print(HINT)


async def run(args: argparse.Namespace, config: Config) -> int:
    """加载订阅源并浏览"""
    store = KeyValueStore(config.state_file)
    router = SummarizationRouter(config, store)

    if args.mode:
        router.set_mode(SummarizerMode(args.mode))
    if args.claude_key is not None:
        router.set_api_key(SummarizerMode.CLAUDE, args.claude_key)
    if args.openai_key is not None:
        router.set_api_key(SummarizerMode.OPENAI, args.openai_key)

    aggregator = await FeedAggregator.create(FeedFetcher(config), store)
    if aggregator.load_error:
        logger.error(aggregator.load_error)
        return 1

    try:
        if args.skip_source:
            aggregator.skip_source(args.skip_source)
            if aggregator.load_error:
                print(aggregator.load_error)
                return 1

        moved = True
        if args.goto is not None:
            moved = aggregator.advance_to(args.goto - 1)
        elif args.next:
            moved = aggregator.navigate(1)
        elif args.prev:
            moved = aggregator.navigate(-1)
        if not moved:
            logger.warning("目标位置超出范围，保持当前文章")

        if args.once:
            # 单次运行退出后缓存即丢失，不预取
            await show_current(aggregator, router, as_json=args.json, prefetch=False)
        else:
            await interactive(aggregator, router, store)
    finally:
        await router.aclose()

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="DevStream: engineering blog reader with summaries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  devstream                      # 交互式浏览
  devstream --once --next        # 显示下一篇后退出
  devstream --mode claude --claude-key sk-...
  devstream --skip-source "GitHub Blog"
  devstream --list-sources
        """,
    )

    parser.add_argument("--once", action="store_true", help="显示当前文章后退出")
    parser.add_argument("--json", action="store_true", help="以 JSON 输出（配合 --once）")
    parser.add_argument("--next", action="store_true", help="前进一篇")
    parser.add_argument("--prev", action="store_true", help="后退一篇")
    parser.add_argument("--goto", type=int, help="跳转到第 N 篇（从 1 开始）")
    parser.add_argument("--skip-source", type=str, help="跳过某个订阅源")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in SummarizerMode],
        help="摘要模式",
    )
    parser.add_argument("--claude-key", type=str, help="保存 Claude API Key（空字符串删除）")
    parser.add_argument("--openai-key", type=str, help="保存 OpenAI API Key（空字符串删除）")
    parser.add_argument(
        "--env",
        type=str,
        default=".env",
        help="环境变量文件路径（默认 .env）",
    )
    parser.add_argument("--list-sources", action="store_true", help="列出所有订阅源")
    parser.add_argument("-v", "--verbose", action="store_true", help="详细日志输出")

    args = parser.parse_args()

    setup_logging(args.verbose)

    if args.list_sources:
        list_sources()
        return 0

    if args.skip_source:
        try:
            get_source(args.skip_source)
        except KeyError as e:
            logger.error(e.args[0])
            return 1

    env_file = args.env if Path(args.env).exists() else None
    config = Config.from_env(env_file)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        logger.error("请检查 .env 配置文件")
        return 1

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
