from __future__ import annotations

import asyncio
import random

from conftest import FakeFetcher, make_article

from devstream.aggregator import FeedAggregator, interleave
from devstream.sources import BlogSource
from devstream.store import LAST_INDEX_KEY, KeyValueStore


def build(sources, results, store=None, seed=0) -> FeedAggregator:
    return asyncio.run(
        FeedAggregator.create(
            FakeFetcher(results),
            store if store is not None else KeyValueStore(),
            sources=sources,
            rng=random.Random(seed),
        )
    )


def per_source(sources, counts):
    return {
        source.name: [make_article(i, source.name) for i in range(count)]
        for source, count in zip(sources, counts)
    }


def test_interleave_round_robin(sources):
    aggregator = build(sources, per_source(sources, [3, 1, 2]))
    names = [a.source_name for a in aggregator.articles]

    assert len(aggregator.articles) == 6
    assert names == ["Alpha", "Beta", "Gamma", "Alpha", "Gamma", "Alpha"]


def test_interleave_preserves_per_source_order():
    pool = interleave([
        [make_article(0, "A"), make_article(1, "A")],
        [],
        [make_article(0, "C"), make_article(1, "C")],
    ])
    assert [a.title for a in pool if a.source_name == "A"] == ["Article 0", "Article 1"]
    assert [a.source_name for a in pool] == ["A", "C", "A", "C"]


def test_all_sources_fetched(sources):
    fetcher = FakeFetcher(per_source(sources, [1, 1, 1]))
    asyncio.run(FeedAggregator.create(fetcher, KeyValueStore(), sources=sources))
    assert sorted(fetcher.calls) == ["Alpha", "Beta", "Gamma"]


def test_failing_source_contributes_nothing(sources):
    results = per_source(sources, [2, 2, 2])
    results["Beta"] = ConnectionError("network")

    aggregator = build(sources, results)

    assert len(aggregator.articles) == 4
    assert "Beta" not in {a.source_name for a in aggregator.articles}
    assert aggregator.load_error is None


def test_empty_pool_sets_load_error(sources):
    aggregator = build(sources, {})

    assert aggregator.articles == ()
    assert aggregator.load_error
    assert aggregator.current_index is None
    assert aggregator.current_article is None
    assert aggregator.is_loading is False


def test_persisted_index_adopted(sources):
    store = KeyValueStore()
    store.set(LAST_INDEX_KEY, "4")

    aggregator = build(sources, per_source(sources, [2, 2, 2]), store=store)
    assert aggregator.current_index == 4


def test_out_of_range_persisted_index_replaced(sources):
    for saved in ("6", "99", "-1", "abc", ""):
        store = KeyValueStore()
        store.set(LAST_INDEX_KEY, saved)
        for seed in range(5):
            aggregator = build(sources, per_source(sources, [2, 2, 2]), store=store, seed=seed)
            assert 0 <= aggregator.current_index < 6


def test_random_index_without_persisted_value(sources):
    seen = set()
    for seed in range(40):
        aggregator = build(sources, per_source(sources, [2, 2, 2]), seed=seed)
        assert 0 <= aggregator.current_index < 6
        seen.add(aggregator.current_index)
    assert len(seen) > 1


def test_advance_to_in_range_persists(sources):
    store = KeyValueStore()
    aggregator = build(sources, per_source(sources, [2, 2, 2]), store=store)

    assert aggregator.advance_to(5) is True
    assert aggregator.current_index == 5
    assert store.get(LAST_INDEX_KEY) == "5"


def test_advance_to_out_of_range_is_noop(sources):
    store = KeyValueStore()
    aggregator = build(sources, per_source(sources, [2, 2, 2]), store=store)
    aggregator.advance_to(2)

    for index in (-1, 6, 100):
        assert aggregator.advance_to(index) is False
        assert aggregator.current_index == 2
        assert store.get(LAST_INDEX_KEY) == "2"


def test_navigate(sources):
    aggregator = build(sources, per_source(sources, [2, 2, 2]))
    aggregator.advance_to(0)

    assert aggregator.navigate(1) is True
    assert aggregator.current_index == 1
    assert aggregator.navigate(-2) is False
    assert aggregator.current_index == 1


def test_skip_source_removes_articles(sources):
    store = KeyValueStore()
    aggregator = build(sources, per_source(sources, [2, 2, 2]), store=store)
    aggregator.advance_to(1)  # Beta[0]
    before = [a for a in aggregator.articles if a.source_name != "Beta"]

    removed = aggregator.skip_source("Beta")

    assert removed == 2
    assert len(aggregator.articles) == 4
    assert list(aggregator.articles) == before
    assert aggregator.current_article.source_name != "Beta"
    # 原位置之后第一篇保留文章是 Gamma[0]
    assert aggregator.current_article == make_article(0, "Gamma")
    assert store.get(LAST_INDEX_KEY) == str(aggregator.current_index)


def test_skip_source_at_end_moves_to_last(sources):
    aggregator = build(sources, per_source(sources, [1, 1, 2]))
    # Alpha0, Beta0, Gamma0, Gamma1
    aggregator.advance_to(3)

    aggregator.skip_source("Gamma")

    assert aggregator.current_index == len(aggregator.articles) - 1
    assert aggregator.current_article.source_name == "Beta"


def test_skip_source_when_current_is_other_source(sources):
    aggregator = build(sources, per_source(sources, [2, 2, 2]))
    aggregator.advance_to(3)  # Alpha[1]

    aggregator.skip_source("Gamma")

    # 新池: Alpha0, Beta0, Alpha1, Beta1 —— 原位置之后第一篇是 Beta1
    assert aggregator.current_article == make_article(1, "Beta")


def test_skip_last_source_empties_pool():
    only = [BlogSource(name="Solo", rss_url="https://solo/feed", logo_url="")]
    aggregator = build(only, {"Solo": [make_article(0, "Solo")]})

    aggregator.skip_source("Solo")

    assert aggregator.articles == ()
    assert aggregator.current_index is None
    assert aggregator.load_error


def test_skip_unknown_source_is_noop(sources):
    aggregator = build(sources, per_source(sources, [1, 1, 1]))
    index = aggregator.current_index

    assert aggregator.skip_source("Nope") == 0
    assert aggregator.current_index == index
    assert len(aggregator.articles) == 3


def test_subscribers_notified(sources):
    aggregator = build(sources, per_source(sources, [2, 2, 2]))
    events = []
    unsubscribe = aggregator.subscribe(lambda agg: events.append(agg.current_index))

    aggregator.advance_to(2)
    aggregator.advance_to(99)
    unsubscribe()
    aggregator.advance_to(3)

    assert events == [2]


def test_subscriber_errors_are_contained(sources):
    aggregator = build(sources, per_source(sources, [1, 1, 1]))

    def broken(_):
        raise RuntimeError("listener failure")

    aggregator.subscribe(broken)
    assert aggregator.advance_to(0) is True


def test_two_sources_end_to_end(tmp_path):
    two = [
        BlogSource(name="One", rss_url="https://one/feed", logo_url=""),
        BlogSource(name="Two", rss_url="https://two/feed", logo_url=""),
    ]
    results = {"One": [make_article(0, "One")], "Two": [make_article(0, "Two")]}
    path = tmp_path / "state.json"

    first = build(two, results, store=KeyValueStore(path))
    assert [a.source_name for a in first.articles] == ["One", "Two"]
    assert first.current_index in (0, 1)

    first.advance_to(1)

    reloaded = build(two, results, store=KeyValueStore(path), seed=123)
    assert reloaded.current_index == 1
