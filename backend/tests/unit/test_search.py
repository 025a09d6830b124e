"""Tests for the volume-enhanced search."""

from __future__ import annotations

import pytest
from conftest import FakeFetcher, envelope, issue_payload, volume_payload
from prometheus_client import REGISTRY

from cvscraper.core.comicvine.client import ComicVineClient
from cvscraper.core.comicvine.search import SearchOrchestrator
from cvscraper.core.matching.config import MatchingConfig


def _fallbacks(reason: str) -> float:
    return REGISTRY.get_sample_value("cvscraper_search_fallbacks_total", {"reason": reason}) or 0.0


@pytest.fixture
def orchestrator(client: ComicVineClient) -> SearchOrchestrator:
    return SearchOrchestrator(client)


@pytest.mark.asyncio
async def test_detective_comics_1000(orchestrator: SearchOrchestrator, fetcher: FakeFetcher) -> None:
    """Test the top-ranked volume is probed first and a confident hit stops the search."""
    fetcher.add(
        "search",
        envelope(
            [
                volume_payload(18005, "Detective Comics", start_year=1937, count_of_issues=881),
                volume_payload(2000, "Detective Comics Annual", start_year=1988),
                volume_payload(91750, "Detective Comics", start_year=2016, count_of_issues=170),
            ]
        ),
        resources="volume",
    )
    fetcher.add(
        "issues",
        envelope(
            [
                issue_payload(
                    687453,
                    "1000",
                    volume_id=91750,
                    volume_name="Detective Comics",
                    cover_date="2019-05-31",
                    image={"medium_url": "https://comicvine.gamespot.com/a/uploads/1000.jpg"},
                )
            ]
        ),
        filter="volume:91750,issue_number:1000",
    )

    results = await orchestrator.search_enhanced("Detective Comics", 1000, 2018)

    # Volume search without the year, then exactly one probe
    volume_search = fetcher.requests("search")
    assert len(volume_search) == 1
    assert volume_search[0]["resources"] == "volume"
    assert "year" not in volume_search[0]
    assert [p["filter"] for p in fetcher.requests("issues")] == ["volume:91750,issue_number:1000"]

    [match] = results
    assert match.id == "687453"
    assert match.match_score >= 0.40
    # 0.30 + 1.0 * 0.50 + 0.05 (cover year off by one) + 0.10
    assert match.match_score == pytest.approx(0.95)
    assert match.series == "Detective Comics"
    assert match.volume_id == "91750"
    assert match.publisher == "DC Comics"
    assert match.volume_start_year == 2016


@pytest.mark.asyncio
async def test_no_issue_number_uses_direct_search(
    orchestrator: SearchOrchestrator, fetcher: FakeFetcher
) -> None:
    """Test without an issue number only the direct issue search runs."""
    fetcher.add("search", envelope([issue_payload(1, "1")]), resources="issue")
    before = _fallbacks("no_issue_number")

    results = await orchestrator.search_enhanced("Batman", None, 2016)

    assert [r.id for r in results] == ["1"]
    assert [p["resources"] for p in fetcher.requests("search")] == ["issue"]
    assert fetcher.requests("issues") == []
    assert _fallbacks("no_issue_number") == before + 1


@pytest.mark.asyncio
async def test_no_volumes_falls_back(orchestrator: SearchOrchestrator, fetcher: FakeFetcher) -> None:
    """Test an empty volume search falls back to the direct issue search."""
    fetcher.add("search", envelope([]), resources="volume")
    fetcher.add("search", envelope([issue_payload(7, "3", volume_name="Saga")]), resources="issue")
    before = _fallbacks("no_volumes")

    results = await orchestrator.search_enhanced("Saga", 3, 2012)

    assert [r.id for r in results] == ["7"]
    assert [p["resources"] for p in fetcher.requests("search")] == ["volume", "issue"]
    [issue_search] = [p for p in fetcher.requests("search") if p["resources"] == "issue"]
    assert issue_search["query"] == "Saga 3"
    assert _fallbacks("no_volumes") == before + 1


@pytest.mark.asyncio
async def test_no_volume_hits_falls_back_after_top_five(
    orchestrator: SearchOrchestrator, fetcher: FakeFetcher
) -> None:
    """Test at most five volumes are probed, best first, ties by numeric ID."""
    # All equally named: every volume scores 1.0, so only the ID breaks ties
    ids = [300, 25, 1000, 7, 42, 9]
    fetcher.add(
        "search",
        envelope([volume_payload(volume_id, "Batman") for volume_id in ids]),
        resources="volume",
    )
    before = _fallbacks("no_volume_hits")

    results = await orchestrator.search_enhanced("Batman", 1)

    assert results == []
    assert [p["filter"] for p in fetcher.requests("issues")] == [
        f"volume:{volume_id},issue_number:1" for volume_id in [7, 9, 25, 42, 300]
    ]
    assert [p["resources"] for p in fetcher.requests("search")] == ["volume", "issue"]
    assert _fallbacks("no_volume_hits") == before + 1


@pytest.mark.asyncio
async def test_volumes_ranked_with_year(orchestrator: SearchOrchestrator, fetcher: FakeFetcher) -> None:
    """Test volumes are rescored with the year before probing."""
    fetcher.add(
        "search",
        envelope(
            [
                volume_payload(796, "Batman", start_year=1940),
                volume_payload(91273, "Batman", start_year=2016),
            ]
        ),
        resources="volume",
    )

    await orchestrator.search_enhanced("Batman", 50, 2018)

    filters = [p["filter"] for p in fetcher.requests("issues")]
    assert filters == ["volume:91273,issue_number:50", "volume:796,issue_number:50"]


@pytest.mark.asyncio
async def test_unconfident_hits_keep_probing_and_sort(
    orchestrator: SearchOrchestrator, fetcher: FakeFetcher
) -> None:
    """Test hits from volumes below 0.9 do not stop probing and are ranked by combined score."""
    fetcher.add(
        "search",
        envelope(
            [
                volume_payload(1, "Batman and Robin", start_year=2009),
                volume_payload(2, "Batman Beyond", start_year=1999),
            ]
        ),
        resources="volume",
    )
    fetcher.add("issues", envelope([issue_payload(10, "1", volume_id=1)]), filter="volume:1,issue_number:1")
    fetcher.add("issues", envelope([issue_payload(20, "1", volume_id=2)]), filter="volume:2,issue_number:1")

    results = await orchestrator.search_enhanced("Batman", 1)

    assert len(fetcher.requests("issues")) == 2
    assert [r.id for r in results] == ["20", "10"]
    assert [r.series for r in results] == ["Batman Beyond", "Batman and Robin"]
    beyond_score = 0.70 + 0.15 * 6 / 13
    assert results[0].match_score == pytest.approx(0.30 + beyond_score * 0.50 + 0.10)
    assert fetcher.requests("search")[-1]["resources"] == "volume"


def test_year_bonus(orchestrator: SearchOrchestrator) -> None:
    """Test the combined score year bonus."""
    assert orchestrator.combined_score(1.0, 2018, 2018) == 1.0
    assert orchestrator.combined_score(0.5, 2018, 2018) == pytest.approx(0.75)
    assert orchestrator.combined_score(0.5, 2018, 2017) == pytest.approx(0.70)
    assert orchestrator.combined_score(0.5, 2018, 2015) == pytest.approx(0.65)
    assert orchestrator.combined_score(0.5, None, 2015) == pytest.approx(0.65)
    assert orchestrator.combined_score(0.0, 2018, None) == pytest.approx(0.40)


@pytest.mark.asyncio
async def test_custom_probe_count(client: ComicVineClient, fetcher: FakeFetcher) -> None:
    """Test the number of probed volumes comes from the matching config."""
    fetcher.add(
        "search",
        envelope([volume_payload(volume_id, "Saga") for volume_id in range(1, 5)]),
        resources="volume",
    )

    await SearchOrchestrator(client, MatchingConfig(volumes_to_probe=2)).search_enhanced("Saga", 1)

    assert len(fetcher.requests("issues")) == 2
