# ABOUTME: Unit tests for QueryCoordinator fan-out, failure isolation, timeouts, and aggregation.
# ABOUTME: Uses AdapterProvider wrappers around small async callables as fake providers.

import asyncio

import pytest

from bibrecon.metadata.coordinator import (
    CoordinatorConfig,
    ProviderOutcome,
    QueryCoordinator,
    aggregate_records,
)
from bibrecon.metadata.errors import GlobalTimeoutExceeded, ProviderFailure
from bibrecon.metadata.provider import AdapterProvider, RateLimitSettings
from bibrecon.metadata.rate_limiter import RateLimiterRegistry
from bibrecon.metadata.types import (
    IsbnQuery,
    MetadataRecord,
    MetadataType,
    MultiCriteriaQuery,
    Query,
    TitleQuery,
)


def _record(record_id: str, source: str, confidence: float = 0.8) -> MetadataRecord:
    return MetadataRecord(id=record_id, source=source, confidence=confidence, title="Dune")


def _returning(name: str, *records: MetadataRecord, priority: int = 50) -> AdapterProvider:
    async def search(query: Query) -> list[MetadataRecord]:
        return list(records)

    return AdapterProvider(name, search, priority=priority)


def _failing(name: str) -> AdapterProvider:
    async def search(query: Query) -> list[MetadataRecord]:
        msg = "service unavailable"
        raise RuntimeError(msg)

    return AdapterProvider(name, search)


def _sleeping(name: str, seconds: float) -> AdapterProvider:
    async def search(query: Query) -> list[MetadataRecord]:
        await asyncio.sleep(seconds)
        return [_record("late", name)]

    return AdapterProvider(name, search)


QUERY = TitleQuery(title="Dune")


class TestQueryFanOut:
    """Tests for QueryCoordinator.query."""

    @pytest.mark.asyncio
    async def test_one_failure_is_isolated(self) -> None:
        """A throwing provider is recorded as failed while the others succeed."""
        coordinator = QueryCoordinator(
            [_returning("a", _record("1", "a")), _returning("b", _record("2", "b")), _failing("c")],
            CoordinatorConfig(provider_timeout=1.0),
        )
        result = await coordinator.query(QUERY)
        assert result.successful_providers == 2
        assert result.failed_providers == 1
        assert result.total_records == 2
        failed = next(o for o in result.provider_results if not o.success)
        assert failed.provider == "c"
        assert "service unavailable" in (failed.error or "")

    @pytest.mark.asyncio
    async def test_provider_timeout(self) -> None:
        """A slow provider fails with a timeout message."""
        coordinator = QueryCoordinator(
            [_returning("a", _record("1", "a")), _sleeping("slow", 1.0)],
            CoordinatorConfig(provider_timeout=0.05),
        )
        result = await coordinator.query(QUERY)
        slow = next(o for o in result.provider_results if o.provider == "slow")
        assert not slow.success
        assert "timed out after 50ms" in (slow.error or "")

    @pytest.mark.asyncio
    async def test_failure_raises_without_continue(self) -> None:
        """With continue_on_failure off the first failure propagates."""
        coordinator = QueryCoordinator(
            [_failing("c")], CoordinatorConfig(continue_on_failure=False)
        )
        with pytest.raises(ProviderFailure) as excinfo:
            await coordinator.query(QUERY)
        assert excinfo.value.provider == "c"

    @pytest.mark.asyncio
    async def test_global_timeout_returns_partial_results(self) -> None:
        """Providers still running at the deadline are reported as failed."""
        coordinator = QueryCoordinator(
            [_returning("fast", _record("1", "fast")), _sleeping("slow", 1.0)],
            CoordinatorConfig(global_timeout=0.05, provider_timeout=5.0),
        )
        result = await coordinator.query(QUERY)
        assert result.total_records == 1
        slow = next(o for o in result.provider_results if o.provider == "slow")
        assert "Global timeout of 50ms exceeded" in (slow.error or "")

    @pytest.mark.asyncio
    async def test_global_timeout_raises_without_continue(self) -> None:
        """The deadline is fatal when not continuing on failure."""
        coordinator = QueryCoordinator(
            [_sleeping("slow", 1.0)],
            CoordinatorConfig(global_timeout=0.05, provider_timeout=5.0, continue_on_failure=False),
        )
        with pytest.raises(GlobalTimeoutExceeded):
            await coordinator.query(QUERY)

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self) -> None:
        """No more than max_concurrency providers run at once."""
        running = 0
        peak = 0

        def tracked(name: str) -> AdapterProvider:
            async def search(query: Query) -> list[MetadataRecord]:
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1
                return []

            return AdapterProvider(name, search)

        coordinator = QueryCoordinator(
            [tracked("a"), tracked("b"), tracked("c")], CoordinatorConfig(max_concurrency=1)
        )
        await coordinator.query(QUERY)
        assert peak == 1

    @pytest.mark.asyncio
    async def test_no_providers(self) -> None:
        """An empty coordinator returns an empty result."""
        result = await QueryCoordinator().query(QUERY)
        assert result.provider_results == ()
        assert result.total_records == 0

    @pytest.mark.asyncio
    async def test_rate_limiter_consulted(self) -> None:
        """Each provider call takes a slot from its limiter."""
        registry = RateLimiterRegistry()

        async def search(query: Query) -> list[MetadataRecord]:
            return []

        provider = AdapterProvider(
            "limited",
            search,
            rate_limit=RateLimitSettings(max_requests=5, window=60.0, request_delay=0),
        )
        coordinator = QueryCoordinator([provider], rate_limiter=registry)
        await coordinator.query(QUERY)
        assert registry.get_stats()["limited"]["remaining_requests"] == 4


class TestQueryWithStrategy:
    """Tests for fallback queries."""

    @pytest.mark.asyncio
    async def test_fallback_used_when_primary_empty(self) -> None:
        """An empty primary result triggers the next fallback."""

        async def search(query: Query) -> list[MetadataRecord]:
            if isinstance(query, IsbnQuery):
                return []
            return [_record("1", "adapter")]

        coordinator = QueryCoordinator([AdapterProvider("adapter", search)])
        result = await coordinator.query_with_strategy(IsbnQuery(isbn="123"), [QUERY])
        assert result.query == IsbnQuery(isbn="123")
        assert result.total_records == 1
        assert len(result.provider_results) == 2

    @pytest.mark.asyncio
    async def test_fallback_skipped_when_primary_finds(self) -> None:
        """Fallbacks do not run once something is found."""
        coordinator = QueryCoordinator([_returning("a", _record("1", "a"))])
        result = await coordinator.query_with_strategy(QUERY, [IsbnQuery(isbn="123")])
        assert len(result.provider_results) == 1

    @pytest.mark.asyncio
    async def test_counts_come_from_answering_fallback(self) -> None:
        """Only the primary and the answering fallback are reported; counts cover the fallback."""

        def provider(name: str) -> AdapterProvider:
            async def search(query: Query) -> list[MetadataRecord]:
                if isinstance(query, TitleQuery) and query.title == "Dune":
                    return [_record(f"{name}-1", name)]
                return []

            return AdapterProvider(name, search)

        coordinator = QueryCoordinator([provider("a"), provider("b"), provider("c")])
        result = await coordinator.query_with_strategy(
            IsbnQuery(isbn="123"), [TitleQuery(title="Dune Messiah"), QUERY]
        )
        assert len(result.provider_results) == 6
        assert result.successful_providers == 3
        assert result.failed_providers == 0
        assert result.total_records == 3

    @pytest.mark.asyncio
    async def test_all_fallbacks_empty_returns_primary(self) -> None:
        """When nothing answers, the primary result is returned unchanged."""
        coordinator = QueryCoordinator([_returning("a"), _failing("b")])
        result = await coordinator.query_with_strategy(IsbnQuery(isbn="123"), [QUERY, QUERY])
        assert [o.provider for o in result.provider_results] == ["a", "b"]
        assert result.successful_providers == 1
        assert result.failed_providers == 1
        assert result.total_records == 0

    @pytest.mark.asyncio
    async def test_relaxation_drops_author(self) -> None:
        """Relaxed fallbacks reach a title-only query when the author matches nothing."""

        async def search(query: Query) -> list[MetadataRecord]:
            if isinstance(query, MultiCriteriaQuery) and not query.authors:
                return [_record("1", "adapter")]
            return []

        coordinator = QueryCoordinator([AdapterProvider("adapter", search)])
        criteria = MultiCriteriaQuery(title="Dune", authors=("Nobody",))
        result = await coordinator.query_with_relaxation(criteria)
        assert result.query == criteria
        assert result.total_records == 1
        assert len(result.provider_results) == 2


class TestRegistry:
    """Tests for provider registration."""

    def test_sorted_by_priority_and_deduplicated(self) -> None:
        """Providers sort by priority and duplicate names are ignored."""
        coordinator = QueryCoordinator([_returning("low", priority=10), _returning("high", priority=90)])
        coordinator.add_provider(_returning("low", priority=99))
        assert [p.name for p in coordinator.providers] == ["high", "low"]

    def test_remove_and_stats(self) -> None:
        """Providers can be removed and reported."""
        coordinator = QueryCoordinator([_returning("a"), _returning("b")])
        assert coordinator.remove_provider("a")
        assert not coordinator.remove_provider("missing")
        assert [s["name"] for s in coordinator.get_provider_stats()] == ["b"]

    def test_providers_for_data_type(self) -> None:
        """Only providers supporting a type are returned."""
        coordinator = QueryCoordinator([_returning("a")])
        assert coordinator.get_providers_for_data_type(MetadataType.SERIES) == []
        assert len(coordinator.get_providers_for_data_type(MetadataType.TITLE)) == 1

    def test_invalid_concurrency(self) -> None:
        """max_concurrency below one is rejected."""
        with pytest.raises(ValueError, match="max_concurrency"):
            CoordinatorConfig(max_concurrency=0)

    def test_update_config(self) -> None:
        """update_config replaces individual fields."""
        coordinator = QueryCoordinator()
        coordinator.update_config(global_timeout=5.0)
        assert coordinator.config.global_timeout == 5.0
        assert coordinator.config.provider_timeout == 10.0


class TestAggregateRecords:
    """Tests for aggregate_records."""

    def test_filters_dedups_and_sorts(self) -> None:
        """Low-confidence and duplicate records are dropped; the rest sort by confidence."""
        outcomes = [
            ProviderOutcome("a", True, (_record("1", "a", 0.6), _record("2", "a", 0.05))),
            ProviderOutcome("b", True, (_record("1", "a", 0.9), _record("3", "b", 0.95))),
            ProviderOutcome("c", False, (_record("4", "c", 0.99),)),
        ]
        records = aggregate_records(outcomes, min_confidence=0.1)
        assert [(r.id, r.source) for r in records] == [("3", "b"), ("1", "a")]
        assert records[1].confidence == 0.6
