# ABOUTME: Concurrent fan-out of a metadata query across all registered providers.
# ABOUTME: Bounds concurrency and time, isolates provider failures, and aggregates the records.

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from bibrecon.metadata.errors import GlobalTimeoutExceeded, ProviderFailure, ProviderTimeout
from bibrecon.metadata.provider import MetadataProvider
from bibrecon.metadata.rate_limiter import RateLimiterRegistry
from bibrecon.metadata.relaxation import QueryStrategyBuilder
from bibrecon.metadata.timeouts import OperationTimeout, TimeoutGuard
from bibrecon.metadata.types import (
    CreatorQuery,
    IsbnQuery,
    MetadataRecord,
    MetadataType,
    MultiCriteriaQuery,
    Query,
    TitleQuery,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoordinatorConfig:
    """Scheduling limits for a coordinated query. Times are in seconds."""

    global_timeout: float = 30.0
    provider_timeout: float = 10.0
    max_concurrency: int = 5
    min_confidence: float = 0.1
    continue_on_failure: bool = True

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            msg = f"max_concurrency must be at least 1, got {self.max_concurrency}"
            raise ValueError(msg)


@dataclass(frozen=True)
class ProviderOutcome:
    """What one provider did during a query."""

    provider: str
    success: bool
    records: tuple[MetadataRecord, ...] = ()
    error: str | None = None
    duration: float = 0.0


@dataclass(frozen=True)
class AggregatedResult:
    """Merged, filtered, and deduplicated answer from every provider queried.

    Provider counts cover only the outcomes from final_attempt_offset on, which
    is the attempt whose records were kept when a fallback query answered.
    """

    query: Query
    provider_results: tuple[ProviderOutcome, ...]
    aggregated_records: tuple[MetadataRecord, ...]
    total_duration: float
    final_attempt_offset: int = 0
    successful_providers: int = field(init=False)
    failed_providers: int = field(init=False)
    total_records: int = field(init=False)

    def __post_init__(self) -> None:
        counted = self.provider_results[self.final_attempt_offset :]
        successes = sum(1 for outcome in counted if outcome.success)
        object.__setattr__(self, "successful_providers", successes)
        object.__setattr__(self, "failed_providers", len(counted) - successes)
        object.__setattr__(self, "total_records", len(self.aggregated_records))


class QueryCoordinator:
    """Queries every registered provider concurrently and aggregates the answers.

    Providers are kept sorted by priority (highest first). That order is only a
    presentation tie-break; all providers are queried on every call.
    """

    def __init__(
        self,
        providers: Iterable[MetadataProvider] = (),
        config: CoordinatorConfig | None = None,
        *,
        rate_limiter: RateLimiterRegistry | None = None,
    ) -> None:
        self._providers: list[MetadataProvider] = []
        for provider in providers:
            self.add_provider(provider)
        self._config = config or CoordinatorConfig()
        self._rate_limiter = rate_limiter

    @property
    def providers(self) -> list[MetadataProvider]:
        return list(self._providers)

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    async def query(
        self, criteria: Query, config: CoordinatorConfig | None = None
    ) -> AggregatedResult:
        """Run criteria against all providers and aggregate the records.

        Raises:
            ProviderFailure: First provider failure, only when continue_on_failure is False.
            GlobalTimeoutExceeded: Deadline hit, only when continue_on_failure is False.
        """
        config = config or self._config
        started = time.monotonic()
        semaphore = asyncio.Semaphore(config.max_concurrency)

        tasks = {
            asyncio.create_task(self._query_provider(provider, criteria, config, semaphore)): (
                provider
            )
            for provider in self._providers
        }
        outcomes: dict[str, ProviderOutcome] = {}

        if tasks:
            return_when = (
                asyncio.ALL_COMPLETED if config.continue_on_failure else asyncio.FIRST_EXCEPTION
            )
            done, pending = await asyncio.wait(
                tasks, timeout=config.global_timeout, return_when=return_when
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

            for task in done:
                exc = task.exception()
                if exc is not None:
                    if not config.continue_on_failure:
                        raise exc
                    continue
                outcome = task.result()
                outcomes[outcome.provider] = outcome

            if pending:
                error = GlobalTimeoutExceeded(config.global_timeout)
                if not config.continue_on_failure:
                    raise error
                logger.warning("%s; returning partial results", error)
                for task in pending:
                    name = tasks[task].name
                    outcomes[name] = ProviderOutcome(
                        provider=name,
                        success=False,
                        error=str(error),
                        duration=time.monotonic() - started,
                    )

        ordered = tuple(outcomes[p.name] for p in self._providers if p.name in outcomes)
        result = AggregatedResult(
            query=criteria,
            provider_results=ordered,
            aggregated_records=tuple(aggregate_records(ordered, config.min_confidence)),
            total_duration=time.monotonic() - started,
        )
        logger.info(
            "Query finished: %d/%d providers succeeded, %d records in %.2fs",
            result.successful_providers,
            len(ordered),
            result.total_records,
            result.total_duration,
        )
        return result

    async def query_with_strategy(
        self,
        primary: Query,
        fallbacks: Sequence[Query] = (),
        config: CoordinatorConfig | None = None,
    ) -> AggregatedResult:
        """Run primary, then each fallback in order until one finds records.

        The result keeps the primary's outcomes plus those of the fallback that
        answered; provider counts describe that fallback alone.
        """
        result = await self.query(primary, config)
        if result.total_records > 0:
            return result

        for fallback in fallbacks:
            logger.info("No results for %s, trying fallback %s", primary, fallback)
            attempt = await self.query(fallback, config)
            if attempt.total_records > 0:
                return AggregatedResult(
                    query=primary,
                    provider_results=result.provider_results + attempt.provider_results,
                    aggregated_records=attempt.aggregated_records,
                    total_duration=result.total_duration + attempt.total_duration,
                    final_attempt_offset=len(result.provider_results),
                )

        return result

    async def query_with_relaxation(
        self,
        criteria: MultiCriteriaQuery,
        builder: QueryStrategyBuilder | None = None,
        config: CoordinatorConfig | None = None,
    ) -> AggregatedResult:
        """Run criteria, then progressively relaxed versions of it while nothing is found."""
        strategy = (builder or QueryStrategyBuilder()).build_strategy(criteria)
        logger.debug(
            "Relaxation plan for %s: %s",
            criteria,
            ", ".join(rule.name for rule in strategy.relaxation_rules) or "none",
        )
        return await self.query_with_strategy(strategy.primary, strategy.fallbacks, config)

    async def _query_provider(
        self,
        provider: MetadataProvider,
        criteria: Query,
        config: CoordinatorConfig,
        semaphore: asyncio.Semaphore,
    ) -> ProviderOutcome:
        """Query one provider under the semaphore and its own timeout.

        Returns a failed outcome on error when continuing on failure,
        otherwise raises ProviderFailure or ProviderTimeout.
        """
        async with semaphore:
            started = time.monotonic()
            try:
                if self._rate_limiter is not None:
                    await self._rate_limiter.wait_for_slot(provider.name, provider.rate_limit)
                guard = TimeoutGuard(provider.timeout)
                records = await guard.with_operation_timeout(
                    _dispatch(provider, criteria), config.provider_timeout
                )
            except OperationTimeout as exc:
                failure: ProviderFailure = ProviderTimeout(provider.name, config.provider_timeout)
                cause: Exception = exc
            except Exception as exc:  # noqa: BLE001
                failure = ProviderFailure(provider.name, f"Provider {provider.name} failed: {exc}")
                cause = exc
            else:
                duration = time.monotonic() - started
                logger.debug(
                    "Provider %s returned %d records in %.3fs", provider.name, len(records), duration
                )
                return ProviderOutcome(
                    provider=provider.name,
                    success=True,
                    records=tuple(records),
                    duration=duration,
                )

            logger.warning("%s", failure)
            if not config.continue_on_failure:
                raise failure from cause
            return ProviderOutcome(
                provider=provider.name,
                success=False,
                error=str(failure),
                duration=time.monotonic() - started,
            )

    def add_provider(self, provider: MetadataProvider) -> None:
        """Register a provider; re-adding an existing name is a no-op."""
        if any(p.name == provider.name for p in self._providers):
            return
        self._providers.append(provider)
        self._providers.sort(key=lambda p: p.priority, reverse=True)

    def remove_provider(self, name: str) -> bool:
        before = len(self._providers)
        self._providers = [p for p in self._providers if p.name != name]
        return len(self._providers) < before

    def get_providers_for_data_type(self, data_type: MetadataType) -> list[MetadataProvider]:
        return [p for p in self._providers if p.supports_data_type(data_type)]

    def get_provider_stats(self) -> list[dict[str, Any]]:
        return [
            {
                "name": p.name,
                "priority": p.priority,
                "rate_limit": p.rate_limit,
                "timeout": p.timeout,
            }
            for p in self._providers
        ]

    def update_config(self, **changes: Any) -> None:
        self._config = replace(self._config, **changes)


async def _dispatch(provider: MetadataProvider, criteria: Query) -> list[MetadataRecord]:
    if isinstance(criteria, TitleQuery):
        return await provider.search_by_title(criteria)
    if isinstance(criteria, IsbnQuery):
        return await provider.search_by_isbn(criteria.isbn)
    if isinstance(criteria, CreatorQuery):
        return await provider.search_by_creator(criteria)
    if isinstance(criteria, MultiCriteriaQuery):
        return await provider.search_multi_criteria(criteria)
    msg = f"Unsupported query type: {type(criteria).__name__}"
    raise TypeError(msg)


def aggregate_records(
    outcomes: Iterable[ProviderOutcome], min_confidence: float
) -> list[MetadataRecord]:
    """Merge successful outcomes, drop low-confidence records, dedup by (id, source).

    The first occurrence of an (id, source) pair wins. The result is sorted by
    confidence, highest first; the sort is stable so ties keep provider order.
    """
    seen: set[tuple[str, str]] = set()
    records: list[MetadataRecord] = []
    for outcome in outcomes:
        if not outcome.success:
            continue
        for record in outcome.records:
            if record.confidence < min_confidence:
                continue
            key = (record.id, record.source)
            if key in seen:
                continue
            seen.add(key)
            records.append(record)
    records.sort(key=lambda r: r.confidence, reverse=True)
    return records
