# ABOUTME: Metadata package: provider contract, query types, and the coordinated query engine.
# ABOUTME: Exports the types and classes used to fan a query out to metadata providers.

from bibrecon.metadata.config import ConfigManager, ProviderConfig, ValidationResult
from bibrecon.metadata.coordinator import (
    AggregatedResult,
    CoordinatorConfig,
    ProviderOutcome,
    QueryCoordinator,
)
from bibrecon.metadata.errors import (
    GlobalTimeoutExceeded,
    ProviderFailure,
    ProviderTimeout,
    ReconciliationInputError,
)
from bibrecon.metadata.provider import (
    AdapterProvider,
    BaseProvider,
    MetadataProvider,
    RateLimitSettings,
    StaticProvider,
    TimeoutSettings,
)
from bibrecon.metadata.relaxation import (
    QualityAssessment,
    QueryStrategy,
    QueryStrategyBuilder,
    QueryStrategyConfig,
    RelaxationRule,
)
from bibrecon.metadata.types import (
    CoverImageRef,
    CreatorQuery,
    Dimensions,
    IsbnQuery,
    MetadataRecord,
    MetadataSource,
    MetadataType,
    MultiCriteriaQuery,
    SeriesInfo,
    TitleQuery,
)

__all__ = [
    "AdapterProvider",
    "AggregatedResult",
    "BaseProvider",
    "ConfigManager",
    "CoordinatorConfig",
    "CoverImageRef",
    "CreatorQuery",
    "Dimensions",
    "GlobalTimeoutExceeded",
    "IsbnQuery",
    "MetadataProvider",
    "MetadataRecord",
    "MetadataSource",
    "MetadataType",
    "MultiCriteriaQuery",
    "ProviderConfig",
    "ProviderFailure",
    "ProviderOutcome",
    "ProviderTimeout",
    "QualityAssessment",
    "QueryCoordinator",
    "QueryStrategy",
    "QueryStrategyBuilder",
    "QueryStrategyConfig",
    "RateLimitSettings",
    "ReconciliationInputError",
    "RelaxationRule",
    "SeriesInfo",
    "StaticProvider",
    "TimeoutSettings",
    "TitleQuery",
    "ValidationResult",
]
