# ABOUTME: Reconciliation package: per-domain reconcilers and the coordinator that runs them together.
# ABOUTME: Exports the reconciler classes, their input and output types, and reconcile_metadata.

from bibrecon.reconciliation.content import ContentReconciler
from bibrecon.reconciliation.coordinator import (
    ReconciliationConfig,
    ReconciliationCoordinator,
    overall_confidence,
    reconcile_metadata,
)
from bibrecon.reconciliation.dates import DateReconciler
from bibrecon.reconciliation.identifiers import IdentifierReconciler, normalize_identifier
from bibrecon.reconciliation.physical import PhysicalReconciler
from bibrecon.reconciliation.places import PlaceReconciler
from bibrecon.reconciliation.publication import PublicationReconciler
from bibrecon.reconciliation.publishers import PublisherReconciler
from bibrecon.reconciliation.series import (
    SeriesReconciler,
    cluster_editions_by_work,
    compare_editions,
)
from bibrecon.reconciliation.subjects import SubjectReconciler
from bibrecon.reconciliation.types import (
    Collection,
    CollectionInput,
    Conflict,
    ConflictValue,
    ContentDescriptionInput,
    EditionComparison,
    EmptyInput,
    Identifier,
    IdentifierInput,
    PhysicalDescriptionInput,
    PublicationDate,
    PublicationInfoInput,
    ReconciledField,
    ReconciledMetadata,
    ReconciliationStats,
    Series,
    SeriesInput,
    Subject,
    SubjectInput,
    WorkCluster,
    WorkEditionInput,
)

__all__ = [
    "Collection",
    "CollectionInput",
    "Conflict",
    "ConflictValue",
    "ContentDescriptionInput",
    "ContentReconciler",
    "DateReconciler",
    "EditionComparison",
    "EmptyInput",
    "Identifier",
    "IdentifierInput",
    "IdentifierReconciler",
    "PhysicalDescriptionInput",
    "PhysicalReconciler",
    "PlaceReconciler",
    "PublicationDate",
    "PublicationInfoInput",
    "PublicationReconciler",
    "PublisherReconciler",
    "ReconciledField",
    "ReconciledMetadata",
    "ReconciliationConfig",
    "ReconciliationCoordinator",
    "ReconciliationStats",
    "Series",
    "SeriesInput",
    "SeriesReconciler",
    "Subject",
    "SubjectInput",
    "SubjectReconciler",
    "WorkCluster",
    "WorkEditionInput",
    "cluster_editions_by_work",
    "compare_editions",
    "normalize_identifier",
    "overall_confidence",
    "reconcile_metadata",
]
