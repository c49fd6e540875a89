# ABOUTME: Publication info reconciler combining the date, publisher, and place reconcilers.
# ABOUTME: Each sub-field is reconciled independently; absent sub-fields get a zero-confidence placeholder.

from collections.abc import Sequence

from bibrecon.metadata.errors import ReconciliationInputError
from bibrecon.reconciliation.dates import DateReconciler
from bibrecon.reconciliation.places import PlaceReconciler
from bibrecon.reconciliation.publishers import PublisherReconciler
from bibrecon.reconciliation.types import (
    Conflict,
    EmptyInput,
    PublicationDate,
    PublicationInfoInput,
    PublicationPlace,
    Publisher,
    ReconciledField,
    ReconciledPublicationInfo,
)
from bibrecon.reconciliation.weights import PUBLICATION_WEIGHTS


def _present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class PublicationReconciler:
    """Reconciles date, publisher, and place claims from many sources."""

    def __init__(self) -> None:
        self._dates = DateReconciler()
        self._publishers = PublisherReconciler()
        self._places = PlaceReconciler()

    def reconcile(self, inputs: Sequence[PublicationInfoInput]) -> ReconciledPublicationInfo:
        if not inputs:
            msg = "No publication info to reconcile"
            raise ReconciliationInputError(msg)

        date_inputs = [item for item in inputs if _present(item.date)]
        publisher_inputs = [item for item in inputs if _present(item.publisher)]
        place_inputs = [item for item in inputs if _present(item.place)]

        return ReconciledPublicationInfo(
            date=(
                self._dates.reconcile(date_inputs)
                if date_inputs
                else ReconciledField(
                    value=PublicationDate(), confidence=0.0, reasoning="No date information available"
                )
            ),
            publisher=(
                self._publishers.reconcile(publisher_inputs)
                if publisher_inputs
                else ReconciledField(
                    value=Publisher(name=""),
                    confidence=0.0,
                    reasoning="No publisher information available",
                )
            ),
            place=(
                self._places.reconcile(place_inputs)
                if place_inputs
                else ReconciledField(
                    value=PublicationPlace(name=""),
                    confidence=0.0,
                    reasoning="No place information available",
                )
            ),
        )

    def try_reconcile(
        self, inputs: Sequence[PublicationInfoInput]
    ) -> ReconciledPublicationInfo | EmptyInput:
        if not inputs:
            return EmptyInput("No publication info to reconcile")
        return self.reconcile(inputs)


def publication_confidence(info: ReconciledPublicationInfo) -> float:
    """Weighted confidence of the whole publication block."""
    total = (
        info.date.confidence * PUBLICATION_WEIGHTS["date"]
        + info.publisher.confidence * PUBLICATION_WEIGHTS["publisher"]
        + info.place.confidence * PUBLICATION_WEIGHTS["place"]
    )
    return max(0.0, min(1.0, total))


def publication_conflicts(info: ReconciledPublicationInfo) -> list[Conflict]:
    return [*info.date.conflicts, *info.publisher.conflicts, *info.place.conflicts]
