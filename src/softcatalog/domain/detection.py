"""Run source detectors and let specialized detectors claim generic entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.domain.errors import SourceReadError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softcatalog.domain.model import DetectedCandidate
    from softcatalog.domain.ports import SourceDetector

log = getLogger(__name__)


@dataclass(slots=True)
class DetectorReport:
    name: str
    available: bool
    candidates: int = 0
    error: str | None = None


@dataclass(slots=True)
class DetectionResult:
    candidates: list[DetectedCandidate] = field(default_factory=list["DetectedCandidate"])
    reports: list[DetectorReport] = field(default_factory=list[DetectorReport])
    claimed: int = 0


def run_detectors(detectors: Sequence[SourceDetector]) -> DetectionResult:
    """Run every available detector in registration order.

    A failing detector is logged and reported; the pass continues with the rest.
    """

    result = DetectionResult()
    for detector in detectors:
        try:
            available = detector.is_available()
        except OSError as exc:
            log.warning("%s availability check failed: %s", detector.name, exc)
            available = False
        if not available:
            log.debug("%s not available on this machine", detector.name)
            result.reports.append(DetectorReport(name=detector.name, available=False))
            continue

        try:
            found = detector.detect()
        except SourceReadError as exc:
            log.warning("%s could not read its source: %s", detector.name, exc)
            result.reports.append(
                DetectorReport(name=detector.name, available=True, error=str(exc))
            )
            continue
        except Exception as exc:
            log.exception("%s failed unexpectedly", detector.name)
            result.reports.append(
                DetectorReport(name=detector.name, available=True, error=repr(exc))
            )
            continue

        log.info("%s detected %d entries", detector.name, len(found))
        result.reports.append(
            DetectorReport(name=detector.name, available=True, candidates=len(found))
        )
        result.candidates.extend(found)

    result.claimed = apply_claims(result.candidates, detectors)
    return result


def apply_claims(
    candidates: list[DetectedCandidate],
    detectors: Sequence[SourceDetector],
) -> int:
    """Replace generic candidates in place when a specialized detector claims their path."""

    specialized = [detector for detector in detectors if not detector.origin.is_generic]
    if not specialized:
        return 0

    claimed = 0
    for index, candidate in enumerate(candidates):
        if not candidate.origin.is_generic or not candidate.install_path:
            continue
        for detector in specialized:
            try:
                claim = detector.claim_from_path(candidate.install_path)
            except (OSError, SourceReadError) as exc:
                log.debug("%s could not claim %s: %s", detector.name, candidate.install_path, exc)
                continue
            if claim is None:
                continue
            candidates[index] = _inherit(claim, candidate)
            claimed += 1
            log.debug("%s claimed %r at %s", detector.name, candidate.name, candidate.install_path)
            break
    return claimed


def _inherit(claim: DetectedCandidate, generic: DetectedCandidate) -> DetectedCandidate:
    claim.version = claim.version or generic.version
    claim.publisher = claim.publisher or generic.publisher
    claim.install_timestamp = claim.install_timestamp or generic.install_timestamp
    claim.icon_hint = claim.icon_hint or generic.icon_hint
    for key, value in generic.attributes.items():
        claim.attributes.setdefault(key, value)
    return claim
