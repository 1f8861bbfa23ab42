"""Collapse detected candidates that describe the same product."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.domain.matching import normalize_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from softcatalog.domain.model import DetectedCandidate

log = getLogger(__name__)

_FILLABLE_FIELDS = ("version", "publisher", "install_path", "executable_path", "icon_hint")


def merge_candidates(candidates: Iterable[DetectedCandidate]) -> list[DetectedCandidate]:
    """Return one canonical candidate per normalized name.

    Within a group a specialized detector beats the generic registry scan, then a
    categorized candidate beats an uncategorized one, then the first seen wins.
    Groups keep the position of their first member. The input is not mutated.
    """

    groups: dict[str, list[DetectedCandidate]] = {}
    for candidate in candidates:
        key = normalize_name(candidate.name)
        if not key:
            log.debug("Dropping candidate without a usable name from %s", candidate.origin)
            continue
        groups.setdefault(key, []).append(candidate)

    merged: list[DetectedCandidate] = []
    for key, members in groups.items():
        winner = select_survivor(members)
        if len(members) > 1:
            log.debug(
                "Merged %d candidates for %r, kept %s",
                len(members),
                key,
                winner.origin,
            )
        merged.append(_absorb(winner, members))
    return merged


def select_survivor(members: Sequence[DetectedCandidate]) -> DetectedCandidate:
    """Pick the surviving candidate of one group; ``min`` keeps the first on ties."""

    def rank(indexed: tuple[int, DetectedCandidate]) -> tuple[int, int, int]:
        index, candidate = indexed
        generic = 1 if candidate.origin.is_generic else 0
        uncategorized = 0 if candidate.category else 1
        return (generic, uncategorized, index)

    _, winner = min(enumerate(members), key=rank)
    return winner


def _absorb(winner: DetectedCandidate, members: Sequence[DetectedCandidate]) -> DetectedCandidate:
    """Copy of ``winner`` with empty facts filled from the rest of its group.

    ``external_id`` is never borrowed: it only has meaning for its own origin.
    """

    result = replace(winner, attributes=dict(winner.attributes))
    for member in members:
        if member is winner:
            continue
        for field_name in _FILLABLE_FIELDS:
            if not getattr(result, field_name) and getattr(member, field_name):
                setattr(result, field_name, getattr(member, field_name))
        if result.install_timestamp is None and member.install_timestamp is not None:
            result.install_timestamp = member.install_timestamp
        if result.size_bytes is None and member.size_bytes is not None:
            result.size_bytes = member.size_bytes
        for attr_key, attr_value in member.attributes.items():
            result.attributes.setdefault(attr_key, attr_value)
    return result
