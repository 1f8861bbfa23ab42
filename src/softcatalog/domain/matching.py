"""Name normalization and similarity scoring."""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_TRADEMARKS = re.compile(r"[™®©]")
_WHITESPACE = re.compile(r"\s+")

_EDITION_SUFFIXES = (
    " - game of the year edition",
    " game of the year edition",
    " - goty edition",
    " goty edition",
    " goty",
    " - definitive edition",
    " definitive edition",
    " - deluxe edition",
    " deluxe edition",
    " - complete edition",
    " complete edition",
    " - enhanced edition",
    " enhanced edition",
    " - remastered",
    " remastered",
)
_TRAILING_YEAR = re.compile(r"\s*\(\d{4}\)\s*$")
_TRAILING_VERSION = re.compile(r"\s+v?\d+(\.\d+)*$")
_ARCH_SUFFIXES = (" (x64)", " (x86)", " 64-bit", " 32-bit", " x64", " x86")


def normalize_name(name: str) -> str:
    """Case-insensitive dedupe key: trademarks stripped, whitespace collapsed."""

    stripped = _TRADEMARKS.sub("", name)
    return _WHITESPACE.sub(" ", stripped).strip().casefold()


def clean_game_name(name: str) -> str:
    cleaned = _WHITESPACE.sub(" ", _TRADEMARKS.sub("", name)).strip()
    lowered = cleaned.lower()
    for suffix in _EDITION_SUFFIXES:
        if lowered.endswith(suffix):
            cleaned = cleaned[: -len(suffix)].strip()
            break
    return _TRAILING_YEAR.sub("", cleaned).strip()


def clean_software_name(name: str) -> str:
    cleaned = _WHITESPACE.sub(" ", _TRADEMARKS.sub("", name)).strip()
    changed = True
    while changed:
        changed = False
        lowered = cleaned.lower()
        for suffix in _ARCH_SUFFIXES:
            if lowered.endswith(suffix):
                cleaned = cleaned[: -len(suffix)].strip()
                changed = True
                break
        without_version = _TRAILING_VERSION.sub("", cleaned)
        if without_version and without_version != cleaned:
            cleaned = without_version.strip()
            changed = True
    return cleaned


def name_similarity(left: str, right: str) -> float:
    """1 - edit distance / longest length, on trimmed lower-case names."""

    a = left.strip().casefold()
    b = right.strip().casefold()
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)
