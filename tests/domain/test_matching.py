from __future__ import annotations

import pytest

from softcatalog.domain.matching import (
    clean_game_name,
    clean_software_name,
    name_similarity,
    normalize_name,
)


def test_normalize_name_strips_trademarks_and_case() -> None:
    assert normalize_name("  The Witcher®  3:\tWild Hunt™ ") == "the witcher 3: wild hunt"


def test_normalize_name_of_blank_is_empty() -> None:
    assert normalize_name("   ") == ""


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("The Elder Scrolls V: Skyrim - Game of the Year Edition", "The Elder Scrolls V: Skyrim"),
        ("Portal 2", "Portal 2"),
        ("Tomb Raider (2013)", "Tomb Raider"),
        ("DOOM™ Deluxe Edition", "DOOM"),
    ],
)
def test_clean_game_name(raw: str, expected: str) -> None:
    assert clean_game_name(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("7-Zip 23.01 (x64)", "7-Zip"),
        ("Notepad++ (64-bit x64)", "Notepad++ (64-bit x64)"),
        ("Mozilla Firefox (x64 en-US)", "Mozilla Firefox (x64 en-US)"),
        ("Git 2.43.0", "Git"),
        ("Spotify v1.2", "Spotify"),
        ("Python 3.12.1 (64-bit)", "Python 3.12.1 (64-bit)"),
        ("VLC media player", "VLC media player"),
    ],
)
def test_clean_software_name(raw: str, expected: str) -> None:
    assert clean_software_name(raw) == expected


def test_name_similarity_bounds() -> None:
    assert name_similarity("Portal 2", "portal 2 ") == 1.0
    assert name_similarity("", "Portal") == 0.0
    assert 0.0 < name_similarity("Portal 2", "Portal") < 1.0


def test_name_similarity_is_normalized_edit_distance() -> None:
    # one substitution over ten characters
    assert name_similarity("abcdefghij", "abcdefghix") == pytest.approx(0.9)
