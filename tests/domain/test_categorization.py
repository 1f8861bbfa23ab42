from __future__ import annotations

import pytest

from softcatalog.domain.categorization import assign_categories, categorize
from softcatalog.domain.model import Category, OriginPlatform
from tests.helpers.fakes import make_candidate


@pytest.mark.parametrize(
    ("name", "publisher", "expected"),
    [
        ("Microsoft .NET Runtime - 8.0.1", "Microsoft", Category.COMPONENT),
        ("NVIDIA Graphics Driver 546.33", "NVIDIA Corporation", Category.COMPONENT),
        ("Steam", "Valve Corporation", Category.GAMING_PLATFORMS),
        ("LibreOffice 7.6", "The Document Foundation", Category.OFFICE),
        ("GIMP 2.10.36", "The GIMP Team", Category.DESIGN),
        ("Microsoft Visual Studio Code", "Microsoft Corporation", Category.DEVELOPMENT),
        ("VLC media player", "VideoLAN", Category.MEDIA),
        ("Discord", "Discord Inc.", Category.COMMUNICATION),
        ("7-Zip 23.01 (x64)", "Igor Pavlov", Category.UTILITIES),
        ("Malwarebytes version 4.6", "Malwarebytes", Category.SECURITY),
    ],
)
def test_categorize_by_keywords(name: str, publisher: str, expected: Category) -> None:
    assert categorize(name, publisher) is expected


def test_component_keywords_win_over_other_categories() -> None:
    assert categorize("Microsoft Office Proofing Tools 2016") is Category.COMPONENT


def test_keywords_match_whole_words_only() -> None:
    # "edge" must not match inside "Knowledge"
    assert categorize("Knowledge Base Reader") is Category.OTHER


def test_publisher_lookup_after_keywords() -> None:
    assert categorize("Photo Editor", "Serif") is Category.DESIGN
    assert categorize("VirtualBox 7.0", "Oracle") is Category.DEVELOPMENT


def test_install_location_hint() -> None:
    assert (
        categorize("Wallpaper Engine", None, r"D:\SteamLibrary\steamapps\common\wallpaper_engine")
        is Category.GAMING_PLATFORMS
    )


def test_unknown_software_is_other() -> None:
    assert categorize("Acme Widget Manager", "Acme Ltd") is Category.OTHER
    assert categorize("   ") is Category.OTHER


def test_assign_categories_keeps_existing() -> None:
    game = make_candidate("Portal 2", OriginPlatform.STEAM, category=Category.GAMES)
    tool = make_candidate("VLC media player")

    assign_categories([game, tool])

    assert game.category is Category.GAMES
    assert tool.category is Category.MEDIA
