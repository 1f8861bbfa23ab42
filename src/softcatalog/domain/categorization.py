"""Keyword, publisher and install-location categorization for generic entries.

Store detectors assign ``Category.GAMES`` themselves; this module only decides
for candidates that arrive without a category (mostly registry entries).
"""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from softcatalog.domain.model import Category

if TYPE_CHECKING:
    from collections.abc import Iterable

    from softcatalog.domain.model import DetectedCandidate

log = getLogger(__name__)

COMPONENT_KEYWORDS: Final[tuple[str, ...]] = (
    "redistributable",
    "runtime",
    "driver",
    "sdk",
    "language pack",
    "proofing tools",
    "shared components",
    "mui",
    "directx",
    "vcredist",
    "bootstrapper",
)

CATEGORY_KEYWORDS: Final[dict[Category, tuple[str, ...]]] = {
    Category.GAMING_PLATFORMS: (
        "steam", "epic games", "gog galaxy", "origin", "uplay", "ubisoft connect",
        "battle.net", "blizzard", "xbox", "game pass", "ea app", "itch.io",
        "playnite", "lutris", "legendary", "amazon games", "humble app", "legacy games",
    ),
    Category.OFFICE: (
        "microsoft office", "word", "excel", "powerpoint", "outlook", "onenote",
        "libreoffice", "openoffice", "wps office", "google workspace",
        "notion", "evernote", "adobe acrobat", "pdf", "onlyoffice", "workflowy",
    ),
    Category.DESIGN: (
        "adobe", "photoshop", "illustrator", "indesign", "premiere", "after effects",
        "affinity", "gimp", "inkscape", "blender", "3ds max", "maya", "cinema 4d",
        "sketch", "figma", "canva", "corel", "paint.net", "painter", "autodesk", "da vinci",
    ),
    Category.DEVELOPMENT: (
        "visual studio", "vscode", "jetbrains", "intellij", "pycharm", "webstorm",
        "eclipse", "netbeans", "atom", "sublime", "notepad++",
        "git", "github desktop", "sourcetree", "tortoise",
        "python", "node", "java", "docker", "kubernetes", "postman",
        "android studio", "xcode", "unity", "unreal engine",
    ),
    Category.MEDIA: (
        "vlc", "media player", "spotify", "itunes", "audacity", "obs studio",
        "handbrake", "ffmpeg", "plex", "kodi", "winamp",
        "kdenlive", "shotcut", "jellyfin",
    ),
    Category.COMMUNICATION: (
        "chrome", "firefox", "edge", "brave", "opera", "browser",
        "thunderbird", "mail",
        "discord", "slack", "teams", "zoom", "skype", "telegram", "whatsapp", "signal",
    ),
    Category.UTILITIES: (
        "7-zip", "winrar", "winzip",
        "ccleaner", "windirstat", "treesize",
        "notepad", "total commander", "file explorer",
        "powertoys", "autohotkey", "rainmeter",
    ),
    Category.SECURITY: (
        "antivirus", "firewall", "malwarebytes", "kaspersky", "norton", "mcafee",
        "avast", "avg", "bitdefender", "windows defender", "eset",
    ),
}

PUBLISHER_CATEGORIES: Final[dict[str, Category]] = {
    "microsoft corporation": Category.OFFICE,
    "the document foundation": Category.OFFICE,
    "adobe systems": Category.DESIGN,
    "adobe inc.": Category.DESIGN,
    "serif": Category.DESIGN,
    "blender foundation": Category.DESIGN,
    "autodesk": Category.DESIGN,
    "jetbrains": Category.DEVELOPMENT,
    "github": Category.DEVELOPMENT,
    "oracle": Category.DEVELOPMENT,
    "python software foundation": Category.DEVELOPMENT,
    "node.js foundation": Category.DEVELOPMENT,
    "unity technologies": Category.DEVELOPMENT,
    "malwarebytes": Category.SECURITY,
    "kaspersky": Category.SECURITY,
    "norton": Category.SECURITY,
    "mcafee": Category.SECURITY,
}

_LAUNCHER_PATH_HINTS: Final[tuple[str, ...]] = ("steamapps", "steam", "epic games", "gog galaxy")


def _compile(keywords: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)")


_COMPONENT_PATTERN = _compile(COMPONENT_KEYWORDS)
_CATEGORY_PATTERNS: Final[tuple[tuple[Category, re.Pattern[str]], ...]] = tuple(
    (category, _compile(keywords)) for category, keywords in CATEGORY_KEYWORDS.items()
)


def categorize(
    name: str,
    publisher: str | None = None,
    install_location: str | None = None,
) -> Category:
    """Pick a category from name/publisher keywords, then publisher, then location."""

    if not name or not name.strip():
        return Category.OTHER

    lower_name = name.lower()
    lower_publisher = (publisher or "").lower()

    if _COMPONENT_PATTERN.search(lower_name):
        return Category.COMPONENT

    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(lower_name) or pattern.search(lower_publisher):
            return category

    if lower_publisher:
        publisher_category = PUBLISHER_CATEGORIES.get(lower_publisher.strip())
        if publisher_category is not None:
            return publisher_category

    if install_location:
        lower_location = install_location.lower()
        if any(hint in lower_location for hint in _LAUNCHER_PATH_HINTS):
            return Category.GAMING_PLATFORMS

    return Category.OTHER


def assign_categories(candidates: Iterable[DetectedCandidate]) -> None:
    """Fill in ``category`` for candidates that have none, in place."""

    for candidate in candidates:
        if candidate.category is not None:
            continue
        candidate.category = categorize(
            candidate.name,
            candidate.publisher,
            candidate.install_path,
        )
        log.debug("Categorized %r as %s", candidate.name, candidate.category)
