"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class OriginPlatform(StrEnum):
    REGISTRY = "registry"
    STEAM = "steam"
    EPIC = "epic"
    GOG = "gog"
    UBISOFT = "ubisoft"
    EA = "ea"
    AMAZON = "amazon"

    @property
    def is_generic(self) -> bool:
        """Whether candidates of this origin lose against any specialized detector."""
        return self is OriginPlatform.REGISTRY

    @property
    def is_game_launcher(self) -> bool:
        return not self.is_generic


class ProviderGroup(StrEnum):
    GAME = "game"
    SOFTWARE = "software"


class Category(StrEnum):
    GAMES = "games"
    GAMING_PLATFORMS = "gaming-platforms"
    OFFICE = "office"
    DESIGN = "design"
    DEVELOPMENT = "development"
    MEDIA = "media"
    COMMUNICATION = "communication"
    UTILITIES = "utilities"
    SECURITY = "security"
    # Shared runtimes, redistributables, drivers, language packs: no public metadata
    COMPONENT = "component"
    OTHER = "other"

    @property
    def provider_group(self) -> ProviderGroup | None:
        if self is Category.GAMES:
            return ProviderGroup.GAME
        if self is Category.COMPONENT:
            return None
        return ProviderGroup.SOFTWARE

    @property
    def display_name(self) -> str:
        return _CATEGORY_DISPLAY_NAMES[self]


class EnrichmentState(StrEnum):
    UNENRICHED = "unenriched"
    ENRICHING = "enriching"
    ENRICHED = "enriched"
    FAILED = "failed"
    SKIPPED = "skipped"


_CATEGORY_DISPLAY_NAMES: dict[Category, str] = {
    Category.GAMES: "Games",
    Category.GAMING_PLATFORMS: "Gaming Platforms",
    Category.OFFICE: "Office & Productivity",
    Category.DESIGN: "Design & Graphics",
    Category.DEVELOPMENT: "Development Tools",
    Category.MEDIA: "Media & Entertainment",
    Category.COMMUNICATION: "Communication",
    Category.UTILITIES: "Utilities",
    Category.SECURITY: "Security",
    Category.COMPONENT: "Shared Components",
    Category.OTHER: "Other",
}
