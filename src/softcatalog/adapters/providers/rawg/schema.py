"""Pydantic models describing the RAWG API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class RawgBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawgNamed(RawgBaseModel):
    id: int | None = None
    name: str
    slug: str | None = None


class RawgStore(RawgBaseModel):
    id: int
    name: str | None = None
    slug: str | None = None


class RawgStoreLink(RawgBaseModel):
    store: RawgStore
    url: str | None = None

    _normalize_url = field_validator("url", mode="before")(_blank_to_none)


class RawgGame(RawgBaseModel):
    id: int
    name: str
    slug: str | None = None
    released: str | None = None
    background_image: str | None = None
    rating: float | None = None
    rating_top: int | None = None
    genres: list[RawgNamed] = Field(default_factory=list[RawgNamed])
    # RAWG sends ``null`` instead of an empty list for unlisted games
    stores: list[RawgStoreLink] | None = None

    _normalize_optional = field_validator("released", "background_image", mode="before")(
        _blank_to_none
    )

    def references_steam_app(self, app_id: str) -> bool:
        marker = f"/app/{app_id}"
        return any(
            link.url is not None and marker in link.url
            for link in self.stores or ()
            if link.store.slug == "steam"
        )


class RawgGameDetails(RawgGame):
    description_raw: str | None = None
    website: str | None = None
    developers: list[RawgNamed] = Field(default_factory=list[RawgNamed])
    publishers: list[RawgNamed] = Field(default_factory=list[RawgNamed])
    metacritic: int | None = None
    playtime: int | None = None
    esrb_rating: RawgNamed | None = None

    _normalize_details = field_validator("description_raw", "website", mode="before")(
        _blank_to_none
    )

    @field_validator("esrb_rating", mode="before")
    @classmethod
    def _ignore_non_object_rating(cls, value: object) -> object:
        return value if isinstance(value, dict) else None


class RawgSearchResponse(RawgBaseModel):
    count: int = 0
    results: list[RawgGame] = Field(default_factory=list[RawgGame])
