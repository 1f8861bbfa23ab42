"""Pydantic models for the MediaWiki query API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WikipediaBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SearchHit(WikipediaBaseModel):
    pageid: int
    title: str


class SearchQuery(WikipediaBaseModel):
    search: list[SearchHit] = Field(default_factory=list[SearchHit])


class SearchResponse(WikipediaBaseModel):
    query: SearchQuery = Field(default_factory=SearchQuery)


class PageExtract(WikipediaBaseModel):
    pageid: int
    title: str
    extract: str | None = None
    fullurl: str | None = None


class ExtractQuery(WikipediaBaseModel):
    pages: dict[str, PageExtract] = Field(default_factory=dict[str, PageExtract])


class ExtractResponse(WikipediaBaseModel):
    query: ExtractQuery = Field(default_factory=ExtractQuery)
