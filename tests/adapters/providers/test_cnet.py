from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from softcatalog.adapters.providers import CnetProvider
from softcatalog.adapters.providers.cnet import parse_application, parse_heading, strip_html
from softcatalog.config import CnetConfig
from softcatalog.config.providers import CNET_BASE_URL
from softcatalog.domain.ports import LookupContext, MetadataResult
from tests.helpers.http import make_client_factory, offline_resilience

if TYPE_CHECKING:
    from collections.abc import Callable

APPLICATION = {
    "@context": "https://schema.org",
    "@type": "SoftwareApplication",
    "name": "VLC Media Player",
    "description": "<p>Play &amp; stream media.</p>",
    "publisher": {"@type": "Organization", "name": "VideoLAN"},
    "url": "https://download.cnet.com/vlc-media-player/",
    "image": ["https://cnet.example/vlc.png"],
    "aggregateRating": {"ratingValue": 4, "bestRating": 5},
}


def _page(*blocks: object, body: str = "") -> str:
    scripts = "".join(
        f'<script type="application/ld+json">{json.dumps(block)}</script>' for block in blocks
    )
    return f"<html><head>{scripts}</head><body>{body}</body></html>"


def _provider(handler: Callable[[httpx.Request], httpx.Response]) -> CnetProvider:
    return CnetProvider(
        config=CnetConfig(resilience=offline_resilience("cnet", CNET_BASE_URL)),
        client_factory=make_client_factory(handler),
    )


def test_json_ld_application_is_preferred() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200, text=_page({"@type": "WebSite"}, APPLICATION, body="<h1>VLC</h1>")
        )

    provider = _provider(handler)

    async def run() -> MetadataResult | None:
        try:
            return await provider.lookup_by_name("VLC", LookupContext(publisher="VideoLAN"))
        finally:
            await provider.aclose()

    result = asyncio.run(run())

    assert result is not None
    assert result.name == "VLC Media Player"
    assert result.description == "Play & stream media."
    assert result.publisher == "VideoLAN"
    assert result.icon_url == "https://cnet.example/vlc.png"
    assert result.rating == 0.8
    assert result.confidence == 0.8
    assert requests[0].url.path == "/search/"
    assert requests[0].url.params["q"] == "VLC VideoLAN"


def test_falls_back_to_matching_heading() -> None:
    page = _page(
        body=(
            "<h2>Popular downloads</h2><p>Ignore me</p>"
            "<h2 class='title'><a href='/x'>7-Zip 23.01</a></h2>"
            "<p>Free <b>file archiver</b>.</p>"
        )
    )

    result = parse_heading(page, "7-zip")

    assert result is not None
    assert result.name == "7-Zip 23.01"
    assert result.description == "Free file archiver ."
    assert result.confidence == 0.6


def test_graph_blocks_and_broken_json() -> None:
    page = (
        '<script type="application/ld+json">{not json</script>'
        + _page({"@graph": [{"@type": "BreadcrumbList"}, APPLICATION]})
    )

    result = parse_application(page)

    assert result is not None
    assert result.name == "VLC Media Player"


def test_nothing_usable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return httpx.Response(200, text="<html><body><h1>No results</h1></body></html>")

    assert asyncio.run(_provider(handler).lookup_by_name("VLC", LookupContext())) is None


def test_http_errors_propagate() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return httpx.Response(403)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_provider(handler).lookup_by_name("VLC", LookupContext()))


def test_strip_html() -> None:
    assert strip_html("<b>Fast</b>&nbsp;and\n  <i>free</i>") == "Fast and free"
