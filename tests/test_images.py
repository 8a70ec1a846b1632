"""Tests for image download, dimensions and dominant color."""

import dataclasses
import io
import logging
import time

import httpx
import pytest
from PIL import Image

from conftest import PLACEHOLDER_HOST, image_response, make_image_bytes
from linksync import images
from linksync.fallback import DEFAULT_BACKGROUND_COLOR, DEFAULT_DIMENSIONS
from linksync.images import dominant_color, download_image, inspect_image, read_dimensions
from linksync.results import Failure

IMAGE_URL = "https://cdn.example.com/cover.png"
PLACEHOLDER_URL = "https://placeholder.test/generate?title=A"


def test_read_dimensions_png():
    dims = read_dimensions(make_image_bytes(40, 20))

    assert dims == {"width": 40, "height": 20, "format": "png"}


def test_read_dimensions_jpeg_reported_as_jpg():
    dims = read_dimensions(make_image_bytes(64, 32, fmt="JPEG"))

    assert dims == {"width": 64, "height": 32, "format": "jpg"}


def test_read_dimensions_rejects_garbage():
    with pytest.raises(Exception):
        read_dimensions(b"<html>not an image</html>")


def test_dominant_color_solid():
    assert dominant_color(make_image_bytes(100, 50, (18, 18, 18))) == "rgb(18,18,18)"


def test_dominant_color_picks_majority():
    img = Image.new("RGB", (100, 100), (220, 40, 40))
    img.paste((20, 40, 220), (0, 0, 100, 20))
    buf = io.BytesIO()
    img.save(buf, format="PNG")

    assert dominant_color(buf.getvalue()) == "rgb(220,40,40)"


def test_dominant_color_ignores_transparent_pixels():
    img = Image.new("RGBA", (100, 100), (0, 0, 0, 0))
    img.paste((10, 200, 10, 255), (0, 0, 30, 30))
    buf = io.BytesIO()
    img.save(buf, format="PNG")

    assert dominant_color(buf.getvalue()) == "rgb(10,200,10)"


def test_dominant_color_fully_transparent():
    with pytest.raises(ValueError):
        dominant_color(make_image_bytes(10, 10, (0, 0, 0, 0)))


@pytest.mark.asyncio
async def test_download_image_rejects_non_200(mock_client):
    async with mock_client({IMAGE_URL: httpx.Response(404)}) as client:
        result = await download_image(client, IMAGE_URL, timeout=2, max_bytes=1024)

    assert result.failure == Failure.HTTP_STATUS


@pytest.mark.asyncio
async def test_download_image_rejects_oversized(mock_client):
    data = make_image_bytes(200, 200)
    async with mock_client({IMAGE_URL: image_response(data)}) as client:
        result = await download_image(client, IMAGE_URL, timeout=2, max_bytes=len(data) - 1)

    assert result.failure == Failure.TOO_LARGE


@pytest.mark.asyncio
async def test_inspect_open_graph_image(mock_client, settings):
    routes = {IMAGE_URL: image_response(make_image_bytes(300, 150, (0, 128, 255)))}
    async with mock_client(routes) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == IMAGE_URL
    assert info.dimensions == {"width": 300, "height": 150, "format": "png"}
    assert info.background_color == "rgb(0,128,255)"
    assert info.image_source == "open_graph"
    assert info.color_source == "extracted"


@pytest.mark.asyncio
async def test_inspect_broken_candidate_uses_placeholder(mock_client, settings):
    routes = {
        IMAGE_URL: httpx.Response(404),
        PLACEHOLDER_HOST: image_response(make_image_bytes(1200, 630, (18, 18, 18))),
    }
    async with mock_client(routes) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == PLACEHOLDER_URL
    assert info.dimensions == {"width": 1200, "height": 630, "format": "png"}
    assert info.background_color == "rgb(18,18,18)"
    assert info.image_source == "placeholder"


@pytest.mark.asyncio
async def test_inspect_undecodable_candidate_uses_placeholder(mock_client, settings):
    routes = {
        IMAGE_URL: httpx.Response(200, content=b"<html>login wall</html>"),
        PLACEHOLDER_HOST: image_response(make_image_bytes(800, 400, (18, 18, 18))),
    }
    async with mock_client(routes) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == PLACEHOLDER_URL
    assert info.dimensions["width"] == 800


@pytest.mark.asyncio
async def test_inspect_everything_fails_gives_defaults(mock_client, settings):
    async with mock_client({IMAGE_URL: httpx.Response(500)}) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == PLACEHOLDER_URL
    assert info.dimensions == DEFAULT_DIMENSIONS
    assert info.background_color == DEFAULT_BACKGROUND_COLOR
    assert info.image_source == "default"


@pytest.mark.asyncio
async def test_inspect_placeholder_candidate_fetched_once(mock_client, settings):
    calls = []
    async with mock_client({}, calls=calls) as client:
        info = await inspect_image(client, PLACEHOLDER_URL, PLACEHOLDER_URL, settings)

    assert len(calls) == 1
    assert info.dimensions == DEFAULT_DIMENSIONS


@pytest.mark.asyncio
async def test_color_failure_keeps_url_and_dimensions(mock_client, settings, monkeypatch):
    def broken(data):
        raise OSError("truncated image")

    monkeypatch.setattr(images, "dominant_color", broken)
    routes = {IMAGE_URL: image_response(make_image_bytes(300, 150))}
    async with mock_client(routes) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == IMAGE_URL
    assert info.dimensions == {"width": 300, "height": 150, "format": "png"}
    assert info.background_color == DEFAULT_BACKGROUND_COLOR
    assert info.color_source == "default"


@pytest.mark.asyncio
async def test_color_timeout_falls_back(mock_client, settings, monkeypatch):
    def slow(data):
        time.sleep(0.5)
        return "rgb(1,2,3)"

    monkeypatch.setattr(images, "dominant_color", slow)
    routes = {IMAGE_URL: image_response(make_image_bytes(300, 150))}
    quick = dataclasses.replace(settings, color_timeout=0.05)
    async with mock_client(routes) as client:
        info = await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, quick)

    assert info.background_color == DEFAULT_BACKGROUND_COLOR
    assert info.dimensions["width"] == 300


SVG_URL = "https://cdn.example.com/card.svg"
SVG_CARD = (
    b'<?xml version="1.0" encoding="UTF-8"?>\n'
    b'<svg xmlns="http://www.w3.org/2000/svg" width="1200" height="630">'
    b'<rect width="1200" height="630" fill="#336699"/></svg>'
)


def test_read_dimensions_svg_attributes():
    assert read_dimensions(SVG_CARD) == {"width": 1200, "height": 630, "format": "svg"}


def test_read_dimensions_svg_viewbox_only():
    data = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 640 320"><g/></svg>'

    assert read_dimensions(data) == {"width": 640, "height": 320, "format": "svg"}


@pytest.mark.asyncio
async def test_inspect_svg_keeps_candidate_url(mock_client, settings):
    calls = []
    routes = {SVG_URL: image_response(SVG_CARD, content_type="image/svg+xml")}
    async with mock_client(routes, calls=calls) as client:
        info = await inspect_image(client, SVG_URL, PLACEHOLDER_URL, settings)

    assert info.image_url == SVG_URL
    assert info.image_source == "open_graph"
    assert info.dimensions == {"width": 1200, "height": 630, "format": "svg"}
    assert info.background_color == DEFAULT_BACKGROUND_COLOR
    assert info.color_source == "default"
    assert calls == [SVG_URL]


def test_dominant_color_large_jpeg():
    data = make_image_bytes(3000, 2000, (40, 120, 200), fmt="JPEG")

    rgb = dominant_color(data)[4:-1].split(",")
    for got, want in zip(map(int, rgb), (40, 120, 200)):
        assert abs(got - want) <= 3


@pytest.mark.asyncio
async def test_failed_candidate_logged_as_warning(mock_client, settings, caplog):
    caplog.set_level(logging.WARNING, logger="linksync")
    async with mock_client({IMAGE_URL: httpx.Response(404)}) as client:
        await inspect_image(client, IMAGE_URL, PLACEHOLDER_URL, settings)

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any(IMAGE_URL in r.getMessage() for r in warnings)
