"""Pytest configuration and fixtures."""

import io

import httpx
import pytest
from PIL import Image

from linksync.config import Settings

PLACEHOLDER_ENDPOINT = "https://placeholder.test/generate"
PLACEHOLDER_HOST = "placeholder.test"


def make_image_bytes(width=40, height=20, color=(200, 30, 30), fmt="PNG"):
    """Solid-color image encoded in ``fmt``."""
    mode = "RGBA" if len(color) == 4 else "RGB"
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def html_page(og_tags="", title="Page"):
    body = f"<html><head><title>{title}</title>{og_tags}</head><body></body></html>"
    return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=body)


def image_response(data, content_type="image/png"):
    return httpx.Response(200, headers={"content-type": content_type}, content=data)


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def settings(tmp_path):
    """Short limits and a temp dataset path."""
    return Settings(
        links_file=tmp_path / "links.json",
        report_file=None,
        unfurl_timeout=2,
        image_timeout=2,
        color_timeout=5,
        max_runtime=60,
        concurrency=3,
        progress_every=10,
        placeholder_endpoint=PLACEHOLDER_ENDPOINT,
    )


@pytest.fixture
def mock_client():
    """
    Build an AsyncClient over a routing table.

    Routes are looked up by full URL, then by host. A value is a Response,
    or a callable taking the request. Unknown URLs fail like an unreachable host.
    """
    def _make(routes, calls=None):
        def handler(request):
            if calls is not None:
                calls.append(str(request.url))
            route = routes.get(str(request.url), routes.get(request.url.host))
            if route is None:
                raise httpx.ConnectError("unreachable host", request=request)
            if callable(route):
                return route(request)
            # fresh copy, a Response can only be sent once
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    return _make
