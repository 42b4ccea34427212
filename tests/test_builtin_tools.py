"""
Built-in general tools, exercised against a mocked HTTP transport.

Run with:
$ pytest -q
"""

import httpx

from contentflow.tools.builtin import (
    GoogleSearch,
    WebFetch,
    html_to_text,
)

PAGE = """<html><head><title>Release notes</title><style>body {color: red}</style></head>
<body><h1>Python 3.13</h1><script>track()</script><p>Faster   and
friendlier.</p></body></html>"""


def test_html_to_text_strips_markup() -> None:
    assert html_to_text(PAGE) == "Release notes Python 3.13 Faster and friendlier."


def test_html_to_text_decodes_entities() -> None:
    assert html_to_text("<p>Tom &amp; Jerry at the caf&eacute;</p>") == "Tom & Jerry at the caf\u00e9"


def test_html_to_text_keeps_literal_angle_brackets() -> None:
    """A bare ``<`` in running text is not mistaken for a tag."""

    assert html_to_text("<p>if a < b and c > d then</p>") == "if a < b and c > d then"


def test_web_fetch_returns_title_and_text() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE))

    result = WebFetch(transport=transport).execute({"url": "https://example.com/notes"})

    assert result.success is True
    assert result.data["title"] == "Release notes"
    assert "Faster and friendlier." in result.data["content"]
    assert result.data["truncated"] is False


def test_web_fetch_rejects_non_http_urls() -> None:
    result = WebFetch().execute({"url": "file:///etc/passwd"})

    assert result.success is False
    assert "Invalid URL" in result.error


def test_google_search_maps_items() -> None:
    """Results are reduced to title, link and snippet."""

    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            200,
            json={"items": [{"title": "Python", "link": "https://python.org", "snippet": "Home", "kind": "x"}]},
        )

    search = GoogleSearch("key", "cx", transport=httpx.MockTransport(handler))
    result = search.execute({"query": "python", "num": 50})

    assert result.success is True
    assert result.data == [{"title": "Python", "link": "https://python.org", "snippet": "Home"}]
    assert seen["q"] == "python"
    assert seen["num"] == "10"


def test_google_search_without_credentials() -> None:
    result = GoogleSearch(None, None).execute({"query": "python"})

    assert result.success is False
