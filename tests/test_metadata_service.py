import httpx

from bookmarkhub.services.metadata import (
    collect_icon_candidates,
    fetch_website_metadata,
    parse_metadata,
)


def test_parse_metadata_prefers_open_graph():
    html = """
    <html><head>
      <title>Plain title</title>
      <meta property="og:title" content="OG title">
      <meta name="description" content="Plain description">
      <link rel="shortcut icon" href="/static/icon.png">
    </head></html>
    """

    metadata = parse_metadata(html, "https://example.com/articles/1")

    assert metadata.title == "OG title"
    assert metadata.description == "Plain description"
    assert metadata.favicon == "https://example.com/static/icon.png"


def test_parse_metadata_defaults_favicon_to_site_root():
    html = "<html><head><title> Hi </title></head></html>"
    metadata = parse_metadata(html, "http://example.com/a/b")

    assert metadata.title == "Hi"
    assert metadata.description == ""
    assert metadata.favicon == "http://example.com/favicon.ico"


def test_icon_candidates_are_sorted_by_declared_size():
    html = """
    <link rel="icon" href="/16.png" sizes="16x16">
    <link rel="icon" href="/any.svg" sizes="any">
    <link rel="apple-touch-icon" href="/touch.png">
    <link rel="icon" href="data:image/png;base64,AAAA">
    <link rel="icon" href="/16.png" sizes="32x32">
    <link rel="stylesheet" href="/site.css">
    """

    candidates = collect_icon_candidates(html, "https://example.com/")

    assert [(c.url, c.size) for c in candidates] == [
        ("https://example.com/any.svg", 1024),
        ("https://example.com/touch.png", 180),
        ("https://example.com/16.png", 16),
    ]


def test_fetch_website_metadata_follows_redirects():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"location": "https://example.com/new/"})
        return httpx.Response(
            200,
            headers={"content-type": "text/html; charset=utf-8"},
            text='<title>New home</title><link rel="icon" href="fav.png">',
        )

    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)

    metadata = fetch_website_metadata("https://example.com/old", client=client)

    assert metadata.title == "New home"
    assert metadata.favicon == "https://example.com/new/fav.png"


def test_fetch_website_metadata_returns_none_on_failure():
    client = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="oops"))
    )

    assert fetch_website_metadata("https://example.com", client=client) is None
    assert fetch_website_metadata("javascript:alert(1)", client=client) is None
