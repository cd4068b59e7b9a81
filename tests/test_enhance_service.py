import io

import httpx
from PIL import Image

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark, User
from bookmarkhub.services.enhance import (
    bulk_enhance,
    enhance_bookmark_logo,
    enhancement_stats,
    friendly_error_message,
)
from bookmarkhub.services.favicon import FaviconResult


def _png(size: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), (0, 120, 255, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def _user():
    user = User(username="owner", is_active=True)
    user.set_password("secret")
    db.session.add(user)
    db.session.commit()
    return user


def _bookmark(user, url, favicon=None):
    bookmark = Bookmark(
        user_id=user.id, url=url, normalized_url=url, title=url, favicon=favicon
    )
    db.session.add(bookmark)
    db.session.commit()
    return bookmark


def _client(routes):
    def handler(request):
        body = routes.get((request.method, str(request.url)))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, headers={"content-type": "image/png"}, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_enhance_upscales_reachable_favicon(app, storage):
    with app.app_context():
        bookmark = _bookmark(
            _user(), "https://example.com", favicon="https://example.com/small.png"
        )
        client = _client(
            {
                ("HEAD", "https://example.com/small.png"): b"",
                ("GET", "https://example.com/small.png"): _png(48),
            }
        )

        outcome = enhance_bookmark_logo(bookmark, storage, client=client)
        db.session.commit()

        assert outcome.success
        assert outcome.s3_key.startswith("tenant/upscaled-logos/example.com-")
        assert bookmark.favicon == outcome.favicon
        assert bookmark.favicon_source == "upscaled"
        assert [entry.action for entry in bookmark.history] == ["LOGO_ENHANCED"]


def test_enhance_replaces_broken_favicon_even_when_upscale_is_skipped(
    app, storage, monkeypatch
):
    monkeypatch.setattr(
        "bookmarkhub.services.enhance.resolve_favicon",
        lambda url, **kwargs: FaviconResult(
            url="https://cdn.example/big.png", tier=2, source="clearbit", quality="high"
        ),
    )

    with app.app_context():
        bookmark = _bookmark(
            _user(), "https://example.com", favicon="https://example.com/gone.ico"
        )
        client = _client({("GET", "https://cdn.example/big.png"): _png(600)})

        outcome = enhance_bookmark_logo(bookmark, storage, client=client)

        assert not outcome.success
        assert outcome.message == (
            "This logo is already high quality and doesn't need enhancement!"
        )
        assert outcome.as_dict()["error"] == (
            "Image already meets quality threshold (600x600)"
        )
        assert bookmark.favicon == "https://cdn.example/big.png"
        assert bookmark.favicon_source == "clearbit"


def test_bulk_enhance_counts_each_outcome(app, monkeypatch):
    def _fake_resolve(url, **kwargs):
        if "broken" in url:
            raise httpx.ConnectError("connection refused")
        return FaviconResult(
            url=f"{url}/apple-touch-icon.png", tier=3, source="html", quality="medium"
        )

    monkeypatch.setattr("bookmarkhub.services.enhance.resolve_favicon", _fake_resolve)

    with app.app_context():
        user = _user()
        good = _bookmark(
            user, "https://good.example", favicon="https://logo.clearbit.com/good.example"
        )
        low = _bookmark(
            user,
            "https://low.example",
            favicon="https://www.google.com/s2/favicons?domain=low.example&sz=128",
        )
        broken = _bookmark(user, "https://broken.example")

        result = bulk_enhance(
            user.id,
            only_low_quality=True,
            client=_client({}),
        )

        summary = result["summary"]
        assert summary["processed"] == 3
        assert (summary["improved"], summary["unchanged"], summary["failed"]) == (1, 1, 1)
        assert summary["has_more"] is False

        rows = {row["id"]: row for row in result["results"]}
        assert rows[good.id]["improved"] is False
        assert rows[low.id]["new_favicon"] == "https://low.example/apple-touch-icon.png"
        assert rows[broken.id]["success"] is False
        assert db.session.get(Bookmark, low.id).favicon_source == "html"


def test_bulk_enhance_pages_through_bookmarks(app, monkeypatch):
    monkeypatch.setattr(
        "bookmarkhub.services.enhance.resolve_favicon",
        lambda url, **kwargs: FaviconResult(
            url=f"{url}/icon.png", tier=3, source="html", quality="low"
        ),
    )

    with app.app_context():
        user = _user()
        for index in range(3):
            _bookmark(user, f"https://site{index}.example")

        result = bulk_enhance(user.id, limit=1, skip=1, client=_client({}))

        assert result["summary"]["processed"] == 1
        assert result["summary"]["has_more"] is True
        assert result["summary"]["next_skip"] == 2

        stats = enhancement_stats(user.id)
        assert stats["total"] == 3
        assert stats["with_favicon"] == 1
        assert stats["needs_enhancement"] == 2


def test_friendly_error_messages():
    assert friendly_error_message("Failed to download image: 404").startswith(
        "Failed to download the logo"
    )
    assert friendly_error_message("Failed to upload enhanced image to S3: x") == (
        "Failed to save the enhanced logo. Please try again."
    )
    assert friendly_error_message(None) == "Enhancement failed"
    assert friendly_error_message("weird") == "weird"
