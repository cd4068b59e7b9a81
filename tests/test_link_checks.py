import httpx

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark, User
from bookmarkhub.services.link_checks import (
    LINK_STATUS_ALIVE,
    LINK_STATUS_DNS_ERROR,
    LINK_STATUS_NOT_FOUND,
    LINK_STATUS_SERVER_ERROR,
    LINK_STATUS_TIMEOUT,
    check_link,
    classify_status,
    record_link_check,
)


def _client(handler):
    calls = []

    def recording(request):
        calls.append(request.method)
        return handler(request)

    return httpx.Client(transport=httpx.MockTransport(recording)), calls


def test_classify_status():
    assert classify_status(200, None) == LINK_STATUS_ALIVE
    assert classify_status(403, None) == LINK_STATUS_ALIVE
    assert classify_status(410, None) == LINK_STATUS_NOT_FOUND
    assert classify_status(408, None) == LINK_STATUS_TIMEOUT
    assert classify_status(502, None) == LINK_STATUS_SERVER_ERROR
    ssl_error = "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed"
    assert classify_status(None, ssl_error) == LINK_STATUS_ALIVE
    dns_error = "Temporary failure in name resolution"
    assert classify_status(None, dns_error) == LINK_STATUS_DNS_ERROR


def test_head_rejection_falls_back_to_get():
    client, calls = _client(
        lambda request: httpx.Response(405 if request.method == "HEAD" else 200)
    )

    result = check_link("https://example.com", timeout=1, client=client)

    assert result.result_type == LINK_STATUS_ALIVE
    assert result.status_code == 200
    assert calls == ["HEAD", "GET"]


def test_permanent_failures_are_not_retried():
    client, calls = _client(lambda request: httpx.Response(404))

    result = check_link("https://example.com/gone", timeout=1, client=client)

    assert result.result_type == LINK_STATUS_NOT_FOUND
    assert calls == ["HEAD", "GET"]


def test_transient_failures_are_retried_once():
    client, calls = _client(lambda request: httpx.Response(503))

    result = check_link("https://example.com", timeout=1, client=client)

    assert result.result_type == LINK_STATUS_SERVER_ERROR
    assert calls == ["HEAD", "GET", "HEAD", "GET"]


def test_dns_errors_are_classified():
    def handler(request):
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    client, _ = _client(handler)

    result = check_link("https://nowhere.invalid", timeout=1, client=client)

    assert result.result_type == LINK_STATUS_DNS_ERROR
    assert result.status_code is None
    assert "Name or service not known" in result.error


def test_record_link_check_updates_bookmark(app):
    client, _ = _client(lambda request: httpx.Response(404))

    with app.app_context():
        user = User(username="checker", is_active=True)
        user.set_password("secret")
        db.session.add(user)
        db.session.commit()
        bookmark = Bookmark(
            user_id=user.id,
            url="https://example.com/gone",
            normalized_url="https://example.com/gone",
            title="Gone",
        )
        db.session.add(bookmark)
        db.session.commit()

        record_link_check(bookmark, check_link(bookmark.url, timeout=1, client=client))
        db.session.commit()

        assert bookmark.link_status == LINK_STATUS_NOT_FOUND
        assert bookmark.last_checked_at is not None
        assert bookmark.link_checks[0].status_code == 404
