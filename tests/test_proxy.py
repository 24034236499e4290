import httpx
import pytest

from assetpipe.backend.proxy import create_proxy_app

UPSTREAM = "http://localhost:3000"


@pytest.fixture
def seen():
    return []


def _client(seen, handler=None):
    def default(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/login":
            return httpx.Response(302, headers={"Location": f"{UPSTREAM}/home"})
        return httpx.Response(200, text=f"{request.method} {request.url.path}", headers={"X-Upstream": "yes"})

    return httpx.Client(transport=httpx.MockTransport(handler or default), base_url=UPSTREAM)


def test_requests_are_forwarded(seen) -> None:
    app = create_proxy_app(UPSTREAM, client=_client(seen))
    resp = app.test_client().get("/users/7?page=2", headers={"X-Token": "abc"})
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "GET /users/7"
    assert resp.headers["X-Upstream"] == "yes"
    assert seen[0].url.params["page"] == "2"
    assert seen[0].headers["x-token"] == "abc"


def test_request_body_is_forwarded(seen) -> None:
    app = create_proxy_app(UPSTREAM, client=_client(seen))
    resp = app.test_client().post("/items", data=b"payload", content_type="text/plain")
    assert resp.get_data(as_text=True) == "POST /items"
    assert seen[0].content == b"payload"


def test_upstream_redirects_point_at_the_proxy(seen) -> None:
    app = create_proxy_app(UPSTREAM, client=_client(seen))
    resp = app.test_client().get("/login")
    assert resp.status_code == 302
    assert resp.headers["Location"] == "http://localhost/home"


def test_unreachable_upstream_is_a_bad_gateway(seen) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    app = create_proxy_app(UPSTREAM, client=_client(seen, refuse))
    resp = app.test_client().get("/")
    assert resp.status_code == 502
    assert "Upstream server unavailable" in resp.get_data(as_text=True)
