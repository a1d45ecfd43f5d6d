"""TokenAuthMiddlewareのユニットテスト。"""

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from swadeploy.middleware import TokenAuthMiddleware


async def _ok(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def _client(url_token: str) -> TestClient:
    app = Starlette(
        routes=[Route("/health", _ok), Route("/mcp", _ok)],
        middleware=[Middleware(TokenAuthMiddleware, url_token=url_token)],
    )
    return TestClient(app)


class TestTokenAuthMiddleware:
    def test_no_token_configured(self) -> None:
        assert _client("").get("/mcp").status_code == 200

    def test_missing_token_rejected(self) -> None:
        response = _client("secret").get("/mcp")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_query_token(self) -> None:
        assert _client("secret").get("/mcp?token=secret").status_code == 200

    def test_bearer_token(self) -> None:
        response = _client("secret").get("/mcp", headers={"Authorization": "Bearer secret"})
        assert response.status_code == 200

    def test_wrong_token(self) -> None:
        assert _client("secret").get("/mcp?token=wrong").status_code == 401

    def test_non_ascii_token(self) -> None:
        assert _client("secret").get("/mcp?token=%E7%A7%98%E5%AF%86").status_code == 401

    def test_health_skips_auth(self) -> None:
        assert _client("secret").get("/health").status_code == 200
