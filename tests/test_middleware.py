from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from middleware import RateLimitMiddleware, SecurityHeadersMiddleware


def _limited_app(limit: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_window=limit, window_size=60)

    @app.get("/leaves")
    def leaves():
        return {"data": []}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


async def test_security_headers_on_every_response(client):
    response = await client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert "Strict-Transport-Security" not in response.headers


async def test_hsts_only_in_production():
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, production=True)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.headers["Strict-Transport-Security"].startswith("max-age=")


async def test_rate_limit_rejects_requests_over_the_window_limit():
    async with AsyncClient(transport=ASGITransport(app=_limited_app(2)), base_url="http://test") as client:
        first = await client.get("/leaves")
        second = await client.get("/leaves")
        third = await client.get("/leaves")

    assert first.status_code == 200
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert second.status_code == 200
    assert third.status_code == 429
    assert third.headers["Retry-After"] == "60"


async def test_health_is_not_rate_limited():
    async with AsyncClient(transport=ASGITransport(app=_limited_app(1)), base_url="http://test") as client:
        responses = [await client.get("/health") for _ in range(3)]

    assert all(response.status_code == 200 for response in responses)
