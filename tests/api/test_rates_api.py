from __future__ import annotations

import httpx
import pytest
from httpx import AsyncClient
from tenacity import wait_none

from exchange_app.api.dependencies.services import get_market_cache
from exchange_app.services.market import MarketRatesCache, MarketSource
from tests.helpers import admin_key_headers, generate_init_data, owner_headers, tma_headers

RATES_BODY = {
    "rates": {
        "USD": {"buy_vnd": 25000, "sell_vnd": 25500},
        "RUB": {"buy_vnd": 270, "sell_vnd": 300},
        "USDT": {"buy_vnd": 25100, "sell_vnd": 25400},
        "EUR": {"buy_vnd": 27000, "sell_vnd": -1},
    }
}


async def set_rates(client: AsyncClient) -> httpx.Response:
    return await client.post("/api/admin/rates/today", json=RATES_BODY, headers=admin_key_headers())


@pytest.mark.asyncio
async def test_today_rates_empty_until_set(client: AsyncClient) -> None:
    response = await client.get("/api/rates/today")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["data"] is None
    assert len(payload["date"]) == 10


@pytest.mark.asyncio
async def test_admin_key_sets_today_rates(client: AsyncClient) -> None:
    saved = await set_rates(client)

    assert saved.status_code == 200
    data = saved.json()["data"]
    assert data["updated_by"] is None
    assert set(data["rates"]) == {"USD", "RUB", "USDT"}

    public = await client.get("/api/rates/today")
    assert public.json()["data"]["rates"]["USD"] == {"buy_vnd": 25000.0, "sell_vnd": 25500.0}


@pytest.mark.asyncio
async def test_owner_init_data_sets_rates(client: AsyncClient) -> None:
    response = await client.post("/api/admin/rates/today", json=RATES_BODY, headers=owner_headers())

    assert response.status_code == 200
    assert response.json()["data"]["updated_by"] == 777


@pytest.mark.asyncio
async def test_bare_rates_table_is_accepted(client: AsyncClient) -> None:
    response = await client.post(
        "/api/admin/rates/today",
        json=RATES_BODY["rates"],
        headers=admin_key_headers(),
    )

    assert response.status_code == 200
    assert "USDT" in response.json()["data"]["rates"]


@pytest.mark.asyncio
async def test_non_owner_cannot_set_rates(client: AsyncClient) -> None:
    response = await client.post(
        "/api/admin/rates/today",
        json=RATES_BODY,
        headers=tma_headers(generate_init_data()),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NOT_OWNER"


@pytest.mark.asyncio
async def test_wrong_admin_key_without_init_data(client: AsyncClient) -> None:
    response = await client.get("/api/admin/rates/today", headers={"X-Admin-Key": "nope"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NO_INIT_DATA"


@pytest.mark.asyncio
async def test_missing_required_rates(client: AsyncClient) -> None:
    body = {"rates": {"USD": {"buy_vnd": 25000, "sell_vnd": 25500}}}

    response = await client.post("/api/admin/rates/today", json=body, headers=admin_key_headers())

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "RATES_MISSING"


@pytest.mark.asyncio
async def test_bad_rate_numbers(client: AsyncClient) -> None:
    body = {"rates": {**RATES_BODY["rates"], "RUB": {"buy_vnd": 0, "sell_vnd": 300}}}

    response = await client.post("/api/admin/rates/today", json=body, headers=admin_key_headers())

    assert response.status_code == 400
    assert response.json()["error"] == {
        "code": "BAD_NUMBERS",
        "message": "Курсы должны быть положительными числами.",
        "details": {"currency": "RUB"},
    }


@pytest.mark.asyncio
async def test_calc_without_rates(client: AsyncClient) -> None:
    response = await client.post(
        "/api/calc",
        json={"sell_currency": "USD", "buy_currency": "RUB", "amount": 100},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "RATES_MISSING"


@pytest.mark.asyncio
async def test_calc_both_directions(client: AsyncClient) -> None:
    await set_rates(client)

    forward = await client.post(
        "/api/calc",
        json={"sell_currency": "USD", "buy_currency": "VND", "amount": 100},
    )
    backward = await client.post(
        "/api/calc",
        json={
            "sell_currency": "RUB",
            "buy_currency": "USD",
            "amount": 100,
            "direction": "buy_to_sell",
        },
    )

    assert forward.status_code == 200
    assert forward.json()["buy_amount"] == pytest.approx(2_500_000)
    assert backward.json()["sell_amount"] == pytest.approx(2_550_000 / 270)
    assert backward.json()["vnd"] == pytest.approx(2_550_000)


@pytest.mark.asyncio
async def test_calc_rate_missing_for_currency(client: AsyncClient) -> None:
    await set_rates(client)

    response = await client.post(
        "/api/calc",
        json={"sell_currency": "EUR", "buy_currency": "VND", "amount": 10},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "RATE_MISSING"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"sell_currency": "USD", "buy_currency": "RUB", "amount": 0},
        {"sell_currency": "XYZ", "buy_currency": "RUB", "amount": 1},
        {"sell_currency": "USD", "buy_currency": "RUB", "amount": 1, "direction": "sideways"},
    ],
)
async def test_calc_validation(client: AsyncClient, body: dict[str, object]) -> None:
    response = await client.post("/api/calc", json=body)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_market_snapshot(
    client: AsyncClient, dependency_overrides: dict[object, object]
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rates": {"RUB": 90.0, "THB": 36.0, "EUR": 0.9}})

    cache = MarketRatesCache(
        ttl_seconds=60,
        http_timeout=1.0,
        sources=(MarketSource("stub", "https://stub.test/latest"),),
        transport=httpx.MockTransport(handler),
        retry_wait=wait_none(),
    )
    dependency_overrides[get_market_cache] = lambda: cache

    response = await client.get("/api/market")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["stale"] is False
    assert payload["source"] == "stub"
    assert payload["g"]["USD/RUB"] == 90.0
