async def test_catalog_lists_only_active_products(client, make_product):
    active = await make_product(name="Walnut Desk", price_cents=25000)
    await make_product(name="Walnut Shelf", is_active=False)
    await make_product(name="Oak Chair")

    response = await client.get("/products/", params={"query": "walnut"})

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [active]
    assert response.json()[0]["price_cents"] == 25000


async def test_missing_or_inactive_product_is_a_404(client, make_product):
    hidden = await make_product(is_active=False)

    for product_id in (hidden, 9999):
        response = await client.get(f"/products/{product_id}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


async def test_cart_add_increments_and_put_replaces(client, admin_headers, make_user, make_product):
    user_id = await make_user()
    product_id = await make_product(price_cents=300)
    session_id = (await client.post("/sessions/", json={"user_id": user_id}, headers=admin_headers)).json()["session_id"]

    for _ in range(2):
        await client.post(
            f"/sessions/{session_id}/items",
            json={"product_id": product_id, "quantity": 2},
            headers=admin_headers,
        )
    added = await client.get(f"/sessions/{session_id}", headers=admin_headers)
    assert added.json()["items"] == [{"product_id": product_id, "quantity": 4}]

    replaced = await client.put(
        f"/sessions/{session_id}/items/{product_id}", json={"quantity": 1}, headers=admin_headers
    )
    assert replaced.json()["items"] == [{"product_id": product_id, "quantity": 1}]

    removed = await client.delete(f"/sessions/{session_id}/items/{product_id}", headers=admin_headers)
    assert removed.json()["items"] == []


async def test_priced_cart_skips_unavailable_products(client, admin_headers, make_user, make_product):
    user_id = await make_user()
    available = await make_product(price_cents=250)
    retired = await make_product(is_active=False)
    session_id = (await client.post("/sessions/", json={"user_id": user_id}, headers=admin_headers)).json()["session_id"]
    for product_id in (available, retired, 4040):
        await client.post(
            f"/sessions/{session_id}/items",
            json={"product_id": product_id, "quantity": 3},
            headers=admin_headers,
        )

    cart = (await client.get(f"/sessions/{session_id}/cart", headers=admin_headers)).json()

    assert [line["product_id"] for line in cart["items"]] == [available]
    assert cart["subtotal_cents"] == 750
    assert cart["currency"] == "EUR"


async def test_cart_rejects_bad_quantities(client, admin_headers):
    session_id = (await client.post("/sessions/", json={}, headers=admin_headers)).json()["session_id"]

    for quantity in (0, -1, 1000):
        response = await client.post(
            f"/sessions/{session_id}/items",
            json={"product_id": 1, "quantity": quantity},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_unknown_session(client, admin_headers):
    response = await client.get("/sessions/nope", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"


async def test_sessions_need_the_internal_key(client):
    assert (await client.post("/sessions/", json={})).status_code == 403


async def test_request_id_is_echoed_and_reported_in_errors(client, admin_headers):
    response = await client.get("/sessions/nope", headers={**admin_headers, "X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
    assert response.json()["error"]["request_id"] == "req-42"
