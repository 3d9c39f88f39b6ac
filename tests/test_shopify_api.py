from __future__ import annotations

import asyncio

import httpx
import pytest

from schoolshop.services import shopify_api
from schoolshop.services.shopify_api import ShopifyApiClient, ShopifyApiError
from schoolshop.services.shopify_export import COLOR_OPTION, ExternalProductInput, ExternalVariantInput

TOKEN = "shpat_" + "b" * 32


def _product_input(variant_count: int = 2) -> ExternalProductInput:
    colors = ["Rot", "Blau", "Navy"][:variant_count]
    return ExternalProductInput(
        title="Schul Hoodie",
        description="Textil: Organic Hoodie (Stanley/Stella)",
        vendor="Schulshop",
        options=[(COLOR_OPTION, colors)],
        variants=[
            ExternalVariantInput(price="20.50" if index == 0 else "20.00", option_values=[(COLOR_OPTION, color)])
            for index, color in enumerate(colors)
        ],
        images=[{"src": "https://img/rot-front.png", "altText": "Schul Hoodie - Rot - front"}],
    )


def test_create_product_updates_initial_variant_then_bulk_creates_rest():
    client = ShopifyApiClient()
    observed_payloads: list[dict] = []

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        observed_payloads.append(payload)
        query = payload.get("query", "")
        if "mutation productCreate" in query:
            return {
                "productCreate": {
                    "product": {
                        "id": "gid://shopify/Product/999",
                        "title": "Schul Hoodie",
                        "handle": "schul-hoodie",
                        "status": "DRAFT",
                        "variants": {"edges": [{"node": {"id": "gid://shopify/ProductVariant/100"}}]},
                    },
                    "userErrors": [],
                }
            }
        if "mutation productVariantsBulkUpdate" in query:
            return {
                "productVariantsBulkUpdate": {
                    "productVariants": [{"id": "gid://shopify/ProductVariant/100", "title": "Rot", "price": "20.50"}],
                    "userErrors": [],
                }
            }
        if "mutation productVariantsBulkCreate" in query:
            return {
                "productVariantsBulkCreate": {
                    "productVariants": [{"id": "gid://shopify/ProductVariant/200", "title": "Blau", "price": "20.00"}],
                    "userErrors": [],
                }
            }
        raise AssertionError("Unexpected query payload")

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    result = asyncio.run(
        client.create_product(
            shop_domain="https://gap.myshopify.com/",
            access_token=f"  {TOKEN}\n",
            product=_product_input(),
        )
    )

    assert result["productGid"] == "gid://shopify/Product/999"
    assert [variant["variantGid"] for variant in result["variants"]] == [
        "gid://shopify/ProductVariant/100",
        "gid://shopify/ProductVariant/200",
    ]
    assert len(observed_payloads) == 3

    create_variables = observed_payloads[0]["variables"]
    assert create_variables["product"]["productOptions"] == [
        {"name": COLOR_OPTION, "values": [{"name": "Rot"}, {"name": "Blau"}]}
    ]
    assert create_variables["media"][0]["alt"] == "Schul Hoodie - Rot - front"
    assert observed_payloads[1]["variables"]["variants"] == [
        {"price": "20.50", "id": "gid://shopify/ProductVariant/100"}
    ]
    assert observed_payloads[2]["variables"]["variants"] == [
        {"price": "20.00", "optionValues": [{"optionName": COLOR_OPTION, "name": "Blau"}]}
    ]


def test_create_product_single_variant_skips_bulk_create():
    client = ShopifyApiClient()
    observed_queries: list[str] = []

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        query = payload.get("query", "")
        observed_queries.append(query)
        if "mutation productCreate" in query:
            return {
                "productCreate": {
                    "product": {
                        "id": "gid://shopify/Product/1",
                        "variants": {"edges": [{"node": {"id": "gid://shopify/ProductVariant/1"}}]},
                    },
                    "userErrors": [],
                }
            }
        return {"productVariantsBulkUpdate": {"productVariants": [], "userErrors": []}}

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    asyncio.run(client.create_product(shop_domain="gap.myshopify.com", access_token=TOKEN, product=_product_input(1)))

    assert len(observed_queries) == 2
    assert not any("productVariantsBulkCreate" in query for query in observed_queries)


def test_create_product_surfaces_user_errors():
    client = ShopifyApiClient()

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        return {
            "productCreate": {
                "product": None,
                "userErrors": [{"field": ["title"], "message": "Title can't be blank"}],
            }
        }

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError, match="productCreate failed: Title can't be blank") as excinfo:
        asyncio.run(
            client.create_product(shop_domain="gap.myshopify.com", access_token=TOKEN, product=_product_input())
        )
    assert excinfo.value.status_code == 422
    assert excinfo.value.user_errors == [{"field": ["title"], "message": "Title can't be blank"}]


def test_short_access_token_is_rejected_before_any_call():
    client = ShopifyApiClient()

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        raise AssertionError("Shopify must not be called")

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError, match="Access token looks too short") as excinfo:
        asyncio.run(
            client.create_product(shop_domain="gap.myshopify.com", access_token="shpat_123", product=_product_input())
        )
    assert excinfo.value.status_code == 400


def test_create_product_requires_variants():
    client = ShopifyApiClient()
    empty = ExternalProductInput(title="Empty", description=None, vendor=None)

    with pytest.raises(ShopifyApiError, match="At least one variant is required"):
        asyncio.run(client.create_product(shop_domain="gap.myshopify.com", access_token=TOKEN, product=empty))


def test_clean_shop_domain():
    assert ShopifyApiClient.clean_shop_domain(" https://gap.myshopify.com/ ") == "gap.myshopify.com"
    with pytest.raises(ShopifyApiError):
        ShopifyApiClient.clean_shop_domain("https://")


def test_failed_variant_step_keeps_the_created_product_id():
    client = ShopifyApiClient()

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        query = payload.get("query", "")
        if "mutation productCreate" in query:
            return {
                "productCreate": {
                    "product": {
                        "id": "gid://shopify/Product/1",
                        "variants": {"edges": [{"node": {"id": "gid://shopify/ProductVariant/1"}}]},
                    },
                    "userErrors": [],
                }
            }
        if "mutation productVariantsBulkUpdate" in query:
            return {"productVariantsBulkUpdate": {"productVariants": [], "userErrors": []}}
        return {
            "productVariantsBulkCreate": {
                "productVariants": [],
                "userErrors": [{"field": ["variants", "0", "price"], "message": "Price is invalid"}],
            }
        }

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError, match="productVariantsBulkCreate failed") as excinfo:
        asyncio.run(
            client.create_product(shop_domain="gap.myshopify.com", access_token=TOKEN, product=_product_input())
        )
    assert excinfo.value.product_gid == "gid://shopify/Product/1"
    assert excinfo.value.user_errors == [{"field": ["variants", "0", "price"], "message": "Price is invalid"}]


def test_product_create_failure_has_no_product_id():
    client = ShopifyApiClient()

    async def fake_admin_graphql(*, shop_domain: str, access_token: str, payload: dict):
        return {"productCreate": {"product": None, "userErrors": [{"field": ["title"], "message": "Taken"}]}}

    client._admin_graphql = fake_admin_graphql  # type: ignore[method-assign]

    with pytest.raises(ShopifyApiError) as excinfo:
        asyncio.run(
            client.create_product(shop_domain="gap.myshopify.com", access_token=TOKEN, product=_product_input())
        )
    assert excinfo.value.product_gid is None


@pytest.fixture()
def mock_shopify(monkeypatch):
    """Route the client's HTTP calls through a handler instead of the network."""
    real_async_client = httpx.AsyncClient

    def _install(handler):
        def _client(**kwargs):
            return real_async_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(shopify_api.httpx, "AsyncClient", _client)

    return _install


def _graphql(client: ShopifyApiClient) -> dict:
    return asyncio.run(
        client._admin_graphql(shop_domain="gap.myshopify.com", access_token=TOKEN, payload={"query": "{ shop { id } }"})
    )


def test_graphql_errors_become_field_message_pairs(mock_shopify):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "errors": [
                    {"message": "Field 'bogus' doesn't exist on type 'Shop'", "path": ["query", "shop", "bogus"]},
                    {"message": "Throttled"},
                ]
            },
        )

    mock_shopify(handler)

    with pytest.raises(ShopifyApiError, match="Field 'bogus' doesn't exist") as excinfo:
        _graphql(ShopifyApiClient())

    assert excinfo.value.user_errors == [
        {"field": ["query", "shop", "bogus"], "message": "Field 'bogus' doesn't exist on type 'Shop'"},
        {"field": None, "message": "Throttled"},
    ]
    assert seen[0].headers["X-Shopify-Access-Token"] == TOKEN
    assert seen[0].url.path.endswith("/graphql.json")


def test_graphql_data_is_returned(mock_shopify):
    mock_shopify(lambda request: httpx.Response(200, json={"data": {"shop": {"id": "gid://shopify/Shop/1"}}}))
    assert _graphql(ShopifyApiClient()) == {"shop": {"id": "gid://shopify/Shop/1"}}


def test_timeout_is_reported_as_504(mock_shopify):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    mock_shopify(handler)

    with pytest.raises(ShopifyApiError, match="did not answer") as excinfo:
        _graphql(ShopifyApiClient())
    assert excinfo.value.status_code == 504
    assert excinfo.value.timed_out is True


def test_network_error_is_a_502(mock_shopify):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    mock_shopify(handler)

    with pytest.raises(ShopifyApiError, match="Network error") as excinfo:
        _graphql(ShopifyApiClient())
    assert excinfo.value.status_code == 502
    assert excinfo.value.timed_out is False


def test_rejected_token_is_reported_with_upstream_status(mock_shopify):
    mock_shopify(lambda request: httpx.Response(401, json={"errors": "[API] Invalid API key or access token"}))

    with pytest.raises(ShopifyApiError, match="rejected the access token") as excinfo:
        _graphql(ShopifyApiClient())
    assert excinfo.value.status_code == 502
    assert excinfo.value.upstream_status == 401


def test_http_error_status_is_reported_with_body(mock_shopify):
    mock_shopify(lambda request: httpx.Response(503, text="upstream maintenance"))

    with pytest.raises(ShopifyApiError, match=r"failed \(503\): upstream maintenance") as excinfo:
        _graphql(ShopifyApiClient())
    assert excinfo.value.status_code == 502
    assert excinfo.value.upstream_status == 503


def test_non_json_body_is_rejected(mock_shopify):
    mock_shopify(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

    with pytest.raises(ShopifyApiError, match="invalid JSON"):
        _graphql(ShopifyApiClient())
