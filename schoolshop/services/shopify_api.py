from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any

import httpx

from schoolshop.config import settings

if TYPE_CHECKING:
    from schoolshop.services.shopify_export import ExternalProductInput

_MIN_ACCESS_TOKEN_LENGTH = 32
_WHITESPACE_RE = re.compile(r"\s+")


class ShopifyApiError(RuntimeError):
    def __init__(
        self,
        *,
        message: str,
        status_code: int = 502,
        user_errors: list[dict[str, Any]] | None = None,
        upstream_status: int | None = None,
        product_gid: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.upstream_status = upstream_status
        self.user_errors = list(user_errors or [])
        # Set when the product was created before a later step failed.
        self.product_gid = product_gid

    @property
    def timed_out(self) -> bool:
        return self.status_code == 504


class ShopifyApiClient:
    def __init__(self) -> None:
        self._timeout = settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS

    @staticmethod
    def clean_shop_domain(shop_domain: str) -> str:
        cleaned = re.sub(r"^https?://", "", (shop_domain or "").strip()).rstrip("/")
        if not cleaned:
            raise ShopifyApiError(message="Shop domain is required.", status_code=400)
        return cleaned

    @staticmethod
    def clean_access_token(access_token: str) -> str:
        # OAuth and custom-app tokens use different prefixes, so only the length is checked.
        cleaned = _WHITESPACE_RE.sub("", access_token or "")
        if len(cleaned) < _MIN_ACCESS_TOKEN_LENGTH:
            raise ShopifyApiError(
                message=(
                    f"Access token looks too short ({len(cleaned)} characters); "
                    f"expected at least {_MIN_ACCESS_TOKEN_LENGTH}."
                ),
                status_code=400,
            )
        return cleaned

    @staticmethod
    def _decimal_price_string(price: Any) -> str:
        try:
            decimal_value = Decimal(str(price).strip())
        except (InvalidOperation, ValueError, AttributeError) as exc:
            raise ShopifyApiError(message=f"Invalid variant price: {price!r}", status_code=400) from exc
        if not decimal_value.is_finite() or decimal_value < 0:
            raise ShopifyApiError(message=f"Invalid variant price: {price!r}", status_code=400)
        return str(decimal_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    @staticmethod
    def _raise_user_errors(*, user_errors: list[dict[str, Any]], mutation_name: str) -> None:
        if not user_errors:
            return
        messages = "; ".join(str(error.get("message")) for error in user_errors)
        raise ShopifyApiError(
            message=f"{mutation_name} failed: {messages}",
            status_code=422,
            user_errors=[
                {"field": error.get("field"), "message": error.get("message")} for error in user_errors
            ],
        )

    def _variant_input(self, variant: Any, *, variant_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"price": self._decimal_price_string(variant.price)}
        if variant_id is not None:
            payload["id"] = variant_id
        else:
            payload["optionValues"] = [
                {"optionName": option_name, "name": value} for option_name, value in variant.option_values
            ]
        inventory_item: dict[str, Any] = {}
        if variant.sku:
            inventory_item["sku"] = variant.sku
        if inventory_item:
            payload["inventoryItem"] = inventory_item
        if variant.inventory_policy:
            payload["inventoryPolicy"] = variant.inventory_policy
        return payload

    async def create_product(
        self,
        *,
        shop_domain: str,
        access_token: str,
        product: "ExternalProductInput",
        status: str = "DRAFT",
    ) -> dict[str, Any]:
        """Create a product with its options, variants and images.

        Shopify creates the first variant together with the product; it gets
        the first variant's price and the rest are bulk created.
        """
        if not product.variants:
            raise ShopifyApiError(message="At least one variant is required for product creation.", status_code=400)
        domain = self.clean_shop_domain(shop_domain)
        token = self.clean_access_token(access_token)

        product_input: dict[str, Any] = {
            "title": product.title.strip(),
            "status": status.strip().upper(),
        }
        if product.options:
            product_input["productOptions"] = [
                {"name": name, "values": [{"name": value} for value in values]} for name, values in product.options
            ]
        if product.description is not None and product.description.strip():
            product_input["descriptionHtml"] = product.description.strip()
        if product.vendor is not None and product.vendor.strip():
            product_input["vendor"] = product.vendor.strip()
        if product.tags:
            product_input["tags"] = list(product.tags)
        media = [
            {"originalSource": image["src"], "alt": image.get("altText") or "", "mediaContentType": "IMAGE"}
            for image in product.images
        ]

        create_query = """
        mutation productCreate($product: ProductCreateInput!, $media: [CreateMediaInput!]) {
            productCreate(product: $product, media: $media) {
                product {
                    id
                    title
                    handle
                    status
                    variants(first: 1) {
                        edges {
                            node {
                                id
                                title
                                price
                            }
                        }
                    }
                }
                userErrors {
                    field
                    message
                }
            }
        }
        """
        create_response = await self._admin_graphql(
            shop_domain=domain,
            access_token=token,
            payload={"query": create_query, "variables": {"product": product_input, "media": media or None}},
        )
        create_data = create_response.get("productCreate") or {}
        self._raise_user_errors(user_errors=create_data.get("userErrors") or [], mutation_name="productCreate")

        created = create_data.get("product")
        if not isinstance(created, dict):
            raise ShopifyApiError(message="productCreate response is missing product")
        product_gid = created.get("id")
        if not isinstance(product_gid, str) or not product_gid:
            raise ShopifyApiError(message="productCreate response is missing product.id")

        try:
            variant_rows = await self._fill_variants(
                domain=domain,
                token=token,
                product_gid=product_gid,
                created=created,
                product=product,
            )
        except ShopifyApiError as exc:
            # The product already exists remotely; a retry must not create it again.
            exc.product_gid = product_gid
            raise

        return {
            "productGid": product_gid,
            "title": created.get("title"),
            "handle": created.get("handle"),
            "status": created.get("status"),
            "variants": [
                {"variantGid": row.get("id"), "title": row.get("title"), "price": row.get("price")}
                for row in variant_rows
            ],
        }

    async def _fill_variants(
        self,
        *,
        domain: str,
        token: str,
        product_gid: str,
        created: dict[str, Any],
        product: "ExternalProductInput",
    ) -> list[dict[str, Any]]:
        """Price the initial variant and bulk create the remaining ones."""
        initial_variant_edges = ((created.get("variants") or {}).get("edges")) or []
        if not isinstance(initial_variant_edges, list) or not initial_variant_edges:
            raise ShopifyApiError(message="productCreate response is missing initial product variant.")
        initial_variant_node = (
            (initial_variant_edges[0] or {}).get("node") if isinstance(initial_variant_edges[0], dict) else None
        )
        if not isinstance(initial_variant_node, dict) or not initial_variant_node.get("id"):
            raise ShopifyApiError(message="productCreate response is missing initial variant id.")

        update_query = """
        mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
            productVariantsBulkUpdate(productId: $productId, variants: $variants) {
                productVariants {
                    id
                    title
                    price
                }
                userErrors {
                    field
                    message
                }
            }
        }
        """
        update_response = await self._admin_graphql(
            shop_domain=domain,
            access_token=token,
            payload={
                "query": update_query,
                "variables": {
                    "productId": product_gid,
                    "variants": [self._variant_input(product.variants[0], variant_id=initial_variant_node["id"])],
                },
            },
        )
        update_data = update_response.get("productVariantsBulkUpdate") or {}
        self._raise_user_errors(
            user_errors=update_data.get("userErrors") or [], mutation_name="productVariantsBulkUpdate"
        )
        variant_rows: list[dict[str, Any]] = [
            row for row in (update_data.get("productVariants") or []) if isinstance(row, dict)
        ]

        if len(product.variants) > 1:
            create_variants_query = """
            mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
                productVariantsBulkCreate(productId: $productId, variants: $variants) {
                    productVariants {
                        id
                        title
                        price
                    }
                    userErrors {
                        field
                        message
                    }
                }
            }
            """
            bulk_create_response = await self._admin_graphql(
                shop_domain=domain,
                access_token=token,
                payload={
                    "query": create_variants_query,
                    "variables": {
                        "productId": product_gid,
                        "variants": [self._variant_input(variant) for variant in product.variants[1:]],
                    },
                },
            )
            bulk_create_data = bulk_create_response.get("productVariantsBulkCreate") or {}
            self._raise_user_errors(
                user_errors=bulk_create_data.get("userErrors") or [], mutation_name="productVariantsBulkCreate"
            )
            variant_rows.extend(
                row for row in (bulk_create_data.get("productVariants") or []) if isinstance(row, dict)
            )

        return variant_rows

    async def _admin_graphql(
        self,
        *,
        shop_domain: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"https://{shop_domain}/admin/api/{settings.SHOPIFY_ADMIN_API_VERSION}/graphql.json"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }
        response = await self._post_json(url=url, payload=payload, headers=headers)
        data = response.get("data")
        errors = response.get("errors")
        if errors:
            entries = errors if isinstance(errors, list) else [errors]
            user_errors = [
                {"field": entry.get("path"), "message": entry.get("message")}
                if isinstance(entry, dict)
                else {"field": None, "message": str(entry)}
                for entry in entries
            ]
            raise ShopifyApiError(
                message="Admin GraphQL errors: " + "; ".join(str(error["message"]) for error in user_errors),
                user_errors=user_errors,
            )
        if not isinstance(data, dict):
            raise ShopifyApiError(message="Admin GraphQL response is missing data")
        return data

    async def _post_json(
        self,
        *,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ShopifyApiError(message=f"Shopify did not answer within {self._timeout}s", status_code=504) from exc
        except httpx.RequestError as exc:
            raise ShopifyApiError(message=f"Network error while calling Shopify: {exc}") from exc

        if response.status_code == 401:
            raise ShopifyApiError(
                message="Shopify rejected the access token (401).", status_code=502, upstream_status=401
            )
        if response.status_code >= 400:
            raise ShopifyApiError(
                message=f"Shopify API call failed ({response.status_code}): {response.text}",
                status_code=502,
                upstream_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyApiError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ShopifyApiError(message="Shopify API response must be a JSON object")
        return body
