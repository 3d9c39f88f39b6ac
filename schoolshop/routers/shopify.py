from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolshop.auth.dependencies import AuthContext, require_admin
from schoolshop.db.deps import get_session
from schoolshop.schemas.shopify import ExportProductRequest, ExportProductResponse
from schoolshop.services.shopify_api import ShopifyApiClient
from schoolshop.services.shopify_export import export_product

router = APIRouter(prefix="/shopify", tags=["shopify"])


def get_shopify_client() -> ShopifyApiClient:
    return ShopifyApiClient()


@router.post("/products/{product_id}/export", response_model=ExportProductResponse)
async def export_product_to_shopify(
    product_id: str,
    payload: ExportProductRequest | None = None,
    _auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    client: ShopifyApiClient = Depends(get_shopify_client),
):
    request = payload or ExportProductRequest()
    exported = await export_product(
        session,
        product_id=product_id,
        shop_domain=request.shopDomain,
        access_token=request.accessToken,
        client=client,
    )
    return ExportProductResponse(
        product=exported["product"],
        mappingId=exported["mapping_id"],
        message=exported["message"],
    )
