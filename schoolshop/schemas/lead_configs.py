from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ConfirmLeadConfigResponse(BaseModel):
    success: bool = True
    shopId: str
    shopCreated: bool
    status: str


class ProvisionItemResult(BaseModel):
    key: str
    success: bool
    error: Optional[str] = None
    product_id: Optional[str] = None
    variants: Optional[int] = None
    base_price: Optional[float] = None
    price_breakdown: Optional[dict[str, Any]] = None


class ProvisionProductsResponse(BaseModel):
    success: bool
    succeeded: int
    attempted: int
    message: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    results: list[ProvisionItemResult] = Field(default_factory=list)
    shop_id: Optional[str] = None
    config_id: Optional[str] = None
    products_created: int = 0
    textiles_requested: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProvisionProductsResponse":
        return cls.model_validate(payload)
