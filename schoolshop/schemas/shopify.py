from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ExportProductRequest(BaseModel):
    shopDomain: Optional[str] = None
    accessToken: Optional[str] = None


class ExportProductResponse(BaseModel):
    success: bool = True
    product: dict[str, Any]
    mappingId: str
    message: str
