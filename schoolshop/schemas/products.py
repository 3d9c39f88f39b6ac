from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from schoolshop.db.enums import ImageTypeEnum


class AssignImagesRequest(BaseModel):
    image_id: str = Field(min_length=1)
    textile_colors: list[str]


class RenamePrintFileRequest(BaseModel):
    imageId: str = Field(min_length=1)
    newFileName: str


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    textile_color_name: Optional[str] = None
    textile_color_id: Optional[str] = None
    image_type: ImageTypeEnum
    image_url: Optional[str] = None
    print_file_url: Optional[str] = None
    created_at: Optional[datetime] = None


class RenamePrintFileResponse(BaseModel):
    success: bool = True
    image: ProductImageResponse
    newFileName: str
    oldObject: str


class OperationResultResponse(BaseModel):
    success: bool
    succeeded: int
    attempted: int
    message: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    results: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")
