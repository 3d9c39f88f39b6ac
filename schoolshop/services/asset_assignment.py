from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolshop.config import settings
from schoolshop.db.models import Product, ProductImage
from schoolshop.db.repositories.products import (
    ProductImagesRepository,
    ProductsRepository,
    ProductVariantsRepository,
)
from schoolshop.db.repositories.schools import ShopsRepository
from schoolshop.errors import InvalidInputError, NotFoundError, ServiceError, UpstreamFailureError
from schoolshop.services.locks import product_asset_lock
from schoolshop.services.media_storage import MediaStorage
from schoolshop.services.naming import attributed_image_filename, normalize
from schoolshop.services.results import ItemResult, OperationResult
from schoolshop.services.storage_paths import (
    StoragePath,
    StorageUrlParseError,
    image_content_type,
    parse_storage_url,
    print_file_content_type,
)

logger = logging.getLogger(__name__)


class DeleteOutcome(str, Enum):
    deleted = "deleted"
    skipped = "skipped"
    already_gone = "already_gone"


@dataclass
class _SourceImage:
    location: StoragePath
    data: bytes
    content_type: str


def _clean_colors(colors: Any) -> list[str]:
    if not isinstance(colors, list) or not colors:
        raise InvalidInputError(message="textile_colors must be a non-empty list", field="textile_colors")
    cleaned: list[str] = []
    for color in colors:
        if not isinstance(color, str) or not color.strip():
            raise InvalidInputError(message="textile_colors must only contain names", field="textile_colors")
        if color.strip() not in cleaned:
            cleaned.append(color.strip())
    return cleaned


def _parse_or_raise(url: str, *, field: str) -> StoragePath:
    parsed = parse_storage_url(url)
    if isinstance(parsed, StorageUrlParseError):
        raise InvalidInputError(message=f"Could not parse storage URL: {parsed.reason}", field=field)
    return parsed


class AssetAssignmentService:
    """Attributes uploaded product assets to textile colors and keeps their file names in shape.

    All mutations on one product run under ``product_asset_lock``.
    """

    def __init__(self, session: Session, storage: Optional[MediaStorage] = None) -> None:
        self.session = session
        self._storage = storage
        self.products = ProductsRepository(session)
        self.images = ProductImagesRepository(session)
        self.variants = ProductVariantsRepository(session)
        self.shops = ShopsRepository(session)

    @property
    def storage(self) -> MediaStorage:
        if self._storage is None:
            self._storage = MediaStorage()
        return self._storage

    def _shop_slug(self, product: Product) -> str:
        shop = self.shops.get(shop_id=product.shop_id) if product.shop_id else None
        return shop.slug if shop and shop.slug else "shop"

    def _target_location(
        self, source: StoragePath, *, shop_slug: str, product: Product, color: str, image: ProductImage
    ) -> StoragePath:
        filename = attributed_image_filename(
            shop_slug=shop_slug,
            product_name=product.name,
            color=color,
            image_type=image.image_type,
            extension=source.extension,
        )
        return source.with_filename(filename)

    def _load_source(
        self, image: ProductImage, *, shop_slug: str, product: Product, colors: list[str]
    ) -> Optional[_SourceImage]:
        """Read the bare image once.

        When an earlier run already removed the original, the bytes come from a
        color copy that run managed to write.
        """
        if not image.image_url:
            return None
        location = _parse_or_raise(image.image_url, field="image_url")
        try:
            data, content_type = self.storage.download_bytes(bucket=location.bucket, key=location.path)
        except UpstreamFailureError:
            if self.storage.object_exists(bucket=location.bucket, key=location.path):
                raise
            for color in colors:
                target = self._target_location(location, shop_slug=shop_slug, product=product, color=color, image=image)
                if self.storage.object_exists(bucket=target.bucket, key=target.path):
                    logger.info(
                        "Original image gone; resuming from an attributed copy",
                        extra={"image_id": image.id, "product_id": product.id, "copy": target.path},
                    )
                    data, content_type = self.storage.download_bytes(bucket=target.bucket, key=target.path)
                    break
            else:
                raise
        return _SourceImage(
            location=location,
            data=data,
            content_type=content_type or image_content_type(location.extension),
        )

    def _delete_unreferenced(
        self, location: StoragePath, *, url: str, column: str, image_id: str
    ) -> DeleteOutcome:
        """Remove an object nobody but ``image_id`` points at. Never retried here."""
        if self.images.count_other_references(column=column, url=url, exclude_image_id=image_id) > 0:
            return DeleteOutcome.skipped
        try:
            existed = self.storage.delete_object(bucket=location.bucket, key=location.path)
        except UpstreamFailureError:
            logger.warning(
                "Could not delete old storage object",
                extra={"image_id": image_id, "bucket": location.bucket, "path": location.path},
                exc_info=True,
            )
            return DeleteOutcome.skipped
        return DeleteOutcome.deleted if existed else DeleteOutcome.already_gone

    def _upsert_color_row(
        self, *, product_id: str, image: ProductImage, color: str, image_url: Optional[str]
    ) -> tuple[ProductImage, str]:
        fields: dict[str, Any] = {}
        if image_url:
            fields["image_url"] = image_url
        if image.print_file_url:
            fields["print_file_url"] = image.print_file_url

        existing = self.images.find_attributed(product_id=product_id, color_name=color, image_type=image.image_type)
        if existing is not None:
            return self.images.update(image_id=existing.id, **fields), "updated"

        variant = self.variants.find_by_color(product_id=product_id, color_name=color)
        created = self.images.create(
            product_id=product_id,
            textile_color_name=color,
            textile_color_id=variant.id if variant else None,
            image_type=image.image_type,
            **fields,
        )
        return created, "created"

    def assign_to_colors(self, *, product_id: str, image_id: str, colors: Any) -> OperationResult:
        """Fan a bare image out into one attributed, correctly named image per color.

        Per-color failures land in that color's result. The original object is
        deleted once, right after the first color copy exists, and the bare row
        goes away only when every color succeeded so a failed run can be resumed.
        """
        targets = _clean_colors(colors)
        result = OperationResult(data={"image_id": image_id, "product_id": product_id})

        with product_asset_lock(self.session, product_id):
            image = self.images.get(image_id=image_id, product_id=product_id)
            if image is None:
                raise NotFoundError(message="Image not found")
            if image.textile_color_name:
                logger.info(
                    "Image already attributed; nothing to do",
                    extra={"image_id": image_id, "product_id": product_id, "color": image.textile_color_name},
                )
                result.data["already_attributed"] = True
                return result

            product = self.products.get(product_id=product_id)
            shop_slug = self._shop_slug(product)
            source = self._load_source(image, shop_slug=shop_slug, product=product, colors=targets)
            original_delete: Optional[DeleteOutcome] = None

            for color in targets:
                try:
                    image_url = image.image_url
                    if source is not None:
                        target = self._target_location(
                            source.location, shop_slug=shop_slug, product=product, color=color, image=image
                        )
                        self.storage.upload_bytes(
                            bucket=target.bucket,
                            key=target.path,
                            data=source.data,
                            content_type=source.content_type,
                            overwrite=True,
                        )
                        image_url = self.storage.public_url(bucket=target.bucket, key=target.path)
                        if original_delete is None:
                            if target.path == source.location.path:
                                original_delete = DeleteOutcome.skipped
                            else:
                                original_delete = self._delete_unreferenced(
                                    source.location, url=image.image_url, column="image_url", image_id=image.id
                                )
                    row, action = self._upsert_color_row(
                        product_id=product_id, image=image, color=color, image_url=image_url
                    )
                    result.add(
                        ItemResult(
                            key=color,
                            success=True,
                            data={"image_id": row.id, "action": action, "image_url": row.image_url},
                        )
                    )
                except (ServiceError, SQLAlchemyError) as exc:
                    if isinstance(exc, SQLAlchemyError):
                        self.session.rollback()
                    logger.exception(
                        "Color attribution failed",
                        extra={"image_id": image_id, "product_id": product_id, "color": color},
                    )
                    message = exc.message if isinstance(exc, ServiceError) else str(exc)
                    result.add(ItemResult(key=color, success=False, error=message))

            result.data["original_delete"] = (original_delete or DeleteOutcome.skipped).value
            if result.success:
                self.images.delete(image_id=image.id)
                result.data["bare_image_deleted"] = True
            else:
                result.data["bare_image_deleted"] = False
                result.warnings.append("Bare image kept so the remaining colors can be retried")

        logger.info(
            "Image attributed to colors",
            extra={
                "image_id": image_id,
                "product_id": product_id,
                "succeeded": result.succeeded,
                "attempted": result.attempted,
            },
        )
        return result

    def rename_print_file(self, *, product_id: str, image_id: str, new_file_name: Any) -> dict[str, Any]:
        if not isinstance(new_file_name, str) or not new_file_name.strip():
            raise InvalidInputError(message="New file name is missing", field="newFileName")

        with product_asset_lock(self.session, product_id):
            image = self.images.get(image_id=image_id, product_id=product_id)
            if image is None:
                raise NotFoundError(message="Image not found")
            if not image.print_file_url:
                raise InvalidInputError(message="Image has no print file", field="print_file_url")

            old_url = image.print_file_url
            source = _parse_or_raise(old_url, field="print_file_url")
            stem = normalize(new_file_name.strip(), "file")
            filename = f"{stem}.{source.extension}" if source.extension else stem
            target = source.with_filename(filename)
            if target.path == source.path:
                return {"image": image, "new_file_name": filename, "old_object": DeleteOutcome.skipped.value}

            data, _ = self.storage.download_bytes(bucket=source.bucket, key=source.path)
            self.storage.upload_bytes(
                bucket=target.bucket,
                key=target.path,
                data=data,
                content_type=print_file_content_type(source.extension),
                overwrite=True,
            )
            new_url = self.storage.public_url(bucket=target.bucket, key=target.path)
            image = self.images.update(image_id=image.id, print_file_url=new_url)
            outcome = self._delete_unreferenced(source, url=old_url, column="print_file_url", image_id=image.id)

        logger.info(
            "Print file renamed",
            extra={"image_id": image_id, "product_id": product_id, "path": target.path, "old_object": outcome.value},
        )
        return {"image": image, "new_file_name": filename, "old_object": outcome.value}

    def _rename_one(self, image: ProductImage, *, product: Product, shop_slug: str) -> ItemResult:
        source = parse_storage_url(image.image_url)
        if isinstance(source, StorageUrlParseError) or source.bucket != settings.MEDIA_STORAGE_IMAGE_BUCKET:
            return ItemResult(key=image.id, success=True, data={"action": "skipped"})

        target = self._target_location(
            source, shop_slug=shop_slug, product=product, color=image.textile_color_name, image=image
        )
        if target.path == source.path:
            return ItemResult(key=image.id, success=True, data={"action": "unchanged"})

        old_url = image.image_url
        new_url = self.storage.public_url(bucket=target.bucket, key=target.path)
        if self.storage.object_exists(bucket=target.bucket, key=target.path):
            self.images.update(image_id=image.id, image_url=new_url)
            return ItemResult(
                key=image.id,
                success=True,
                data={"action": "updated_url", "old_name": source.filename, "new_name": target.filename},
            )

        data, content_type = self.storage.download_bytes(bucket=source.bucket, key=source.path)
        self.storage.upload_bytes(
            bucket=target.bucket,
            key=target.path,
            data=data,
            content_type=content_type or image_content_type(source.extension),
            overwrite=True,
        )
        self.images.update(image_id=image.id, image_url=new_url)
        outcome = self._delete_unreferenced(source, url=old_url, column="image_url", image_id=image.id)
        return ItemResult(
            key=image.id,
            success=True,
            data={
                "action": "renamed",
                "old_name": source.filename,
                "new_name": target.filename,
                "old_object": outcome.value,
            },
        )

    def _rename_product_images(self, product_id: str, image_ids: Iterable[str], result: OperationResult) -> None:
        with product_asset_lock(self.session, product_id):
            product = self.products.get(product_id=product_id)
            shop_slug = self._shop_slug(product)
            for image_id in image_ids:
                # Re-read under the lock; another request may have moved it.
                image = self.images.get(image_id=image_id, product_id=product_id)
                if image is None or not image.image_url or not image.textile_color_name:
                    continue
                try:
                    result.add(self._rename_one(image, product=product, shop_slug=shop_slug))
                except (ServiceError, SQLAlchemyError) as exc:
                    if isinstance(exc, SQLAlchemyError):
                        self.session.rollback()
                    logger.exception(
                        "Image rename failed", extra={"image_id": image_id, "product_id": product_id}
                    )
                    message = exc.message if isinstance(exc, ServiceError) else str(exc)
                    result.add(ItemResult(key=image_id, success=False, error=message))

    def rename_all_attributed(self) -> OperationResult:
        """Bring every color attributed image to its ``shop_product_color_type`` file name."""
        grouped: "OrderedDict[str, list[str]]" = OrderedDict()
        for image in self.images.list_attributed_with_image():
            grouped.setdefault(image.product_id, []).append(image.id)

        result = OperationResult()
        for product_id, image_ids in grouped.items():
            try:
                self._rename_product_images(product_id, image_ids, result)
            except NotFoundError:
                for image_id in image_ids:
                    result.add(ItemResult(key=image_id, success=False, error="Product not found"))

        for action in ("renamed", "updated_url", "unchanged", "skipped"):
            result.data[action] = sum(1 for item in result.results if item.data.get("action") == action)
        logger.info(
            "Attributed images renamed",
            extra={
                "renamed": result.data["renamed"],
                "updated_url": result.data["updated_url"],
                "failed": result.attempted - result.succeeded,
            },
        )
        return result
