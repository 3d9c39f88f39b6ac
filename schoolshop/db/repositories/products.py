from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select

from schoolshop.db.enums import ImageTypeEnum
from schoolshop.db.models import Product, ProductImage, ProductVariant
from schoolshop.db.repositories.base import Repository


class ProductsRepository(Repository):
    def get(self, *, product_id: str) -> Optional[Product]:
        stmt = select(Product).where(Product.id == product_id)
        return self.session.scalars(stmt).first()

    def get_for_update(self, *, product_id: str) -> Optional[Product]:
        stmt = select(Product).where(Product.id == product_id).with_for_update()
        return self.session.scalars(stmt).first()

    def count_by_lead_configuration(self, *, lead_configuration_id: str) -> int:
        stmt = select(func.count(Product.id)).where(Product.lead_configuration_id == lead_configuration_id)
        return int(self.session.execute(stmt).scalar_one())

    def create(self, *, shop_id: str, **fields: Any) -> Product:
        product = Product(shop_id=shop_id, **fields)
        return self.save(product)


class ProductVariantsRepository(Repository):
    def list_by_product(self, *, product_id: str, active_only: bool = False) -> list[ProductVariant]:
        stmt = select(ProductVariant).where(ProductVariant.product_id == product_id)
        if active_only:
            stmt = stmt.where(ProductVariant.active.is_(True))
        return list(self.session.scalars(stmt).all())

    def find_by_color(self, *, product_id: str, color_name: str) -> Optional[ProductVariant]:
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id, ProductVariant.color_name == color_name)
            .order_by(ProductVariant.name.asc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def create_many(self, *, product_id: str, rows: list[dict[str, Any]]) -> list[ProductVariant]:
        variants = [ProductVariant(product_id=product_id, **row) for row in rows]
        self.session.add_all(variants)
        self.session.commit()
        for variant in variants:
            self.session.refresh(variant)
        return variants


class ProductImagesRepository(Repository):
    def get(self, *, image_id: str, product_id: str | None = None) -> Optional[ProductImage]:
        stmt = select(ProductImage).where(ProductImage.id == image_id)
        if product_id is not None:
            stmt = stmt.where(ProductImage.product_id == product_id)
        return self.session.scalars(stmt).first()

    def find_attributed(
        self, *, product_id: str, color_name: str, image_type: ImageTypeEnum
    ) -> Optional[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(
                ProductImage.product_id == product_id,
                ProductImage.textile_color_name == color_name,
                ProductImage.image_type == image_type,
            )
            .order_by(ProductImage.created_at.asc(), ProductImage.id.asc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def list_by_product(self, *, product_id: str) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(ProductImage.textile_color_name.asc(), ProductImage.image_type.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_attributed_with_image(self) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.textile_color_name.is_not(None), ProductImage.image_url.is_not(None))
            .order_by(ProductImage.product_id.asc(), ProductImage.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def count_other_references(self, *, column: str, url: str, exclude_image_id: str) -> int:
        url_column = getattr(ProductImage, column)
        stmt = select(func.count(ProductImage.id)).where(url_column == url, ProductImage.id != exclude_image_id)
        return int(self.session.execute(stmt).scalar_one())

    def create(self, *, product_id: str, **fields: Any) -> ProductImage:
        image = ProductImage(product_id=product_id, **fields)
        return self.save(image)

    def update(self, *, image_id: str, **fields: Any) -> Optional[ProductImage]:
        image = self.get(image_id=image_id)
        if not image:
            return None
        for key, value in fields.items():
            setattr(image, key, value)
        self.session.commit()
        self.session.refresh(image)
        return image

    def delete(self, *, image_id: str) -> bool:
        image = self.get(image_id=image_id)
        if not image:
            return False
        self.session.delete(image)
        self.session.commit()
        return True
