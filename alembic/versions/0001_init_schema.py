"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE lead_configuration_status AS ENUM ('draft','approved','provisioned');")
    op.execute("CREATE TYPE shop_status AS ENUM ('draft','live','closed');")
    op.execute("CREATE TYPE product_image_type AS ENUM ('front','back','side');")
    op.execute("CREATE TYPE print_position AS ENUM ('front','back','side');")

    lead_configuration_status_enum = postgresql.ENUM(name="lead_configuration_status", create_type=False)
    shop_status_enum = postgresql.ENUM(name="shop_status", create_type=False)
    product_image_type_enum = postgresql.ENUM(name="product_image_type", create_type=False)
    print_position_enum = postgresql.ENUM(name="print_position", create_type=False)

    id_column = sa.String(length=36)
    money = sa.Numeric(10, 2)

    def created_at() -> sa.Column:
        return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False)

    op.create_table(
        "schools",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("short_code", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        created_at(),
    )

    op.create_table(
        "shops",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("school_id", id_column, sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("status", shop_status_enum, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("shop_open_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shop_close_at", sa.DateTime(timezone=True), nullable=True),
        created_at(),
        sa.UniqueConstraint("slug", name="uq_shops_slug"),
    )

    op.create_table(
        "admin_users",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        created_at(),
        sa.UniqueConstraint("user_id", name="uq_admin_users_user_id"),
    )

    op.create_table(
        "user_roles",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("school_id", id_column, sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=True),
        sa.Column("shop_id", id_column, sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=True),
        sa.Column("role", sa.Text(), nullable=False),
        created_at(),
    )
    op.create_index("idx_user_roles_user", "user_roles", ["user_id"])

    op.create_table(
        "lead_configurations",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("school_id", id_column, sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shop_id", id_column, sa.ForeignKey("shops.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "status", lead_configuration_status_enum, nullable=False, server_default=sa.text("'draft'")
        ),
        sa.Column("selected_textiles", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("print_positions", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("price_calculation", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("sponsoring", money, nullable=True),
        sa.Column("margin", money, nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "textile_catalog",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("article_number", sa.Text(), nullable=True),
        sa.Column("base_price", money, server_default=sa.text("0"), nullable=False),
        sa.Column("available_colors", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("available_sizes", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "textile_prices",
        sa.Column("id", id_column, primary_key=True),
        sa.Column(
            "textile_id", id_column, sa.ForeignKey("textile_catalog.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("price", money, nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )
    op.create_index("idx_textile_prices_textile", "textile_prices", ["textile_id"])

    op.create_table(
        "print_methods",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("display_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )

    op.create_table(
        "print_method_costs",
        sa.Column("id", id_column, primary_key=True),
        sa.Column(
            "print_method_id", id_column, sa.ForeignKey("print_methods.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("cost_per_unit", sa.Text(), nullable=False),
        sa.Column("cost_50_units", sa.Text(), nullable=True),
        sa.Column("cost_100_units", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )
    op.create_index("idx_print_method_costs_method", "print_method_costs", ["print_method_id"])

    op.create_table(
        "print_costs",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("position", print_position_enum, nullable=False),
        sa.Column("cost_per_unit", money, nullable=False),
        sa.Column("setup_fee", money, server_default=sa.text("0"), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )

    op.create_table(
        "handling_costs",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("cost_per_order", money, server_default=sa.text("0"), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )

    op.create_table(
        "products",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("shop_id", id_column, sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "lead_configuration_id",
            id_column,
            sa.ForeignKey("lead_configurations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "textile_id", id_column, sa.ForeignKey("textile_catalog.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", money, nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("sort_index", sa.Integer(), nullable=True),
        created_at(),
        sa.UniqueConstraint(
            "lead_configuration_id", "textile_id", name="uq_products_lead_configuration_textile"
        ),
    )
    op.create_index("idx_products_shop", "products", ["shop_id"])

    op.create_table(
        "product_variants",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("product_id", id_column, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color_name", sa.Text(), nullable=True),
        sa.Column("color_hex", sa.Text(), nullable=True),
        sa.Column("additional_price", money, server_default=sa.text("0"), nullable=True),
        sa.Column("sku", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.UniqueConstraint("product_id", "name", "color_name", name="uq_product_variants_size_color"),
    )
    op.create_index("idx_product_variants_product", "product_variants", ["product_id"])
    op.create_index(
        "uq_product_variants_size_only",
        "product_variants",
        ["product_id", "name"],
        unique=True,
        postgresql_where=sa.text("color_name IS NULL"),
    )

    op.create_table(
        "product_images",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("product_id", id_column, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("textile_color_name", sa.Text(), nullable=True),
        sa.Column(
            "textile_color_id", id_column, sa.ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("image_type", product_image_type_enum, nullable=False, server_default=sa.text("'front'")),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("print_file_url", sa.Text(), nullable=True),
        created_at(),
    )
    op.create_index("idx_product_images_product", "product_images", ["product_id"])
    op.create_index("idx_product_images_image_url", "product_images", ["image_url"])

    op.create_table(
        "shopify_connections",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("shop_domain", sa.String(length=255), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        created_at(),
    )

    op.create_table(
        "shopify_product_mappings",
        sa.Column("id", id_column, primary_key=True),
        sa.Column("product_id", id_column, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("shopify_product_id", sa.Text(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("product_id", name="uq_shopify_product_mappings_product"),
    )


def downgrade() -> None:
    op.drop_table("shopify_product_mappings")
    op.drop_table("shopify_connections")

    op.drop_index("idx_product_images_image_url", table_name="product_images")
    op.drop_index("idx_product_images_product", table_name="product_images")
    op.drop_table("product_images")

    op.drop_index("uq_product_variants_size_only", table_name="product_variants")
    op.drop_index("idx_product_variants_product", table_name="product_variants")
    op.drop_table("product_variants")

    op.drop_index("idx_products_shop", table_name="products")
    op.drop_table("products")

    op.drop_table("handling_costs")
    op.drop_table("print_costs")
    op.drop_index("idx_print_method_costs_method", table_name="print_method_costs")
    op.drop_table("print_method_costs")
    op.drop_table("print_methods")
    op.drop_index("idx_textile_prices_textile", table_name="textile_prices")
    op.drop_table("textile_prices")
    op.drop_table("textile_catalog")

    op.drop_table("lead_configurations")
    op.drop_index("idx_user_roles_user", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_table("admin_users")
    op.drop_table("shops")
    op.drop_table("schools")

    op.execute("DROP TYPE IF EXISTS print_position;")
    op.execute("DROP TYPE IF EXISTS product_image_type;")
    op.execute("DROP TYPE IF EXISTS shop_status;")
    op.execute("DROP TYPE IF EXISTS lead_configuration_status;")
