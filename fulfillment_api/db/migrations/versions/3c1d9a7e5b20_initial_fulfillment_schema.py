"""Initial fulfillment schema.

- platforms, companies, company_domains, users
- countries, cities
- brands, warehouses, zones, assets
- collections, collection_items
- pricing_tiers, order_prices
- orders, order_items, order_status_history, financial_status_history
- invoices, notification_logs
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d9a7e5b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _pk() -> sa.Column:
    return sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("uuid_generate_v4()"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _platform_fk() -> sa.Column:
    return sa.Column(
        "platform_id",
        sa.UUID(),
        sa.ForeignKey("platforms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _jsonb(name: str, default: str = "'{}'::jsonb", nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), nullable=nullable, server_default=sa.text(default))


def _is_active() -> sa.Column:
    return sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true"))


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp";')

    op.create_table(
        "platforms",
        _pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("domain", sa.Text(), nullable=False),
        _jsonb("config"),
        _jsonb("features"),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("domain", name="platforms_domain_unique"),
    )

    op.create_table(
        "companies",
        _pk(),
        _platform_fk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("domain", sa.Text(), nullable=False),
        _jsonb("settings"),
        sa.Column("platform_margin_percent", sa.Numeric(5, 2), nullable=False, server_default="25.00"),
        sa.Column("warehouse_ops_rate", sa.Numeric(10, 2), nullable=False, server_default="25.20"),
        sa.Column("contact_email", sa.Text(), nullable=True),
        sa.Column("contact_phone", sa.Text(), nullable=True),
        _jsonb("features"),
        _is_active(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "domain", name="companies_platform_domain_unique"),
    )

    op.create_table(
        "company_domains",
        _pk(),
        _platform_fk(),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("hostname", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False, server_default="VANITY"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("hostname", name="company_domains_hostname_unique"),
    )

    op.create_table(
        "users",
        _pk(),
        _platform_fk(),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="CLIENT"),
        _is_active(),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_changed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "email", name="user_platform_email_unique"),
    )

    op.create_table(
        "countries",
        _pk(),
        _platform_fk(),
        sa.Column("name", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "name", name="countries_platform_name_unique"),
    )

    op.create_table(
        "cities",
        _pk(),
        _platform_fk(),
        sa.Column(
            "country_id",
            sa.UUID(),
            sa.ForeignKey("countries.id", ondelete="RESTRICT", name="fk_cities_country_id_countries"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "country_id", "name", name="cities_platform_country_name_unique"),
    )

    op.create_table(
        "brands",
        _pk(),
        _platform_fk(),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("company_id", "name", name="brands_company_name_unique"),
    )

    op.create_table(
        "warehouses",
        _pk(),
        _platform_fk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("country", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        _jsonb("coordinates", default="NULL", nullable=True),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "name", name="warehouses_platform_name_unique"),
    )

    op.create_table(
        "zones",
        _pk(),
        _platform_fk(),
        sa.Column("warehouse_id", sa.UUID(), sa.ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("warehouse_id", "company_id", "name", name="zones_warehouse_company_name_unique"),
    )

    op.create_table(
        "assets",
        _pk(),
        _platform_fk(),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column(
            "warehouse_id",
            sa.UUID(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT", name="fk_assets_warehouse_id_warehouses"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "zone_id",
            sa.UUID(),
            sa.ForeignKey("zones.id", ondelete="RESTRICT", name="fk_assets_zone_id_zones"),
            nullable=False,
            index=True,
        ),
        sa.Column("brand_id", sa.UUID(), sa.ForeignKey("brands.id", ondelete="RESTRICT"), nullable=True, index=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("tracking_method", sa.Text(), nullable=False, server_default="INDIVIDUAL"),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("available_quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("qr_code", sa.Text(), nullable=False),
        sa.Column("weight_per_unit", sa.Numeric(8, 2), nullable=False),
        sa.Column("volume_per_unit", sa.Numeric(8, 3), nullable=False),
        sa.Column("condition", sa.Text(), nullable=False, server_default="GREEN"),
        sa.Column("status", sa.Text(), nullable=False, server_default="AVAILABLE"),
        _jsonb("handling_tags", default="'[]'::jsonb"),
        _jsonb("images", default="'[]'::jsonb"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "qr_code", name="assets_platform_qr_code_unique"),
        sa.CheckConstraint("available_quantity >= 0", name="ck_assets_available_quantity_non_negative"),
        sa.CheckConstraint("available_quantity <= total_quantity", name="ck_assets_available_within_total"),
    )

    op.create_table(
        "collections",
        _pk(),
        _platform_fk(),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("brand_id", sa.UUID(), sa.ForeignKey("brands.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        _jsonb("images", default="'[]'::jsonb"),
        _is_active(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "collection_items",
        _pk(),
        sa.Column(
            "collection_id", sa.UUID(), sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("asset_id", sa.UUID(), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("default_quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("collection_id", "asset_id", name="collection_items_unique"),
        sa.CheckConstraint("default_quantity >= 1", name="ck_collection_items_default_quantity_positive"),
    )

    op.create_table(
        "pricing_tiers",
        _pk(),
        _platform_fk(),
        sa.Column("country", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("volume_min", sa.Numeric(8, 3), nullable=False),
        sa.Column("volume_max", sa.Numeric(8, 3), nullable=True),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        _is_active(),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "country", "city", "volume_min", "volume_max", name="pricing_tiers_unique"),
        sa.CheckConstraint("volume_min >= 0", name="ck_pricing_tiers_volume_min_non_negative"),
        sa.CheckConstraint(
            "volume_max IS NULL OR volume_max >= volume_min", name="ck_pricing_tiers_volume_range_ordered"
        ),
        sa.CheckConstraint("base_price >= 0", name="ck_pricing_tiers_base_price_non_negative"),
    )
    op.create_index(
        "ix_pricing_tiers_lookup", "pricing_tiers", ["platform_id", "country", "city", "is_active"]
    )

    op.create_table(
        "order_prices",
        _pk(),
        _platform_fk(),
        sa.Column("pricing_tier_id", sa.UUID(), sa.ForeignKey("pricing_tiers.id", ondelete="RESTRICT"), nullable=True, index=True),
        sa.Column("volume", sa.Numeric(10, 3), nullable=False, server_default="0"),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("logistics_sub_total", sa.Numeric(10, 2), nullable=True),
        _jsonb("margin"),
        sa.Column("final_total", sa.Numeric(10, 2), nullable=True),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("calculated_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "orders",
        _pk(),
        _platform_fk(),
        sa.Column("order_id", sa.Text(), nullable=False),
        sa.Column("company_id", sa.UUID(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("brand_id", sa.UUID(), sa.ForeignKey("brands.id", ondelete="RESTRICT"), nullable=True, index=True),
        sa.Column("created_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("contact_name", sa.Text(), nullable=False),
        sa.Column("contact_email", sa.Text(), nullable=False),
        sa.Column("contact_phone", sa.Text(), nullable=False),
        sa.Column("event_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("venue_name", sa.Text(), nullable=False),
        sa.Column(
            "venue_country_id",
            sa.UUID(),
            sa.ForeignKey("countries.id", ondelete="RESTRICT", name="fk_orders_venue_country_id_countries"),
            nullable=False,
        ),
        sa.Column(
            "venue_city_id",
            sa.UUID(),
            sa.ForeignKey("cities.id", ondelete="RESTRICT", name="fk_orders_venue_city_id_cities"),
            nullable=False,
        ),
        sa.Column("venue_address", sa.Text(), nullable=False),
        sa.Column("venue_access_notes", sa.Text(), nullable=True),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("trip_type", sa.Text(), nullable=False, server_default="ROUND_TRIP"),
        _jsonb("calculated_totals"),
        sa.Column("pricing_tier_id", sa.UUID(), sa.ForeignKey("pricing_tiers.id", ondelete="RESTRICT"), nullable=True, index=True),
        sa.Column("order_pricing_id", sa.UUID(), sa.ForeignKey("order_prices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("order_status", sa.Text(), nullable=False, server_default="DRAFT"),
        sa.Column("financial_status", sa.Text(), nullable=False, server_default="PENDING_QUOTE"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "order_id", name="orders_platform_order_id_unique"),
    )
    op.create_index("ix_orders_platform_status", "orders", ["platform_id", "order_status"])

    op.create_table(
        "order_items",
        _pk(),
        _platform_fk(),
        sa.Column("order_id", sa.UUID(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("asset_id", sa.UUID(), sa.ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("asset_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("volume_per_unit", sa.Numeric(8, 3), nullable=False),
        sa.Column("weight_per_unit", sa.Numeric(8, 2), nullable=False),
        sa.Column("total_volume", sa.Numeric(10, 3), nullable=False),
        sa.Column("total_weight", sa.Numeric(10, 2), nullable=False),
        _jsonb("handling_tags", default="'[]'::jsonb"),
        *_timestamps(),
        sa.UniqueConstraint("order_id", "asset_id", name="order_items_order_asset_unique"),
    )

    for table in ("order_status_history", "financial_status_history"):
        op.create_table(
            table,
            _pk(),
            _platform_fk(),
            sa.Column("order_id", sa.UUID(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("status", sa.Text(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("updated_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        )

    op.create_table(
        "invoices",
        _pk(),
        _platform_fk(),
        sa.Column("order_id", sa.UUID(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False, server_default="ORDER"),
        sa.Column("invoice_pdf_url", sa.Text(), nullable=True),
        sa.Column("invoice_paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("payment_reference", sa.Text(), nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        sa.Column("generated_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("platform_id", "invoice_id", name="platform_invoice_id_unique"),
        sa.UniqueConstraint("order_id", name="invoices_order_id_unique"),
    )
    op.create_index("ix_invoices_platform_paid_at", "invoices", ["platform_id", "invoice_paid_at"])

    op.create_table(
        "notification_logs",
        _pk(),
        _platform_fk(),
        sa.Column("order_id", sa.UUID(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True),
        sa.Column("notification_type", sa.Text(), nullable=False),
        _jsonb("recipients", default="'[]'::jsonb"),
        sa.Column("status", sa.Text(), nullable=False, server_default="QUEUED", index=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message_id", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "notification_logs",
        "invoices",
        "financial_status_history",
        "order_status_history",
        "order_items",
        "orders",
        "order_prices",
        "pricing_tiers",
        "collection_items",
        "collections",
        "assets",
        "zones",
        "warehouses",
        "brands",
        "cities",
        "countries",
        "users",
        "company_domains",
        "companies",
        "platforms",
    ):
        op.drop_table(table)
