"""Initial ledger tables: stores, farmers, gate passes, allocations.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Stores and numbering ─────────────────────────────────
    op.create_table(
        "cold_storages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "gate_pass_counters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("pass_type", sa.String(40), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "pass_type", name="uq_gate_pass_counter_store_type"),
    )
    op.create_index("ix_gate_pass_counters_cold_storage_id", "gate_pass_counters", ["cold_storage_id"])

    # ── Farmers ──────────────────────────────────────────────
    op.create_table(
        "farmers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("mobile_number", sa.String(20), nullable=False),
        sa.Column("image_url", sa.String(500)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_farmers_mobile_number", "farmers", ["mobile_number"])

    op.create_table(
        "farmer_storage_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farmer_id", sa.String(36), sa.ForeignKey("farmers.id"), nullable=False),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("account_number", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "account_number", name="uq_farmer_link_account"),
    )
    op.create_index("ix_farmer_storage_links_farmer_id", "farmer_storage_links", ["farmer_id"])
    op.create_index("ix_farmer_storage_links_cold_storage_id", "farmer_storage_links", ["cold_storage_id"])

    # ── Incoming (lots) ──────────────────────────────────────
    op.create_table(
        "incoming_gate_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("farmer_storage_link_id", sa.String(36), sa.ForeignKey("farmer_storage_links.id"), nullable=False),
        sa.Column("received_by_id", sa.String(36)),
        sa.Column("gate_pass_no", sa.Integer(), nullable=False),
        sa.Column("manual_gate_pass_number", sa.Integer()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("variety", sa.String(100), nullable=False),
        sa.Column("truck_number", sa.String(30), nullable=False),
        sa.Column("bags_received", sa.Float(), nullable=False),
        sa.Column("slip_number", sa.String(50)),
        sa.Column("gross_weight_kg", sa.Float()),
        sa.Column("tare_weight_kg", sa.Float()),
        sa.Column("status", sa.String(10), server_default="OPEN"),
        sa.Column("total_graded_bags", sa.Float(), server_default="0"),
        sa.Column("remarks", sa.Text()),
        sa.Column("revision", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_incoming_gate_pass_no"),
    )
    op.create_index("ix_incoming_gate_passes_cold_storage_id", "incoming_gate_passes", ["cold_storage_id"])
    op.create_index("ix_incoming_gate_passes_farmer_storage_link_id", "incoming_gate_passes", ["farmer_storage_link_id"])
    op.create_index("ix_incoming_gate_passes_status", "incoming_gate_passes", ["status"])
    op.create_index("ix_incoming_gate_passes_created_at", "incoming_gate_passes", ["created_at"])

    # ── Grading ──────────────────────────────────────────────
    op.create_table(
        "grading_gate_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("incoming_gate_pass_id", sa.String(36), sa.ForeignKey("incoming_gate_passes.id"), nullable=False),
        sa.Column("graded_by_id", sa.String(36), nullable=False),
        sa.Column("gate_pass_no", sa.Integer(), nullable=False),
        sa.Column("manual_gate_pass_number", sa.Integer()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("variety", sa.String(100), nullable=False),
        sa.Column("allocation_status", sa.String(30), server_default="UNALLOCATED"),
        sa.Column("remarks", sa.Text()),
        sa.Column("revision", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_grading_gate_pass_no"),
    )
    op.create_index("ix_grading_gate_passes_cold_storage_id", "grading_gate_passes", ["cold_storage_id"])
    op.create_index("ix_grading_gate_passes_incoming_gate_pass_id", "grading_gate_passes", ["incoming_gate_pass_id"])
    op.create_index("ix_grading_gate_passes_allocation_status", "grading_gate_passes", ["allocation_status"])
    op.create_index("ix_grading_gate_passes_created_at", "grading_gate_passes", ["created_at"])

    op.create_table(
        "grading_buckets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("grading_gate_pass_id", sa.String(36), sa.ForeignKey("grading_gate_passes.id"), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("bag_type", sa.String(50), nullable=False),
        sa.Column("weight_per_bag_kg", sa.Float(), nullable=False),
        sa.Column("initial_quantity", sa.Float(), nullable=False),
        sa.Column("current_quantity", sa.Float(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("grading_gate_pass_id", "size", name="uq_grading_bucket_size"),
        sa.CheckConstraint(
            "current_quantity >= 0 AND current_quantity <= initial_quantity",
            name="ck_grading_bucket_bounds",
        ),
    )
    op.create_index("ix_grading_buckets_grading_gate_pass_id", "grading_buckets", ["grading_gate_pass_id"])

    # ── Storage ──────────────────────────────────────────────
    op.create_table(
        "storage_gate_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("gate_pass_no", sa.Integer(), nullable=False),
        sa.Column("manual_gate_pass_number", sa.Integer()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("variety", sa.String(100), nullable=False),
        sa.Column("remarks", sa.Text()),
        sa.Column("revision", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_storage_gate_pass_no"),
    )
    op.create_index("ix_storage_gate_passes_cold_storage_id", "storage_gate_passes", ["cold_storage_id"])
    op.create_index("ix_storage_gate_passes_created_at", "storage_gate_passes", ["created_at"])

    op.create_table(
        "storage_buckets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("storage_gate_pass_id", sa.String(36), sa.ForeignKey("storage_gate_passes.id"), nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("bag_type", sa.String(50), nullable=False),
        sa.Column("weight_per_bag_kg", sa.Float(), nullable=False),
        sa.Column("chamber", sa.String(50), nullable=False),
        sa.Column("floor", sa.String(50), nullable=False),
        sa.Column("row", sa.String(50), nullable=False),
        sa.Column("initial_quantity", sa.Float(), nullable=False),
        sa.Column("current_quantity", sa.Float(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("storage_gate_pass_id", "size", name="uq_storage_bucket_size"),
        sa.CheckConstraint(
            "current_quantity >= 0 AND current_quantity <= initial_quantity",
            name="ck_storage_bucket_bounds",
        ),
    )
    op.create_index("ix_storage_buckets_storage_gate_pass_id", "storage_buckets", ["storage_gate_pass_id"])

    # ── Nikasi ───────────────────────────────────────────────
    op.create_table(
        "nikasi_gate_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("gate_pass_no", sa.Integer(), nullable=False),
        sa.Column("manual_gate_pass_number", sa.Integer()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("variety", sa.String(100), nullable=False),
        sa.Column("from_location", sa.String(255)),
        sa.Column("to_field", sa.String(255)),
        sa.Column("remarks", sa.Text()),
        sa.Column("revision", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("cold_storage_id", "gate_pass_no", name="uq_nikasi_gate_pass_no"),
    )
    op.create_index("ix_nikasi_gate_passes_cold_storage_id", "nikasi_gate_passes", ["cold_storage_id"])
    op.create_index("ix_nikasi_gate_passes_created_at", "nikasi_gate_passes", ["created_at"])

    # ── Allocation ledger ────────────────────────────────────
    op.create_table(
        "allocations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36), sa.ForeignKey("cold_storages.id"), nullable=False),
        sa.Column("source_kind", sa.String(20), nullable=False),
        sa.Column("source_bucket_id", sa.String(36), nullable=False),
        sa.Column("source_gate_pass_id", sa.String(36), nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("consumer_kind", sa.String(20), nullable=False),
        sa.Column("consumer_gate_pass_id", sa.String(36), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("quantity_available", sa.Float()),
        sa.Column("reverses_id", sa.String(36), sa.ForeignKey("allocations.id")),
        sa.Column("chamber", sa.String(50)),
        sa.Column("floor", sa.String(50)),
        sa.Column("row", sa.String(50)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_allocations_cold_storage_id", "allocations", ["cold_storage_id"])
    op.create_index("ix_allocations_source_bucket_id", "allocations", ["source_bucket_id"])
    op.create_index("ix_allocations_source_gate_pass_id", "allocations", ["source_gate_pass_id"])
    op.create_index("ix_allocations_consumer_gate_pass_id", "allocations", ["consumer_gate_pass_id"])
    op.create_index("ix_allocations_reverses_id", "allocations", ["reverses_id"])
    op.create_index("ix_allocations_created_at", "allocations", ["created_at"])

    op.create_table(
        "bucket_snapshots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("consumer_kind", sa.String(20), nullable=False),
        sa.Column("consumer_gate_pass_id", sa.String(36), nullable=False),
        sa.Column("allocation_id", sa.String(36), sa.ForeignKey("allocations.id")),
        sa.Column("source_kind", sa.String(20), nullable=False),
        sa.Column("source_gate_pass_id", sa.String(36), nullable=False),
        sa.Column("source_gate_pass_no", sa.Integer(), nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("initial_quantity", sa.Float(), nullable=False),
        sa.Column("current_quantity", sa.Float(), nullable=False),
        sa.Column("location", sa.String(160)),
        sa.Column("position", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_bucket_snapshots_consumer_gate_pass_id", "bucket_snapshots", ["consumer_gate_pass_id"])

    # ── Audit ────────────────────────────────────────────────
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cold_storage_id", sa.String(36)),
        sa.Column("actor_id", sa.String(36)),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_cold_storage_id", "activity_logs", ["cold_storage_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_entity_id", "activity_logs", ["entity_id"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("bucket_snapshots")
    op.drop_table("allocations")
    op.drop_table("nikasi_gate_passes")
    op.drop_table("storage_buckets")
    op.drop_table("storage_gate_passes")
    op.drop_table("grading_buckets")
    op.drop_table("grading_gate_passes")
    op.drop_table("incoming_gate_passes")
    op.drop_table("farmer_storage_links")
    op.drop_table("farmers")
    op.drop_table("gate_pass_counters")
    op.drop_table("cold_storages")
