"""
001 — Initial schema: reference tables, context configuration, worksheets,
assessments, items and mitigations

Tables (schema risk_workflow):
  - unit_kerja, asset: reference data read by the workflow
  - konteks, risk_category, likelihood_scale, impact_scale, risk_matrix
  - risk_worksheet, risk_assessment, risk_assessment_item, risk_mitigation

uq_konteks_single_active is a partial unique index: at most one row may
carry status 'ACTIVE'.

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "risk_workflow"


def _id():
    return sa.Column("id", sa.String(36), primary_key=True)


def _fk(column: str, target: str, nullable: bool = False, ondelete=None):
    return sa.Column(
        column,
        sa.String(36),
        sa.ForeignKey(f"{SCHEMA}.{target}", ondelete=ondelete),
        nullable=nullable,
    )


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _authors():
    return [
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
    ]


def _level(name: str, nullable: bool = False):
    return sa.Column(name, sa.String(20), nullable=nullable)


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # ══════════════════════════════════════════════════════════════
    # Reference data
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "unit_kerja",
        _id(),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "asset",
        _id(),
        _fk("unit_id", "unit_kerja.id"),
        sa.Column("code", sa.String(50), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index("ix_asset_unit_id", "asset", ["unit_id"], schema=SCHEMA)

    # ══════════════════════════════════════════════════════════════
    # Context configuration
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "konteks",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("period_start", sa.Integer, nullable=False),
        sa.Column("period_end", sa.Integer, nullable=False),
        sa.Column("matrix_size", sa.Integer, nullable=False),
        _level("risk_appetite_level", nullable=True),
        sa.Column("risk_appetite_description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="INACTIVE"),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        *_authors(),
        sa.CheckConstraint("matrix_size BETWEEN 2 AND 10", name="ck_konteks_matrix_size"),
        sa.CheckConstraint("period_end > period_start", name="ck_konteks_period"),
        schema=SCHEMA,
    )
    op.create_index(
        "uq_konteks_single_active",
        "konteks",
        ["status"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "risk_category",
        _id(),
        _fk("context_id", "konteks.id", ondelete="CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("context_id", "name", name="uq_risk_category_name"),
        sa.UniqueConstraint("context_id", "order", name="uq_risk_category_order"),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_category_context_id", "risk_category", ["context_id"], schema=SCHEMA)

    for table in ("likelihood_scale", "impact_scale"):
        op.create_table(
            table,
            _id(),
            _fk("category_id", "risk_category.id", ondelete="CASCADE"),
            sa.Column("level", sa.Integer, nullable=False),
            sa.Column("label", sa.String(100), nullable=False),
            sa.Column("description", sa.Text, nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("category_id", "level", name=f"uq_{table}_level"),
            schema=SCHEMA,
        )
        op.create_index(f"ix_{table}_category_id", table, ["category_id"], schema=SCHEMA)

    op.create_table(
        "risk_matrix",
        _id(),
        _fk("context_id", "konteks.id", ondelete="CASCADE"),
        sa.Column("likelihood_level", sa.Integer, nullable=False),
        sa.Column("impact_level", sa.Integer, nullable=False),
        _level("risk_level"),
        *_timestamps(),
        sa.UniqueConstraint(
            "context_id", "likelihood_level", "impact_level", name="uq_risk_matrix_cell"
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_matrix_context_id", "risk_matrix", ["context_id"], schema=SCHEMA)

    # ══════════════════════════════════════════════════════════════
    # Worksheets and their documents
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "risk_worksheet",
        _id(),
        _fk("unit_id", "unit_kerja.id"),
        _fk("context_id", "konteks.id"),
        sa.Column("owner_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", sa.String(100), nullable=True),
        sa.Column("submission_notes", sa.Text, nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(100), nullable=True),
        sa.Column("approval_notes", sa.Text, nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(100), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("item_sequence", sa.Integer, nullable=False, server_default="0"),
        sa.Column("assessment_sequence", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        *_authors(),
        sa.UniqueConstraint("unit_id", "context_id", "name", name="uq_risk_worksheet_name"),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_worksheet_unit_id", "risk_worksheet", ["unit_id"], schema=SCHEMA)
    op.create_index("ix_risk_worksheet_context_id", "risk_worksheet", ["context_id"], schema=SCHEMA)
    op.create_index("ix_risk_worksheet_owner_id", "risk_worksheet", ["owner_id"], schema=SCHEMA)

    op.create_table(
        "risk_assessment",
        _id(),
        _fk("worksheet_id", "risk_worksheet.id", ondelete="CASCADE"),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("assessment_date", sa.Date, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", sa.String(100), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(100), nullable=True),
        sa.Column("review_notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        *_authors(),
        sa.UniqueConstraint("worksheet_id", "code", name="uq_risk_assessment_code"),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_assessment_worksheet_id", "risk_assessment", ["worksheet_id"], schema=SCHEMA)

    op.create_table(
        "risk_assessment_item",
        _id(),
        _fk("worksheet_id", "risk_worksheet.id", ondelete="CASCADE"),
        _fk("assessment_id", "risk_assessment.id", nullable=True, ondelete="SET NULL"),
        sa.Column("risk_code", sa.String(20), nullable=False),
        sa.Column("risk_name", sa.String(255), nullable=False),
        sa.Column("risk_description", sa.Text, nullable=True),
        sa.Column("weakness_description", sa.Text, nullable=True),
        sa.Column("threat_description", sa.Text, nullable=True),
        sa.Column("impact_description", sa.Text, nullable=True),
        _fk("risk_category_id", "risk_category.id"),
        _fk("asset_id", "asset.id", nullable=True),
        sa.Column("inherent_likelihood", sa.Integer, nullable=False),
        sa.Column("inherent_impact", sa.Integer, nullable=False),
        _level("inherent_risk_level"),
        sa.Column("existing_controls", sa.Text, nullable=True),
        sa.Column("control_effectiveness", sa.String(30), nullable=True),
        sa.Column("residual_likelihood", sa.Integer, nullable=False),
        sa.Column("residual_impact", sa.Integer, nullable=False),
        _level("residual_risk_level"),
        sa.Column("treatment_option", sa.String(20), nullable=True),
        sa.Column("treatment_rationale", sa.Text, nullable=True),
        sa.Column("risk_priority_rank", sa.Integer, nullable=True),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("mitigation_sequence", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        *_authors(),
        sa.UniqueConstraint("worksheet_id", "risk_code", name="uq_risk_item_code"),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_assessment_item_worksheet_id", "risk_assessment_item", ["worksheet_id"], schema=SCHEMA)
    op.create_index("ix_risk_assessment_item_assessment_id", "risk_assessment_item", ["assessment_id"], schema=SCHEMA)

    op.create_table(
        "risk_mitigation",
        _id(),
        _fk("item_id", "risk_assessment_item.id", ondelete="CASCADE"),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PLANNED"),
        sa.Column("planned_start_date", sa.Date, nullable=True),
        sa.Column("planned_end_date", sa.Date, nullable=True),
        sa.Column("actual_start_date", sa.Date, nullable=True),
        sa.Column("actual_end_date", sa.Date, nullable=True),
        sa.Column("responsible_person", sa.String(255), nullable=True),
        sa.Column("responsible_unit", sa.String(255), nullable=True),
        sa.Column("progress_percentage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("progress_notes", sa.Text, nullable=True),
        sa.Column("proposed_residual_likelihood", sa.Integer, nullable=True),
        sa.Column("proposed_residual_impact", sa.Integer, nullable=True),
        _level("proposed_residual_risk_level", nullable=True),
        sa.Column("review_status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("is_validated", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validated_by", sa.String(100), nullable=True),
        sa.Column("validation_notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        *_authors(),
        sa.UniqueConstraint("item_id", "code", name="uq_risk_mitigation_code"),
        sa.CheckConstraint("progress_percentage BETWEEN 0 AND 100", name="ck_risk_mitigation_progress"),
        schema=SCHEMA,
    )
    op.create_index("ix_risk_mitigation_item_id", "risk_mitigation", ["item_id"], schema=SCHEMA)
    op.create_index("ix_risk_mitigation_review_status", "risk_mitigation", ["review_status"], schema=SCHEMA)
    op.create_index("ix_risk_mitigation_is_validated", "risk_mitigation", ["is_validated"], schema=SCHEMA)


def downgrade() -> None:
    for table in (
        "risk_mitigation",
        "risk_assessment_item",
        "risk_assessment",
        "risk_worksheet",
        "risk_matrix",
        "impact_scale",
        "likelihood_scale",
        "risk_category",
        "konteks",
        "asset",
        "unit_kerja",
    ):
        op.drop_table(table, schema=SCHEMA)
