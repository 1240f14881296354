"""initial data-quality schema

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates:
  sys_site, sys_dataset, biz_dataset_version
  conf_column_setting, conf_outlier_detection
  biz_outlier_result, biz_outlier_detail, biz_outlier_column_stat
  biz_imputation_result, biz_imputation_detail, biz_imputation_column_stat
"""
from alembic import op
import sqlalchemy as sa

revision = "a1c2e3f4b5d6"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(soft_delete: bool = True) -> list:
    columns = [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]
    if soft_delete:
        columns += [
            sa.Column("deleted_at", sa.DateTime(), nullable=True),
            sa.Column("is_del", sa.Boolean(), nullable=False, server_default=sa.false()),
        ]
    return columns


def upgrade() -> None:
    op.create_table(
        "sys_site",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("altitude", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sys_site_id", "sys_site", ["id"])

    op.create_table(
        "sys_dataset",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sys_site.id"), nullable=False),
        sa.Column("dataset_name", sa.String(), nullable=False),
        sa.Column("source_file_path", sa.String(), nullable=True),
        sa.Column("missing_value_types", sa.JSON(), nullable=True),
        sa.Column("time_column", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("import_time", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sys_dataset_id", "sys_dataset", ["id"])
    op.create_index("ix_sys_dataset_site_id", "sys_dataset", ["site_id"])

    op.create_table(
        "biz_dataset_version",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("sys_dataset.id"), nullable=False),
        sa.Column("parent_version_id", sa.Integer(), sa.ForeignKey("biz_dataset_version.id"), nullable=True),
        sa.Column("stage_type", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("remark", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_dataset_version_id", "biz_dataset_version", ["id"])
    op.create_index("ix_biz_dataset_version_dataset_id", "biz_dataset_version", ["dataset_id"])

    op.create_table(
        "conf_column_setting",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("sys_dataset.id"), nullable=False),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("column_index", sa.Integer(), nullable=True),
        sa.Column("data_type", sa.String(), nullable=True),
        sa.Column("min_threshold", sa.Float(), nullable=True),
        sa.Column("max_threshold", sa.Float(), nullable=True),
        sa.Column("physical_min", sa.Float(), nullable=True),
        sa.Column("physical_max", sa.Float(), nullable=True),
        sa.Column("warning_min", sa.Float(), nullable=True),
        sa.Column("warning_max", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(), nullable=True),
        sa.Column("variable_type", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("dataset_id", "column_name", name="uq_column_setting_dataset_column"),
    )
    op.create_index("ix_conf_column_setting_id", "conf_column_setting", ["id"])
    op.create_index("ix_conf_column_setting_dataset_id", "conf_column_setting", ["dataset_id"])

    op.create_table(
        "conf_outlier_detection",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope_type", sa.String(), nullable=False),
        sa.Column("scope_id", sa.Integer(), nullable=True),
        sa.Column("column_name", sa.String(), nullable=True),
        sa.Column("detection_method", sa.String(), nullable=False),
        sa.Column("method_params", sa.JSON(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_conf_outlier_detection_id", "conf_outlier_detection", ["id"])
    op.create_index(
        "idx_outlier_detection_scope", "conf_outlier_detection", ["scope_type", "scope_id", "column_name"]
    )

    # ── Detection results ───────────────────────────────────────────────
    op.create_table(
        "biz_outlier_result",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("sys_dataset.id"), nullable=False),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("biz_dataset_version.id"), nullable=False),
        sa.Column("detection_method", sa.String(), nullable=False),
        sa.Column("detection_params", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("columns_checked", sa.Integer(), nullable=True),
        sa.Column("outlier_count", sa.Integer(), nullable=True),
        sa.Column("outlier_rate", sa.Float(), nullable=True),
        sa.Column("stored_detail_count", sa.Integer(), nullable=True),
        sa.Column("details_truncated", sa.Boolean(), nullable=True),
        sa.Column("generated_version_id", sa.Integer(), sa.ForeignKey("biz_dataset_version.id"), nullable=True),
        sa.Column("executed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_outlier_result_id", "biz_outlier_result", ["id"])
    op.create_index("ix_biz_outlier_result_dataset_id", "biz_outlier_result", ["dataset_id"])
    op.create_index("idx_outlier_result_version", "biz_outlier_result", ["version_id"])

    op.create_table(
        "biz_outlier_detail",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("result_id", sa.Integer(), sa.ForeignKey("biz_outlier_result.id"), nullable=False),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("time_point", sa.String(), nullable=True),
        sa.Column("original_value", sa.Float(), nullable=True),
        sa.Column("outlier_type", sa.String(), nullable=False),
        sa.Column("threshold_value", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_outlier_detail_id", "biz_outlier_detail", ["id"])
    op.create_index("idx_outlier_detail_result", "biz_outlier_detail", ["result_id", "row_index"])

    op.create_table(
        "biz_outlier_column_stat",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("result_id", sa.Integer(), sa.ForeignKey("biz_outlier_result.id"), nullable=False),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("outlier_count", sa.Integer(), nullable=True),
        sa.Column("min_threshold", sa.Float(), nullable=True),
        sa.Column("max_threshold", sa.Float(), nullable=True),
        sa.Column("threshold_source", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_outlier_column_stat_id", "biz_outlier_column_stat", ["id"])
    op.create_index("ix_biz_outlier_column_stat_result_id", "biz_outlier_column_stat", ["result_id"])

    # ── Imputation results ──────────────────────────────────────────────
    op.create_table(
        "biz_imputation_result",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dataset_id", sa.Integer(), sa.ForeignKey("sys_dataset.id"), nullable=False),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("biz_dataset_version.id"), nullable=False),
        sa.Column("method_id", sa.String(), nullable=False),
        sa.Column("target_columns", sa.JSON(), nullable=False),
        sa.Column("method_params", sa.JSON(), nullable=True),
        sa.Column("total_missing", sa.Integer(), nullable=True),
        sa.Column("imputed_count", sa.Integer(), nullable=True),
        sa.Column("imputation_rate", sa.Float(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("executed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_imputation_result_id", "biz_imputation_result", ["id"])
    op.create_index("ix_biz_imputation_result_dataset_id", "biz_imputation_result", ["dataset_id"])

    op.create_table(
        "biz_imputation_detail",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("result_id", sa.Integer(), sa.ForeignKey("biz_imputation_result.id"), nullable=False),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("row_index", sa.Integer(), nullable=False),
        sa.Column("time_point", sa.String(), nullable=True),
        sa.Column("original_value", sa.Float(), nullable=True),
        sa.Column("imputed_value", sa.Float(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("imputation_method", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_imputation_detail_id", "biz_imputation_detail", ["id"])
    op.create_index(
        "idx_imputation_detail_result", "biz_imputation_detail", ["result_id", "column_name", "row_index"]
    )

    op.create_table(
        "biz_imputation_column_stat",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("result_id", sa.Integer(), sa.ForeignKey("biz_imputation_result.id"), nullable=False),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("missing_count", sa.Integer(), nullable=True),
        sa.Column("imputed_count", sa.Integer(), nullable=True),
        sa.Column("imputation_rate", sa.Float(), nullable=True),
        sa.Column("mean_before", sa.Float(), nullable=True),
        sa.Column("mean_after", sa.Float(), nullable=True),
        sa.Column("std_before", sa.Float(), nullable=True),
        sa.Column("std_after", sa.Float(), nullable=True),
        sa.Column("min_imputed", sa.Float(), nullable=True),
        sa.Column("max_imputed", sa.Float(), nullable=True),
        sa.Column("avg_confidence", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_biz_imputation_column_stat_id", "biz_imputation_column_stat", ["id"])
    op.create_index("ix_biz_imputation_column_stat_result_id", "biz_imputation_column_stat", ["result_id"])


def downgrade() -> None:
    for table in (
        "biz_imputation_column_stat",
        "biz_imputation_detail",
        "biz_imputation_result",
        "biz_outlier_column_stat",
        "biz_outlier_detail",
        "biz_outlier_result",
        "conf_outlier_detection",
        "conf_column_setting",
        "biz_dataset_version",
        "sys_dataset",
        "sys_site",
    ):
        op.drop_table(table)
