"""
Integrity assessment and reporting for generated snapshots.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from pm_synth.models import DatabaseSchema, Row, SeedConfig

logger = logging.getLogger(__name__)


def snapshots_to_frames(tables: Mapping[str, List[Row]]) -> Dict[str, pd.DataFrame]:
    """Load snapshot rows into object-dtype DataFrames."""
    return {name: pd.DataFrame(rows, dtype=object) for name, rows in tables.items()}


class IntegrityReporter:
    """
    Checks generated snapshots against the database schema before import.

    Reports include:
    - Row and column counts per table
    - Foreign key referential integrity between snapshots
    - NULLs in NOT NULL columns
    - Repeated declared primary keys
    """

    def __init__(
        self,
        schema: DatabaseSchema,
        snapshots: Mapping[str, pd.DataFrame],
        seed_configs: Optional[Mapping[str, SeedConfig]] = None,
    ):
        """
        Initialize integrity reporter.

        Args:
            schema: Introspected database schema
            snapshots: Snapshot rows per table as DataFrames
            seed_configs: Seed configs, used for declared primary keys
        """
        self.schema = schema
        self.snapshots = snapshots
        self.seed_configs = seed_configs or {}

        self.report: Dict[str, Any] = {
            "generated_at": datetime.now().isoformat(),
            "summary": {},
            "tables": {},
            "referential_integrity": {},
        }

    def generate_report(self) -> Dict[str, Any]:
        """
        Generate the integrity report.

        Returns:
            Report dictionary
        """
        logger.info("Generating integrity report...")

        for table_name, df in self.snapshots.items():
            self.report["tables"][table_name] = self._analyze_table(table_name, df)

        self.report["referential_integrity"] = self._check_referential_integrity()
        self.report["summary"] = self._generate_summary()

        return self.report

    def _analyze_table(self, table_name: str, df: pd.DataFrame) -> Dict[str, Any]:
        table_schema = self.schema.get(table_name)
        report: Dict[str, Any] = {
            "row_count": len(df),
            "column_count": len(df.columns),
            "null_violations": {},
            "duplicate_keys": 0,
        }

        if table_schema is not None:
            for column in table_schema.columns:
                if column.is_nullable or column.name not in df.columns:
                    continue
                nulls = int(df[column.name].isna().sum())
                if nulls:
                    report["null_violations"][column.name] = nulls

        config = self.seed_configs.get(table_name)
        if config is not None and config.primary_keys and len(df):
            present = [k for k in config.primary_keys if k in df.columns]
            if len(present) == len(config.primary_keys):
                keys = df[present].astype(str)
                report["duplicate_keys"] = int(keys.duplicated(keep="first").sum())

        return report

    def _check_referential_integrity(self) -> Dict[str, Any]:
        """Check every schema foreign key whose tables both have snapshots."""
        ri_report: Dict[str, Any] = {
            "total_relationships": 0,
            "valid_relationships": 0,
            "violations": [],
        }
        parent_values_cache: Dict[Tuple[str, str], set] = {}

        for child_table, table_schema in self.schema.items():
            child_df = self.snapshots.get(child_table)
            if child_df is None:
                continue

            for fk in table_schema.foreign_keys:
                parent_df = self.snapshots.get(fk.target_table)
                if parent_df is None or fk.column_name not in child_df.columns:
                    continue

                ri_report["total_relationships"] += 1
                key = (fk.target_table, fk.target_column)
                if key not in parent_values_cache:
                    parent_values_cache[key] = (
                        set(parent_df[fk.target_column].dropna().astype(str))
                        if fk.target_column in parent_df.columns
                        else set()
                    )
                parent_values = parent_values_cache[key]
                child_values = set(child_df[fk.column_name].dropna().astype(str))

                orphans = child_values - parent_values
                if orphans:
                    ri_report["violations"].append({
                        "relationship": fk.constraint_name,
                        "parent_table": fk.target_table,
                        "parent_column": fk.target_column,
                        "child_table": child_table,
                        "child_column": fk.column_name,
                        "orphan_count": len(orphans),
                        "sample_orphans": sorted(orphans)[:5],
                    })
                else:
                    ri_report["valid_relationships"] += 1

        ri_report["integrity_score"] = (
            ri_report["valid_relationships"] / max(ri_report["total_relationships"], 1)
        )
        return ri_report

    def _generate_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "total_tables": len(self.snapshots),
            "total_rows": sum(len(df) for df in self.snapshots.values()),
            "referential_integrity_score": self.report["referential_integrity"].get("integrity_score", 1.0),
            "tables_with_issues": [],
        }

        for table_name, table_report in self.report["tables"].items():
            issues = [
                f"{count} NULL value(s) in NOT NULL column {col}"
                for col, count in table_report["null_violations"].items()
            ]
            if table_report["duplicate_keys"]:
                issues.append(f"{table_report['duplicate_keys']} repeated primary key(s)")
            if issues:
                summary["tables_with_issues"].append({"table": table_name, "issues": issues})

        return summary

    @property
    def passed(self) -> bool:
        """True when no violations or issues were found."""
        return not self.report["referential_integrity"].get("violations") and not self.report["summary"].get(
            "tables_with_issues"
        )

    def save(self, output_dir: Path) -> tuple:
        """
        Save integrity report to files.

        Args:
            output_dir: Output directory

        Returns:
            Tuple of (json_path, markdown_path)
        """
        report_dir = Path(output_dir) / "report"
        report_dir.mkdir(parents=True, exist_ok=True)

        json_path = report_dir / "integrity.json"
        with open(json_path, "w") as f:
            json.dump(self.report, f, indent=2, default=str)

        md_path = report_dir / "integrity.md"
        with open(md_path, "w") as f:
            f.write(self._generate_markdown())

        logger.info(f"Integrity report saved to {report_dir}")
        return json_path, md_path

    def _generate_markdown(self) -> str:
        summary = self.report["summary"]
        lines = [
            "# Snapshot Integrity Report",
            "",
            f"Generated: {self.report['generated_at']}",
            "",
            "## Summary",
            "",
            f"- **Total Tables**: {summary['total_tables']}",
            f"- **Total Rows**: {summary['total_rows']:,}",
            f"- **Referential Integrity Score**: {summary['referential_integrity_score']:.2%}",
            "",
        ]

        ri = self.report["referential_integrity"]
        lines.extend([
            "## Referential Integrity",
            "",
            f"- Valid Relationships: {ri['valid_relationships']}/{ri['total_relationships']}",
        ])

        if ri.get("violations"):
            lines.append("")
            lines.append("### Violations")
            lines.append("")
            for v in ri["violations"]:
                lines.append(
                    f"- **{v['relationship']}**: {v['orphan_count']} orphan values in "
                    f"{v['child_table']}.{v['child_column']}"
                )

        lines.append("")
        lines.append("## Table Details")
        lines.append("")
        lines.append("| Table | Rows | Columns | NULL violations | Repeated keys |")
        lines.append("|-------|------|---------|-----------------|---------------|")
        for table_name, table_report in self.report["tables"].items():
            nulls = sum(table_report["null_violations"].values())
            lines.append(
                f"| {table_name} | {table_report['row_count']:,} | {table_report['column_count']} "
                f"| {nulls} | {table_report['duplicate_keys']} |"
            )

        lines.append("")
        return "\n".join(lines)
