"""
Load seed configurations from YAML.

Example file::

    insert_order: [users, workspaces, projects]
    tables:
      - table: users
        skip_generate: true
      - table: workspaces
        rows: {type: static, count: 1}
        columns:
          id: {kind: identifier}
          name: {kind: fake, provider: company}
      - table: projects
        rows:
          type: foreign_table
          table: workspaces
          key_column: id
          fk_column: workspace_id
          count: {min: 10, max: 20}
        concurrent: true
        primary_keys: [name, workspace_id]
        columns:
          id: {kind: identifier}
          name: {kind: choice_without_repetition, domain: [Alpha, Beta], scope_column: workspace_id}

Columns are applied in file order, the same as in Python seed configs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from pm_synth.generator import generators as gen
from pm_synth.models import CountRange, ForeignTableRows, RowGenerationConfig, SeedConfig, StaticRows

logger = logging.getLogger(__name__)


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _foreign_row_context(definition: Optional[Dict[str, Any]]) -> Optional[gen.ForeignRowContext]:
    if not definition:
        return None
    return gen.ForeignRowContext(
        current_column=definition["current_column"],
        foreign_table=definition["foreign_table"],
        foreign_column=definition["foreign_column"],
    )


# kind -> builder taking the column definition (without "kind")
GENERATOR_KINDS: Dict[str, Callable[[Dict[str, Any]], gen.ColumnGenerator]] = {
    "constant": lambda p: gen.constant(p.get("value")),
    "fake": lambda p: gen.fake(p["provider"], *p.get("args", []), **p.get("kwargs", {})),
    "choice": lambda p: gen.choice(p["values"]),
    "integer": lambda p: gen.integer(p["low"], p["high"]),
    "decimal": lambda p: gen.decimal(p["low"], p["high"], p.get("scale")),
    "pattern": lambda p: gen.pattern(p["mask"]),
    "identifier": lambda p: gen.identifier(),
    "timestamp_between": lambda p: gen.timestamp_between(
        _timestamp(p.get("low")), _timestamp(p.get("high"))
    ),
    "timestamp_after": lambda p: gen.timestamp_after(p["column"]),
    "same_row": lambda p: gen.same_row(p["column"]),
    "parent_row": lambda p: gen.parent_row(p["column"]),
    "foreign_value": lambda p: gen.random_foreign_value(p["table"], p["column"]),
    "scoped_foreign_value": lambda p: gen.random_scoped_foreign_value(
        p["table"], p["column"], p["scope_column"], p.get("foreign_scope_column")
    ),
    "parent_reference": lambda p: gen.random_parent_reference(
        p["table"],
        p["probability"],
        key_column=p.get("key_column", "id"),
        parent_column=p.get("parent_column", "parent_id"),
        scope_column=p.get("scope_column"),
    ),
    "with_context": lambda p: gen.generate_with_context(
        p["prompt"],
        include_row=p.get("include_row", False),
        include_table=p.get("include_table", False),
        foreign_row_context=_foreign_row_context(p.get("foreign_row")),
    ),
    "choice_without_repetition": lambda p: gen.ChoiceWithoutRepetition(
        p["domain"], p["scope_column"], p.get("on_exhausted", "wrap")
    ),
}


def build_generator(table_name: str, column: str, definition: Any) -> gen.ColumnGenerator:
    """
    Build a column generator from its YAML definition.

    A bare scalar is shorthand for ``{kind: constant, value: <scalar>}``.

    Raises:
        ValueError: If the kind is unknown or a required parameter is missing
    """
    if not isinstance(definition, dict):
        return gen.constant(definition)

    params = dict(definition)
    kind = params.pop("kind", None)
    builder = GENERATOR_KINDS.get(kind)
    if builder is None:
        raise ValueError(f"{table_name}.{column}: unknown generator kind {kind!r}")
    try:
        return builder(params)
    except KeyError as e:
        raise ValueError(f"{table_name}.{column}: {kind} needs parameter {e}") from e


def build_row_generation(table_name: str, definition: Optional[Dict[str, Any]]) -> Optional[RowGenerationConfig]:
    """Build a StaticRows or ForeignTableRows mode from ``rows:``."""
    if definition is None:
        return None

    mode = definition.get("type")
    if mode == "static":
        return StaticRows(count=int(definition["count"]))
    if mode == "foreign_table":
        count = definition.get("count", 1)
        if isinstance(count, dict):
            count = CountRange(int(count["min"]), int(count["max"]))
        return ForeignTableRows(
            parent_table=definition["table"],
            parent_key_column=definition.get("key_column", "id"),
            child_fk_column=definition["fk_column"],
            count_per_entry=count,
        )
    raise ValueError(f"{table_name}: unknown row generation type {mode!r}")


def build_seed_config(entry: Dict[str, Any]) -> SeedConfig:
    """Build one SeedConfig from a ``tables:`` entry."""
    table_name = entry["table"]
    columns = {
        name: build_generator(table_name, name, definition)
        for name, definition in (entry.get("columns") or {}).items()
    }
    return SeedConfig(
        table_name=table_name,
        row_generation=build_row_generation(table_name, entry.get("rows")),
        columns=columns,
        concurrent_generation=bool(entry.get("concurrent", False)),
        primary_keys=entry.get("primary_keys"),
        skip_generate=bool(entry.get("skip_generate", False)),
        skip_import=bool(entry.get("skip_import", False)),
    )


def load_seed_file(path: Path) -> Tuple[List[SeedConfig], Optional[List[str]]]:
    """
    Load seed configs and the optional insertion order from a YAML file.

    Returns:
        (seed configs in file order, insert_order or None)
    """
    path = Path(path)
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    configs = [build_seed_config(entry) for entry in data.get("tables", [])]
    insert_order = data.get("insert_order")
    logger.info(f"Loaded {len(configs)} seed configs from {path}")
    return configs, insert_order


def load_seed_configs(path: Path) -> List[SeedConfig]:
    """Load only the seed configs from a YAML file."""
    configs, _ = load_seed_file(path)
    return configs
