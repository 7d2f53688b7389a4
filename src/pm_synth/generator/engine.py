"""
Row generation engine.

Handles:
- Walking the insertion order and generating every active table
- Static and foreign-table (fan-out) row generation
- Sequential or bounded-concurrent row execution
- Composite primary key deduplication
- Snapshot persistence for later tables and for import
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from faker import Faker
from tqdm import tqdm

from pm_synth.exceptions import GeneratorError
from pm_synth.models import (
    DatabaseSchema,
    ForeignTableRows,
    GenerationContext,
    Row,
    RunSummary,
    SeedConfig,
    StaticRows,
    TableResult,
    TableSchema,
    TableStatus,
    seed_config_map,
)
from pm_synth.output.snapshot import SnapshotStore, hashable_value

logger = logging.getLogger(__name__)


class RowGenerationEngine:
    """
    Generates table snapshots from seed configurations.

    The engine:
    1. Processes tables strictly in insertion order, one at a time
    2. Builds rows by applying column generators in declared order
    3. Fans out child rows from parent snapshots written earlier in the run
    4. Drops rows whose declared primary key repeats an earlier row
    5. Replaces each table's snapshot with the surviving rows

    A failing table is logged and reported; the run moves on to the next
    table and the failed table's previous snapshot, if any, is left as is.
    """

    def __init__(
        self,
        schema: DatabaseSchema,
        seed_configs: Union[Mapping[str, SeedConfig], List[SeedConfig]],
        store: SnapshotStore,
        content_provider: Optional[Any] = None,
        seed: Optional[int] = None,
        max_concurrency: Optional[int] = 16,
        faker: Optional[Faker] = None,
        progress: bool = True,
    ):
        """
        Initialize engine.

        Args:
            schema: Introspected database schema
            seed_configs: Seed configs, as a list or keyed by table name
            store: Snapshot store to read parents from and write tables to
            content_provider: Provider for context-generated text
            seed: Random seed for reproducibility
            max_concurrency: Bound on in-flight rows in concurrent mode
                (None for unbounded)
            faker: Faker instance handed to generators
            progress: Show a tqdm progress bar over tables
        """
        self.schema = schema
        self.seed_configs = seed_config_map(seed_configs)
        self.store = store
        self.content_provider = content_provider
        self.max_concurrency = max_concurrency
        self.progress = progress
        self.faker = faker or Faker()

        # Set seed for reproducibility
        if seed is not None:
            random.seed(seed)
            np.random.seed(seed)
            Faker.seed(seed)
            self.faker.seed_instance(seed)
        self.rng = random.Random(seed)

    async def generate(self, insert_order: Sequence[str]) -> RunSummary:
        """
        Generate snapshots for every active table in the insertion order.

        Returns:
            RunSummary with one result per table in the order
        """
        summary = RunSummary(operation="generate")
        logger.info(f"Generation order: {list(insert_order)}")

        for table_name in tqdm(insert_order, desc="Generating tables", disable=not self.progress):
            config = self.seed_configs.get(table_name)
            if config is None or not config.is_active:
                reason = "no seed config" if config is None else "skip_generate"
                logger.debug(f"Skipping {table_name}: {reason}")
                summary.add(TableResult(table_name, TableStatus.SKIPPED, error=reason))
                continue

            try:
                result = await self.generate_table(config)
            except Exception as e:
                logger.error(f"Error generating {table_name}: {e}")
                logger.debug("Generation failure details", exc_info=True)
                summary.add(TableResult(table_name, TableStatus.FAILED, error=str(e)))
                continue

            summary.add(result)
            logger.info(f"Generated {table_name}")

        return summary

    async def generate_table(self, config: SeedConfig) -> TableResult:
        """
        Generate, deduplicate and persist one table.

        Raises:
            GeneratorError: If the table is missing from the schema or a
                generator fails
            SnapshotError: If a parent snapshot is missing
        """
        table_name = config.table_name
        table_schema = self.schema.get(table_name)
        if table_schema is None:
            raise GeneratorError(f"Table {table_name} not found in database schema")

        unknown = [c for c in config.columns if table_schema.get_column(c) is None]
        if unknown:
            logger.debug(f"Ignoring columns not in {table_name}: {unknown}")

        rows = await self.build_rows(config, table_schema)
        kept, dropped = deduplicate(rows, config.primary_keys)
        if dropped:
            logger.info(f"Removed {dropped} duplicate rows from {table_name}")

        self.store.write(table_name, kept)
        return TableResult(
            table_name,
            TableStatus.GENERATED,
            rows=len(kept),
            duplicates_dropped=dropped,
        )

    async def build_rows(self, config: SeedConfig, table_schema: TableSchema) -> List[Row]:
        """Generate the raw (not yet deduplicated) rows of a table."""
        rows: List[Row] = []
        specs = self._row_specs(config)

        if config.concurrent_generation:
            generated = await self._gather_bounded([
                (lambda seed_row=seed_row, parent=parent: self._generate_row(
                    config, table_schema, seed_row, rows, parent))
                for seed_row, parent in specs
            ])
            rows.extend(generated)
            logger.info(f"Finished generating {len(generated)} concurrent rows for {config.table_name}")
        else:
            for seed_row, parent in specs:
                rows.append(await self._generate_row(config, table_schema, seed_row, rows, parent))
            logger.info(f"Finished generating {len(rows)} sequential rows for {config.table_name}")

        return rows

    def _row_specs(self, config: SeedConfig) -> List[Tuple[Row, Optional[Row]]]:
        """Initial row contents and parent row for every row to generate."""
        mode = config.row_generation

        if isinstance(mode, StaticRows):
            logger.info(f"Generating {mode.count} static rows for {config.table_name}...")
            return [({}, None) for _ in range(mode.count)]

        if isinstance(mode, ForeignTableRows):
            logger.info(
                f"Generating rows for {config.table_name} based on foreign table {mode.parent_table}..."
            )
            parents = index_parents(self.store.read(mode.parent_table), mode.parent_key_column)
            specs: List[Tuple[Row, Optional[Row]]] = []
            for key_value, parent in parents:
                for _ in range(mode.count_for(self.rng)):
                    specs.append(({mode.child_fk_column: key_value}, parent))
            return specs

        raise GeneratorError(f"Unsupported row generation config for {config.table_name}: {mode!r}")

    async def _generate_row(
        self,
        config: SeedConfig,
        table_schema: TableSchema,
        row: Row,
        rows: List[Row],
        foreign_row: Optional[Row],
    ) -> Row:
        """Apply every column generator, in declared order, to one row."""
        for column_name, generator in config.columns.items():
            column = table_schema.get_column(column_name)
            if column is None:
                continue

            ctx = GenerationContext(
                table_name=config.table_name,
                current_row=row,
                table_schema=table_schema,
                table_rows=rows,
                snapshots=self.store,
                rng=self.rng,
                faker=self.faker,
                column=column,
                foreign_row=foreign_row,
                content_provider=self.content_provider,
            )
            value = generator(ctx)
            if inspect.isawaitable(value):
                value = await value
            row[column_name] = value

        return row

    async def _gather_bounded(self, factories: List[Callable[[], Awaitable[Row]]]) -> List[Row]:
        """
        Run row coroutines concurrently, at most ``max_concurrency`` at a time.

        The first failure cancels the remaining rows and propagates.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def run(factory: Callable[[], Awaitable[Row]]) -> Row:
            if semaphore is None:
                return await factory()
            async with semaphore:
                return await factory()

        tasks = [asyncio.ensure_future(run(factory)) for factory in factories]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


def index_parents(rows: List[Row], key_column: str) -> List[Tuple[Any, Row]]:
    """
    Distinct parent key values with their parent row.

    Keys keep first-seen order; when several rows share a key the last one
    is used. Rows without a key are ignored.
    """
    lookup: Dict[Any, Tuple[Any, Row]] = {}
    for row in rows:
        value = row.get(key_column)
        if value is None:
            continue
        lookup[hashable_value(value)] = (value, row)
    return list(lookup.values())


def deduplicate(rows: List[Row], primary_keys: Optional[List[str]]) -> Tuple[List[Row], int]:
    """
    Keep only the first row for every combination of primary key values.

    Returns:
        (surviving rows in generation order, number of rows dropped)
    """
    if not primary_keys or not rows:
        return rows, 0

    keys = pd.DataFrame(
        [[hashable_value(row.get(k)) for k in primary_keys] for row in rows],
        columns=primary_keys,
        dtype=object,
    )
    duplicated = keys.duplicated(keep="first").tolist()
    kept = [row for row, is_dup in zip(rows, duplicated) if not is_dup]
    return kept, len(rows) - len(kept)
