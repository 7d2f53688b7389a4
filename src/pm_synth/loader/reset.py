"""
Reset seeded tables.

Tables are truncated in reverse insertion order with constraint enforcement
suspended for the session. Enforcement is restored on every path, including
failures, before any error propagates.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pm_synth.exceptions import ResetError
from pm_synth.loader.importer import quote_ident
from pm_synth.models import RunSummary, SeedConfig, TableResult, TableStatus, seed_config_map

logger = logging.getLogger(__name__)


SUSPEND_CONSTRAINTS = "SET session_replication_role = replica;"
RESTORE_CONSTRAINTS = "SET session_replication_role = DEFAULT;"


class ResetState(str, Enum):
    """Progress of a reset run."""
    IDLE = "idle"
    CONSTRAINTS_SUSPENDED = "constraints_suspended"
    TRUNCATING = "truncating"
    CONSTRAINTS_RESTORED = "constraints_restored"
    DONE = "done"


class DatabaseResetter:
    """
    Truncates seeded tables so a fresh import starts from empty tables.

    Eligible tables are those with an importable seed config plus any table
    whose name contains one of ``always_reset`` (the CDC transaction log).
    """

    def __init__(
        self,
        conn: Any,
        seed_configs: Union[Mapping[str, SeedConfig], List[SeedConfig]],
        always_reset: Tuple[str, ...] = ("transaction_log",),
        strict: bool = True,
    ):
        """
        Initialize resetter.

        Args:
            conn: Open asyncpg connection (or compatible object with ``execute``)
            seed_configs: Seed configs, as a list or keyed by table name
            always_reset: Name fragments of tables reset regardless of config
            strict: Abort on the first failed TRUNCATE; otherwise log a
                warning and continue with the next table
        """
        self.conn = conn
        self.seed_configs = seed_config_map(seed_configs)
        self.always_reset = always_reset
        self.strict = strict
        self.state = ResetState.IDLE
        self.history: List[ResetState] = [ResetState.IDLE]

    def _transition(self, state: ResetState) -> None:
        self.state = state
        if self.history[-1] != state:
            self.history.append(state)

    def is_eligible(self, table_name: str) -> bool:
        config = self.seed_configs.get(table_name)
        if config is not None and config.importable:
            return True
        return any(fragment in table_name for fragment in self.always_reset)

    async def reset(self, insert_order: Sequence[str]) -> RunSummary:
        """
        Truncate eligible tables in reverse insertion order.

        Raises:
            ResetError: If suspending constraints or truncating fails (strict
                mode), after constraint enforcement has been restored
        """
        logger.info("Resetting database - clearing all tables...")
        summary = RunSummary(operation="reset")
        self.state = ResetState.IDLE
        self.history = [ResetState.IDLE]
        error: Optional[BaseException] = None

        try:
            await self.conn.execute(SUSPEND_CONSTRAINTS)
            self._transition(ResetState.CONSTRAINTS_SUSPENDED)

            for table_name in reversed(list(insert_order)):
                if not self.is_eligible(table_name):
                    summary.add(TableResult(table_name, TableStatus.SKIPPED))
                    continue

                self._transition(ResetState.TRUNCATING)
                summary.add(await self._truncate(table_name))
        except Exception as e:
            error = e
            logger.error(f"Error during database reset: {e}")
        finally:
            try:
                await self.conn.execute(RESTORE_CONSTRAINTS)
                self._transition(ResetState.CONSTRAINTS_RESTORED)
            except Exception as restore_err:
                logger.error(f"Failed to re-enable foreign key checks: {restore_err}")
                raise ResetError(
                    f"Could not restore constraint enforcement: {restore_err}"
                ) from restore_err

        if error is not None:
            raise ResetError(f"Database reset failed: {error}") from error

        self._transition(ResetState.DONE)
        logger.info("Database reset completed successfully")
        return summary

    async def _truncate(self, table_name: str) -> TableResult:
        try:
            await self.conn.execute(f"TRUNCATE TABLE {quote_ident(table_name)} CASCADE;")
        except Exception as e:
            if self.strict:
                raise
            logger.warning(f"Could not clear table {table_name}: {e}")
            return TableResult(table_name, TableStatus.FAILED, error=str(e))

        logger.info(f"Cleared table: {table_name}")
        return TableResult(table_name, TableStatus.RESET)
