"""
Column value generators.

A column generator is any callable taking a GenerationContext and returning a
value, either directly or as an awaitable. The factories in this module build
the generator kinds seed configurations are written with:

- constant / random values (Faker, choices, ranges, masks)
- identifiers and timestamps
- references into the current row, the parent row or other tables' snapshots
- context-aware text from a content-generation provider
- per-scope choices without repetition

Only ChoiceWithoutRepetition keeps state, and it keeps it on the instance.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Union

from pm_synth.exceptions import GeneratorError, MissingSnapshotError
from pm_synth.models import GenerationContext, Row
from pm_synth.output.snapshot import hashable_value

logger = logging.getLogger(__name__)


ColumnGenerator = Callable[[GenerationContext], Union[Any, Awaitable[Any]]]


# ---------------------------------------------------------------------------
# Constants and random values
# ---------------------------------------------------------------------------


def constant(value: Any) -> ColumnGenerator:
    """Always return ``value`` (including None)."""
    def generate(ctx: GenerationContext) -> Any:
        return value
    return generate


def random_value(source: Callable[[], Any]) -> ColumnGenerator:
    """Delegate to an injectable zero-argument value source."""
    def generate(ctx: GenerationContext) -> Any:
        return source()
    return generate


def fake(provider: str, *args: Any, **kwargs: Any) -> ColumnGenerator:
    """
    Call a Faker provider method on the run's Faker instance.

    Example:
        fake("color")  ->  ctx.faker.color()
    """
    def generate(ctx: GenerationContext) -> Any:
        try:
            method = getattr(ctx.faker, provider)
        except AttributeError as e:
            raise GeneratorError(f"Unknown Faker provider: {provider}") from e
        return method(*args, **kwargs)
    return generate


def choice(values: Sequence[Any]) -> ColumnGenerator:
    """Uniformly pick one of ``values``."""
    if not values:
        raise ValueError("choice() needs at least one value")
    candidates = list(values)

    def generate(ctx: GenerationContext) -> Any:
        return ctx.rng.choice(candidates)
    return generate


def integer(low: int, high: int) -> ColumnGenerator:
    """Uniform integer in ``[low, high]``."""
    def generate(ctx: GenerationContext) -> int:
        return ctx.rng.randint(low, high)
    return generate


def decimal(low: float, high: float, scale: Optional[int] = None) -> ColumnGenerator:
    """Uniform float in ``[low, high]``, rounded to ``scale`` digits if given."""
    def generate(ctx: GenerationContext) -> float:
        value = ctx.rng.uniform(low, high)
        return round(value, scale) if scale is not None else value
    return generate


def pattern(mask: str) -> ColumnGenerator:
    """
    Generate a string matching a simple mask.

    ``X`` upper-case letter, ``x`` lower-case letter, ``9`` or ``#`` digit;
    any other character is copied.
    """
    alphabets = {
        "X": "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
        "x": "abcdefghijklmnopqrstuvwxyz",
        "9": "0123456789",
        "#": "0123456789",
    }

    def generate(ctx: GenerationContext) -> str:
        return "".join(
            ctx.rng.choice(alphabets[c]) if c in alphabets else c
            for c in mask
        )
    return generate


def identifier() -> ColumnGenerator:
    """Fresh UUID4 string, drawn from the run's RNG."""
    def generate(ctx: GenerationContext) -> str:
        return str(uuid.UUID(int=ctx.rng.getrandbits(128), version=4))
    return generate


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def _now_like(reference: datetime) -> datetime:
    """Current time, aware or naive to match ``reference``."""
    if reference.tzinfo is not None:
        return datetime.now(timezone.utc).astimezone(reference.tzinfo)
    return datetime.now()


def _coerce_datetime(value: Any, column: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise GeneratorError(f"Column {column} is not a timestamp: {value!r}") from e
    raise GeneratorError(f"Column {column} is not a timestamp: {value!r}")


def _between(ctx: GenerationContext, low: datetime, high: datetime) -> datetime:
    return low + (high - low) * ctx.rng.random()


def timestamp_between(
    low: Optional[datetime] = None,
    high: Optional[datetime] = None,
) -> ColumnGenerator:
    """Uniform instant in ``[low, high]``; a None bound means now."""
    def generate(ctx: GenerationContext) -> datetime:
        reference = low or high or datetime.now()
        lo = low or _now_like(reference)
        hi = high or _now_like(reference)
        return _between(ctx, lo, hi)
    return generate


def timestamp_after(column: str) -> ColumnGenerator:
    """
    Uniform instant between ``current_row[column]`` and now.

    The referenced column must be declared (and therefore generated) before
    this one in the seed config.
    """
    def generate(ctx: GenerationContext) -> datetime:
        if ctx.current_row.get(column) is None:
            raise GeneratorError(
                f"timestamp_after({column!r}) needs {column} populated on the current row"
            )
        start = _coerce_datetime(ctx.current_row[column], column)
        end = _now_like(start)
        if end < start:
            return start
        return _between(ctx, start, end)
    return generate


# ---------------------------------------------------------------------------
# Row references
# ---------------------------------------------------------------------------


def same_row(column: str) -> ColumnGenerator:
    """Copy another column of the row under construction."""
    def generate(ctx: GenerationContext) -> Any:
        return ctx.current_row.get(column)
    return generate


def parent_row(column: str) -> ColumnGenerator:
    """Copy a column of the parent row (fan-out generation only)."""
    def generate(ctx: GenerationContext) -> Any:
        if ctx.foreign_row is None:
            raise GeneratorError("No foreign row data provided")
        return ctx.foreign_row.get(column)
    return generate


def random_foreign_value(table: str, column: str) -> ColumnGenerator:
    """
    Pick ``column`` from a uniformly chosen row of another table's snapshot.

    An absent or empty snapshot yields None for nullable destination columns
    and raises MissingSnapshotError otherwise.
    """
    def generate(ctx: GenerationContext) -> Any:
        if not ctx.snapshots.exists(table):
            if ctx.column_nullable:
                return None
            raise MissingSnapshotError(table)

        rows = ctx.snapshots.read(table)
        if not rows:
            if ctx.column_nullable:
                return None
            raise MissingSnapshotError(table, "has no rows")

        return ctx.rng.choice(rows).get(column)
    return generate


def random_scoped_foreign_value(
    table: str,
    column: str,
    scope_column: str,
    foreign_scope_column: Optional[str] = None,
) -> ColumnGenerator:
    """
    Pick ``column`` from a random row of ``table`` sharing the current scope.

    Example: a state of the same project as the issue being generated,
    ``random_scoped_foreign_value("states", "id", "project_id")``.
    """
    foreign_scope = foreign_scope_column or scope_column

    def generate(ctx: GenerationContext) -> Any:
        scope_value = ctx.current_row.get(scope_column)
        if not ctx.snapshots.exists(table):
            raise MissingSnapshotError(table)
        candidates = ctx.snapshots.index(table, foreign_scope).get(hashable_value(scope_value), [])
        if not candidates:
            raise GeneratorError(
                f"No rows in {table} with {foreign_scope} = {scope_value!r}"
            )
        return ctx.rng.choice(candidates).get(column)
    return generate


def random_parent_reference(
    table: str,
    probability: float,
    key_column: str = "id",
    parent_column: str = "parent_id",
    scope_column: Optional[str] = None,
) -> ColumnGenerator:
    """
    Optionally point a row at a top-level row of a hierarchical table.

    With ``probability``, picks a row of ``table`` that has no parent itself,
    is not the current row and (if ``scope_column`` is set) shares its scope.
    When ``table`` is the table being generated, only rows generated earlier
    in this run are candidates, since the previous snapshot is about to be
    replaced. Otherwise, or when nothing qualifies or the table has no
    snapshot yet, returns None.
    """
    def generate(ctx: GenerationContext) -> Any:
        if ctx.rng.random() > probability:
            return None
        if table == ctx.table_name:
            rows = list(ctx.table_rows)
        elif ctx.snapshots.exists(table):
            rows = ctx.snapshots.read(table)
        else:
            return None

        own_key = ctx.current_row.get(key_column)
        candidates = [
            row for row in rows
            if row.get(key_column) != own_key
            and not row.get(parent_column)
            and (scope_column is None or row.get(scope_column) == ctx.current_row.get(scope_column))
        ]
        if not candidates:
            return None
        return ctx.rng.choice(candidates).get(key_column)
    return generate


# ---------------------------------------------------------------------------
# Context-aware text
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForeignRowContext:
    """Locate a related row: ``foreign_table[foreign_column] == current_row[current_column]``."""
    current_column: str
    foreign_table: str
    foreign_column: str


def _lookup_foreign_row(ctx: GenerationContext, ref: ForeignRowContext) -> Row:
    value = ctx.current_row.get(ref.current_column)
    if not ctx.snapshots.exists(ref.foreign_table):
        raise MissingSnapshotError(ref.foreign_table)
    matches = ctx.snapshots.index(ref.foreign_table, ref.foreign_column).get(hashable_value(value))
    if not matches:
        raise GeneratorError(
            f"No matching row found in foreign table {ref.foreign_table} "
            f"for column {ref.foreign_column}"
        )
    return matches[0]


def generate_with_context(
    prompt: str,
    include_row: bool = False,
    include_table: bool = False,
    foreign_row_context: Optional[ForeignRowContext] = None,
) -> ColumnGenerator:
    """
    Ask the content-generation provider for text.

    Args:
        prompt: Instruction for the provider
        include_row: Add the row under construction to the context
        include_table: Add the rows generated so far for this table
        foreign_row_context: Add a related row looked up in another snapshot

    Returns:
        Async generator returning the provider's text verbatim
    """
    async def generate(ctx: GenerationContext) -> str:
        if ctx.content_provider is None:
            raise GeneratorError("No content provider configured")

        context: Dict[str, Any] = {}
        if include_row:
            context["Current Row Data"] = dict(ctx.current_row)
        if include_table:
            context["Current Table Data"] = list(ctx.table_rows)
        if foreign_row_context is not None:
            context["Foreign Row Data"] = _lookup_foreign_row(ctx, foreign_row_context)

        return await ctx.content_provider.generate(prompt, context)
    return generate


# ---------------------------------------------------------------------------
# Stateful choice
# ---------------------------------------------------------------------------


class ChoiceWithoutRepetition:
    """
    Choose from a fixed domain without repeating a value within a scope.

    History is kept per distinct ``current_row[scope_column]`` (for example
    per project), so two states of the same project get different names
    while each project draws from the full domain.

    When a scope has used every candidate, ``on_exhausted`` decides:
    ``"wrap"`` clears that scope's history and starts over, ``"none"``
    returns None, ``"raise"`` raises GeneratorError.
    """

    POLICIES = ("wrap", "none", "raise")

    def __init__(self, domain: Sequence[Any], scope_column: str, on_exhausted: str = "wrap"):
        if not domain:
            raise ValueError("ChoiceWithoutRepetition needs a non-empty domain")
        if on_exhausted not in self.POLICIES:
            raise ValueError(f"on_exhausted must be one of {self.POLICIES}")
        self.domain = list(domain)
        self.scope_column = scope_column
        self.on_exhausted = on_exhausted
        self._used: Dict[Any, Set[Any]] = {}

    def used(self, scope: Any) -> Set[Any]:
        """Values already returned for a scope."""
        return set(self._used.get(scope, set()))

    def __call__(self, ctx: GenerationContext) -> Any:
        scope = ctx.current_row.get(self.scope_column)
        used = self._used.setdefault(scope, set())
        available: List[Any] = [v for v in self.domain if v not in used]

        if not available:
            if self.on_exhausted == "none":
                return None
            if self.on_exhausted == "raise":
                raise GeneratorError(
                    f"All {len(self.domain)} values used for {self.scope_column}={scope!r}"
                )
            logger.debug(f"Domain exhausted for {self.scope_column}={scope!r}, wrapping around")
            used.clear()
            available = list(self.domain)

        value = ctx.rng.choice(available)
        used.add(value)
        return value
