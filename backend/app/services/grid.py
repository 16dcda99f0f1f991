"""Grid layout and drag-and-drop planning for the weekly planner view.

Everything here is a pure function of already loaded rows: no session, no writes.
Entries and substitutions only need the attributes of ``TimetableEntryOut`` and
``SubstitutionOut``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Union

from app.core.exceptions import ValidationError
from app.schemas.substitution import SubstitutionSave
from app.schemas.timetable import BlockSaveRequest

Slot = tuple[int, int]


@dataclass(frozen=True)
class RegularEntryCell:
    day: int
    period: int
    span: int
    entries: tuple
    kind: Literal["entry"] = "entry"


@dataclass(frozen=True)
class SubstitutionCell:
    day: int
    period: int
    span: int
    substitutions: tuple
    kind: Literal["substitution"] = "substitution"


@dataclass(frozen=True)
class EmptyCell:
    day: int
    period: int
    span: int = 1
    kind: Literal["empty"] = "empty"


GridCell = Union[RegularEntryCell, SubstitutionCell, EmptyCell]


@dataclass(frozen=True)
class EntrySpans:
    starts: dict[Slot, int]
    covered: frozenset[Slot]
    block_ranges: dict[str, tuple[int, int, int]]


@dataclass(frozen=True)
class SubstitutionSpans:
    starts: dict[Slot, int]
    covered: frozenset[Slot]
    members: dict[Slot, tuple]


def compute_entry_spans(entries) -> EntrySpans:
    """Span per stored block id, placed on the block's first period."""
    by_block: dict[str, list] = defaultdict(list)
    for entry in entries:
        if entry.block_id:
            by_block[entry.block_id].append(entry)

    starts: dict[Slot, int] = {}
    covered: set[Slot] = set()
    block_ranges: dict[str, tuple[int, int, int]] = {}
    for block_id, rows in by_block.items():
        periods = [row.period_number for row in rows]
        day = rows[0].day_of_week
        first, last = min(periods), max(periods)
        starts[(day, first)] = last - first + 1
        covered.update((day, period) for period in range(first + 1, last + 1))
        block_ranges[block_id] = (day, first, last)
    return EntrySpans(starts=starts, covered=frozenset(covered), block_ranges=block_ranges)


def substitution_group_key(substitution) -> tuple:
    return (
        substitution.date,
        substitution.class_id,
        substitution.substitution_type,
        substitution.comment or "",
        substitution.new_room_id,
        substitution.new_teacher_id,
        substitution.new_subject_id,
    )


def _is_consecutive(periods: list[int]) -> bool:
    return all(later == earlier + 1 for earlier, later in zip(periods, periods[1:]))


def compute_substitution_spans(substitutions) -> SubstitutionSpans:
    """Infer merged cells: identical substitutions in strictly consecutive periods.

    Two unrelated rows that share every grouped attribute and sit next to each
    other are merged as well; there is no stored block id to tell them apart.
    A group is only merged while it owns each of its slots alone, so a different
    substitution inside its range is never hidden behind the merged cell.
    """
    groups: dict[tuple, list] = defaultdict(list)
    owners: dict[Slot, set] = defaultdict(set)
    for substitution in substitutions:
        if substitution.day_of_week is None:
            continue
        key = substitution_group_key(substitution)
        groups[key].append(substitution)
        owners[(substitution.day_of_week, substitution.period_number)].add(key)

    starts: dict[Slot, int] = {}
    covered: set[Slot] = set()
    members: dict[Slot, list] = defaultdict(list)
    for key, rows in groups.items():
        rows.sort(key=lambda row: (row.period_number, row.id))
        periods = [row.period_number for row in rows]
        day = rows[0].day_of_week
        if (
            len(rows) > 1
            and _is_consecutive(periods)
            and all(owners[(day, period)] == {key} for period in periods)
        ):
            slot = (day, periods[0])
            starts[slot] = len(rows)
            members[slot].extend(rows)
            covered.update((day, period) for period in periods[1:])
            continue
        for row in rows:
            slot = (row.day_of_week, row.period_number)
            starts.setdefault(slot, 1)
            members[slot].append(row)

    return SubstitutionSpans(
        starts=starts,
        covered=frozenset(covered),
        members={
            slot: tuple(sorted(rows, key=lambda row: (row.period_number, row.id)))
            for slot, rows in members.items()
        },
    )


@dataclass(frozen=True)
class Grid:
    days: int
    periods_per_day: int
    cells: tuple[GridCell, ...]

    def cell_at(self, day: int, period: int) -> GridCell:
        for cell in self.cells:
            if cell.day == day and cell.period <= period < cell.period + cell.span:
                return cell
        raise ValidationError(f"No grid cell at day {day}, period {period}")


def _clip_span(day: int, period: int, span: int, blocked: set[Slot]) -> int:
    for offset in range(1, span):
        if (day, period + offset) in blocked:
            return offset
    return span


def build_grid(entries, substitutions, periods_per_day: int, days: int) -> Grid:
    """Lay out one cell per rendered slot, day by day.

    A substitution owns its slots; regular entries fill the remaining ones and a
    block is shortened where a substitution overrides part of it.
    """
    entry_spans = compute_entry_spans(entries)
    substitution_spans = compute_substitution_spans(substitutions)
    substitution_slots = set(substitution_spans.starts) | set(substitution_spans.covered)

    entries_by_slot: dict[Slot, list] = defaultdict(list)
    for entry in sorted(entries, key=lambda item: (item.day_of_week, item.period_number, item.id)):
        entries_by_slot[(entry.day_of_week, entry.period_number)].append(entry)

    cells: list[GridCell] = []
    for day in range(1, days + 1):
        period = 1
        while period <= periods_per_day:
            slot = (day, period)
            if slot in substitution_spans.starts:
                span = min(substitution_spans.starts[slot], periods_per_day - period + 1)
                cells.append(SubstitutionCell(day, period, span, substitution_spans.members[slot]))
                period += span
                continue

            here = entries_by_slot.get(slot)
            if not here:
                cells.append(EmptyCell(day, period))
                period += 1
                continue

            span = 1
            block_ids = {entry.block_id for entry in here}
            if len(block_ids) == 1 and here[0].block_id:
                _, _, last = entry_spans.block_ranges[here[0].block_id]
                span = entry_spans.starts.get(slot, last - period + 1)
            span = _clip_span(day, period, min(span, periods_per_day - period + 1), substitution_slots)
            cells.append(RegularEntryCell(day, period, span, tuple(here)))
            period += span
    return Grid(days=days, periods_per_day=periods_per_day, cells=tuple(cells))


def cell_group(cell: GridCell) -> tuple:
    """Identity used to decide whether two cells belong to the same item."""
    if isinstance(cell, RegularEntryCell):
        first = cell.entries[0]
        return ("block", first.block_id) if first.block_id else ("entry", first.id)
    if isinstance(cell, SubstitutionCell):
        return ("substitution", cell.substitutions[0].id)
    return ("empty",)


@dataclass(frozen=True)
class GridSelection:
    """Selected run of periods on one day. Every operation returns a new value."""

    day: int | None = None
    anchor: int | None = None
    focus: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.day is None

    @property
    def period_range(self) -> tuple[int, int] | None:
        if self.is_empty:
            return None
        return min(self.anchor, self.focus), max(self.anchor, self.focus)

    def select(self, day: int, period: int) -> GridSelection:
        return GridSelection(day=day, anchor=period, focus=period)

    def extend(self, grid: Grid, day: int, period: int) -> GridSelection:
        """Grow towards ``period`` if every covered cell is compatible, else restart there.

        Empty cells combine with empty cells; otherwise all cells must belong to
        the item the selection started on.
        """
        if self.is_empty or day != self.day:
            return self.select(day, period)
        start_group = cell_group(grid.cell_at(day, self.anchor))
        first, last = min(self.anchor, period), max(self.anchor, period)
        for candidate in range(first, last + 1):
            if cell_group(grid.cell_at(day, candidate)) != start_group:
                return self.select(day, period)
        return GridSelection(day=day, anchor=first, focus=last)

    def clear(self) -> GridSelection:
        return GridSelection()


@dataclass(frozen=True)
class DragSource:
    kind: Literal["entry", "block", "substitution"]
    day: int
    span: int
    origin_period: int
    lesson: object | None = None
    substitutions: tuple = ()
    underlying_entries: tuple = ()
    entry_id: int | None = None
    block_id: str | None = None

    @property
    def substitution_ids(self) -> tuple[int, ...]:
        return tuple(row.id for row in self.substitutions)


@dataclass(frozen=True)
class MovePlan:
    entry_saves: tuple[BlockSaveRequest, ...] = field(default_factory=tuple)
    substitution_saves: tuple[SubstitutionSave, ...] = field(default_factory=tuple)


def _block_rows(entries, block_id: str) -> list:
    return sorted((entry for entry in entries if entry.block_id == block_id), key=lambda entry: entry.period_number)


def resolve_drag_source(grid: Grid, entries, substitutions, day: int, period: int) -> DragSource:
    """Describe what a drag starting at (day, period) would move."""
    cell = grid.cell_at(day, period)

    if isinstance(cell, SubstitutionCell):
        underlying = []
        for row in cell.substitutions:
            match = next(
                (
                    entry
                    for entry in entries
                    if entry.day_of_week == row.day_of_week
                    and entry.period_number == row.period_number
                    and entry.class_id == row.class_id
                    and entry.subject_id == row.original_subject_id
                ),
                None,
            )
            if match is not None:
                underlying.append(match)
        first = underlying[0] if underlying and underlying[0].period_number == cell.period else None
        return DragSource(
            kind="substitution",
            day=cell.day,
            span=cell.span,
            origin_period=cell.period,
            substitutions=cell.substitutions,
            underlying_entries=tuple(underlying),
            entry_id=first.id if first is not None else None,
            block_id=first.block_id if first is not None else None,
        )

    if isinstance(cell, RegularEntryCell):
        lesson = cell.entries[0]
        if lesson.block_id:
            rows = _block_rows(entries, lesson.block_id)
            first, last = rows[0].period_number, rows[-1].period_number
            return DragSource(
                kind="block",
                day=cell.day,
                span=last - first + 1,
                origin_period=first,
                lesson=rows[0],
                block_id=lesson.block_id,
            )
        return DragSource(
            kind="entry",
            day=cell.day,
            span=1,
            origin_period=lesson.period_number,
            lesson=lesson,
            entry_id=lesson.id,
        )

    raise ValidationError(f"Nothing to move at day {day}, period {period}")


def _entry_save(lesson, year: int, week: int, day: int, start: int, end: int) -> BlockSaveRequest:
    return BlockSaveRequest(
        entry_id=None if lesson.block_id else lesson.id,
        block_id=lesson.block_id,
        year=year,
        calendar_week=week,
        day_of_week=day,
        start_period=start,
        end_period=end,
        class_id=lesson.class_id,
        teacher_id=lesson.teacher_id,
        subject_id=lesson.subject_id,
        room_id=lesson.room_id,
        comment=lesson.comment,
    )


def _ensure_on_grid(start: int, end: int, periods_per_day: int) -> None:
    if start < 1 or end > periods_per_day:
        raise ValidationError(
            f"Periods {start}-{end} do not fit into the grid (1-{periods_per_day})",
            details={"start_period": start, "end_period": end},
        )


def plan_move(
    source: DragSource,
    entries,
    target_day: int,
    target_period: int,
    year: int,
    week: int,
    target_date: date,
    periods_per_day: int,
) -> MovePlan:
    """Saves needed to drop ``source`` at (target_day, target_period).

    Substitution moves carry along every distinct regular entry or block they
    override, keeping each one's offset from the dragged cell.
    Within the same day the lesson furthest along the direction of travel is
    saved first, so each carried lesson lands on a slot already vacated.
    """
    _ensure_on_grid(target_period, target_period + source.span - 1, periods_per_day)

    if source.kind != "substitution":
        return MovePlan(
            entry_saves=(
                _entry_save(
                    source.lesson,
                    year,
                    week,
                    target_day,
                    target_period,
                    target_period + source.span - 1,
                ),
            )
        )

    entry_saves: list[BlockSaveRequest] = []
    moved: set = set()
    for entry in source.underlying_entries:
        key = entry.block_id or entry.id
        if key in moved:
            continue
        moved.add(key)
        rows = _block_rows(entries, entry.block_id) if entry.block_id else [entry]
        first, last = rows[0].period_number, rows[-1].period_number
        start = target_period + (first - source.origin_period)
        end = start + (last - first)
        _ensure_on_grid(start, end, periods_per_day)
        entry_saves.append(_entry_save(rows[0], year, week, target_day, start, end))
    if target_day == source.day:
        entry_saves.sort(key=lambda request: request.start_period, reverse=target_period > source.origin_period)

    substitution_saves = tuple(
        SubstitutionSave(
            id=row.id,
            date=target_date,
            period_number=target_period + (row.period_number - source.origin_period),
            class_id=row.class_id,
            substitution_type=row.substitution_type,
            original_subject_id=row.original_subject_id,
            new_teacher_id=row.new_teacher_id,
            new_subject_id=row.new_subject_id,
            new_room_id=row.new_room_id,
            comment=row.comment,
        )
        for row in source.substitutions
    )
    return MovePlan(entry_saves=tuple(entry_saves), substitution_saves=substitution_saves)
