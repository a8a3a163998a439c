"""Strict validation of cell records.

:func:`validate_cell_record` re-checks, after the fact, the invariants the
serializer guarantees. It is meant for records that travelled through a host
(e.g. rebuilt from ``to_dict`` output) or were assembled by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from .serialize import CellRecord, cell_edges


@dataclass(frozen=True, slots=True)
class CellRecordIssue:
    code: str
    severity: Literal['info', 'warning', 'error']
    message: str
    examples: tuple[Any, ...] = ()


class CellRecordError(ValueError):
    """Raised when strict record validation fails."""

    def __init__(self, message: str, issues: tuple[CellRecordIssue, ...]):
        super().__init__(message)
        self.issues = issues


def validate_cell_record(
    record: CellRecord,
    *,
    level: Literal['basic', 'strict'] = 'basic',
    check_euler: bool = True,
    max_examples: int = 10,
) -> tuple[CellRecordIssue, ...]:
    """Check the structural invariants of one record.

    Error-level checks: faces and neighbors are aligned, face indices are in
    range, and ``edges`` equals the unique edge set of the faces with no pair
    listed twice. Warning-level check: Euler characteristic ``V - E + F == 2``
    for non-empty records.

    Args:
        record: Record to check.
        level: 'basic' returns the issues; 'strict' raises
            :class:`CellRecordError` if any error-level issue is found.
        check_euler: Include the Euler characteristic check.
        max_examples: Max number of example values attached per issue.

    Returns:
        Tuple of issues (empty when the record is well-formed).
    """

    if level not in ('basic', 'strict'):
        raise ValueError('level must be \'basic\' or \'strict\'')

    issues: list[CellRecordIssue] = []
    n_vertices = len(record.vertices)

    if len(record.faces) != len(record.neighbors):
        issues.append(
            CellRecordIssue(
                'FACE_NEIGHBOR_MISMATCH',
                'error',
                f'{len(record.faces)} faces but {len(record.neighbors)} neighbors',
            )
        )

    bad = [
        (fi, v)
        for fi, f in enumerate(record.faces)
        for v in f
        if not 0 <= int(v) < n_vertices
    ]
    if bad:
        issues.append(
            CellRecordIssue(
                'FACE_INDEX_RANGE',
                'error',
                f'{len(bad)} face index(es) outside [0, {n_vertices})',
                tuple(bad[:max_examples]),
            )
        )

    pairs = [tuple(sorted((int(a), int(b)))) for a, b in record.edges]
    if len(set(pairs)) != len(pairs):
        seen: set[tuple[int, ...]] = set()
        dups = []
        for p in pairs:
            if p in seen:
                dups.append(p)
            seen.add(p)
        issues.append(
            CellRecordIssue(
                'DUPLICATE_EDGE',
                'error',
                f'{len(dups)} edge(s) listed more than once',
                tuple(dups[:max_examples]),
            )
        )
    expected = set(cell_edges(record.faces))
    if set(pairs) != expected:
        missing = sorted(expected - set(pairs))
        extra = sorted(set(pairs) - expected)
        issues.append(
            CellRecordIssue(
                'EDGE_SET_MISMATCH',
                'error',
                f'edges differ from face edges: {len(missing)} missing, {len(extra)} extra',
                tuple((missing + extra)[:max_examples]),
            )
        )

    if check_euler and not record.is_empty:
        chi = n_vertices - len(set(pairs)) + len(record.faces)
        if chi != 2:
            issues.append(
                CellRecordIssue(
                    'EULER',
                    'warning',
                    f'V - E + F = {chi}, expected 2',
                )
            )

    out = tuple(issues)
    if level == 'strict':
        errors = [i for i in out if i.severity == 'error']
        if errors:
            raise CellRecordError(
                f'cell {record.id}: ' + '; '.join(i.message for i in errors), out
            )
    return out
