"""Tessellation diagnostics and sanity checks.

These utilities help detect when a collection of cells does not form the
expected partition of the container (e.g. due to numerical issues, sites
outside the box, or coincident sites).

Key ideas:
  - Without walls, the cell volumes of all sites add up to the box volume.
    With walls, pass the expected volume explicitly.
  - Faces are reciprocal: if cell i has a face towards site j, cell j has a
    face towards site i. Wall faces (negative neighbour ids) are exempt.

The public entry point is :func:`analyze_tessellation`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

from .domains import Domain
from ._util import domain_volume
from .serialize import CellRecord


@dataclass(frozen=True, slots=True)
class TessellationIssue:
    code: str
    severity: Literal['info', 'warning', 'error']
    message: str
    examples: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class TessellationDiagnostics:
    expected_volume: float
    sum_cell_volume: float
    volume_ratio: float
    volume_gap: float
    volume_overlap: float
    n_sites_expected: int
    n_cells_returned: int
    missing_ids: tuple[int, ...]
    reciprocity_checked: bool
    n_faces_total: int
    n_faces_orphan: int
    issues: tuple[TessellationIssue, ...]
    ok_volume: bool
    ok_reciprocity: bool
    ok: bool


class TessellationError(ValueError):
    """Raised when tessellation sanity checks fail under strict settings."""

    def __init__(self, message: str, diagnostics: TessellationDiagnostics):
        super().__init__(message)
        self.diagnostics = diagnostics


def analyze_tessellation(
    cells: Sequence[CellRecord],
    domain: Domain,
    *,
    expected_ids: Sequence[int] | None = None,
    expected_volume: float | None = None,
    volume_tol_rel: float = 1e-8,
    volume_tol_abs: float = 1e-12,
    check_reciprocity: bool = True,
) -> TessellationDiagnostics:
    """Analyze tessellation sanity.

    The function reports issues but never modifies the records.

    Args:
        cells: Records returned by
            :meth:`~voroquery.api.VoronoiContext3D.get_all_cells`.
        domain: Domain the cells were computed in.
        expected_ids: Optional ids that should all have a cell.
        expected_volume: Total volume the cells should fill. Defaults to the
            domain volume, which is only right when no walls are registered.
        volume_tol_rel: Relative tolerance for the volume comparison.
        volume_tol_abs: Absolute tolerance for the volume comparison.
        check_reciprocity: Whether to check that site faces come in pairs.

    Returns:
        TessellationDiagnostics
    """
    issues: list[TessellationIssue] = []

    # --- Volume sanity ---
    exp_vol = domain_volume(domain) if expected_volume is None else float(expected_volume)
    sum_vol = float(sum(float(c.volume) for c in cells))
    vol_tol = max(float(volume_tol_abs), float(volume_tol_rel) * abs(exp_vol))
    gap = max(0.0, exp_vol - sum_vol)
    overlap = max(0.0, sum_vol - exp_vol)
    ok_volume = abs(sum_vol - exp_vol) <= vol_tol
    if gap > vol_tol:
        issues.append(
            TessellationIssue(
                'GAP',
                'warning',
                f'Sum of cell volumes is smaller than expected volume by {gap:g}',
            )
        )
    if overlap > vol_tol:
        issues.append(
            TessellationIssue(
                'OVERLAP',
                'warning',
                f'Sum of cell volumes exceeds expected volume by {overlap:g}',
            )
        )

    # --- Missing ids (optional) ---
    present = {int(c.id) for c in cells}
    missing_ids: list[int] = []
    if expected_ids is not None:
        missing_ids = sorted({int(x) for x in expected_ids} - present)
        if missing_ids:
            issues.append(
                TessellationIssue(
                    'MISSING_IDS',
                    'warning',
                    f'{len(missing_ids)} expected ids are missing from output',
                    examples=tuple(missing_ids[:10]),
                )
            )

    # --- Reciprocity ---
    n_faces_total = sum(len(c.faces) for c in cells)
    n_orphan = 0
    if check_reciprocity:
        links: dict[int, set[int]] = {}
        for c in cells:
            links[int(c.id)] = {int(n) for n in c.neighbors}
        orphans: list[tuple[int, int]] = []
        for c in cells:
            cid = int(c.id)
            for nb in c.neighbors:
                nb = int(nb)
                if nb < 0 or nb == cid or nb not in links:
                    continue
                if cid not in links[nb]:
                    orphans.append((cid, nb))
        n_orphan = len(orphans)
        if orphans:
            issues.append(
                TessellationIssue(
                    'ORPHAN_FACES',
                    'warning',
                    f'{n_orphan} face(s) have no reciprocal face',
                    examples=tuple(orphans[:10]),
                )
            )

    ratio = sum_vol / exp_vol if exp_vol > 0 else float('nan')
    ok_reciprocity = n_orphan == 0
    return TessellationDiagnostics(
        expected_volume=float(exp_vol),
        sum_cell_volume=float(sum_vol),
        volume_ratio=float(ratio),
        volume_gap=float(gap),
        volume_overlap=float(overlap),
        n_sites_expected=len(expected_ids) if expected_ids is not None else len(cells),
        n_cells_returned=len(cells),
        missing_ids=tuple(missing_ids),
        reciprocity_checked=bool(check_reciprocity),
        n_faces_total=int(n_faces_total),
        n_faces_orphan=int(n_orphan),
        issues=tuple(issues),
        ok_volume=bool(ok_volume),
        ok_reciprocity=bool(ok_reciprocity),
        ok=bool(ok_volume and ok_reciprocity and not missing_ids),
    )


def validate_tessellation(
    cells: Sequence[CellRecord],
    domain: Domain,
    **kwargs: Any,
) -> TessellationDiagnostics:
    """Run :func:`analyze_tessellation` and raise if anything is off.

    Raises:
        TessellationError: If the volume, reciprocity or id checks fail.
    """

    diag = analyze_tessellation(cells, domain, **kwargs)
    if not diag.ok:
        msg = (
            'tessellation check failed: '
            f'volume_ratio={diag.volume_ratio:g}, '
            f'orphan_faces={diag.n_faces_orphan}, '
            f'missing_ids={len(diag.missing_ids)}'
        )
        raise TessellationError(msg, diag)
    return diag
