"""Container extents for cell computation.

voroquery supports orthogonal containers only:
- Box: orthogonal bounding box (non-periodic, walls at every bound)
- OrthorhombicCell: orthogonal box with optional per-axis periodicity

Both are plain, frozen value objects. Bound validation happens here, on the
engine side; the query facade passes the caller's extents through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


Bounds = tuple[tuple[float, float], tuple[float, float], tuple[float, float]]


def _default_snap_eps(L: float, *, rel: float = 1e-12) -> float:
    """Return a scale-relative snapping epsilon for remapping."""

    Lf = float(L)
    if not np.isfinite(Lf) or Lf <= 0.0:
        return 0.0
    epsf = float(np.finfo(float).eps)
    return float(max(rel * Lf, 64.0 * epsf * Lf))


def _check_bounds(bounds: Bounds) -> None:
    if len(bounds) != 3:
        raise ValueError('bounds must have length 3')
    for lo, hi in bounds:
        if not np.isfinite(lo) or not np.isfinite(hi):
            raise ValueError('bounds must be finite')
        if not hi > lo:
            raise ValueError('each bound must satisfy hi > lo')


@dataclass(frozen=True, slots=True)
class Box:
    """Orthogonal bounding box with walls on all six sides.

    Args:
        bounds: Three (min, max) pairs for x, y, z.

    Raises:
        ValueError: If bounds are malformed or degenerate.
    """

    bounds: Bounds

    def __post_init__(self) -> None:
        _check_bounds(self.bounds)

    @property
    def periodic(self) -> tuple[bool, bool, bool]:
        return (False, False, False)

    @classmethod
    def from_points(cls, points: np.ndarray, padding: float = 2.0) -> 'Box':
        """Create a box that encloses points with optional padding.

        Args:
            points: Array of shape (n, 3).
            padding: Padding added on each side, in the same units as points.

        Returns:
            Box: Bounding box.

        Raises:
            ValueError: If points shape is invalid.
        """
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError('points must have shape (n, 3)')
        mins = pts.min(axis=0) - padding
        maxs = pts.max(axis=0) + padding
        return cls(
            bounds=(
                (float(mins[0]), float(maxs[0])),
                (float(mins[1]), float(maxs[1])),
                (float(mins[2]), float(maxs[2])),
            )
        )


@dataclass(frozen=True, slots=True)
class OrthorhombicCell:
    """Orthorhombic container with optional periodicity along each axis.

    Args:
        bounds: Three (min, max) pairs for x, y, z.
        periodic: Tuple of three booleans (px, py, pz). If an axis is periodic,
            sites may lie outside the corresponding bounds and are remapped
            into the primary domain when the container traverses them.

    Notes:
        - For periodic axes, the primary domain uses a half-open convention:
          x in [xmin, xmax), etc.
        - For non-periodic axes, the container has walls at the bounds.
    """

    bounds: Bounds
    periodic: tuple[bool, bool, bool] = (True, True, True)

    def __post_init__(self) -> None:
        _check_bounds(self.bounds)
        if len(self.periodic) != 3:
            raise ValueError('periodic must have length 3')
        # Normalize to a plain tuple[bool,bool,bool]
        object.__setattr__(
            self,
            'periodic',
            (bool(self.periodic[0]), bool(self.periodic[1]), bool(self.periodic[2])),
        )

    @property
    def lattice_vectors(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return the translations (a, b, c) that map the cell onto itself."""
        (xmin, xmax), (ymin, ymax), (zmin, zmax) = self.bounds
        a = np.array([xmax - xmin, 0.0, 0.0], dtype=np.float64)
        b = np.array([0.0, ymax - ymin, 0.0], dtype=np.float64)
        c = np.array([0.0, 0.0, zmax - zmin], dtype=np.float64)
        return a, b, c

    def remap_cart(self, points: np.ndarray, *, eps: float | None = None) -> np.ndarray:
        """Remap Cartesian points into the primary orthorhombic domain.

        For each periodic axis, points are wrapped into the half-open interval
        [min, max). For non-periodic axes, coordinates are left unchanged.

        Args:
            points: Array of shape (n, 3).
            eps: Optional snapping tolerance. If None, defaults to
                1e-12 * L where L is the maximum periodic axis length.

        Returns:
            Remapped coordinates, shape (n, 3).
        """
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError('points must have shape (n, 3)')

        lengths = [float(hi - lo) for lo, hi in self.bounds]
        if eps is None:
            Lp = max(
                (L for L, is_per in zip(lengths, self.periodic) if is_per),
                default=0.0,
            )
            eps_val = _default_snap_eps(Lp)
        else:
            eps_val = float(eps)
            if eps_val < 0:
                raise ValueError('eps must be >= 0')

        out = pts.astype(np.float64, copy=True)
        for axis, ((lo, hi), L, is_per) in enumerate(
            zip(self.bounds, lengths, self.periodic)
        ):
            if not is_per:
                continue
            coord = out[:, axis]
            coord -= np.floor((coord - lo) / L) * L
            if eps_val > 0.0:
                # Snap values within eps of either end onto lo.
                coord[np.abs(coord - lo) < eps_val] = lo
                coord[coord >= (hi - eps_val)] = lo
        return out


Domain = Box | OrthorhombicCell


def domain_from_bounds(
    box_min: Sequence[float],
    box_max: Sequence[float],
    periodic: Sequence[bool] = (False, False, False),
) -> Domain:
    """Build a container domain from corner points and periodicity flags.

    A :class:`Box` is returned when no axis is periodic, otherwise an
    :class:`OrthorhombicCell`.
    """

    lo = [float(v) for v in box_min]
    hi = [float(v) for v in box_max]
    if len(lo) != 3 or len(hi) != 3:
        raise ValueError('box_min and box_max must have length 3')
    flags = tuple(bool(p) for p in periodic)
    if len(flags) != 3:
        raise ValueError('periodic must have length 3')
    bounds = ((lo[0], hi[0]), (lo[1], hi[1]), (lo[2], hi[2]))
    if any(flags):
        return OrthorhombicCell(bounds=bounds, periodic=flags)  # type: ignore[arg-type]
    return Box(bounds=bounds)
