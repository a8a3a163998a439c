"""Internal shared helpers.

This module exists to avoid duplicating small pieces of domain logic across
`engine`, `api`, `duplicates`, `diagnostics` and `viz3d`.
"""

from __future__ import annotations

import numpy as np

from .domains import Domain, OrthorhombicCell


def is_periodic_domain(domain: Domain) -> bool:
    """Return True if *any* periodic boundary condition is active."""

    if isinstance(domain, OrthorhombicCell):
        return any(domain.periodic)
    return False


def domain_length_scale(domain: Domain) -> float:
    """Return a characteristic length scale of the domain.

    The value is used for heuristic tolerances and visualization defaults.
    It is **not** guaranteed to be a rigorous bound on any geometric quantity.
    """

    (xmin, xmax), (ymin, ymax), (zmin, zmax) = domain.bounds
    return float(max(xmax - xmin, ymax - ymin, zmax - zmin))


def domain_volume(domain: Domain) -> float:
    (xmin, xmax), (ymin, ymax), (zmin, zmax) = domain.bounds
    return float((xmax - xmin) * (ymax - ymin) * (zmax - zmin))


def as_point(value, name: str = 'point') -> np.ndarray:
    """Return `value` as a finite float64 array of shape (3,)."""

    p = np.asarray(value, dtype=np.float64)
    if p.shape != (3,):
        raise ValueError(f'{name} must have length 3')
    if not np.all(np.isfinite(p)):
        raise ValueError(f'{name} must contain only finite values')
    return p
