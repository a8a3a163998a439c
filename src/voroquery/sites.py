"""Site storage.

A :class:`SiteStore` is the id -> position mapping behind a query context.
Ids are caller-assigned signed integers; inserting an id that already exists
overwrites its position in place (the id keeps its original slot in the
iteration order).
"""

from __future__ import annotations

from typing import Iterator, Sequence

import numpy as np

from ._util import as_point


class InvalidArgumentError(ValueError):
    """Raised when caller-supplied arguments are inconsistent or malformed."""


class SiteStore:
    """Mutable id -> position mapping of Voronoi sites."""

    def __init__(self) -> None:
        self._sites: dict[int, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._sites)

    def __contains__(self, pid: object) -> bool:
        return pid in self._sites

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        return iter(list(self._sites.items()))

    def get(self, pid: int) -> np.ndarray | None:
        p = self._sites.get(int(pid))
        return None if p is None else p.copy()

    def ids(self) -> np.ndarray:
        return np.fromiter(self._sites.keys(), dtype=np.int64, count=len(self._sites))

    def positions(self) -> np.ndarray:
        if not self._sites:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack(list(self._sites.values())).astype(np.float64)

    def add(self, pid: int, position: Sequence[float] | np.ndarray) -> None:
        """Insert or overwrite one site.

        Raises:
            InvalidArgumentError: If `pid` is not an integer or the position
                is not three finite numbers.
        """

        if isinstance(pid, (bool, np.bool_)) or not isinstance(pid, (int, np.integer)):
            raise InvalidArgumentError('ids must be integers')
        try:
            p = as_point(position, 'position')
        except ValueError as e:
            raise InvalidArgumentError(str(e)) from None
        self._sites[int(pid)] = p

    def add_many(
        self,
        ids: Sequence[int] | np.ndarray,
        xs: Sequence[float] | np.ndarray,
        ys: Sequence[float] | np.ndarray,
        zs: Sequence[float] | np.ndarray,
    ) -> None:
        """Insert or overwrite sites from four parallel sequences.

        Every argument is validated before the first insertion, so a rejected
        call leaves the store exactly as it was.

        Raises:
            InvalidArgumentError: If the sequence lengths differ or any
                coordinate is not finite.
        """

        lens = {'ids': len(ids), 'xs': len(xs), 'ys': len(ys), 'zs': len(zs)}
        if len(set(lens.values())) != 1:
            detail = ', '.join(f'{k}={v}' for k, v in lens.items())
            raise InvalidArgumentError(
                f'add_points requires equal-length sequences, got {detail}'
            )

        pid = np.asarray(ids)
        if pid.size and not np.issubdtype(pid.dtype, np.integer):
            raise InvalidArgumentError('ids must be integers')
        pts = np.stack(
            [
                np.asarray(xs, dtype=np.float64).reshape(-1),
                np.asarray(ys, dtype=np.float64).reshape(-1),
                np.asarray(zs, dtype=np.float64).reshape(-1),
            ],
            axis=1,
        )
        if not np.all(np.isfinite(pts)):
            raise InvalidArgumentError('coordinates must contain only finite values')

        for i, p in zip(pid.tolist(), pts):
            self._sites[int(i)] = p

    def clear(self) -> int:
        """Remove every site and return how many were removed."""

        n = len(self._sites)
        self._sites = {}
        return n
