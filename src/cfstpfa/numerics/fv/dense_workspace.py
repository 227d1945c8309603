"""Scratch storage and dense linear algebra for the per-cell elimination of
component unknowns.

In every cell, the component mass balance is a small dense system with the
accumulation matrix ``Ac`` as coefficient matrix. It is solved for a block of
right-hand sides at once, using one LU factorization per cell.

"""
from __future__ import annotations

import warnings

import numpy as np
import scipy.linalg

__all__ = ["DenseCellWorkspace"]


class DenseCellWorkspace:
    """Reusable buffers for the dense solves of one cell at a time.

    The workspace is sized by the largest number of interior connections of any cell
    and the number of components, so that it can be used for every cell of a grid
    without reallocation. It is not safe to share a workspace between concurrent
    workers; each worker should own one.

    The right-hand side block has, in this order, one column for the cell composition,
    one column per connection for the component flux, and two columns per connection
    for the flux derivatives with respect to the pressure in the first and second
    neighbor of the face.

    Parameters:
        max_conn: Maximum number of interior connections of a cell.
        num_components: Number of components (and phases).

    Raises:
        ValueError: If ``max_conn`` is negative or ``num_components`` is not positive.

    """

    def __init__(self, max_conn: int, num_components: int) -> None:
        if max_conn < 0:
            raise ValueError("The number of connections cannot be negative")
        if num_components < 1:
            raise ValueError("At least one component is needed")

        self.max_conn: int = max_conn
        self.num_components: int = num_components

        n = num_components
        self.lu: np.ndarray = np.zeros((n, n), order="F")
        """LU factors of the most recently factorized matrix."""
        self.piv: np.ndarray = np.zeros(n, dtype=np.int32)
        """Pivot indices of the most recently factorized matrix."""

        self.rhs: np.ndarray = np.zeros((n, 1 + 3 * max_conn), order="F")
        """Right-hand side block, overwritten by the solution in :meth:`solve`."""
        self.coeff: np.ndarray = np.zeros(1 + max_conn)
        """Coefficients combining the solved accumulation and flux columns."""
        self.t1: np.ndarray = np.zeros(n)
        self.t2: np.ndarray = np.zeros(n)
        self.mat_row: np.ndarray = np.zeros(1 + max_conn)
        """Jacobian row of the cell: the diagonal, followed by one entry per
        connection."""

        self._factorized = False

    def __repr__(self) -> str:
        return (
            f"Dense cell workspace for {self.num_components} components and up to "
            f"{self.max_conn} connections"
        )

    def num_rhs(self, num_conn: int) -> int:
        """Number of right-hand side columns used by a cell with ``num_conn``
        connections."""
        return 1 + 3 * num_conn

    def rhs_block(self, num_conn: int) -> np.ndarray:
        """View of the right-hand side columns used by a cell.

        Parameters:
            num_conn: Number of interior connections of the cell.

        Raises:
            ValueError: If the cell has more connections than the workspace is sized
                for.

        Returns:
            ``shape=(num_components, 1 + 3 * num_conn)``

        """
        if num_conn > self.max_conn:
            raise ValueError(
                f"Cell has {num_conn} connections, workspace is sized for "
                f"{self.max_conn}"
            )
        return self.rhs[:, : self.num_rhs(num_conn)]

    def factorize(self, A: np.ndarray, cell: int = -1) -> None:
        """Compute the LU factorization, with partial pivoting, of a cell matrix.

        Parameters:
            A: ``shape=(num_components, num_components)``
            cell: ``default=-1`` Cell index, used in the error message.

        Raises:
            numpy.linalg.LinAlgError: If the matrix is singular.

        """
        with warnings.catch_warnings():
            # Singularity is reported below
            warnings.simplefilter("ignore", scipy.linalg.LinAlgWarning)
            self.lu, self.piv = scipy.linalg.lu_factor(A)
        if not np.all(np.diag(self.lu)):
            self._factorized = False
            raise np.linalg.LinAlgError(f"Singular accumulation matrix in cell {cell}")
        self._factorized = True

    def solve(self, num_rhs: int) -> np.ndarray:
        """Solve for the first ``num_rhs`` columns of the right-hand side block, in
        place, with the current factorization.

        Returns:
            The solved columns, as a view of :attr:`rhs`.

        """
        if not self._factorized:
            raise ValueError("No factorized matrix available")
        block = self.rhs[:, :num_rhs]
        block[:] = scipy.linalg.lu_solve((self.lu, self.piv), block)
        return block

    def solve_vector(self, b: np.ndarray) -> np.ndarray:
        """Solve a single system with the current factorization."""
        if not self._factorized:
            raise ValueError("No factorized matrix available")
        return scipy.linalg.lu_solve((self.lu, self.piv), b)
