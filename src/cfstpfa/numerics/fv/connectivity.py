"""Sparsity structure of the cell-centered pressure Jacobian.

Each row of the Jacobian holds the cell itself and every cell it shares an interior
face with. The structure is built once per grid in two passes over the faces (count,
then fill), followed by a per-row sort that also merges repeated neighbors (two cells
may share more than one face).

The kernels are compiled with numba and operate on the flat face-cell arrays.

"""
from __future__ import annotations

import logging

import numba
import numpy as np
import scipy.sparse as sps

from cfstpfa.grids.grid import Grid
from cfstpfa.utils.logging import time_logger

module_sections = ["numerics", "assembly"]
logger = logging.getLogger(__name__)

__all__ = ["build_jacobian_structure", "csr_element_index"]


@numba.njit("int64[:](int64[:], int64[:], int64)", cache=True)
def _count_row_entries(c1: np.ndarray, c2: np.ndarray, num_cells: int) -> np.ndarray:
    """Row pointer of the raw pattern: one diagonal entry per cell, plus one entry
    in each neighbor's row for every interior face."""
    ia = np.ones(num_cells + 1, dtype=np.int64)
    ia[0] = 0
    for f in range(c1.size):
        if c1[f] >= 0 and c2[f] >= 0:
            ia[c1[f] + 1] += 1
            ia[c2[f] + 1] += 1
    return np.cumsum(ia)


@numba.njit("int64[:](int64[:], int64[:], int64[:])", cache=True)
def _fill_row_entries(c1: np.ndarray, c2: np.ndarray, ia: np.ndarray) -> np.ndarray:
    num_cells = ia.size - 1
    ja = np.empty(ia[-1], dtype=np.int64)
    pos = ia[:-1].copy()
    for c in range(num_cells):
        ja[pos[c]] = c
        pos[c] += 1
    for f in range(c1.size):
        if c1[f] >= 0 and c2[f] >= 0:
            ja[pos[c1[f]]] = c2[f]
            pos[c1[f]] += 1
            ja[pos[c2[f]]] = c1[f]
            pos[c2[f]] += 1
    return ja


@numba.njit("UniTuple(int64[:], 2)(int64[:], int64[:])", cache=True)
def _sort_and_merge_rows(ia: np.ndarray, ja: np.ndarray) -> tuple:
    num_rows = ia.size - 1
    new_ia = np.zeros(num_rows + 1, dtype=np.int64)
    new_ja = np.empty(ja.size, dtype=np.int64)
    k = 0
    for row in range(num_rows):
        cols = np.sort(ja[ia[row] : ia[row + 1]])
        for j in range(cols.size):
            if j == 0 or cols[j] != cols[j - 1]:
                new_ja[k] = cols[j]
                k += 1
        new_ia[row + 1] = k
    return new_ia, new_ja[:k]


@numba.njit("int64(int64[:], int64[:], int64, int64)", cache=True)
def _element_index(indptr, indices, row, col):
    lo = indptr[row]
    hi = indptr[row + 1]
    while lo < hi:
        mid = (lo + hi) // 2
        if indices[mid] < col:
            lo = mid + 1
        else:
            hi = mid
    if lo < indptr[row + 1] and indices[lo] == col:
        return lo
    return -1


def csr_element_index(indptr: np.ndarray, indices: np.ndarray, row: int, col: int) -> int:
    """Position of the element ``(row, col)`` in the data array of a CSR matrix.

    The column indices of each row must be sorted. The search is a bisection within
    the row.

    Parameters:
        indptr: Row pointer of the matrix.
        indices: Column indices of the matrix.
        row: Row index.
        col: Column index.

    Raises:
        KeyError: If the element is not part of the sparsity pattern.

    Returns:
        Index into ``data`` of the element.

    """
    ind = _element_index(
        np.asarray(indptr, dtype=np.int64),
        np.asarray(indices, dtype=np.int64),
        int(row),
        int(col),
    )
    if ind < 0:
        raise KeyError(f"Element ({row}, {col}) is not in the sparsity pattern")
    return int(ind)


@time_logger(sections=module_sections)
def build_jacobian_structure(g: Grid) -> sps.csr_matrix:
    """Build the sparsity pattern of the cell-to-cell pressure Jacobian.

    Parameters:
        g: Grid.

    Returns:
        A matrix of ``shape=(g.num_cells, g.num_cells)`` with explicit zeros at every
        position of the pattern. Column indices are sorted and unique within each
        row, and the pattern is symmetric.

    """
    face_cells = g.face_cells
    c1 = np.ascontiguousarray(face_cells[0], dtype=np.int64)
    c2 = np.ascontiguousarray(face_cells[1], dtype=np.int64)

    ia = _count_row_entries(c1, c2, g.num_cells)
    ja = _fill_row_entries(c1, c2, ia)
    ia, ja = _sort_and_merge_rows(ia, ja)

    logger.debug(
        f"Jacobian structure for {g.num_cells} cells with {ja.size} nonzeros"
    )
    # Construct the matrix from its raw arrays so that the explicit zeros are kept.
    J = sps.csr_matrix(
        (np.zeros(ja.size), ja, ia), shape=(g.num_cells, g.num_cells)
    )
    J.has_sorted_indices = True
    return J
