"""Two-point transmissibilities for grids with geometry.

Grid geometry and transmissibilities are inputs to the assembly; the functions here
provide them for grids that carry geometric fields (e.g. :class:`~cfstpfa.CartGrid`).

"""
from __future__ import annotations

import numpy as np

from cfstpfa.grids.grid import Grid
from cfstpfa.utils.logging import time_logger

module_sections = ["grids"]


@time_logger(sections=module_sections)
def half_transmissibilities(g: Grid, perm) -> np.ndarray:
    """One-sided transmissibilities for all cell-face pairs.

    For a cell ``c`` and a face ``f`` of the cell, the half transmissibility is

        t = k_c * (n_f . (x_f - x_c)) / |x_f - x_c|^2,

    with ``n_f`` the area-weighted face normal oriented out of the cell.

    Parameters:
        g: Grid with ``cell_centers``, ``face_centers`` and ``face_normals`` set.
        perm: ``shape=(num_cells,)`` or scalar

            Isotropic permeability in each cell.

    Raises:
        ValueError: If the grid has no geometry, or the permeability is not positive.

    Returns:
        ``shape=(g.cell_facepos[-1],)``

        Half transmissibilities, ordered as :attr:`~cfstpfa.Grid.cell_faces_list`.

    """
    if g.cell_centers is None or g.face_centers is None or g.face_normals is None:
        raise ValueError("Transmissibilities require a grid with geometry")

    perm = np.broadcast_to(np.asarray(perm, dtype=float), (g.num_cells,))
    if np.any(perm <= 0):
        raise ValueError("Permeability should be positive")

    fi = g.cell_faces_list
    ci = np.repeat(np.arange(g.num_cells), g.num_cell_faces())
    sgn = g.cell_faces.data

    # Normal vectors for each face (here and there side)
    n = g.face_normals[:, fi] * sgn

    # Distance from face center to cell center
    fc_cc = g.face_centers[:, fi] - g.cell_centers[:, ci]

    t_face = perm[ci] * (n * fc_cc).sum(axis=0)
    dist_face_cell = np.power(fc_cc, 2).sum(axis=0)

    return t_face / dist_face_cell


def transmissibilities(g: Grid, perm) -> np.ndarray:
    """Face transmissibilities by harmonic combination of the half transmissibilities.

    Boundary faces keep the half transmissibility of their single cell.

    Parameters:
        g: Grid with geometry.
        perm: ``shape=(num_cells,)`` or scalar

            Isotropic permeability in each cell.

    Returns:
        ``shape=(g.num_faces,)``

        Transmissibility of each face.

    """
    ht = half_transmissibilities(g, perm)
    # Return harmonic average
    return 1 / np.bincount(g.cell_faces_list, weights=1 / ht, minlength=g.num_faces)
