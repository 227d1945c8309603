"""Sanity checks for grid connectivity.

How to use:
    import cfstpfa as ct
    ct.check.connectivity(g)

"""
import numpy as np
import scipy.sparse as sps

from cfstpfa.grids.grid import Grid


def connectivity(g: Grid) -> None:
    """Check that the face-to-cell and cell-to-face relations are consistent.

    The following is verified:
        - all incidence entries are +1 or -1,
        - each face has at most one cell on each side, hence 0, 1 or 2 neighbors,
        - the neighbor array :attr:`Grid.face_cells` reproduces the incidence.

    Parameters:
        g: Grid to check.

    Raises:
        ValueError: If any of the conditions above is violated.

    """
    fi, ci, sgn = sps.find(g.cell_faces)

    if not np.all(np.abs(sgn) == 1):
        raise ValueError("Cell-face incidence should only contain +1 and -1")

    num_outward = np.bincount(fi[sgn > 0], minlength=g.num_faces)
    num_inward = np.bincount(fi[sgn < 0], minlength=g.num_faces)
    if np.any(num_outward > 1) or np.any(num_inward > 1):
        bad = np.flatnonzero((num_outward > 1) | (num_inward > 1))
        raise ValueError(f"Faces {bad} have more than one cell on the same side")

    # Rebuild the incidence from the neighbor array and compare.
    rebuilt = Grid.from_face_cells(g.face_cells, g.num_cells).cell_faces
    if (rebuilt - g.cell_faces).count_nonzero() > 0:
        raise ValueError("Face-to-cell and cell-to-face relations are inconsistent")
