"""Reconstruction of face fluxes and face pressures from cell pressures.

These are diagnostic quantities, computed after an assembly for reporting and for
updating transport quantities. They are not used in the Jacobian.

"""
from __future__ import annotations

from typing import Optional

import numpy as np

from cfstpfa.grids.grid import Grid
from cfstpfa.params.bc import BoundaryCondition

__all__ = ["face_flux", "face_pressure"]


def _boundary_types(
    g: Grid, bc: Optional[BoundaryCondition]
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    if bc is None:
        no_bc = np.zeros(g.num_faces, dtype=bool)
        return no_bc, no_bc, np.zeros(g.num_faces)
    if bc.num_faces != g.num_faces:
        raise ValueError("Boundary condition does not match the grid")
    return bc.is_dir, bc.is_neu, bc.values


def face_flux(
    g: Grid,
    bc: Optional[BoundaryCondition],
    trans: np.ndarray,
    phasemobf: np.ndarray,
    gravcap_f: np.ndarray,
    cpress: np.ndarray,
) -> np.ndarray:
    """Compute the total Darcy flux over all faces.

    On interior faces the flux is

        q = trans * (tmob * (p[c1] - p[c2]) + gflux),

    with ``tmob`` the sum of the phase mobilities and ``gflux`` the sum of the phase
    mobilities multiplied by the gravity/capillary terms. Positive fluxes go from
    the first to the second neighbor of the face.

    On boundary faces, the flux is the prescribed one for Neumann conditions. For
    Dirichlet conditions the prescribed pressure takes the place of the missing
    neighbor. Boundary faces without conditions are no-flow: the pressure drop
    balances the gravity term, and the flux is zero.

    Parameters:
        g: Grid.
        bc: Boundary conditions. None is equivalent to no conditions on any face.
        trans: ``shape=(num_faces,)``

            Transmissibilities.
        phasemobf: ``shape=(num_faces, num_phases)``

            Phase mobilities on the faces.
        gravcap_f: ``shape=(num_faces, num_phases)``

            Gravity and capillary contributions, per unit transmissibility and
            mobility.
        cpress: ``shape=(num_cells,)``

            Cell pressures.

    Raises:
        ValueError: If the array sizes are inconsistent with the grid.

    Returns:
        ``shape=(num_faces,)``

        Face fluxes.

    """
    nf = g.num_faces
    trans = np.asarray(trans, dtype=float)
    phasemobf = np.asarray(phasemobf, dtype=float)
    gravcap_f = np.asarray(gravcap_f, dtype=float)
    cpress = np.asarray(cpress, dtype=float)
    if trans.shape != (nf,):
        raise ValueError("One transmissibility per face is needed")
    if phasemobf.ndim != 2 or phasemobf.shape[0] != nf:
        raise ValueError("phasemobf should have shape (num_faces, num_phases)")
    if gravcap_f.shape != phasemobf.shape:
        raise ValueError("gravcap_f should have the same shape as phasemobf")
    if cpress.shape != (g.num_cells,):
        raise ValueError("One pressure value per cell is needed")

    is_dir, is_neu, values = _boundary_types(g, bc)
    c1, c2 = g.face_cells

    tmob = phasemobf.sum(axis=1)
    gflux = (phasemobf * gravcap_f).sum(axis=1)

    interior = (c1 >= 0) & (c2 >= 0)
    boundary = ~interior
    dir_in = boundary & is_dir & (c1 < 0) & (c2 >= 0)
    dir_out = boundary & is_dir & (c1 >= 0)
    no_bc = boundary & ~is_dir & ~is_neu

    dp = np.zeros(nf)
    dp[interior] = cpress[c1[interior]] - cpress[c2[interior]]
    dp[dir_in] = values[dir_in] - cpress[c2[dir_in]]
    dp[dir_out] = cpress[c1[dir_out]] - values[dir_out]
    # No flow, the pressure drop offsets gravity.
    has_mob = no_bc & (tmob != 0)
    dp[has_mob] = -gflux[has_mob] / tmob[has_mob]

    flux = trans * (tmob * dp + gflux)
    flux[no_bc & (tmob == 0)] = 0.0

    neu = boundary & is_neu
    flux[neu] = values[neu]
    return flux


def face_pressure(
    g: Grid,
    bc: Optional[BoundaryCondition],
    htrans: np.ndarray,
    cpress: np.ndarray,
    scratch: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compute face pressures as transmissibility-weighted averages of the pressures
    in the neighboring cells.

    For a face with neighbors c1 and c2,

        pf = (t1 * p[c1] + t2 * p[c2]) / (t1 + t2),

    with t1 and t2 the one-sided transmissibilities. Boundary faces with a Dirichlet
    condition take the prescribed pressure.

    Note:
        The reconstruction does not account for gravity or flux boundary conditions.
        It is an approximation.

    Parameters:
        g: Grid.
        bc: Boundary conditions. None is equivalent to no conditions on any face.
        htrans: ``shape=(g.cell_facepos[-1],)``

            One-sided transmissibilities, ordered as the faces in
            :attr:`~cfstpfa.Grid.cell_faces_list`.
        cpress: ``shape=(num_cells,)``

            Cell pressures.
        scratch: ``shape=(num_faces,), default=None``

            Storage for the face sums of the weights. Allocated if not given.

    Raises:
        ValueError: If the array sizes are inconsistent with the grid.

    Returns:
        ``shape=(num_faces,)``

        Face pressures. Faces without neighbors get zero.

    """
    nf = g.num_faces
    htrans = np.asarray(htrans, dtype=float)
    cpress = np.asarray(cpress, dtype=float)
    if htrans.shape != g.cell_faces_list.shape:
        raise ValueError("One half transmissibility per cell-face pair is needed")
    if cpress.shape != (g.num_cells,):
        raise ValueError("One pressure value per cell is needed")
    if scratch is None:
        scratch = np.zeros(nf)
    elif scratch.shape != (nf,):
        raise ValueError("Scratch array should have one value per face")

    fi = g.cell_faces_list
    ci = np.repeat(np.arange(g.num_cells), g.num_cell_faces())

    scratch[:] = 0.0
    np.add.at(scratch, fi, htrans)
    fpress = np.zeros(nf)
    np.add.at(fpress, fi, htrans * cpress[ci])

    has_weight = scratch != 0
    fpress[has_weight] /= scratch[has_weight]

    is_dir, _, values = _boundary_types(g, bc)
    c1, c2 = g.face_cells
    dir_faces = ((c1 < 0) | (c2 < 0)) & is_dir
    fpress[dir_faces] = values[dir_faces]
    return fpress
