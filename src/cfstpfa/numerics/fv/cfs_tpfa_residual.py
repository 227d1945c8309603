"""Residual and Jacobian assembly for compressible multi-component flow, discretized
with a two-point flux approximation.

The unknowns are the cell pressures. For each cell, the component mass balance

    Ac u = -V z + dt * sum_k s_k Af_k v_k

is solved for the phase volumes ``u`` per unit pore volume, where ``z`` is the
component composition of the cell at the start of the step, ``V`` the pore volume,
``v_k`` the phase fluxes over the interior faces of the cell and ``s_k`` is +1 if the
cell is the first neighbor of face k, -1 otherwise. The residual of the pressure
equation is the volume discrepancy

    F = V + sum(u),

and the Jacobian of F with respect to the cell pressures is assembled alongside. The
component unknowns are eliminated cell by cell with dense LU factorizations of
``Ac``, see :class:`~cfstpfa.numerics.fv.dense_workspace.DenseCellWorkspace`.

Boundary faces do not enter the assembly: only interior faces couple cells. Boundary
conditions are used for the no-flow compatibility correction of the Jacobian and by
the face reconstructions :meth:`CfsTpfaResidual.flux` and
:meth:`CfsTpfaResidual.face_pressure`.

"""
from __future__ import annotations

import logging
import warnings
from typing import NamedTuple, Optional

import numpy as np
import scipy.sparse as sps

from cfstpfa.grids.grid import Grid
from cfstpfa.numerics.fv.connectivity import build_jacobian_structure, csr_element_index
from cfstpfa.numerics.fv.dense_workspace import DenseCellWorkspace
from cfstpfa.numerics.fv.face_reconstruction import face_flux, face_pressure
from cfstpfa.params.bc import BoundaryCondition
from cfstpfa.params.compressible_quantities import CompressibleQuantities
from cfstpfa.utils.logging import time_logger

module_sections = ["assembly", "numerics"]
logger = logging.getLogger(__name__)

__all__ = ["CfsTpfaResidual", "compute_component_flux_and_derivative"]


def compute_component_flux_and_derivative(
    g: Grid,
    nphases: int,
    cpress: np.ndarray,
    trans: np.ndarray,
    phasemobf: np.ndarray,
    gravcap_f: np.ndarray,
    Af: np.ndarray,
    cflux: Optional[np.ndarray] = None,
    dcflux: Optional[np.ndarray] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Component fluxes over interior faces, and their pressure derivatives.

    For an interior face f with neighbors c1 and c2, the phase fluxes are

        v_p = trans[f] * phasemobf[f, p] * (cpress[c1] - cpress[c2] + gravcap_f[f, p])

    and the component fluxes are ``Af[f] @ v``. The derivatives of the phase fluxes
    with respect to ``cpress[c1]`` and ``cpress[c2]`` are ``+trans * mob`` and
    ``-trans * mob``; the mobilities and the gravity term are treated as constants.

    Parameters:
        g: Grid.
        nphases: Number of phases.
        cpress: ``shape=(num_cells,)``

            Cell pressures.
        trans: ``shape=(num_faces,)``

            Transmissibilities.
        phasemobf: ``shape=(num_faces, nphases)``

            Phase mobilities on the faces.
        gravcap_f: ``shape=(num_faces, nphases)``

            Gravity and capillary contributions to the phase potential differences.
        Af: ``shape=(num_faces, nphases, nphases)``

            Matrices mapping phase fluxes to component fluxes.
        cflux: ``shape=(num_faces, nphases), default=None``

            Storage for the component fluxes. Allocated if not given.
        dcflux: ``shape=(num_faces, nphases, 2), default=None``

            Storage for the derivatives. The last axis holds the derivative with
            respect to the pressure in the first and second neighbor. Allocated if
            not given.

    Returns:
        The component fluxes and their derivatives. Entries of boundary faces are
        zero.

    """
    nf = g.num_faces
    if cflux is None:
        cflux = np.zeros((nf, nphases))
    if dcflux is None:
        dcflux = np.zeros((nf, nphases, 2))
    cflux[:] = 0.0
    dcflux[:] = 0.0

    c1, c2 = g.face_cells
    fi = np.flatnonzero((c1 >= 0) & (c2 >= 0))
    if fi.size == 0:
        return cflux, dcflux

    dp = cpress[c1[fi]] - cpress[c2[fi]]
    a = trans[fi, None] * phasemobf[fi]
    v = a * (dp[:, None] + gravcap_f[fi])

    A = Af[fi]
    cflux[fi] = np.einsum("fij,fj->fi", A, v)
    dv = np.einsum("fij,fj->fi", A, a)
    dcflux[fi, :, 0] = dv
    dcflux[fi, :, 1] = -dv
    return cflux, dcflux


class _CellConnections(NamedTuple):
    """Interior connections of a cell, in the order of the cell's faces."""

    faces: np.ndarray
    signs: np.ndarray
    """+1 if the cell is the first neighbor of the face, -1 otherwise."""
    neighbors: np.ndarray
    positions: np.ndarray
    """Positions of the neighbor entries in the data array of the Jacobian."""


class CfsTpfaResidual:
    """Residual and Jacobian of the pressure equation for compressible flow.

    The sparsity structure of the Jacobian, the face storage and the dense workspace
    are allocated once, at construction; every call to :meth:`assemble` zeroes and
    refills :attr:`J` and :attr:`F`.

    Parameters:
        g: Grid. The object should not change topology during the lifetime of the
            residual; if it does, construct a new residual.
        num_phases: Number of phases (and components).

    Raises:
        ValueError: If ``num_phases`` is not positive.
        MemoryError: If the storage cannot be allocated.

    Example:
        >>> g = ct.CartGrid(3)
        >>> h = ct.CfsTpfaResidual(g, num_phases=1)
        >>> h.assemble(dt, bc, None, zc, cq, trans, gravcap_f, cpress, porevol)
        >>> dp = scipy.sparse.linalg.spsolve(h.J, -h.F)

    """

    @time_logger(sections=module_sections)
    def __init__(self, g: Grid, num_phases: int) -> None:
        if num_phases < 1:
            raise ValueError("At least one phase is needed")

        self.g: Grid = g
        self.num_phases: int = num_phases

        self.J: sps.csr_matrix = build_jacobian_structure(g)
        """Jacobian of the residual with respect to cell pressures."""
        self.F: np.ndarray = np.zeros(g.num_cells)
        """Residual, one value per cell."""
        self.is_incompressible: bool = False
        """Whether the accumulation terms of the latest assembly had no pressure
        dependence in any cell."""

        self.compflux_f: np.ndarray = np.zeros((g.num_faces, num_phases))
        """Component fluxes over the faces, from the latest assembly."""
        self.compflux_deriv_f: np.ndarray = np.zeros((g.num_faces, num_phases, 2))
        """Pressure derivatives of :attr:`compflux_f`."""

        self._face_scratch = np.zeros(g.num_faces)
        self._workspace = DenseCellWorkspace(g.max_node_degree(), num_phases)

        indptr = self.J.indptr.astype(np.int64)
        indices = self.J.indices.astype(np.int64)
        self._diag_pos = np.array(
            [csr_element_index(indptr, indices, c, c) for c in range(g.num_cells)],
            dtype=int,
        )
        self._connections = [
            self._cell_connections(c, indptr, indices) for c in range(g.num_cells)
        ]

        logger.debug(
            f"Constructed residual for {g.num_cells} cells, {g.num_faces} faces and "
            f"{num_phases} phases. Jacobian has {self.J.nnz} nonzeros"
        )

    def _cell_connections(
        self, c: int, indptr: np.ndarray, indices: np.ndarray
    ) -> _CellConnections:
        g = self.g
        faces = g.cell_faces_list[g.cell_facepos[c] : g.cell_facepos[c + 1]]
        c1 = g.face_cells[0, faces]
        c2 = g.face_cells[1, faces]
        interior = (c1 >= 0) & (c2 >= 0)

        faces = faces[interior]
        c1, c2 = c1[interior], c2[interior]
        signs = np.where(c1 == c, 1.0, -1.0)
        neighbors = np.where(c1 == c, c2, c1)
        positions = np.array(
            [csr_element_index(indptr, indices, c, nb) for nb in neighbors],
            dtype=int,
        )
        return _CellConnections(faces, signs, neighbors, positions)

    def __repr__(self) -> str:
        return (
            f"Compressible TPFA residual for grid with {self.g.num_cells} cells and "
            f"{self.num_phases} phases"
        )

    @time_logger(sections=module_sections)
    def assemble(
        self,
        dt: float,
        bc: Optional[BoundaryCondition],
        src: Optional[np.ndarray],
        zc: np.ndarray,
        cq: CompressibleQuantities,
        trans: np.ndarray,
        gravcap_f: np.ndarray,
        cpress: np.ndarray,
        porevol: np.ndarray,
    ) -> None:
        """Assemble the residual and the Jacobian.

        The results are stored in :attr:`F` and :attr:`J`, and
        :attr:`is_incompressible` is updated. If the system is incompressible and no
        boundary face carries a Dirichlet condition, the pressure is determined only
        up to a constant; the first diagonal element of the Jacobian is then doubled
        to make it non-singular.

        Parameters:
            dt: Time step length.
            bc: Boundary conditions. None means no conditions.
            src: ``shape=(num_cells,)`` Source terms. Sources are not supported; non-zero
                values are ignored with a warning.
            zc: ``shape=(num_cells, num_phases)``

                Component composition in each cell at the start of the time step.
            cq: Phase mobilities, phase-to-component matrices and accumulation
                matrices.
            trans: ``shape=(num_faces,)``

                Transmissibilities.
            gravcap_f: ``shape=(num_faces, num_phases)``

                Gravity and capillary contributions to the potential differences.
            cpress: ``shape=(num_cells,)``

                Cell pressures.
            porevol: ``shape=(num_cells,)``

                Pore volumes.

        Raises:
            ValueError: If the input sizes do not match the grid and the number of
                phases.
            numpy.linalg.LinAlgError: If the accumulation matrix of a cell is
                singular. :attr:`J` and :attr:`F` are then incomplete and should not
                be used.

        """
        g = self.g
        nc, nf, npp = g.num_cells, g.num_faces, self.num_phases

        zc = np.asarray(zc, dtype=float)
        trans = np.asarray(trans, dtype=float)
        gravcap_f = np.asarray(gravcap_f, dtype=float)
        cpress = np.asarray(cpress, dtype=float)
        porevol = np.asarray(porevol, dtype=float)

        if cq.nphases != npp:
            raise ValueError(
                f"Property bundle has {cq.nphases} phases, expected {npp}"
            )
        if cq.num_faces != nf or cq.num_cells != nc:
            raise ValueError("Property bundle does not match the grid")
        if zc.shape != (nc, npp):
            raise ValueError(f"zc should have shape ({nc}, {npp})")
        if trans.shape != (nf,):
            raise ValueError("One transmissibility per face is needed")
        if gravcap_f.shape != (nf, npp):
            raise ValueError(f"gravcap_f should have shape ({nf}, {npp})")
        if cpress.shape != (nc,) or porevol.shape != (nc,):
            raise ValueError("Pressure and pore volume should have one value per cell")
        if bc is not None and bc.num_faces != nf:
            raise ValueError("Boundary condition does not match the grid")

        if src is not None and np.any(np.asarray(src) != 0):
            warnings.warn("Source terms are not supported and will be ignored")

        self.J.data[:] = 0.0
        self.F[:] = 0.0
        self.is_incompressible = False

        compute_component_flux_and_derivative(
            g,
            npp,
            cpress,
            trans,
            cq.phasemobf,
            gravcap_f,
            cq.Af,
            cflux=self.compflux_f,
            dcflux=self.compflux_deriv_f,
        )

        incompressible_cells = []
        for c in range(nc):
            conn = self._connections[c]
            residual, row, is_incomp = self._cell_contribution(
                c, dt, porevol[c], zc[c], cq.Ac[c], cq.dAc[c], self._workspace
            )
            self.J.data[self._diag_pos[c]] += row[0]
            # Two cells sharing more than one face map to the same matrix entry.
            np.add.at(self.J.data, conn.positions, row[1:])
            self.F[c] = residual
            incompressible_cells.append(is_incomp)

        self.is_incompressible = all(incompressible_cells)

        is_neumann = bc is None or bc.is_all_neumann()
        if nc > 0 and is_neumann and self.is_incompressible:
            # Element 0 of the data array is the diagonal of the first row.
            self.J.data[0] *= 2

        logger.debug(
            f"Assembled residual for {nc} cells, incompressible: "
            f"{self.is_incompressible}"
        )

    def _cell_contribution(
        self,
        c: int,
        dt: float,
        pvol: float,
        z: np.ndarray,
        Ac: np.ndarray,
        dAc: np.ndarray,
        ws: DenseCellWorkspace,
    ) -> tuple[float, np.ndarray, bool]:
        """Residual and Jacobian row of one cell.

        Parameters:
            ws: Workspace used for the dense solves. Its Jacobian row buffer is
                returned.

        Returns:
            The residual of the cell, its Jacobian row (diagonal followed by one entry
            per interior connection) and whether the accumulation term of the cell
            has no pressure dependence.

        """
        conn = self._connections[c]
        npp = self.num_phases
        nconn = conn.faces.size

        # Right-hand sides: [z, Af v_1 .. Af v_d, d(Af v_1) .. d(Af v_d)]
        block = ws.rhs_block(nconn)
        block[:, 0] = z
        block[:, 1 : 1 + nconn] = self.compflux_f[conn.faces].T
        block[:, 1 + nconn :] = (
            self.compflux_deriv_f[conn.faces].transpose(1, 0, 2).reshape(npp, 2 * nconn)
        )

        ws.factorize(Ac, cell=c)
        x = ws.solve(ws.num_rhs(nconn))

        coeff = ws.coeff[: nconn + 1]
        coeff[0] = -pvol
        coeff[1:] = conn.signs * dt

        ws.t1[:] = x[:, : nconn + 1] @ coeff
        residual = pvol + ws.t1.sum()

        ws.t2[:] = ws.solve_vector(dAc @ ws.t1)
        dF1 = ws.t1.sum()
        dF2 = ws.t2.sum()
        is_incomp = not (abs(dF2) > 0)

        row = ws.mat_row[: nconn + 1]
        row[0] = dF1 - dF2

        # Column sums of the solved derivative pairs, per connection. Column 0 is the
        # derivative with respect to the first neighbor of the face.
        dv = x[:, 1 + nconn :].reshape(npp, nconn, 2).sum(axis=0)
        k = np.arange(nconn)
        own = np.where(conn.signs > 0, 0, 1)
        row[0] += dt * np.sum(conn.signs * dv[k, own])
        row[1:] = conn.signs * dt * dv[k, 1 - own]

        return residual, row, is_incomp

    def flux(
        self,
        bc: Optional[BoundaryCondition],
        trans: np.ndarray,
        phasemobf: np.ndarray,
        gravcap_f: np.ndarray,
        cpress: np.ndarray,
    ) -> np.ndarray:
        """Total face fluxes, see :func:`~cfstpfa.numerics.fv.face_reconstruction.face_flux`."""
        return face_flux(self.g, bc, trans, phasemobf, gravcap_f, cpress)

    def face_pressure(
        self,
        bc: Optional[BoundaryCondition],
        htrans: np.ndarray,
        cpress: np.ndarray,
    ) -> np.ndarray:
        """Face pressures, see
        :func:`~cfstpfa.numerics.fv.face_reconstruction.face_pressure`."""
        return face_pressure(self.g, bc, htrans, cpress, scratch=self._face_scratch)
