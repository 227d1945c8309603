"""Aggregate fluid property data consumed by the residual assembly.

The assembly does not evaluate fluid properties itself. Instead it is handed a
:class:`CompressibleQuantities` bundle holding, per face, the phase mobilities and the
matrix mapping phase fluxes to component fluxes, and, per cell, the accumulation matrix
and its pressure derivative.

The function :func:`immiscible_quantities` builds such a bundle for immiscible phases
(no mass transfer between phases), where each component lives in exactly one phase.

"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from cfstpfa.grids.grid import Grid
from cfstpfa.params.pvt import ConstantCompressibilityPvt
from cfstpfa.utils.logging import time_logger

module_sections = ["parameters"]

logger = logging.getLogger(__name__)

__all__ = ["CompressibleQuantities", "immiscible_quantities"]


@dataclass
class CompressibleQuantities:
    """Per-face and per-cell fluid data for the compressible residual assembly.

    Components and phases are counted by the same number, :attr:`nphases`. Shapes
    are validated on construction.

    Raises:
        ValueError: If the arrays do not have the shapes given below, or the number
            of faces or cells is inconsistent between arrays.

    """

    nphases: int
    """Number of phases, equal to the number of components."""

    phasemobf: np.ndarray
    """Phase mobilities on faces, ``shape=(num_faces, nphases)``."""

    Af: np.ndarray
    """Phase-to-component matrices on faces, ``shape=(num_faces, nphases, nphases)``.

    Element ``[f, i, j]`` is the amount of component ``i`` per unit volume of phase
    ``j`` flowing through face ``f``.

    """

    Ac: np.ndarray
    """Accumulation matrices in cells, ``shape=(num_cells, nphases, nphases)``."""

    dAc: np.ndarray
    """Pressure derivative of :attr:`Ac`, same shape."""

    def __post_init__(self) -> None:
        npp = self.nphases
        if npp < 1:
            raise ValueError("At least one phase is needed")

        self.phasemobf = np.asarray(self.phasemobf, dtype=float)
        self.Af = np.asarray(self.Af, dtype=float)
        self.Ac = np.asarray(self.Ac, dtype=float)
        self.dAc = np.asarray(self.dAc, dtype=float)

        if self.phasemobf.ndim != 2 or self.phasemobf.shape[1] != npp:
            raise ValueError(f"phasemobf should have shape (num_faces, {npp})")
        nf = self.phasemobf.shape[0]
        if self.Af.shape != (nf, npp, npp):
            raise ValueError(f"Af should have shape ({nf}, {npp}, {npp})")
        if self.Ac.ndim != 3 or self.Ac.shape[1:] != (npp, npp):
            raise ValueError(f"Ac should have shape (num_cells, {npp}, {npp})")
        if self.dAc.shape != self.Ac.shape:
            raise ValueError("Ac and dAc should have the same shape")

    @property
    def num_faces(self) -> int:
        return self.phasemobf.shape[0]

    @property
    def num_cells(self) -> int:
        return self.Ac.shape[0]


@time_logger(sections=module_sections)
def immiscible_quantities(
    g: Grid,
    pvts: Sequence[ConstantCompressibilityPvt],
    cpress: np.ndarray,
    kr: np.ndarray,
    gravcap_f: Optional[np.ndarray] = None,
) -> CompressibleQuantities:
    """Property bundle for immiscible phases.

    Each component is carried by one phase only, so the accumulation matrix in a cell
    is the diagonal of the inverse formation volume factors, ``Ac = diag(b(p))``, and
    ``dAc = diag(db/dp)``.

    Face quantities are upstream weighted per phase. The upstream cell is the first
    neighbor of the face if the potential difference ``p[c1] - p[c2] + gravcap_f``
    is non-negative, otherwise the second. On boundary faces the single neighbor is
    used. Faces without neighbors get zero mobility.

    Parameters:
        g: Grid.
        pvts: One PVT object per phase.
        cpress: ``shape=(num_cells,)``

            Cell pressures.
        kr: ``shape=(num_cells, num_phases)``

            Relative permeabilities.
        gravcap_f: ``shape=(num_faces, num_phases), default=None``

            Gravity and capillary contributions to the face potential differences,
            used for upstream weighting only. Defaults to zero.

    Raises:
        ValueError: If the array sizes do not match the grid and the number of PVT
            objects.

    Returns:
        A bundle with ``nphases = len(pvts)``.

    """
    npp = len(pvts)
    nc, nf = g.num_cells, g.num_faces

    cpress = np.asarray(cpress, dtype=float)
    kr = np.asarray(kr, dtype=float)
    if cpress.shape != (nc,):
        raise ValueError("One pressure value per cell is needed")
    if kr.shape != (nc, npp):
        raise ValueError(f"kr should have shape ({nc}, {npp})")
    if gravcap_f is None:
        gravcap_f = np.zeros((nf, npp))
    elif np.shape(gravcap_f) != (nf, npp):
        raise ValueError(f"gravcap_f should have shape ({nf}, {npp})")

    r = np.zeros(nc)
    b = np.zeros((nc, npp))
    dbdp = np.zeros((nc, npp))
    mob = np.zeros((nc, npp))
    for p, pvt in enumerate(pvts):
        b[:, p], dbdp[:, p], _ = pvt.b(cpress, r)
        mob[:, p] = kr[:, p] / pvt.mu(cpress)

    diag = np.arange(npp)
    Ac = np.zeros((nc, npp, npp))
    dAc = np.zeros((nc, npp, npp))
    Ac[:, diag, diag] = b
    dAc[:, diag, diag] = dbdp

    # Upstream cell of each face and phase
    c1, c2 = g.face_cells
    dp = np.zeros(nf)
    interior = (c1 >= 0) & (c2 >= 0)
    dp[interior] = cpress[c1[interior]] - cpress[c2[interior]]
    upw = np.where(
        (dp[:, None] + gravcap_f) >= 0, c1[:, None], c2[:, None]
    )
    # Boundary faces: take the one neighbor that exists
    upw = np.where(upw < 0, np.maximum(c1, c2)[:, None], upw)
    has_cell = upw >= 0
    upw_ind = np.where(has_cell, upw, 0)

    phases = np.arange(npp)[None, :]
    phasemobf = np.where(has_cell, mob[upw_ind, phases], 0.0)
    Af = np.zeros((nf, npp, npp))
    Af[:, diag, diag] = np.where(has_cell, b[upw_ind, phases], 0.0)

    logger.debug(f"Computed immiscible quantities for {npp} phases on {nc} cells")
    return CompressibleQuantities(
        nphases=npp, phasemobf=phasemobf, Af=Af, Ac=Ac, dAc=dAc
    )
