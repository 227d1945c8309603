"""Fluid (PVT) properties of single phases.

The assembly consumes formation volume factors, viscosities and their pressure
derivatives as precomputed arrays, see
:class:`~cfstpfa.params.compressible_quantities.CompressibleQuantities`. The classes
here evaluate them for phases with constant compressibility (water, or dead oil
described by a constant compressibility table).

For all methods, the following apply: ``p`` and ``r`` are arrays of size n, and the
returned arrays are of size n. ``r`` is the dissolved gas-oil or vaporized oil-gas
ratio; a constant-compressibility phase does not depend on it, and its derivative
with respect to ``r`` is zero.

"""
from __future__ import annotations

import enum
import logging
from typing import Optional, Sequence

import numpy as np

import cfstpfa as ct

logger = logging.getLogger(__name__)


class PhasePresence(enum.IntFlag):
    """Phase state of a point, used to select between saturated and undersaturated
    branches of black-oil property evaluations.

    Flags can be combined, e.g. ``PhasePresence.FREE_OIL | PhasePresence.FREE_GAS``
    denotes a saturated oil (free gas present).

    """

    NONE = 0
    FREE_WATER = 1
    FREE_OIL = 2
    FREE_GAS = 4

    def has_free_water(self) -> bool:
        return bool(self & PhasePresence.FREE_WATER)

    def has_free_oil(self) -> bool:
        return bool(self & PhasePresence.FREE_OIL)

    def has_free_gas(self) -> bool:
        return bool(self & PhasePresence.FREE_GAS)


class ConstantCompressibilityPvt:
    """Class for constant compressible phases (PVTW or PVCDO type tables).

    The formation volume factor and viscosity are

        B(p) = B_ref / (1 + x + x^2 / 2),      x = c (p - p_ref),
        mu(p) = mu_ref / (1 + y + y^2 / 2),    y = -c_mu (p - p_ref),

    that is, a second order polynomial approximation to the exponential.

    Parameters:
        table: One row per PVT region, each row holding
            ``[ref_press, ref_B, compressibility, viscosity, viscosibility]``.
            Exactly one region is supported.

    Raises:
        ValueError: If the table does not contain exactly one region, or the region
            does not contain five values.

    Example:
        >>> water = ConstantCompressibilityPvt(
        ...     [[200 * ct.BAR, 1.01, 4e-10, 0.5 * ct.CENTIPOISE, 0.0]]
        ... )

    """

    def __init__(self, table: Sequence[Sequence[float]]) -> None:
        if len(table) != 1:
            raise ValueError("More than one PVT region")
        region_number = 0
        row = table[region_number]
        if len(row) != 5:
            raise ValueError(
                "A constant compressibility table row should contain reference "
                "pressure, formation volume factor, compressibility, viscosity and "
                "viscosibility"
            )
        self.ref_press: float = float(row[0])
        self.ref_B: float = float(row[1])
        self.comp: float = float(row[2])
        self.viscosity: float = float(row[3])
        self.visc_comp: float = float(row[4])

    @classmethod
    def from_viscosity(cls, viscosity: float) -> ConstantCompressibilityPvt:
        """Incompressible phase with constant viscosity and unit formation volume
        factor."""
        return cls([[0.0, 1.0, 0.0, viscosity, 0.0]])

    @classmethod
    def default_water(cls) -> ConstantCompressibilityPvt:
        """Water with the default viscosity used when no table is given (0.5 cP)."""
        return cls.from_viscosity(0.5 * ct.CENTIPOISE)

    def __repr__(self) -> str:
        return (
            f"Constant compressibility PVT: p_ref = {self.ref_press}, "
            f"B_ref = {self.ref_B}, c = {self.comp}, mu = {self.viscosity}, "
            f"c_mu = {self.visc_comp}"
        )

    def _viscosity_polynomial(self, p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = -self.visc_comp * (p - self.ref_press)
        d = 1.0 + x + 0.5 * x * x
        return x, d

    def _volume_polynomial(self, p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = self.comp * (p - self.ref_press)
        d = 1.0 + x + 0.5 * x * x
        return x, d

    def mu(self, p: np.ndarray, z: Optional[np.ndarray] = None) -> np.ndarray:
        """Viscosity as a function of pressure (and surface volumes, ignored)."""
        p = np.asarray(p, dtype=float)
        if self.visc_comp:
            _, d = self._viscosity_polynomial(p)
            return self.viscosity / d
        return np.full(p.shape, self.viscosity)

    def mu_and_derivatives(
        self,
        p: np.ndarray,
        r: np.ndarray,
        cond: Optional[Sequence[PhasePresence]] = None,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Viscosity and its derivatives with respect to pressure and ``r``.

        Parameters:
            p: Pressure.
            r: Dissolution ratio.
            cond: ``default=None`` Phase presence of each point. The phase has no
                saturated branch, so the condition is only checked for size.

        Returns:
            Viscosity, its pressure derivative and its ``r`` derivative.

        """
        p = np.asarray(p, dtype=float)
        _check_condition(p, r, cond)
        if self.visc_comp:
            x, d = self._viscosity_polynomial(p)
            mu = self.viscosity / d
            dmudp = (self.viscosity / (d * d)) * (1 + x) * self.visc_comp
        else:
            mu = np.full(p.shape, self.viscosity)
            dmudp = np.zeros(p.shape)
        return mu, dmudp, np.zeros(p.shape)

    def B(self, p: np.ndarray, z: Optional[np.ndarray] = None) -> np.ndarray:
        """Formation volume factor."""
        p = np.asarray(p, dtype=float)
        if self.comp:
            _, d = self._volume_polynomial(p)
            return self.ref_B / d
        return np.full(p.shape, self.ref_B)

    def dBdp(
        self, p: np.ndarray, z: Optional[np.ndarray] = None
    ) -> tuple[np.ndarray, np.ndarray]:
        """Formation volume factor and its pressure derivative."""
        p = np.asarray(p, dtype=float)
        if self.comp:
            x, d = self._volume_polynomial(p)
            B = self.ref_B / d
            dBdp = (-self.ref_B / (d * d)) * (1 + x) * self.comp
        else:
            B = np.full(p.shape, self.ref_B)
            dBdp = np.zeros(p.shape)
        return B, dBdp

    def b(
        self,
        p: np.ndarray,
        r: np.ndarray,
        cond: Optional[Sequence[PhasePresence]] = None,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Inverse formation volume factor ``b = 1 / B`` and its derivatives with
        respect to pressure and ``r``."""
        p = np.asarray(p, dtype=float)
        _check_condition(p, r, cond)
        if self.comp:
            x, d = self._volume_polynomial(p)
            b = d / self.ref_B
            dbdp = (1 + x) * self.comp / self.ref_B
        else:
            b = np.full(p.shape, 1 / self.ref_B)
            dbdp = np.zeros(p.shape)
        return b, dbdp, np.zeros(p.shape)

    def rs_sat(self, p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Saturated gas-oil ratio and its pressure derivative; zero for this
        phase."""
        p = np.asarray(p, dtype=float)
        return np.zeros(p.shape), np.zeros(p.shape)

    def rv_sat(self, p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Saturated oil-gas ratio and its pressure derivative; zero for this
        phase."""
        p = np.asarray(p, dtype=float)
        return np.zeros(p.shape), np.zeros(p.shape)

    def R(self, p: np.ndarray, z: Optional[np.ndarray] = None) -> np.ndarray:
        """Solution ratio; zero for this phase."""
        return np.zeros(np.asarray(p).shape)

    def dRdp(
        self, p: np.ndarray, z: Optional[np.ndarray] = None
    ) -> tuple[np.ndarray, np.ndarray]:
        """Solution ratio and its pressure derivative; zero for this phase."""
        p = np.asarray(p, dtype=float)
        return np.zeros(p.shape), np.zeros(p.shape)


def _check_condition(p, r, cond) -> None:
    if np.shape(r) != p.shape:
        raise ValueError("Pressure and dissolution ratio should have the same size")
    if cond is not None and len(cond) != p.size:
        raise ValueError("One phase presence condition per point")
