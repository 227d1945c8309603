"""Tests of the compressible TPFA residual and Jacobian assembly.

The tests fall into three categories:
    1) The component fluxes and their derivatives.
    2) Small systems where the residual and Jacobian are computed by hand.
    3) Structural properties on larger grids: conservation, and comparison of the
       Jacobian with finite differences of the residual.

"""
import numpy as np
import pytest

import cfstpfa as ct

"""Local utility functions."""


def _quantities(nf, nc, npp, mob=1.0, Ac=None, dAc=None, Af=None):
    """Property bundle with identity matrices unless otherwise specified."""
    eye_f = np.tile(np.eye(npp), (nf, 1, 1))
    eye_c = np.tile(np.eye(npp), (nc, 1, 1))
    return ct.CompressibleQuantities(
        nphases=npp,
        phasemobf=np.full((nf, npp), mob),
        Af=eye_f if Af is None else Af,
        Ac=eye_c if Ac is None else Ac,
        dAc=np.zeros((nc, npp, npp)) if dAc is None else dAc,
    )


def _random_quantities(g, npp, rng, compressible=False):
    nf, nc = g.num_faces, g.num_cells
    Ac = 2 * np.eye(npp) + 0.2 * rng.random((nc, npp, npp))
    dAc = 0.05 * rng.random((nc, npp, npp)) if compressible else np.zeros_like(Ac)
    return ct.CompressibleQuantities(
        nphases=npp,
        phasemobf=rng.random((nf, npp)) + 0.5,
        Af=np.eye(npp) + 0.3 * rng.random((nf, npp, npp)),
        Ac=Ac,
        dAc=dAc,
    )


@pytest.fixture
def two_cells():
    # Face 0 is interior, face 1 is a boundary face of cell 0 and face 2 of cell 1.
    return ct.Grid.from_face_cells(np.array([[0, -1, 1], [1, 0, -1]]), num_cells=2)


class TestComponentFlux:
    def test_values_and_derivatives(self):
        g = ct.CartGrid(3)
        trans = np.array([1.0, 2.0, 3.0, 4.0])
        mob = np.array([[1.0, 2.0]] * 4)
        gravcap_f = np.zeros((4, 2))
        gravcap_f[1] = [0.5, 0.0]
        Af = np.tile(np.array([[1.0, 0.5], [0.0, 2.0]]), (4, 1, 1))
        p = np.array([3.0, 2.0, 0.0])

        cflux, dcflux = ct.compute_component_flux_and_derivative(
            g, 2, p, trans, mob, gravcap_f, Af
        )

        # Face 1: a = [2, 4], v = [2 * 1.5, 4 * 1]
        assert np.allclose(cflux[1], Af[1] @ np.array([3.0, 4.0]))
        assert np.allclose(dcflux[1, :, 0], Af[1] @ np.array([2.0, 4.0]))
        # Face 2: a = [3, 6], v = 2 * a
        assert np.allclose(cflux[2], Af[2] @ np.array([6.0, 12.0]))
        # Boundary faces are left at zero
        assert np.allclose(cflux[[0, 3]], 0)
        assert np.allclose(dcflux[[0, 3]], 0)

    def test_antisymmetric_derivatives(self):
        g = ct.CartGrid([3, 2])
        rng = np.random.default_rng(1)
        cq = _random_quantities(g, 2, rng)
        cflux, dcflux = ct.compute_component_flux_and_derivative(
            g,
            2,
            rng.random(g.num_cells),
            rng.random(g.num_faces),
            cq.phasemobf,
            np.zeros((g.num_faces, 2)),
            cq.Af,
        )
        assert np.allclose(dcflux[:, :, 0], -dcflux[:, :, 1])

    def test_output_arrays_are_reset(self):
        g = ct.CartGrid(2)
        cflux = np.ones((3, 1))
        dcflux = np.ones((3, 1, 2))
        ct.compute_component_flux_and_derivative(
            g,
            1,
            np.array([1.0, 0.0]),
            np.ones(3),
            np.ones((3, 1)),
            np.zeros((3, 1)),
            np.ones((3, 1, 1)),
            cflux=cflux,
            dcflux=dcflux,
        )
        assert np.allclose(cflux[:, 0], [0, 1, 0])
        assert np.allclose(dcflux[:, 0, 0], [0, 1, 0])


class TestSmallSystems:
    def test_single_cell(self):
        g = ct.CartGrid(1)
        Ac = np.diag([2.0, 4.0])[None]
        cq = _quantities(2, 1, 2, Ac=Ac)
        zc = np.array([[0.5, 1.0]])
        porevol = np.array([3.0])

        h = ct.CfsTpfaResidual(g, num_phases=2)
        residuals = []
        for dt in [0.1, 10.0]:
            h.assemble(
                dt, None, None, zc, cq, np.ones(2), np.zeros((2, 2)),
                np.array([1.0]), porevol,
            )
            residuals.append(h.F[0])
        # Pore volume minus the volume occupied by the fluid: 3 * (1 - 0.25 - 0.25)
        assert np.allclose(residuals, 1.5)

    def test_two_cells(self, two_cells):
        T, mob, dt = 2.0, 3.0, 0.5
        p = np.array([5.0, 1.0])
        porevol = np.array([10.0, 20.0])
        zc = np.ones((2, 1))
        trans = np.array([T, 1.0, 1.0])
        cq = _quantities(3, 2, 1, mob=mob)
        # A Dirichlet face keeps the Jacobian free of the compatibility correction
        bc = ct.BoundaryCondition(two_cells, faces=np.array([1]), cond="dir")

        h = ct.CfsTpfaResidual(two_cells, num_phases=1)
        h.assemble(dt, bc, None, zc, cq, trans, np.zeros((3, 1)), p, porevol)

        flux_term = dt * T * mob * (p[0] - p[1])
        assert np.allclose(h.F, [flux_term, -flux_term])

        # Diagonal: accumulation contribution (sum of t1) plus the flux derivative
        a = dt * T * mob
        known = np.array(
            [
                [flux_term - porevol[0] + a, -a],
                [-a, -flux_term - porevol[1] + a],
            ]
        )
        assert np.allclose(h.J.toarray(), known)
        assert h.is_incompressible

    def test_compatibility_correction(self, two_cells):
        p = np.array([5.0, 1.0])
        porevol = np.array([10.0, 20.0])
        zc = np.ones((2, 1))
        trans = np.array([2.0, 1.0, 1.0])
        cq = _quantities(3, 2, 1, mob=3.0)
        args = (None, zc, cq, trans, np.zeros((3, 1)), p, porevol)

        h_dir = ct.CfsTpfaResidual(two_cells, num_phases=1)
        bc_dir = ct.BoundaryCondition(two_cells, faces=np.array([2]), cond="dir")
        h_dir.assemble(0.5, bc_dir, *args)

        for bc in [
            None,
            ct.BoundaryCondition(two_cells),
            ct.BoundaryCondition(two_cells, faces=np.array([1, 2]), cond="neu"),
        ]:
            h = ct.CfsTpfaResidual(two_cells, num_phases=1)
            h.assemble(0.5, bc, *args)
            assert h.is_incompressible
            assert h.J[0, 0] == 2 * h_dir.J[0, 0]
            # Only the first diagonal element is modified
            J_diff = (h.J - h_dir.J).toarray()
            J_diff[0, 0] = 0
            assert np.allclose(J_diff, 0)
            assert np.allclose(h.F, h_dir.F)

    def test_compressible_no_correction(self, two_cells):
        dAc = np.full((2, 1, 1), 0.1)
        cq = _quantities(3, 2, 1, mob=3.0, dAc=dAc)
        zc = np.full((2, 1), 0.5)
        porevol = np.array([10.0, 20.0])
        p = np.array([5.0, 1.0])
        trans = np.array([2.0, 1.0, 1.0])

        h = ct.CfsTpfaResidual(two_cells, num_phases=1)
        h.assemble(0.5, None, None, zc, cq, trans, np.zeros((3, 1)), p, porevol)
        assert not h.is_incompressible

        # t1 = -V z + s dt a dp, t2 = dAc t1 (Ac = 1)
        a = 0.5 * 2.0 * 3.0
        t1 = np.array([-5.0 + a * 4, -10.0 - a * 4])
        assert np.allclose(h.F, porevol + t1)
        assert np.allclose(h.J.diagonal(), t1 - 0.1 * t1 + a)

    def test_parallel_faces(self):
        g = ct.Grid.from_face_cells(np.array([[0, 0], [1, 1]]), num_cells=2)
        cq = _quantities(2, 2, 1)
        zc = np.ones((2, 1))
        p = np.array([2.0, 1.0])
        porevol = np.ones(2)

        h = ct.CfsTpfaResidual(g, num_phases=1)
        h.assemble(1.0, None, None, zc, cq, np.array([1.0, 3.0]), np.zeros((2, 1)), p, porevol)
        # Both faces contribute to the same matrix element
        assert np.isclose(h.J[0, 1], -4)
        assert np.isclose(h.J[1, 0], -4)
        assert np.allclose(h.F, [4, -4])

    def test_isolated_cell(self):
        g = ct.Grid.from_face_cells(np.array([[0, 2], [1, -1]]), num_cells=3)
        cq = _quantities(2, 3, 1, Ac=np.full((3, 1, 1), 2.0))
        zc = np.ones((3, 1))
        porevol = np.array([1.0, 1.0, 4.0])

        h = ct.CfsTpfaResidual(g, num_phases=1)
        h.assemble(1.0, None, None, zc, cq, np.ones(2), np.zeros((2, 1)), np.ones(3), porevol)
        # Accumulation only: 4 * (1 - 1 / 2)
        assert np.isclose(h.F[2], 2)
        assert np.isclose(h.J[2, 2], -2)


class TestStructure:
    @pytest.mark.parametrize("npp", [1, 2, 3])
    def test_conservation(self, npp):
        # Identity accumulation matrices, shared face matrices: the flux leaving one
        # cell enters its neighbor.
        g = ct.CartGrid([4, 3])
        rng = np.random.default_rng(7)
        nf, nc = g.num_faces, g.num_cells
        cq = ct.CompressibleQuantities(
            nphases=npp,
            phasemobf=rng.random((nf, npp)) + 0.5,
            Af=np.eye(npp) + 0.3 * rng.random((nf, npp, npp)),
            Ac=np.tile(np.eye(npp), (nc, 1, 1)),
            dAc=np.zeros((nc, npp, npp)),
        )
        zc = rng.random((nc, npp))
        porevol = rng.random(nc) + 1
        bc = ct.BoundaryCondition(g, faces=np.array([0]), cond="dir")

        h = ct.CfsTpfaResidual(g, num_phases=npp)
        h.assemble(
            0.3, bc, None, zc, cq, ct.transmissibilities(g, 1.0),
            rng.random((nf, npp)), rng.random(nc), porevol,
        )

        # Remove the accumulation part of the diagonal; the remainder is the flux
        # derivative, with zero row and column sums.
        J_flux = h.J.toarray() - np.diag(h.F - porevol)
        assert np.allclose(J_flux, J_flux.T)
        assert np.allclose(J_flux.sum(axis=0), 0)
        assert np.allclose(J_flux.sum(axis=1), 0)

    @pytest.mark.parametrize("compressible", [False, True])
    def test_off_diagonal_finite_differences(self, compressible):
        # The residual is linear in the pressure for fixed fluid quantities, and the
        # off-diagonal elements are the derivatives with respect to neighbor pressures.
        g = ct.CartGrid([3, 2])
        rng = np.random.default_rng(5)
        npp = 2
        cq = _random_quantities(g, npp, rng, compressible=compressible)
        zc = rng.random((g.num_cells, npp))
        porevol = rng.random(g.num_cells) + 1
        trans = ct.transmissibilities(g, rng.random(g.num_cells) + 0.5)
        gravcap_f = rng.random((g.num_faces, npp))
        p = rng.random(g.num_cells)
        dt = 0.7

        h = ct.CfsTpfaResidual(g, num_phases=npp)

        def residual(pressure):
            h.assemble(dt, None, None, zc, cq, trans, gravcap_f, pressure, porevol)
            return h.F.copy()

        F0 = residual(p)
        J = h.J.toarray()
        eps = 1e-3
        for c in range(g.num_cells):
            dp = np.zeros(g.num_cells)
            dp[c] = eps
            dF = (residual(p + dp) - F0) / eps
            off_diagonal = np.arange(g.num_cells) != c
            assert np.allclose(dF[off_diagonal], J[off_diagonal, c])

    def test_diagonal_flux_part_finite_differences(self):
        g = ct.CartGrid([3, 2])
        rng = np.random.default_rng(9)
        npp = 2
        cq = _random_quantities(g, npp, rng)
        zc = rng.random((g.num_cells, npp))
        porevol = rng.random(g.num_cells) + 1
        trans = ct.transmissibilities(g, 1.0)
        gravcap_f = np.zeros((g.num_faces, npp))
        p = rng.random(g.num_cells)
        bc = ct.BoundaryCondition(g, faces=np.array([0]), cond="dir")

        h = ct.CfsTpfaResidual(g, num_phases=npp)
        h.assemble(0.5, bc, None, zc, cq, trans, gravcap_f, p, porevol)
        F0 = h.F.copy()
        flux_diagonal = h.J.diagonal() - (F0 - porevol)

        eps = 1e-3
        for c in range(g.num_cells):
            dp = np.zeros(g.num_cells)
            dp[c] = eps
            h.assemble(0.5, bc, None, zc, cq, trans, gravcap_f, p + dp, porevol)
            assert np.isclose((h.F[c] - F0[c]) / eps, flux_diagonal[c])

    def test_repeated_assembly(self):
        g = ct.CartGrid([3, 3])
        rng = np.random.default_rng(2)
        cq = _random_quantities(g, 2, rng, compressible=True)
        args = (
            None, rng.random((9, 2)), cq, ct.transmissibilities(g, 1.0),
            np.zeros((g.num_faces, 2)), rng.random(9), np.ones(9),
        )
        h = ct.CfsTpfaResidual(g, num_phases=2)
        h.assemble(1.0, None, *args)
        J1, F1 = h.J.toarray(), h.F.copy()
        h.assemble(1.0, None, *args)
        assert np.allclose(h.J.toarray(), J1)
        assert np.allclose(h.F, F1)


class TestInterface:
    def test_construction(self):
        g = ct.CartGrid([3, 2])
        h = ct.CfsTpfaResidual(g, num_phases=2)
        assert h.J.shape == (6, 6)
        assert h.F.shape == (6,)
        assert h.compflux_f.shape == (g.num_faces, 2)
        assert h.compflux_deriv_f.shape == (g.num_faces, 2, 2)
        with pytest.raises(ValueError):
            ct.CfsTpfaResidual(g, num_phases=0)

    def test_singular_accumulation_matrix(self, two_cells):
        Ac = np.ones((2, 2, 2))
        cq = _quantities(3, 2, 2, Ac=Ac)
        h = ct.CfsTpfaResidual(two_cells, num_phases=2)
        with pytest.raises(np.linalg.LinAlgError):
            h.assemble(
                1.0, None, None, np.ones((2, 2)), cq, np.ones(3),
                np.zeros((3, 2)), np.ones(2), np.ones(2),
            )

    def test_source_terms_ignored(self, two_cells):
        cq = _quantities(3, 2, 1)
        args = (np.ones((2, 1)), cq, np.ones(3), np.zeros((3, 1)), np.array([2.0, 1.0]), np.ones(2))
        h = ct.CfsTpfaResidual(two_cells, num_phases=1)
        h.assemble(1.0, None, None, *args)
        F = h.F.copy()
        with pytest.warns(UserWarning):
            h.assemble(1.0, None, np.array([1.0, 0.0]), *args)
        assert np.allclose(h.F, F)

    def test_invalid_input(self, two_cells):
        h = ct.CfsTpfaResidual(two_cells, num_phases=1)
        cq = _quantities(3, 2, 1)
        valid = dict(
            zc=np.ones((2, 1)),
            cq=cq,
            trans=np.ones(3),
            gravcap_f=np.zeros((3, 1)),
            cpress=np.ones(2),
            porevol=np.ones(2),
        )
        invalid = [
            dict(zc=np.ones((2, 2))),
            dict(cq=_quantities(3, 2, 2)),
            dict(cq=_quantities(4, 2, 1)),
            dict(trans=np.ones(2)),
            dict(gravcap_f=np.zeros((3, 2))),
            dict(cpress=np.ones(3)),
            dict(porevol=np.ones(1)),
        ]
        for change in invalid:
            kwargs = {**valid, **change}
            with pytest.raises(ValueError):
                h.assemble(1.0, None, None, **kwargs)

        bc = ct.BoundaryCondition(ct.CartGrid(4))
        with pytest.raises(ValueError):
            h.assemble(1.0, bc, None, **valid)

    def test_reconstructions(self):
        g = ct.CartGrid(3)
        h = ct.CfsTpfaResidual(g, num_phases=1)
        bc = ct.BoundaryCondition(g, faces=np.array([0]), cond="dir", values=[4.0])
        trans = ct.transmissibilities(g, 1.0)
        mob = np.ones((4, 1))
        gravcap_f = np.zeros((4, 1))
        p = np.array([3.0, 2.0, 1.0])
        htrans = ct.half_transmissibilities(g, 1.0)

        assert np.allclose(
            h.flux(bc, trans, mob, gravcap_f, p),
            ct.face_flux(g, bc, trans, mob, gravcap_f, p),
        )
        assert np.allclose(
            h.face_pressure(bc, htrans, p), ct.face_pressure(g, bc, htrans, p)
        )


def test_immiscible_two_phase_flow():
    """Assembly with fluid quantities from constant-compressibility fluids."""
    g = ct.CartGrid([4, 2], physdims=[400 * ct.METER, 100 * ct.METER])
    pvts = [
        ct.ConstantCompressibilityPvt(
            [[200 * ct.BAR, 1.01, 4e-10, 0.5 * ct.CENTIPOISE, 0.0]]
        ),
        ct.ConstantCompressibilityPvt.from_viscosity(2 * ct.CENTIPOISE),
    ]
    p = np.linspace(250, 150, g.num_cells) * ct.BAR
    kr = np.tile([0.6, 0.4], (g.num_cells, 1))
    cq = ct.immiscible_quantities(g, pvts, p, kr)
    trans = ct.transmissibilities(g, 100 * ct.MILLIDARCY)
    porevol = 0.2 * g.cell_volumes
    zc = np.tile([0.5, 0.5], (g.num_cells, 1))

    h = ct.CfsTpfaResidual(g, num_phases=2)
    h.assemble(
        1 * ct.DAY, None, None, zc, cq, trans, np.zeros((g.num_faces, 2)), p, porevol
    )

    assert not h.is_incompressible
    assert np.all(np.isfinite(h.F))
    assert np.all(np.isfinite(h.J.data))
    J = h.J.toarray()
    # Neighbor coupling is negative for a fluid with positive mobility
    fi = g.get_internal_faces()
    c1, c2 = g.face_cells[:, fi]
    assert np.all(J[c1, c2] < 0)
    assert np.all(J[c2, c1] < 0)
