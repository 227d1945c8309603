"""Finite volume (two-point flux) assembly for compressible flow.

Modules, leaf first: sparsity structure (``connectivity``), per-cell dense solves
(``dense_workspace``), face reconstructions (``face_reconstruction``), and the residual
and Jacobian assembly (``cfs_tpfa_residual``).

"""
