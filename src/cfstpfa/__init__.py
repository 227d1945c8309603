"""   cfstpfa.

Root directory for the cfstpfa package: residual and Jacobian assembly for
compressible, multi-component flow in porous media, discretized with a two-point flux
approximation. Contains the following sub-packages:

grids: Grid connectivity, Cartesian grid constructors and transmissibilities.

numerics: Sparse structure, per-cell dense solves, residual/Jacobian assembly, face
    reconstruction and simulator timers.

params: Boundary conditions, fluid (PVT) properties and property bundles.

utils: Units, logging.


isort:skip_file

"""

import configparser
import os
from pathlib import Path


__version__ = "0.3.0"

# Try to read the config file from the directory where python process was launched
try:
    cwd = Path(os.getcwd())
    pth = cwd / Path("cfstpfa.cfg")
    cfg = configparser.ConfigParser()
    cfg.read(pth)
    config = {name: dict(section) for name, section in cfg.items()}
except (OSError, configparser.Error):
    # the assumption is that no configurations are given
    config = {}

# ------------------------------------
# Simplified namespaces. The rule of thumb is that classes and modules that a
# user can be exposed to should have a shortcut here.

from cfstpfa.utils.common_constants import *
from cfstpfa.utils.logging import time_logger

# Grids
from cfstpfa.grids.grid import Grid
from cfstpfa.grids.structured import CartGrid, TensorGrid
from cfstpfa.grids import check
from cfstpfa.grids.transmissibility import (
    half_transmissibilities,
    transmissibilities,
)

# Parameters
from cfstpfa.params.bc import BoundaryCondition
from cfstpfa.params.pvt import PhasePresence, ConstantCompressibilityPvt
from cfstpfa.params.compressible_quantities import (
    CompressibleQuantities,
    immiscible_quantities,
)

# Numerics
from cfstpfa.numerics.fv.connectivity import (
    build_jacobian_structure,
    csr_element_index,
)
from cfstpfa.numerics.fv.dense_workspace import DenseCellWorkspace
from cfstpfa.numerics.fv.face_reconstruction import face_flux, face_pressure
from cfstpfa.numerics.fv.cfs_tpfa_residual import (
    CfsTpfaResidual,
    compute_component_flux_and_derivative,
)

# Time stepping control
from cfstpfa.numerics.time_step_control import (
    SimulatorTimer,
    AdaptiveSimulatorTimer,
)
