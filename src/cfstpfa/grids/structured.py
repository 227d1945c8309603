""" Module containing classes for structured grids.

The grids carry the geometric fields needed to compute two-point transmissibilities,
see :mod:`cfstpfa.grids.transmissibility`. Cells are numbered with the x-index running
fastest, then y, then z. Faces are numbered x-faces first, then y-faces, then z-faces,
each block in the same index order as the cells. The faces of each cell are listed as
(west, east, south, north, bottom, top); the normal vector of a face points in the
positive coordinate direction.

Acknowledgements:
    The implementation of structured grids is in practice a translation of the
    corresponding functions found in the Matlab Reservoir Simulation Toolbox
    (MRST) developed by SINTEF ICT, see www.sintef.no/projectweb/mrst/

"""
import logging

import numpy as np
import scipy.sparse as sps

from cfstpfa.grids.grid import Grid
from cfstpfa.utils.logging import time_logger

module_sections = ["grids"]
logger = logging.getLogger(__name__)


class TensorGrid(Grid):
    """Representation of grid formed by a tensor product of line point
    distributions.

    For information on attributes and methods, see the documentation of the
    parent Grid class.

    """

    @time_logger(sections=module_sections)
    def __init__(self, x, y=None, z=None, name=None):
        """
        Constructor for 1D or 2D or 3D tensor grid

        The resulting grid is 1D or 2D or 3D, depending of the number of
        coordinate lines are provided

        Parameters:
            x (np.ndarray): Node coordinates in x-direction
            y (np.ndarray): Node coordinates in y-direction. Defaults to
                None, in which case the grid is 1D.
            z (np.ndarray): Node coordinates in z-direction. Defaults to
                None, in which case the grid is 2D.
            name (str): Name of grid, passed to super constructor

        Raises:
            ValueError: If z is given without y, or if a coordinate array is not
                strictly increasing.

        """
        if name is None:
            name = "TensorGrid"
        if z is not None and y is None:
            raise ValueError("Cannot give z-coordinates without y-coordinates")

        coords = [np.asarray(c, dtype=float) for c in (x, y, z) if c is not None]
        for c in coords:
            if c.size < 2 or np.any(np.diff(c) <= 0):
                raise ValueError("Node coordinates should be strictly increasing")

        self.cart_dims = np.array([c.size - 1 for c in coords])
        cell_faces, geometry = self._create_grid(coords)

        super().__init__(len(coords), cell_faces, name=name, **geometry)
        logger.debug(
            f"Created {name} with {self.num_cells} cells and {self.num_faces} faces"
        )

    def _create_grid(self, coords):
        """
        Compute grid topology and geometry.

        This is really a part of the constructor, but put it here to improve
        readability.

        """
        dim = len(coords)
        num = [c.size - 1 for c in coords]
        num_cells = int(np.prod(num))

        mids = [0.5 * (c[1:] + c[:-1]) for c in coords]
        widths = [np.diff(c) for c in coords]

        def tensor(arrays, reduce=None):
            # Evaluate per-axis arrays on the tensor product, x-index fastest.
            mesh = np.meshgrid(*arrays, indexing="ij")
            if reduce is None:
                return [m.ravel(order="F") for m in mesh]
            return reduce(np.array(mesh), axis=0).ravel(order="F")

        cell_centers = np.zeros((3, num_cells))
        cell_centers[:dim] = tensor(mids)
        cell_volumes = tensor(widths, reduce=np.prod)

        face_centers, face_normals, face_areas = [], [], []
        lower_faces, upper_faces = [], []

        offset = 0
        for d in range(dim):
            shape = list(num)
            shape[d] += 1
            num_faces_d = int(np.prod(shape))

            # Faces of this direction, indexed as the cells but with one extra layer
            # along axis d.
            face_ind = offset + np.arange(num_faces_d).reshape(shape, order="F")
            lower_faces.append(
                np.take(face_ind, np.arange(num[d]), axis=d).ravel(order="F")
            )
            upper_faces.append(
                np.take(face_ind, np.arange(1, num[d] + 1), axis=d).ravel(order="F")
            )

            fc = np.zeros((3, num_faces_d))
            fc[:dim] = tensor([coords[e] if e == d else mids[e] for e in range(dim)])
            areas = tensor(
                [np.ones(shape[e]) if e == d else widths[e] for e in range(dim)],
                reduce=np.prod,
            )
            normals = np.zeros((3, num_faces_d))
            normals[d] = areas

            face_centers.append(fc)
            face_normals.append(normals)
            face_areas.append(areas)
            offset += num_faces_d

        num_faces = offset
        faces_per_cell = 2 * dim

        # Interleave lower and upper faces of each direction, cell by cell.
        cell_face_ind = np.vstack(
            [f for pair in zip(lower_faces, upper_faces) for f in pair]
        ).ravel(order="F")
        data = np.vstack(
            [-np.ones(num_cells), np.ones(num_cells)] * dim
        ).ravel(order="F")
        indptr = np.arange(0, faces_per_cell * num_cells + 1, faces_per_cell)

        cell_faces = sps.csc_matrix(
            (data, cell_face_ind, indptr), shape=(num_faces, num_cells)
        )

        geometry = {
            "cell_centers": cell_centers,
            "cell_volumes": cell_volumes,
            "face_centers": np.hstack(face_centers),
            "face_normals": np.hstack(face_normals),
            "face_areas": np.hstack(face_areas),
        }
        return cell_faces, geometry


class CartGrid(TensorGrid):
    """Representation of a 1D, 2D or 3D Cartesian grid.

    For information on attributes and methods, see the documentation of the
    parent Grid class.

    Example:
        >>> g = CartGrid([3, 2], physdims=[300 * ct.METER, 100 * ct.METER])
        >>> g.num_cells
        6

    """

    def __init__(self, nx, physdims=None):
        """
        Constructor for Cartesian grid

        Parameters:
            nx (np.ndarray): Number of cells in each direction. Should be 1D, 2D or 3D
            physdims (np.ndarray): Physical dimensions in each direction.
                Defaults to same as nx, that is, cells of unit size.

        Raises:
            ValueError: If nx and physdims have different lengths, or more than three
                directions are given.

        """
        nx = np.atleast_1d(np.asarray(nx, dtype=int))
        if physdims is None:
            physdims = nx
        physdims = np.atleast_1d(np.asarray(physdims, dtype=float))

        if nx.shape != physdims.shape:
            raise ValueError("nx and physdims should have the same length")
        if nx.size > 3:
            raise ValueError("Cartesian grid only implemented for up to three dimensions")

        # Create point distribution, and then leave construction to
        # TensorGrid constructor
        nodes = [np.linspace(0, physdims[d], nx[d] + 1) for d in range(nx.size)]
        super().__init__(*nodes, name="CartGrid")
