"""Module containing the grid class used by the assembly.

See documentation of class :class:`Grid` for further details.

.. rubric:: Acknowledgements
    The data structure for the grid is inspired by that used in the
    `Matlab Reservoir Simulation Toolbox (MRST) <www.sintef.no/projectweb/mrst/>`_
    developed by SINTEF ICT.

"""

from __future__ import annotations

import copy
from itertools import count
from typing import Optional

import numpy as np
from scipy import sparse as sps


class Grid:
    """Topological representation of an unstructured polyhedral grid.

    The assembly only needs the cell-face incidence, so this is the primary storage.
    Geometric fields are optional; they are required by
    :func:`~cfstpfa.grids.transmissibility.half_transmissibilities`, and are set by
    the structured grid constructors.

    Parameters:
        dim: Grid dimension.
        cell_faces: ``shape=(num_faces, num_cells)``

            A map from cells to faces bordering the respective cell. Matrix elements
            have value +-1, where + corresponds to the face normal vector pointing out
            of the cell.
        name: Name of grid.
        cell_centers: ``shape=(3, num_cells), default=None``
        face_centers: ``shape=(3, num_faces), default=None``
        face_normals: ``shape=(3, num_faces), default=None``

            Face normals, scaled with the face areas.
        face_areas: ``shape=(num_faces,), default=None``
        cell_volumes: ``shape=(num_cells,), default=None``

    Raises:
        ValueError: If the dimension is not in ``{0, 1, 2, 3}``.

    """

    _counter = count(0)
    """Counter of instantiated grids. See :meth:`__new__` and :meth:`id`."""
    __id: int
    """Name-mangled reference to assigned ID."""

    def __new__(cls, *args, **kwargs) -> Grid:
        """Make object and set ID by forwarding :attr:`_counter`."""

        obj = object.__new__(cls)
        obj.__id = next(cls._counter)
        return obj

    def __init__(
        self,
        dim: int,
        cell_faces: sps.spmatrix,
        name: str = "Grid",
        cell_centers: Optional[np.ndarray] = None,
        face_centers: Optional[np.ndarray] = None,
        face_normals: Optional[np.ndarray] = None,
        face_areas: Optional[np.ndarray] = None,
        cell_volumes: Optional[np.ndarray] = None,
    ) -> None:
        if not (dim >= 0 and dim <= 3):
            raise ValueError("A grid has to be of dimension 0, 1, 2, or 3.")

        self.dim: int = dim
        """Grid dimension. Should be in ``{0, 1, 2, 3}``."""

        # Force topological information to be stored as integers. The order of the
        # faces of each cell is preserved; one-sided quantities (half transmissibilities)
        # are ordered accordingly.
        cell_faces = sps.csc_matrix(cell_faces)
        cell_faces.data = cell_faces.data.astype(int)

        self.cell_faces: sps.csc_matrix = cell_faces
        """An array with ``shape=(num_faces, num_cells)`` representing the map from
        cells to faces bordering respective cell."""

        self.name: str = name
        """Name assigned to this grid."""

        self.cell_centers = cell_centers
        self.face_centers = face_centers
        self.face_normals = face_normals
        self.face_areas = face_areas
        self.cell_volumes = cell_volumes

        self._face_cells: Optional[np.ndarray] = None

    @classmethod
    def from_face_cells(
        cls, face_cells: np.ndarray, num_cells: int, dim: int = 3, name: str = "Grid"
    ) -> Grid:
        """Construct a grid from a face-to-cell neighbor array.

        Parameters:
            face_cells: ``shape=(2, num_faces)``

                Cell neighbors of each face. A negative value marks a missing
                neighbor (boundary). The face normal points from the first to the
                second row.
            num_cells: Number of cells. Cells without faces are allowed.
            dim: ``default=3`` Grid dimension.
            name: ``default="Grid"`` Name of grid.

        Raises:
            ValueError: If ``face_cells`` has the wrong shape, refers to cells
                outside ``[0, num_cells)``, or connects a cell to itself.

        Returns:
            A grid with the cell-face incidence implied by ``face_cells``.

        """
        face_cells = np.asarray(face_cells, dtype=int)
        if face_cells.ndim != 2 or face_cells.shape[0] != 2:
            raise ValueError("face_cells should have shape (2, num_faces)")
        if np.any(face_cells >= num_cells):
            raise ValueError("face_cells refers to a cell index beyond num_cells")
        loops = np.flatnonzero((face_cells[0] == face_cells[1]) & (face_cells[0] >= 0))
        if loops.size > 0:
            raise ValueError(f"Faces {loops} connect a cell to itself")

        num_faces = face_cells.shape[1]
        faces = np.tile(np.arange(num_faces), 2)
        cells = face_cells.ravel()
        sgn = np.hstack((np.ones(num_faces), -np.ones(num_faces))).astype(int)

        valid = cells >= 0
        cell_faces = sps.coo_matrix(
            (sgn[valid], (faces[valid], cells[valid])), shape=(num_faces, num_cells)
        ).tocsc()
        return cls(dim, cell_faces, name=name)

    @property
    def id(self) -> int:
        """Grid ID.

        The attribute is set in :meth:`__new__`.

        """
        return self.__id

    @property
    def num_cells(self) -> int:
        """Number of cells in the grid."""
        return self.cell_faces.shape[1]

    @property
    def num_faces(self) -> int:
        """Number of faces in the grid."""
        return self.cell_faces.shape[0]

    @property
    def cell_facepos(self) -> np.ndarray:
        """Start positions of each cell's faces in :attr:`cell_faces_list`,
        ``shape=(num_cells + 1,)``."""
        return self.cell_faces.indptr

    @property
    def cell_faces_list(self) -> np.ndarray:
        """Faces of all cells, cell by cell, ``shape=(cell_facepos[-1],)``."""
        return self.cell_faces.indices

    @property
    def face_cells(self) -> np.ndarray:
        """Cell neighbors of each face, ``shape=(2, num_faces)``.

        The first row holds the cell for which the face normal points outwards, the
        second row the cell for which it points inwards. Missing neighbors are -1.

        """
        if self._face_cells is None:
            self._face_cells = self.cell_face_as_dense()
        return self._face_cells

    def copy(self) -> Grid:
        """Create a new instance with some attributes deep-copied from the grid.

        Returns:
            A deep copy of ``self``.

        """
        h = Grid(self.dim, self.cell_faces.copy(), name=self.name)
        copy_attributes = [
            "cell_volumes",
            "cell_centers",
            "face_centers",
            "face_normals",
            "face_areas",
        ]
        for attr in copy_attributes:
            setattr(h, attr, copy.deepcopy(getattr(self, attr)))
        return h

    def __repr__(self) -> str:
        s = f"Grid with name {self.name} and id {self.id}" + "\n"
        s += "Number of cells " + str(self.num_cells) + "\n"
        s += "Number of faces " + str(self.num_faces) + "\n"
        s += "Dimension " + str(self.dim)
        return s

    def cell_face_as_dense(self) -> np.ndarray:
        """Obtain the cell-face relation in the form of two rows, rather than a
        sparse matrix.

        Each column in the array corresponds to a face, and the elements in that column
        refers to cell indices. The value -1 signifies a boundary. The normal vector of
        the face points from the first to the second row.

        Returns:
            Array representation of face-cell relations with ``shape=(2, num_faces)``.

        """
        neighs = -np.ones((2, self.num_faces), dtype=int)
        fi, ci, sgn = sps.find(self.cell_faces)
        outward = sgn > 0
        neighs[0, fi[outward]] = ci[outward]
        neighs[1, fi[~outward]] = ci[~outward]
        return neighs

    def num_cell_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(num_cells,)`` containing the number of faces
            (node degree) of each cell.

        """
        return np.diff(self.cell_facepos)

    def max_node_degree(self) -> int:
        """
        Returns:
            The largest number of faces of any cell. Zero for a grid without cells.

        """
        if self.num_cells == 0:
            return 0
        return int(self.num_cell_faces().max())

    def get_all_boundary_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(num_boundary_faces,)`` containing the indices of
            all faces with fewer than two cell neighbors.

        """
        return np.flatnonzero(np.any(self.face_cells < 0, axis=0))

    def get_internal_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(num_internal_faces,)`` containing indices of internal
            faces.

        """
        return np.flatnonzero(np.all(self.face_cells >= 0, axis=0))

    def cell_connection_map(self) -> sps.csr_matrix:
        """Get a matrix representation of cell-cell connections, as defined by
        two cells sharing a face.

        Returns:
            A sparse matrix with ``(shape=(num_cells, num_cells), dtype=bool)``.

            Element ``(i,j)`` is True if cells ``i`` and ``j`` share a face.
            The matrix is thus symmetric.

        """
        # Direction of normal vector does not matter here, only 0s and 1s
        cell_faces = self.cell_faces.copy()
        cell_faces.data = np.abs(cell_faces.data)

        c2c = (cell_faces.transpose() @ cell_faces).tocsr()
        c2c.data = np.clip(c2c.data, 0, 1).astype("bool")
        return c2c
