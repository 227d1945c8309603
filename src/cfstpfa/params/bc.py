"""
Class representing boundary conditions for the pressure equation.

The class identifies faces of a grid which have Dirichlet (prescribed pressure) and
Neumann (prescribed flux) type boundary conditions, together with the prescribed
values.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

import cfstpfa as ct
from cfstpfa.grids.grid import Grid


class BoundaryCondition:
    """Class to store information on boundary conditions for the pressure equation.

    The BCs are specified by face number, and can have type Dirichlet or Neumann.
    Boundary faces that do not get an explicit condition have no condition at all;
    the flux reconstruction treats them as no-flow, and the assembly, which only
    couples cells across interior faces, leaves them out.

    Attributes:
        num_faces (int): Number of faces in the grid.
        bf (np.ndarray, int): Indices of the boundary faces of the grid.
        is_neu (np.ndarray boolean, size g.num_faces): Element i is true if
            face i has been assigned a Neumann condition.
        is_dir (np.ndarray, boolean, size g.num_faces): Element i is true if
            face i has been assigned a Dirichlet condition.
        values (np.ndarray, size g.num_faces): Prescribed pressure on Dirichlet
            faces, prescribed flux on Neumann faces, zero elsewhere.

    """

    def __init__(
        self,
        g: Grid,
        faces: Optional[np.ndarray] = None,
        cond: Optional[Union[list[str], str]] = None,
        values: Optional[Union[np.ndarray, float]] = None,
    ):
        """Constructor for BoundaryCondition.

        Args:
            g (ct.Grid): Grid for which boundary conditions are set.
            faces (np.ndarray): Faces for which conditions are assigned.
            cond (list of str or str): Conditions on the faces, in the same order as
                used in faces. Should be as long as faces. The list elements
                should be one of "dir", "neu".
            values (np.ndarray or float): Prescribed values on the faces, in the same
                order as used in faces. Defaults to zero.

        Raises:
            ValueError if faces are a boolean array with size not matching the number
                of faces.
            ValueError if internal faces are marked.
            ValueError if the numbers of boundary condition types, values and faces
                are not matching.
            ValueError if another keyword than "dir" or "neu" is used for the boundary
                condition type.

        Example:
            # Assign a Dirichlet condition on the first face of a 1d grid, and an
            # injection flux on the last one.
            g = CartGrid(3)
            bound_cond = BoundaryCondition(
                g, faces=np.array([0, 3]), cond=["dir", "neu"], values=[1e5, -1e-3]
            )
        """
        self.num_faces: int = g.num_faces

        # Find boundary faces
        self.bf: np.ndarray = g.get_all_boundary_faces()

        self.is_neu: np.ndarray = np.zeros(self.num_faces, dtype=bool)
        self.is_dir: np.ndarray = np.zeros(self.num_faces, dtype=bool)
        self.values: np.ndarray = np.zeros(self.num_faces)

        if faces is not None:
            # Validate arguments
            if cond is None:
                raise ValueError("Boundary condition types must be given with faces")
            faces = np.asarray(faces)
            if faces.dtype == bool:
                if faces.size != self.num_faces:
                    raise ValueError(
                        """When giving logical faces, the size of
                                        array must match number of faces"""
                    )
                faces = np.flatnonzero(faces)
            faces = np.atleast_1d(faces).astype(int)
            if not np.all(np.isin(faces, self.bf)):
                raise ValueError("Give boundary condition only on the boundary")
            if isinstance(cond, str):
                cond = [cond] * faces.size
            if faces.size != len(cond):
                raise ValueError("One BC per face")

            if values is None:
                values = np.zeros(faces.size)
            values = np.broadcast_to(np.asarray(values, dtype=float), faces.shape)

            for ind in np.arange(faces.size):
                s = cond[ind].lower()
                if s == ct.NEUMANN:
                    self.is_neu[faces[ind]] = True
                    self.is_dir[faces[ind]] = False
                elif s == ct.DIRICHLET:
                    self.is_dir[faces[ind]] = True
                    self.is_neu[faces[ind]] = False
                else:
                    raise ValueError("Boundary should be Dirichlet or Neumann")
                self.values[faces[ind]] = values[ind]

    def __repr__(self) -> str:
        num_cond = self.is_neu.sum() + self.is_dir.sum()
        s = (
            f"Boundary condition for pressure problem\n"
            f"Grid has {self.num_faces} faces, {self.bf.size} on the boundary.\n"
            f"Conditions set for {num_cond} faces.\n"
            f"Number of faces with Dirichlet conditions: {self.is_dir.sum()} \n"
            f"Number of faces with Neumann conditions: {self.is_neu.sum()} \n"
        )
        return s

    def copy(self) -> BoundaryCondition:
        """
        Create a deep copy of the boundary condition.

        Returns:
            BoundaryCondition: A deep copy of self. All attributes will also be copied.

        """
        # We don't call the init since we don't have access to the grid.
        bc = BoundaryCondition.__new__(BoundaryCondition)
        bc.num_faces = self.num_faces
        bc.bf = self.bf.copy()
        bc.is_neu = self.is_neu.copy()
        bc.is_dir = self.is_dir.copy()
        bc.values = self.values.copy()
        return bc

    def is_all_neumann(self) -> bool:
        """Whether the pressure is left undetermined by the boundary, that is, no face
        carries a Dirichlet condition."""
        return not np.any(self.is_dir)
