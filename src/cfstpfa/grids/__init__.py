"""The subpackage ``grids`` contains the grid class used by the assembly, together
with constructors of structured grids and two-point transmissibilities.

The assembly only relies on the cell-face incidence of a grid. Geometric quantities
are needed to compute transmissibilities, and are provided by the structured grids.

"""
