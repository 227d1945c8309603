"""The subpackage ``params`` contains boundary conditions, fluid properties with
constant compressibility, and the bundle of fluid quantities consumed by the
assembly."""
