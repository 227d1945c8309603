"""
The module is intended to give access to a set of units and unified keywords.

To access the quantities, invoke ct.KEY.

All quantities are expressed in SI units; multiply a value by a unit to convert it to
SI, divide by the unit to convert back, e.g. ``5 * ct.BAR`` and ``dt / ct.DAY``.

"""

""" Units """
# SI Prefixes
NANO = 1e-9
MICRO = 1e-6
MILLI = 1e-3
CENTI = 1e-2
DECI = 1e-1
KILO = 1e3
MEGA = 1e6
GIGA = 1e9

# Time
SECOND = 1.0
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR
YEAR = 365 * DAY

# Weight
KILOGRAM = 1.0
GRAM = 1e-3 * KILOGRAM

# Length
METER = 1.0
CENTIMETER = CENTI * METER
MILLIMETER = MILLI * METER
KILOMETER = KILO * METER
FEET = 0.3048 * METER

# Volume
LITER = 1e-3 * METER**3
STB = 0.158987294928 * METER**3
"""Stock tank barrel."""

# Pressure related quantities
DARCY = 9.869233e-13
MILLIDARCY = MILLI * DARCY

PASCAL = 1.0
BAR = 100000 * PASCAL
PSI = 6894.75729316836 * PASCAL
ATMOSPHERIC_PRESSURE = 101325 * PASCAL

# Viscosity
POISE = 0.1 * PASCAL * SECOND
CENTIPOISE = CENTI * POISE

GRAVITY_ACCELERATION = 9.80665 * METER / SECOND**2

""" Keywords """
# Boundary condition types
DIRICHLET = "dir"
NEUMANN = "neu"

