"""The subpackage ``numerics`` contains the finite volume assembly of the pressure
residual and Jacobian, and simulator timers.

"""
