"""Error taxonomy for scene construction and ray validation.

Errors are raised at construction time so that invalid geometry never
reaches the render loop. Once a World has been committed no exception is
expected while tracing.
"""


class RayTracerError(Exception):
    """Base class for all ray tracer errors."""


class SingularMatrix(RayTracerError, ArithmeticError):
    """A transform matrix has no inverse and cannot place an object."""


class ConstructionError(RayTracerError, ValueError):
    """A primitive was constructed with geometrically invalid parameters."""


class InvalidRay(RayTracerError, ValueError):
    """A ray direction is zero-length or not finite."""
