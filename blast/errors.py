"""
Exceptions raised when a tensor or a graph node cannot be built consistently.

Every error here is a caller programming error: it is raised eagerly, at construction
or call time, and never deferred into the lazy forward pass.
"""


class TensorError(ValueError):
    """Base class of every error raised by this package."""


class InvalidShapeError(TensorError):
    """A shape holds a dimension that is not a positive integer."""


class SizeMismatchError(TensorError):
    """A buffer's length does not match the number of elements of its shape."""


class ShapeMismatchError(TensorError):
    """An elementwise operation received tensors of different shapes."""


class RankError(TensorError):
    """A rank-2 operation received a tensor of another rank, or inner dimensions disagree."""


class CoordinateError(TensorError, IndexError):
    """Coordinates do not match the tensor's rank or fall outside an axis."""


class ScalarKindError(TensorError, TypeError):
    """A dtype is not a supported scalar kind, or operands mix scalar kinds."""
