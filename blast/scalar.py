"""
Scalar kinds supported by tensors and the random generator registered for each.

A scalar kind is a numpy dtype. Each kind gets exactly one generator, registered once
at import time, so that :meth:`blast.tensor.Tensor.rand` looks it up instead of
inspecting types at runtime.
"""

import logging
from typing import Callable, Dict, Optional

import numpy as np

from blast.errors import ScalarKindError

logger = logging.getLogger(__name__)

SCALAR_KINDS = (
    np.dtype(np.int8),
    np.dtype(np.int16),
    np.dtype(np.int32),
    np.dtype(np.int64),
    np.dtype(np.uint8),
    np.dtype(np.uint16),
    np.dtype(np.uint32),
    np.dtype(np.uint64),
    np.dtype(np.float32),
    np.dtype(np.float64),
)

DEFAULT_DTYPE = np.dtype(np.float32)

RandomFunc = Callable[[int], np.ndarray]

_rng = np.random.default_rng()
_generators: Dict[np.dtype, RandomFunc] = {}


def as_dtype(dtype) -> np.dtype:
    """
    Normalize ``dtype`` into one of the supported scalar kinds.

    Args:
        dtype: Anything ``np.dtype`` accepts (``np.float32``, ``"int16"``, ...).

    Returns:
        np.dtype: The normalized dtype.

    Raises:
        ScalarKindError: If the dtype is not a supported scalar kind.
    """
    try:
        kind = np.dtype(dtype)
    except TypeError as e:
        raise ScalarKindError(f"unsupported scalar kind {dtype!r}") from e
    if kind not in SCALAR_KINDS:
        raise ScalarKindError(f"unsupported scalar kind {kind}")
    return kind


def seed(value: Optional[int] = None) -> None:
    """
    Reseed the generator used by :func:`random_elements`.

    Args:
        value (Optional[int]): The seed. ``None`` draws fresh entropy from the OS.
    """
    global _rng
    _rng = np.random.default_rng(value)


def register(*dtypes) -> Callable[[RandomFunc], RandomFunc]:
    def decorator(func: RandomFunc) -> RandomFunc:
        for dtype in dtypes:
            _generators[np.dtype(dtype)] = func
        return func

    return decorator


def _integer_generator(dtype: np.dtype) -> RandomFunc:
    info = np.iinfo(dtype)

    def generate(size: int) -> np.ndarray:
        # full range of the kind, both ends included
        return _rng.integers(info.min, info.max, size=size, dtype=dtype, endpoint=True)

    return generate


for _kind in SCALAR_KINDS:
    if _kind.kind in "iu":
        register(_kind)(_integer_generator(_kind))


@register(np.float32)
def _float32(size: int) -> np.ndarray:
    return _rng.random(size, dtype=np.float32)


@register(np.float64)
def _float64(size: int) -> np.ndarray:
    return _rng.random(size, dtype=np.float64)


def random_elements(size: int, dtype) -> np.ndarray:
    """
    Draw ``size`` random values of the given scalar kind.

    Integer kinds cover their full range; floating kinds are drawn from ``[0, 1)``.

    Args:
        size (int): Number of values to draw.
        dtype: The scalar kind.

    Returns:
        np.ndarray: A flat array of ``size`` values.
    """
    kind = as_dtype(dtype)
    return _generators[kind](size)
