"""
Arithmetic and movement operations, plus the two matrix kernels they share.

All buffers handled here are flat. A rank-2 tensor of shape ``(w, h)`` stores ``h`` rows
of ``w`` elements, so its numpy matrix view is ``buffer.reshape(h, w)``.
"""

from numbers import Integral, Real
from typing import Optional, Tuple

import numpy as np

from blast.errors import RankError, ShapeMismatchError, TensorError
from blast.tensor import Function, Shape, Tensor, equal_shape


def transpose(elements: np.ndarray, w: int, h: int) -> np.ndarray:
    """
    Swap the axes of a flat ``(w, h)`` matrix.

    Args:
        elements (np.ndarray): Flat buffer of ``h`` rows of ``w`` elements.
        w (int): Width of the input.
        h (int): Height of the input.

    Returns:
        np.ndarray: Flat buffer of ``w`` rows of ``h`` elements, i.e. shape ``(h, w)``.
    """
    return elements.reshape(h, w).T.reshape(-1)


def matmul(m1: np.ndarray, m2: np.ndarray, w: int, h: int, l: int) -> np.ndarray:
    """
    Multiply two flat matrices, the second one given already transposed.

    ``w`` and ``h`` are the width and height of the output and ``l`` the common
    dimension. ``m1`` holds ``h`` rows of ``l`` elements and ``m2`` holds ``w`` rows of
    ``l`` elements, so the contraction runs over the contiguous axis of both operands.

    Returns:
        np.ndarray: Flat buffer of ``h`` rows of ``w`` elements.
    """
    a = m1.reshape(h, l)
    b = m2.reshape(w, l)
    return np.einsum("ik,jk->ij", a, b).reshape(-1)


def _power(x: np.ndarray, n: int) -> np.ndarray:
    # repeated multiplication keeps integer kinds exact
    result = np.ones_like(x)
    for _ in range(n):
        result = result * x
    return result


def _require_same_shape(t1: Tensor, t2: Tensor) -> Shape:
    if not equal_shape(t1, t2):
        raise ShapeMismatchError(
            f"tensors must have the same shape, got {t1.shape} and {t2.shape}"
        )
    return t1.shape


"""
Binary Ops
"""


class Add(Function):
    """Element-wise addition of two tensors of the same shape."""

    @classmethod
    def output_shape(cls, x: Tensor, y: Tensor) -> Shape:
        return _require_same_shape(x, y)

    def forward(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        return x + y

    def backward(self, grad: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Addition is linear, so the gradient with respect to both inputs is the incoming
        gradient unchanged.
        """
        return grad, grad


class Sub(Function):
    """Element-wise subtraction of two tensors of the same shape."""

    @classmethod
    def output_shape(cls, x: Tensor, y: Tensor) -> Shape:
        return _require_same_shape(x, y)

    def forward(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        return x - y

    def backward(self, grad: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return grad, np.negative(grad)


class MatMul(Function):
    """
    Matrix multiplication of two rank-2 tensors.

    With the width-first convention, ``x`` of shape ``(w1, h1)`` is an ``h1 x w1`` matrix
    and ``y`` of shape ``(w2, h2)`` is an ``h2 x w2`` matrix. The product is defined when
    ``w1 == h2`` and has shape ``(w2, h1)``.
    """

    @classmethod
    def output_shape(cls, x: Tensor, y: Tensor) -> Shape:
        if x.ndim != 2 or y.ndim != 2:
            raise RankError(
                f"matrix multiplication needs two rank 2 tensors, got ranks {x.ndim} and {y.ndim}"
            )
        w1, h1 = x.shape
        w2, h2 = y.shape
        if w1 != h2:
            raise RankError(
                f"inner dimensions do not match for shapes {x.shape} and {y.shape}"
            )
        return (w2, h1)

    def forward(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """
        Compute the product by transposing ``y`` once and contracting rows against rows.

        Args:
            x (np.ndarray): Flat buffer of the left operand.
            y (np.ndarray): Flat buffer of the right operand.

        Returns:
            np.ndarray: Flat buffer of the product.
        """
        self.x = x
        self.y = y
        w1, h1 = self.tensors[0].shape
        w2, h2 = self.tensors[1].shape
        return matmul(x, transpose(y, w2, h2), w2, h1, w1)

    def backward(self, grad: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        r"""
        Compute the gradient for the matrix multiplication operation.

        For $z = x \cdot y$:
            $$ \text{grad}_x = \text{grad} \cdot y^T $$
            $$ \text{grad}_y = x^T \cdot \text{grad} $$

        Args:
            grad (np.ndarray): Flat gradient of the product, shape ``(w2, h1)``.

        Returns:
            Tuple[np.ndarray, np.ndarray]: The gradients with respect to ``x`` and ``y``.
        """
        w1, h1 = self.tensors[0].shape
        w2, h2 = self.tensors[1].shape

        # matmul takes its second operand transposed, and (y^T)^T is y itself
        grad_x = matmul(grad, self.y, h2, h1, w2)
        grad_y = matmul(transpose(self.x, w1, h1), transpose(grad, w2, h1), w2, w1, h1)
        return grad_x, grad_y


"""
Unary Ops
"""


class Transpose(Function):
    """Swap the two axes of a rank-2 tensor."""

    @classmethod
    def output_shape(cls, x: Tensor) -> Shape:
        if x.ndim != 2:
            raise RankError(
                f"transpose only works for two dimensional tensors, got rank {x.ndim}"
            )
        w, h = x.shape
        return (h, w)

    def forward(self, x: np.ndarray) -> np.ndarray:
        w, h = self.tensors[0].shape
        return transpose(x, w, h)

    def backward(self, grad: np.ndarray) -> np.ndarray:
        w, h = self.tensors[0].shape
        return transpose(grad, h, w)


class Mul(Function):
    """Scale every element of a tensor by a constant."""

    @classmethod
    def output_shape(cls, x: Tensor, scalar: float) -> Shape:
        if np.ndim(scalar) != 0 or not isinstance(scalar, Real):
            raise TensorError(f"expected a real scalar constant, got {scalar!r}")
        return x.shape

    def forward(self, x: np.ndarray, scalar: float) -> np.ndarray:
        self.scalar = scalar
        return x * scalar

    def backward(self, grad: np.ndarray) -> np.ndarray:
        return grad * self.scalar


class PowInt(Function):
    """Raise every element of a tensor to a non-negative integer power."""

    @classmethod
    def output_shape(cls, x: Tensor, n: int) -> Shape:
        if isinstance(n, bool) or not isinstance(n, Integral) or n < 0:
            raise TensorError(f"exponent must be a non-negative integer, got {n!r}")
        return x.shape

    def forward(self, x: np.ndarray, n: int) -> np.ndarray:
        """
        Compute $x^n$ by repeated multiplication: ``n == 0`` gives ones and ``n == 1``
        the input itself.
        """
        self.x = x
        self.n = int(n)
        return _power(x, self.n)

    def backward(self, grad: np.ndarray) -> Optional[np.ndarray]:
        r"""
        $$
        \frac{\partial x^n}{\partial x} = n \cdot x^{n-1}
        $$
        """
        if self.n == 0:
            return None
        return self.n * _power(self.x, self.n - 1) * grad
