import logging
from typing import Any, Optional

import numpy as np

from blast.config import DeviceConfig
from blast.device.base import Device
from blast.errors import ScalarKindError
from blast.functional import Relu, Sigmoid, Tanh
from blast.ops import Add, MatMul, Mul, PowInt, Sub, Transpose
from blast.scalar import as_dtype
from blast.tensor import Tensor

logger = logging.getLogger(__name__)


class CPU(Device):
    """
    Device that performs computations using the processor instead of a dedicated
    accelerator.

    Every method validates its operands eagerly and returns a lazy `Tensor`; nothing is
    computed until the result's elements are read. When the configuration enables
    gradient tracking, each result also carries the exact backward rule of its
    operation, so that :meth:`blast.tensor.Tensor.backward` can accumulate gradients.

    Example:
        >>> cpu = CPU(np.float32, DeviceConfig(grad=True))
        >>> a = Tensor.new((3, 2), [1, 2, 3, 4, 5, 6])
        >>> b = Tensor.new((2, 3), [7, 8, 9, 10, 11, 12])
        >>> c = cpu.matmul(a, b)
        >>> c.elements()
        array([ 58.,  64., 139., 154.], dtype=float32)
    """

    def __init__(self, dtype: Any = np.float32, config: Optional[DeviceConfig] = None):
        """
        Args:
            dtype (Any, optional): Scalar kind of every tensor handled by this device.
                Defaults to float32.
            config (Optional[DeviceConfig], optional): Device configuration. Defaults to
                ``DeviceConfig()``, which does not track gradients.
        """
        self.dtype = as_dtype(dtype)
        self.config = config if config is not None else DeviceConfig()
        logger.debug(f"CPU device created: dtype={self.dtype}, grad={self.config.grad}")

    def _check_kind(self, *tensors: Tensor) -> None:
        for t in tensors:
            if t.dtype != self.dtype:
                raise ScalarKindError(
                    f"tensor of kind {t.dtype} given to a {self.dtype} device"
                )

    def add(self, t1: Tensor, t2: Tensor) -> Tensor:
        """
        Element-wise sum. Raises ShapeMismatchError if the shapes differ.
        """
        self._check_kind(t1, t2)
        return Add.apply(t1, t2, grad=self.config.grad)

    def sub(self, t1: Tensor, t2: Tensor) -> Tensor:
        """
        Element-wise difference. Raises ShapeMismatchError if the shapes differ.
        """
        self._check_kind(t1, t2)
        return Sub.apply(t1, t2, grad=self.config.grad)

    def matmul(self, t1: Tensor, t2: Tensor) -> Tensor:
        """
        Matrix product of two rank-2 tensors.

        Args:
            t1 (Tensor): Left operand of shape ``(w1, h1)``.
            t2 (Tensor): Right operand of shape ``(w2, w1)``.

        Returns:
            Tensor: The product, of shape ``(w2, h1)``.

        Raises:
            RankError: If either operand is not rank 2 or the inner dimensions differ.
        """
        self._check_kind(t1, t2)
        return MatMul.apply(t1, t2, grad=self.config.grad)

    def transpose(self, t: Tensor) -> Tensor:
        """
        Swap the axes of a rank-2 tensor. Raises RankError for any other rank.
        """
        self._check_kind(t)
        return Transpose.apply(t, grad=self.config.grad)

    def tanh(self, t: Tensor) -> Tensor:
        self._check_kind(t)
        return Tanh.apply(t, grad=self.config.grad)

    def sigmoid(self, t: Tensor) -> Tensor:
        self._check_kind(t)
        return Sigmoid.apply(t, grad=self.config.grad)

    def relu(self, t: Tensor) -> Tensor:
        self._check_kind(t)
        return Relu.apply(t, grad=self.config.grad)

    def pow_int(self, t: Tensor, n: int) -> Tensor:
        """
        Raise every element to the non-negative integer power ``n``.
        """
        self._check_kind(t)
        return PowInt.apply(t, grad=self.config.grad, n=n)

    def mul(self, t: Tensor, scalar: float) -> Tensor:
        """
        Scale every element by the constant ``scalar``.
        """
        self._check_kind(t)
        return Mul.apply(t, grad=self.config.grad, scalar=scalar)
