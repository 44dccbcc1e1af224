from abc import ABC, abstractmethod

from blast.tensor import Tensor


class Device(ABC):
    """
    Capability contract of an execution backend.

    A device builds graph nodes over tensors of one scalar kind. The CPU is the only
    implementation today.
    """

    @abstractmethod
    def add(self, t1: Tensor, t2: Tensor) -> Tensor:
        """Element-wise sum of two tensors of the same shape."""

    @abstractmethod
    def sub(self, t1: Tensor, t2: Tensor) -> Tensor:
        """Element-wise difference of two tensors of the same shape."""

    @abstractmethod
    def matmul(self, t1: Tensor, t2: Tensor) -> Tensor:
        """Matrix product of two rank-2 tensors."""
