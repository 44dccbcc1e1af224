from typing import Any, Optional

import numpy as np

from blast.config import DeviceConfig
from blast.device.base import Device
from blast.device.cpu import CPU
from blast.tensor import Tensor


class Engine:
    """
    Entry point owning a single device and forwarding each call to it unmodified.
    """

    def __init__(self, dtype: Any = np.float32, config: Optional[DeviceConfig] = None):
        self.device: Device = CPU(dtype, config)

    def add(self, t1: Tensor, t2: Tensor) -> Tensor:
        return self.device.add(t1, t2)

    def sub(self, t1: Tensor, t2: Tensor) -> Tensor:
        return self.device.sub(t1, t2)

    def matmul(self, t1: Tensor, t2: Tensor) -> Tensor:
        return self.device.matmul(t1, t2)
