"""
Configuration values for devices.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class DeviceConfig:
    """
    Immutable configuration of a device, fixed when the device is constructed.

    Attributes:
        grad (bool): Whether operations record backward rules so that gradients can be
            accumulated by :meth:`blast.tensor.Tensor.backward`. Defaults to False.
    """

    grad: bool = False
