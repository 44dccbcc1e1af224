import logging

import numpy as np
from tqdm import tqdm

from blast import scalar
from blast.config import DeviceConfig
from blast.device.cpu import CPU
from blast.logger import setup_logger
from blast.tensor import Tensor

logger = logging.getLogger(__name__)
np.random.seed(1337)
scalar.seed(1337)


def make_dataset(n_samples: int, n_features: int):
    """
    Noisy targets of a random linear model.

    With the width-first convention, ``X`` has shape ``(n_features, n_samples)``
    (one row per sample) and the targets have shape ``(1, n_samples)``.
    """
    true_weights = np.random.uniform(-2, 2, size=n_features).astype(np.float32)
    X = np.random.randn(n_samples, n_features).astype(np.float32)
    y = X @ true_weights + 0.01 * np.random.randn(n_samples).astype(np.float32)
    return (
        Tensor.new((n_features, n_samples), X),
        Tensor.new((1, n_samples), y),
        true_weights,
    )


def train(cpu: CPU, X: Tensor, y: Tensor, epochs: int = 200, learning_rate: float = 0.05):
    n_features, n_samples = X.shape
    weights = Tensor.rand((1, n_features))

    for epoch in tqdm(range(epochs), desc="Training"):
        predictions = cpu.matmul(X, weights)
        # sum of squared errors, scaled to a mean
        loss = cpu.mul(cpu.pow_int(cpu.sub(predictions, y), 2), 1.0 / n_samples)
        loss.backward()

        weights = Tensor.new(
            weights.shape, weights.elements() - learning_rate * weights.grad()
        )
        if epoch % (epochs // 10) == 0:
            logger.info(f"Epoch {epoch}: loss={loss.elements().sum():.6f}")

    return weights


if __name__ == "__main__":
    setup_logger()
    setup_logger(__name__)
    cpu = CPU(np.float32, DeviceConfig(grad=True))
    X, y, true_weights = make_dataset(n_samples=256, n_features=4)
    weights = train(cpu, X, y)
    logger.info(f"True weights:    {true_weights}")
    logger.info(f"Learned weights: {weights.elements()}")
