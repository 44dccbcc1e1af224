import numpy as np
import pytest
import torch

from blast import scalar
from blast.logger import setup_logger


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """
    Route the package's log records to a colored console handler for the whole session.
    Run with DEBUG=1 to see device and backward pass records.
    """
    setup_logger("blast")


@pytest.fixture(autouse=True)
def seed_random():
    """
    Seed numpy, torch and the tensor random generator before every test so that
    random tensors are reproducible.
    """
    np.random.seed(42)
    torch.manual_seed(42)
    scalar.seed(42)
