import numpy as np

from blast.tensor import Function, Shape, Tensor


########### Activation Functions ###############
class Relu(Function):
    """
    Rectified Linear Unit (ReLU) activation function.

    The ReLU function is defined as:
        $$
        ReLU(x) = max(0, x)
        $$
    """

    @classmethod
    def output_shape(cls, x: Tensor) -> Shape:
        return x.shape

    def forward(self, x: np.ndarray) -> np.ndarray:
        out = np.maximum(x, 0)
        self.mask = out > 0
        return out

    def backward(self, grad: np.ndarray) -> np.ndarray:
        """
        The gradient only flows where the output was strictly positive.

        Args:
            grad (np.ndarray): Upstream gradient.

        Returns:
            np.ndarray: The gradient of the loss with respect to the input.
        """
        return np.where(self.mask, grad, 0)


class Sigmoid(Function):
    r"""
    Sigmoid activation function.

    The sigmoid function is defined as:
        $$
        sigmoid(x) = \frac{1}{1 + e^{-x}}
        $$
    """

    @classmethod
    def output_shape(cls, x: Tensor) -> Shape:
        return x.shape

    def forward(self, x: np.ndarray) -> np.ndarray:
        """
        Computes the forward pass of the sigmoid function.

        Only $e^{-|x|}$ is evaluated, which never overflows, and the two halves of the
        domain are rebuilt from it.

        Args:
            x (np.ndarray): Input array.

        Returns:
            np.ndarray: The output after applying the sigmoid function.
        """
        if not np.issubdtype(x.dtype, np.floating):
            x = x.astype(np.float64)
        z = np.exp(-np.abs(x))
        self.out = np.where(x >= 0, 1 / (1 + z), z / (1 + z))
        return self.out

    def backward(self, grad: np.ndarray) -> np.ndarray:
        r"""
        Computes the backward pass from the output value rather than the input:
        $$
        \frac{d\,sigmoid(x)}{dx} = sigmoid(x) (1 - sigmoid(x))
        $$

        Args:
            grad (np.ndarray): Upstream gradient.

        Returns:
            np.ndarray: The gradient of the loss with respect to the input.
        """
        return grad * self.out * (1 - self.out)


class Tanh(Function):
    r"""
    Hyperbolic tangent (tanh) activation function.

    The tanh function is defined as:
        $$
        tanh(x) = \frac{e^x - e^{-x}}{e^x + e^{-x}}
        $$
    """

    @classmethod
    def output_shape(cls, x: Tensor) -> Shape:
        return x.shape

    def forward(self, x: np.ndarray) -> np.ndarray:
        self.out = np.tanh(x)
        return self.out

    def backward(self, grad: np.ndarray) -> np.ndarray:
        """
        Computes the backward pass of the tanh activation function.
        $$
        d(tanh(x))/dx = 1 - tanh(x)^2
        $$
        """
        return grad * (1 - self.out**2)
