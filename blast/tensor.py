import logging
from abc import abstractmethod
from numbers import Integral
from typing import (
    Any,
    Callable,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import numpy as np

from blast import scalar
from blast.errors import (
    CoordinateError,
    InvalidShapeError,
    RankError,
    SizeMismatchError,
    TensorError,
)

logger = logging.getLogger(__name__)

Shape = Tuple[int, ...]
ForwardFunc = Callable[[], np.ndarray]
BackwardFunc = Callable[["Tensor"], None]


def as_shape(shape: Sequence[int]) -> Shape:
    """
    Validate ``shape`` and return it as a tuple of ints.

    Args:
        shape (Sequence[int]): Dimension sizes, width first.

    Returns:
        Shape: The validated shape.

    Raises:
        InvalidShapeError: If ``shape`` is not a sequence or any dimension is not a
            positive integer.
    """
    try:
        dims = tuple(shape)
    except TypeError:
        raise InvalidShapeError(
            f"shape must be a sequence of dimensions, got {shape!r}"
        ) from None
    for i, d in enumerate(dims):
        if isinstance(d, bool) or not isinstance(d, Integral):
            raise InvalidShapeError(f"dimension {i} must be an integer, got {d!r}")
        if d <= 0:
            raise InvalidShapeError(f"dimension {i} must be positive, got {d}")
    return tuple(int(d) for d in dims)


def size(shape: Sequence[int]) -> int:
    """Number of elements held by a tensor of ``shape``."""
    n = 1
    for d in shape:
        n *= int(d)
    return n


class Function:
    """
    Base class for differentiable operations.

    Subclasses implement `output_shape`, `forward` and `backward`. The operation itself
    never runs at construction time: `apply` validates the shapes and returns a lazy
    `Tensor` whose forward closure calls `forward` the first time its elements are read.
    Subclasses live in `ops.py` and `functional.py`.
    """

    def __init__(self, *tensors: "Tensor"):
        """
        Initialize a `Function` with its input tensors.

        Args:
            *tensors (Tensor): The input tensors for this operation.
        """
        self.tensors = tensors

    @classmethod
    @abstractmethod
    def output_shape(cls, *tensors: "Tensor", **kwargs: Any) -> Shape:
        """
        Compute the shape of the result from the inputs' shapes.

        This is where every shape and rank rule of the operation is enforced, so that an
        inconsistent graph is refused when it is built rather than when it is evaluated.

        Raises:
            TensorError: If the inputs violate the operation's shape rule.
        """
        raise NotImplementedError("Output shape not implemented for this function")

    @abstractmethod
    def forward(self, *args: np.ndarray, **kwargs: Any) -> np.ndarray:
        """
        Perform the forward pass of this operation.

        It receives the flat element buffers of the input tensors, and may keep whatever
        it needs for the backward pass on `self`.

        Args:
            *args (np.ndarray): Flat element buffers of the input tensors.
            **kwargs (Any): Operation parameters given to `apply`.

        Returns:
            np.ndarray: The flat result buffer.
        """
        raise NotImplementedError("Forward pass not implemented for this function")

    @abstractmethod
    def backward(
        self, grad: np.ndarray
    ) -> Union[Optional[np.ndarray], Tuple[Optional[np.ndarray], ...]]:
        """
        Perform the backward pass of this operation.

        - "grad" is the gradient of the loss with respect to the *output* of this operation (dL/d[out]).
        - The return value is the gradient with respect to each *input* (dL/d[input]), in the
          order of `self.tensors`. A single array may be returned for unary operations.

        Args:
            grad (np.ndarray): Flat gradient buffer of the output.

        Returns:
            The gradient(s) with respect to the input(s); ``None`` skips an input.
        """
        raise NotImplementedError("Backward pass not implemented for this function")

    @classmethod
    def apply(cls, *tensors: "Tensor", grad: bool = False, **kwargs: Any) -> "Tensor":
        """
        Build the graph node of this function applied to the given tensors.

        This method:
        1) Validates the inputs and computes the output shape eagerly.
        2) Creates an instance of the function.
        3) Wraps its `forward` (and its `backward` when ``grad`` is set) into closures
           captured by a new lazy `Tensor` whose parents are ``tensors``.

        Args:
            *tensors (Tensor): Input tensors to the operation.
            grad (bool, optional): Whether to record the backward rule. Defaults to False.
            **kwargs (Any): Additional parameters passed to `output_shape` and `forward`.

        Returns:
            Tensor: The (not yet evaluated) result.
        """
        shape = cls.output_shape(*tensors, **kwargs)
        func = cls(*tensors)

        def forward() -> np.ndarray:
            return func.forward(*(t.elements() for t in tensors), **kwargs)

        backward: Optional[BackwardFunc] = None
        if grad:

            def backward(out: "Tensor") -> None:
                # forward keeps what the backward rule reads
                out.elements()
                grads = func.backward(out.grad())
                if not isinstance(grads, tuple):
                    grads = (grads,)
                for parent, g in zip(tensors, grads):
                    if g is not None:
                        parent._accumulate_grad(g)

        return Tensor.op(shape, tensors, forward, backward, dtype=tensors[0].dtype)


class Leaf:
    """Value cell of a tensor whose elements were supplied directly."""

    __slots__ = ("buffer",)

    def __init__(self, buffer: np.ndarray):
        self.buffer = buffer

    @property
    def materialized(self) -> bool:
        return True


class Computed:
    """Value cell of an operation result: a producer and, once run, its cached buffer."""

    __slots__ = ("forward", "buffer")

    def __init__(self, forward: ForwardFunc):
        self.forward = forward
        self.buffer: Optional[np.ndarray] = None

    @property
    def materialized(self) -> bool:
        return self.buffer is not None


class Tensor:
    """
    A `Tensor` is the core data structure of this library.

    It is at the same time a value (a flat buffer of ``size(shape)`` scalars) and a node of
    a computation graph (its parents plus the closures that compute it and push gradients
    back to them). Leaves hold their elements from the start. Operation results compute
    them on first read and cache them.

    Shapes are width first: axis 0 varies fastest in the flat buffer, so a rank-2 tensor
    of shape ``(w, h)`` has ``h`` rows of ``w`` elements.
    """

    def __init__(
        self,
        shape: Sequence[int],
        elements: Optional[Union[np.ndarray, Sequence[Any]]] = None,
        dtype: Any = None,
        parents: Sequence["Tensor"] = (),
        forward: Optional[ForwardFunc] = None,
        backward: Optional[BackwardFunc] = None,
    ):
        """
        Initialize a `Tensor`.

        Either ``elements`` (a leaf) or ``forward`` (an operation result) must be given.
        Prefer the `new`, `zeros`, `ones`, `rand` and `op` constructors.

        Args:
            shape (Sequence[int]): Dimension sizes, width first.
            elements (Optional[Union[np.ndarray, Sequence[Any]]]): Values in row-major
                order, flattened. Copied into a buffer of ``dtype``.
            dtype (Any): Scalar kind. Defaults to the elements' dtype when they are a
                numpy array, to the first parent's dtype for operation results, and to
                float32 otherwise.
            parents (Sequence[Tensor]): Tensors this one depends on.
            forward (Optional[ForwardFunc]): Producer of the elements.
            backward (Optional[BackwardFunc]): Accumulates this tensor's gradient into
                its parents' gradients.

        Raises:
            InvalidShapeError: If any dimension is not positive.
            SizeMismatchError: If the number of elements does not match the shape.
            ScalarKindError: If the dtype is not supported.
        """
        self._shape = as_shape(shape)
        self.parents: Tuple["Tensor", ...] = tuple(parents)
        self._backward = backward
        self._grad: Optional[np.ndarray] = None  # Lazily initialized

        if (elements is None) == (forward is None):
            raise TensorError("a tensor needs exactly one of elements or forward")

        if dtype is None:
            if isinstance(elements, np.ndarray):
                dtype = elements.dtype
            elif self.parents:
                dtype = self.parents[0].dtype
            else:
                dtype = scalar.DEFAULT_DTYPE
        self.dtype = scalar.as_dtype(dtype)

        self._value: Union[Leaf, Computed]
        if forward is not None:
            self._value = Computed(forward)
        else:
            buffer = np.array(elements, dtype=self.dtype).reshape(-1)
            if buffer.size != self.size:
                raise SizeMismatchError(
                    f"invalid number of elements expected={self.size} got={buffer.size}"
                )
            self._value = Leaf(buffer)

    ########### Constructors ###########
    @classmethod
    def new(
        cls,
        shape: Sequence[int],
        elements: Union[np.ndarray, Sequence[Any]],
        dtype: Any = None,
    ) -> "Tensor":
        """
        Create a leaf tensor from explicit elements.

        Args:
            shape (Sequence[int]): Dimension sizes, width first.
            elements (Union[np.ndarray, Sequence[Any]]): ``size(shape)`` values.
            dtype (Any, optional): Scalar kind. Defaults to the array's dtype, or float32.

        Returns:
            Tensor: The new leaf.

        Example:
            >>> t = Tensor.new((3, 2), [1, 2, 3, 4, 5, 6], dtype=np.uint8)
            >>> print(t)
            [[1 2 3] [4 5 6]]
        """
        return cls(shape, elements, dtype=dtype)

    @classmethod
    def zeros(cls, shape: Sequence[int], dtype: Any = np.float32) -> "Tensor":
        """Create a leaf tensor filled with the additive identity."""
        dims = as_shape(shape)
        return cls(dims, np.zeros(size(dims), dtype=scalar.as_dtype(dtype)))

    @classmethod
    def ones(cls, shape: Sequence[int], dtype: Any = np.float32) -> "Tensor":
        """Create a leaf tensor filled with the multiplicative identity."""
        dims = as_shape(shape)
        return cls(dims, np.ones(size(dims), dtype=scalar.as_dtype(dtype)))

    @classmethod
    def rand(cls, shape: Sequence[int], dtype: Any = np.float32) -> "Tensor":
        """
        Create a leaf tensor of random values.

        Integer kinds use their full range; floating kinds are drawn from ``[0, 1)``.
        See :func:`blast.scalar.random_elements`.
        """
        dims = as_shape(shape)
        return cls(dims, scalar.random_elements(size(dims), dtype))

    @classmethod
    def op(
        cls,
        shape: Sequence[int],
        parents: Sequence["Tensor"],
        forward: ForwardFunc,
        backward: Optional[BackwardFunc] = None,
        dtype: Any = None,
    ) -> "Tensor":
        """
        Create a graph node. This is the constructor used by operation implementers.

        Args:
            shape (Sequence[int]): Shape of the result, already validated against the
                operation's shape rule.
            parents (Sequence[Tensor]): Inputs of the operation, in order.
            forward (ForwardFunc): Zero-argument producer of the flat result buffer. It
                runs at most once, the first time the elements are read.
            backward (Optional[BackwardFunc]): Given the result tensor, accumulates its
                gradient into the parents' gradients. ``None`` disables backpropagation
                through this node.
            dtype (Any, optional): Scalar kind of the result. Defaults to the first
                parent's dtype.

        Returns:
            Tensor: The lazy result.
        """
        return cls(shape, dtype=dtype, parents=parents, forward=forward, backward=backward)

    ########### Accessors ###########
    @property
    def shape(self) -> Shape:
        """
        Return the shape of this tensor, width first.

        Returns:
            Shape: The shape of this tensor.
        """
        return self._shape

    @property
    def ndim(self) -> int:
        """Number of dimensions (the rank) of this tensor."""
        return len(self._shape)

    @property
    def size(self) -> int:
        """Number of elements of this tensor."""
        return size(self._shape)

    @property
    def is_leaf(self) -> bool:
        return isinstance(self._value, Leaf)

    @property
    def materialized(self) -> bool:
        """Whether the elements are available without running the forward closure."""
        return self._value.materialized

    def elements(self) -> np.ndarray:
        """
        Return the flat element buffer, computing and caching it on first access.

        Reading the elements of an operation result forces its forward closure, which in
        turn forces any ancestor that has not been evaluated yet. Later calls return the
        cached buffer.

        Returns:
            np.ndarray: The flat buffer of ``size(shape)`` elements.

        Raises:
            SizeMismatchError: If the forward closure produced the wrong number of elements.
        """
        value = self._value
        if isinstance(value, Computed) and value.buffer is None:
            buffer = np.asarray(value.forward()).astype(self.dtype, copy=False).reshape(-1)
            if buffer.size != self.size:
                raise SizeMismatchError(
                    f"forward produced {buffer.size} elements for shape {self._shape}"
                )
            value.buffer = buffer
        return value.buffer

    def grad(self) -> np.ndarray:
        """
        Return the flat gradient buffer, allocating it zero-filled on first access.

        Returns:
            np.ndarray: The gradient, same size and dtype as the elements.
        """
        if self._grad is None:
            self._grad = np.zeros(self.size, dtype=self.dtype)
        return self._grad

    def zero_grad(self) -> None:
        """Drop the gradient buffer so that the next backward pass starts from zero."""
        self._grad = None

    def get(self, *coords: int) -> Any:
        """
        Return the element located at ``coords``, one coordinate per axis, width first.

        Args:
            *coords (int): Coordinates.

        Returns:
            The element, as a numpy scalar of this tensor's dtype.

        Raises:
            CoordinateError: If the number of coordinates differs from the rank, or any
                coordinate is not an integer or is out of bounds for its axis.
        """
        if len(coords) != self.ndim:
            raise CoordinateError(
                f"got {len(coords)} coordinates for a tensor of rank {self.ndim}"
            )

        offset = 0
        stride = 1
        for axis, (coord, dim) in enumerate(zip(coords, self._shape)):
            if isinstance(coord, bool) or not isinstance(coord, Integral):
                raise CoordinateError(
                    f"coordinate {coord!r} for axis {axis} is not an integer"
                )
            if not 0 <= coord < dim:
                raise CoordinateError(
                    f"index {coord} out of bounds for axis {axis} of size {dim}"
                )
            offset += int(coord) * stride
            stride *= dim
        return self.elements()[offset]

    def transpose(self) -> "Tensor":
        """
        Return a new leaf holding this rank-2 tensor with its two axes swapped.

        Unlike the device's transpose, this evaluates immediately and is not part of the
        graph.

        Raises:
            RankError: If the tensor is not rank 2.
        """
        if self.ndim != 2:
            raise RankError("transpose only works for two dimensional tensors")
        w, h = self._shape
        return Tensor((h, w), self.elements().reshape(h, w).T, dtype=self.dtype)

    ########### Autodiff ###########
    def backward(self) -> None:
        """
        Compute gradients for all upstream nodes in the graph via backpropagation.

        1. The gradient of this tensor is seeded with ones (d(self)/d(self) = 1).
        2. A post-order traversal gathers every ancestor exactly once into a topologically
           sorted list, tracking a visited set that only lives for this call.
        3. The list is walked in reverse, invoking each node's backward closure once. A node
           therefore only runs after every node consuming it has deposited its
           contribution, so shared ancestors (diamonds) receive the sum over all paths.

        As a side effect, each ancestor accumulates into its gradient buffer. Nodes built
        without gradient tracking have no backward closure and stop the propagation.
        """
        self.grad().fill(1)

        topological_sorted_tensors = []
        visited = set()
        stack = [(self, False)]  # node, has_visited_parents flag

        while stack:
            node, has_visited_parents = stack.pop()
            if has_visited_parents:
                topological_sorted_tensors.append(node)
                continue
            if node in visited:
                continue
            visited.add(node)
            stack.append((node, True))
            # reversed so that parents are explored in their recorded order
            for parent in reversed(node.parents):
                if parent not in visited:
                    stack.append((parent, False))

        logger.debug(
            f"Backward pass over {len(topological_sorted_tensors)} nodes from shape {self._shape}"
        )

        for tensor in reversed(topological_sorted_tensors):
            if tensor._backward is not None:
                tensor._backward(tensor)

    def _accumulate_grad(self, grad: np.ndarray) -> None:
        """
        Add ``grad`` in place into this tensor's gradient buffer.

        Args:
            grad (np.ndarray): Contribution of one consumer, ``size(shape)`` values.
        """
        buffer = self.grad()
        buffer += np.asarray(grad).astype(self.dtype, copy=False).reshape(-1)

    ########### Rendering ###########
    def __str__(self) -> str:
        """
        Render the elements as nested brackets, grouping from the outermost dimension in.

        A tensor of shape ``(3, 2)`` holding ``1..6`` renders as ``[[1 2 3] [4 5 6]]``.
        """
        return _render(self.elements().reshape(self._shape[::-1] or (1,)))

    def __repr__(self) -> str:
        elements = self.elements() if self.materialized else "<pending>"
        return f"Tensor(shape={self._shape}, dtype={self.dtype}, elements={elements})"


def _render(values: np.ndarray) -> str:
    if values.ndim == 1:
        return "[" + " ".join(str(v) for v in values) + "]"
    return "[" + " ".join(_render(v) for v in values) + "]"


def equal_shape(t1: Tensor, t2: Tensor) -> bool:
    """Whether both tensors have the same rank and the same size along every axis."""
    return t1.shape == t2.shape


def equal(t1: Tensor, t2: Tensor) -> bool:
    """
    Whether both tensors have the same shape and identical elements.

    Both tensors are evaluated if needed.
    """
    return equal_shape(t1, t2) and bool(np.array_equal(t1.elements(), t2.elements()))


new = Tensor.new
zeros = Tensor.zeros
ones = Tensor.ones
rand = Tensor.rand
op = Tensor.op
