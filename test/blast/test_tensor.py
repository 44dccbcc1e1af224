from unittest import TestCase

import numpy as np
import torch  # for comparison

from blast.config import DeviceConfig
from blast.device.cpu import CPU
from blast.errors import (
    CoordinateError,
    InvalidShapeError,
    RankError,
    SizeMismatchError,
    TensorError,
)
from blast.tensor import Tensor, equal, equal_shape, ones, op, zeros


class TestTensorConstruction(TestCase):
    def test_zeros(self):
        for shape in [(1,), (2, 2), (3, 1, 4)]:
            for dtype in [np.int32, np.uint8, np.float32, np.float64]:
                t = Tensor.zeros(shape, dtype=dtype)
                assert t.elements().dtype == np.dtype(dtype)
                assert len(t.elements()) == int(np.prod(shape))
                assert np.all(t.elements() == 0)

    def test_ones(self):
        t = Tensor.ones((2, 2), dtype=np.float32)
        assert len(t.elements()) == 4
        assert np.all(t.elements() == 1)

    def test_module_level_constructors(self):
        assert equal(zeros((2, 3)), Tensor.zeros((2, 3)))
        assert equal(ones((2, 3), dtype=np.int8), Tensor.ones((2, 3), dtype=np.int8))

    def test_new(self):
        t = Tensor.new((3, 2), [1, 2, 3, 4, 5, 6], dtype=np.uint8)
        assert t.shape == (3, 2)
        assert t.ndim == 2
        assert t.size == 6
        assert t.dtype == np.uint8
        assert t.is_leaf
        assert t.materialized
        assert t.parents == ()
        assert np.array_equal(t.elements(), [1, 2, 3, 4, 5, 6])

    def test_new_defaults_to_float32(self):
        assert Tensor.new((2,), [1, 2]).dtype == np.float32
        assert Tensor.new((2,), np.array([1, 2], dtype=np.int16)).dtype == np.int16

    def test_new_copies_elements(self):
        data = np.array([1.0, 2.0], dtype=np.float32)
        t = Tensor.new((2,), data)
        data[0] = 10.0
        assert t.elements()[0] == 1.0

    def test_invalid_dimension(self):
        with self.assertRaises(InvalidShapeError):
            Tensor.zeros((1, 0))
        with self.assertRaises(InvalidShapeError):
            Tensor.ones((0,))
        with self.assertRaises(InvalidShapeError):
            Tensor.new((2, 0), [])
        with self.assertRaises(InvalidShapeError):
            Tensor.rand((3, 0, 2))

    def test_non_integer_dimension(self):
        for shape in [(2.5, 1), (True, 2), (2, np.float32(3)), ("2", 1)]:
            with self.assertRaises(InvalidShapeError):
                Tensor.zeros(shape)
        with self.assertRaises(InvalidShapeError):
            Tensor.zeros(3)
        assert Tensor.zeros((np.int64(2), 3)).shape == (2, 3)

    def test_invalid_number_of_elements(self):
        with self.assertRaises(SizeMismatchError):
            Tensor.new((2, 2), [1, 2, 3])
        with self.assertRaises(SizeMismatchError):
            Tensor.new((2,), [1, 2, 3])

    def test_construction_errors_are_value_errors(self):
        self.assertRaises(ValueError, lambda: Tensor.new((2, 2), [1]))
        self.assertRaises(ValueError, lambda: Tensor.zeros((0,)))

    def test_random_tensor(self):
        t = Tensor.rand((10,), dtype=np.float32)
        all_elements = t.elements()
        assert not np.all(all_elements == all_elements[0])
        assert np.all((all_elements >= 0) & (all_elements < 1))

    def test_elements_or_forward_required(self):
        with self.assertRaises(TensorError):
            Tensor((2,))
        with self.assertRaises(TensorError):
            Tensor((1,), [1.0], forward=lambda: np.array([1.0]))


class TestTensorAccessors(TestCase):
    def setUp(self) -> None:
        self.matrix = Tensor.new((3, 2), [1, 2, 3, 4, 5, 6], dtype=np.uint8)
        self.cube = Tensor.new((2, 3, 4), np.arange(24, dtype=np.int32))

    def test_to_string(self):
        assert str(self.matrix) == "[[1 2 3] [4 5 6]]"
        assert (
            str(Tensor.new((2, 2, 2), np.arange(1, 9, dtype=np.int64)))
            == "[[[1 2] [3 4]] [[5 6] [7 8]]]"
        )
        assert str(Tensor.new((4,), np.array([1, 2, 3, 4], dtype=np.int8))) == "[1 2 3 4]"

    def test_get(self):
        assert self.matrix.get(0, 0) == 1
        assert self.matrix.get(2, 0) == 3
        assert self.matrix.get(0, 1) == 4
        assert self.matrix.get(2, 1) == 6

    def test_get_rank_three(self):
        # axis 0 varies fastest: offset = i + 2*j + 6*k
        assert self.cube.get(1, 0, 0) == 1
        assert self.cube.get(0, 1, 0) == 2
        assert self.cube.get(0, 0, 1) == 6
        assert self.cube.get(1, 2, 3) == 23

    def test_get_out_of_range(self):
        with self.assertRaises(CoordinateError):
            self.matrix.get(0)
        with self.assertRaises(CoordinateError):
            self.matrix.get(0, 0, 0)
        with self.assertRaises(CoordinateError):
            self.matrix.get(3, 0)
        with self.assertRaises(CoordinateError):
            self.matrix.get(0, 2)
        with self.assertRaises(IndexError):
            self.matrix.get(-1, 0)

    def test_get_non_integer_coordinate(self):
        for coords in [(1.5, 0), (True, 0), (0, "1")]:
            with self.assertRaises(CoordinateError):
                self.matrix.get(*coords)
        assert self.matrix.get(np.int64(2), np.int32(1)) == 6

    def test_transpose(self):
        t1 = Tensor.rand((3, 2), dtype=np.float32)
        t2 = t1.transpose()
        assert t2.shape == (2, 3)
        for i in range(3):
            for j in range(2):
                assert t1.get(i, j) == t2.get(j, i)
        assert equal(t2.transpose(), t1)

    def test_transpose_requires_rank_two(self):
        with self.assertRaises(RankError):
            self.cube.transpose()

    def test_equality_helpers(self):
        a = Tensor.new((2, 2), [1, 2, 3, 4])
        b = Tensor.new((2, 2), [1, 2, 3, 4])
        c = Tensor.new((4,), [1, 2, 3, 4])
        d = Tensor.new((2, 2), [1, 2, 3, 5])

        assert equal_shape(a, b)
        assert not equal_shape(a, c)
        assert equal(a, b)
        assert not equal(a, c)
        assert not equal(a, d)

    def test_node_identity(self):
        a = Tensor.new((2,), [1, 2])
        b = Tensor.new((2,), [1, 2])
        assert equal(a, b)
        assert a is not b
        assert len({a, b}) == 2

    def test_grad_is_lazily_zero_filled(self):
        t = Tensor.new((3,), [1, 2, 3], dtype=np.int16)
        assert t._grad is None
        grad = t.grad()
        assert grad.dtype == np.int16
        assert np.array_equal(grad, [0, 0, 0])
        assert t.grad() is grad


class TestLazyEvaluation(TestCase):
    def setUp(self) -> None:
        self.calls = 0
        self.leaf = Tensor.new((2,), [1.0, 2.0])

        def forward():
            self.calls += 1
            return self.leaf.elements() * 3

        self.node = op((2,), [self.leaf], forward)

    def test_forward_is_deferred(self):
        assert self.calls == 0
        assert not self.node.materialized
        assert not self.node.is_leaf
        assert self.node.parents == (self.leaf,)
        assert "pending" in repr(self.node)

    def test_forward_runs_once(self):
        first = self.node.elements()
        second = self.node.elements()
        assert self.calls == 1
        assert first is second
        assert np.array_equal(first, [3.0, 6.0])
        assert self.node.materialized

    def test_forward_result_is_cast_to_dtype(self):
        node = op((2,), [self.leaf], lambda: np.array([1, 2], dtype=np.int64))
        assert node.dtype == np.float32
        assert node.elements().dtype == np.float32

    def test_reading_forces_unevaluated_ancestors(self):
        child = op((2,), [self.node], lambda: self.node.elements() + 1)
        assert np.array_equal(child.elements(), [4.0, 7.0])
        assert self.node.materialized
        assert self.calls == 1

    def test_forward_with_wrong_size(self):
        node = op((3,), [self.leaf], lambda: self.leaf.elements())
        with self.assertRaises(SizeMismatchError):
            node.elements()


class TestBackward(TestCase):
    def setUp(self) -> None:
        self.cpu = CPU(np.float32, DeviceConfig(grad=True))

    def test_backward_seeds_ones(self):
        t = Tensor.new((2, 3), np.arange(6, dtype=np.float32))
        t.backward()
        assert np.array_equal(t.grad(), np.ones(6))

    def test_backward_without_grad_tracking(self):
        cpu = CPU(np.float32, DeviceConfig(grad=False))
        a = Tensor.new((2,), [1.0, 2.0])
        b = Tensor.new((2,), [3.0, 4.0])
        out = cpu.add(a, b)
        out.backward()
        assert np.array_equal(out.grad(), [1.0, 1.0])
        assert np.array_equal(a.grad(), [0.0, 0.0])
        assert np.array_equal(b.grad(), [0.0, 0.0])

    def test_same_tensor_as_both_operands(self):
        calls = []
        x = Tensor.ones((2, 2))

        def backward(out):
            calls.append(out)
            x._accumulate_grad(2 * out.grad())

        doubled = op((2, 2), [x], lambda: x.elements() * 2, backward)
        out = self.cpu.add(doubled, doubled)
        out.backward()

        assert calls == [doubled]
        assert np.array_equal(doubled.grad(), [2.0, 2.0, 2.0, 2.0])
        assert np.array_equal(x.grad(), [4.0, 4.0, 4.0, 4.0])

    def test_diamond_through_intermediate_nodes(self):
        # x feeds the output directly and through tanh(x), whichever operand comes first
        for first_direct in (True, False):
            w = Tensor.new((3,), [-0.5, 0.25, 1.5])
            x = self.cpu.tanh(w)
            y = self.cpu.tanh(x)
            out = self.cpu.add(x, y) if first_direct else self.cpu.add(y, x)
            out.backward()

            w_torch = torch.tensor(w.elements(), requires_grad=True)
            x_torch = torch.tanh(w_torch)
            out_torch = x_torch + torch.tanh(x_torch)
            out_torch.backward(torch.ones_like(out_torch))

            np.testing.assert_allclose(
                w.grad(), w_torch.grad.numpy(), rtol=1e-5, atol=1e-6
            )

    def test_two_independent_consumers(self):
        x = Tensor.new((2,), [1.0, 2.0])
        a = self.cpu.mul(x, 3.0)
        b = self.cpu.mul(x, 4.0)
        out = self.cpu.add(a, b)
        out.backward()
        assert np.array_equal(x.grad(), [7.0, 7.0])

    def test_backward_accumulates_across_calls(self):
        x = Tensor.new((2,), [1.0, 2.0])
        out = self.cpu.mul(x, 2.0)
        out.backward()
        out.backward()
        assert np.array_equal(x.grad(), [4.0, 4.0])

        x.zero_grad()
        out.backward()
        assert np.array_equal(x.grad(), [2.0, 2.0])

    def test_backward_without_reading_elements(self):
        x = Tensor.new((2,), [-1.0, 3.0])
        out = self.cpu.relu(x)
        assert not out.materialized
        out.backward()
        assert np.array_equal(x.grad(), [0.0, 1.0])
