"""Unit tests for formulation_proof.tensors: field construction, the operation
registry and every built-in kernel.
"""
from __future__ import annotations

import math

import numpy as np
import pytest

from formulation_proof.errors import ArityMismatch, InvalidResult, ShapeMismatch, UnknownOperation
from formulation_proof.tensors import TensorEvaluator, TensorField, TensorOperation, is_finite_field


@pytest.fixture()
def evaluator() -> TensorEvaluator:
    return TensorEvaluator.create_default()


def _field(values, dims=None) -> TensorField:
    values = list(values)
    return TensorField(dims or (len(values),), np.array(values, dtype=float))


# ---------------------------------------------------------------------------
# TensorField
# ---------------------------------------------------------------------------


class TestTensorField:
    def test_data_is_flattened(self) -> None:
        f = TensorField((2, 2), np.array([[1.0, 2.0], [3.0, 4.0]]))
        assert f.data.shape == (4,)
        assert f.size == 4

    def test_length_must_match_dimensions(self) -> None:
        with pytest.raises(ShapeMismatch):
            TensorField((2, 2), np.array([1.0, 2.0, 3.0]))

    def test_grid_reverses_dimensions(self) -> None:
        f = TensorField((3, 2), np.arange(6.0))
        assert f.grid().shape == (2, 3)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_default_operations_registered(self, evaluator: TensorEvaluator) -> None:
        assert set(evaluator.operations) == {
            "diffusion", "penetration_depth", "layer_transport", "tensor_add",
            "ingredient_interaction", "barrier_function", "effectiveness",
        }

    def test_unknown_operation(self, evaluator: TensorEvaluator) -> None:
        with pytest.raises(UnknownOperation):
            evaluator.execute("teleport", [])

    def test_arity_mismatch(self, evaluator: TensorEvaluator) -> None:
        with pytest.raises(ArityMismatch) as exc:
            evaluator.execute("tensor_add", [_field([1.0])])
        assert exc.value.expected == 2
        assert exc.value.got == 1

    def test_validator_rejects_result(self, evaluator: TensorEvaluator) -> None:
        # ln(0 + 1) == 0 gives a zero depth, which is not positive
        with pytest.raises(InvalidResult):
            evaluator.calculate_penetration_depth(500.0, 1.0, 0.0)

    def test_register_custom_operation(self, evaluator: TensorEvaluator) -> None:
        evaluator.register(TensorOperation(
            "double", ("x",), "y", lambda inputs: inputs[0].derive(inputs[0].data * 2, "doubled"),
            is_finite_field,
        ))
        out = evaluator.execute("double", [_field([1.5, 2.0])])
        assert out.data.tolist() == [3.0, 4.0]


# ---------------------------------------------------------------------------
# Kernels
# ---------------------------------------------------------------------------


class TestKernels:
    def test_penetration_depth_is_deterministic(self, evaluator: TensorEvaluator) -> None:
        depth = evaluator.calculate_penetration_depth(5000.0, 1.0, 1.0).value()
        assert depth == pytest.approx(100.0 * math.exp(-5.0) * 1.0 * math.log(2.0), abs=1e-6)

    def test_penetration_log_p_is_clamped(self, evaluator: TensorEvaluator) -> None:
        low = evaluator.calculate_penetration_depth(500.0, -3.0, 1.0).value()
        floor = evaluator.calculate_penetration_depth(500.0, 0.1, 1.0).value()
        assert low == pytest.approx(floor)

    @pytest.mark.parametrize("mw,conc", [(-1e6, 1.0), (500.0, -1.0), (500.0, -2.0), (500.0, 0.0)])
    def test_penetration_out_of_domain_is_invalid_result(self, evaluator: TensorEvaluator,
                                                         mw: float, conc: float) -> None:
        with pytest.raises(InvalidResult):
            evaluator.calculate_penetration_depth(mw, 1.0, conc)

    def test_tensor_add_mismatched_shapes(self, evaluator: TensorEvaluator) -> None:
        with pytest.raises(ShapeMismatch):
            evaluator.execute("tensor_add", [_field([1.0, 2.0]), _field([1.0, 2.0, 3.0])])

    def test_tensor_add(self, evaluator: TensorEvaluator) -> None:
        out = evaluator.execute("tensor_add", [_field([1.0, 2.0]), _field([0.5, 0.5])])
        assert out.data.tolist() == [1.5, 2.5]

    def test_diffusion_1d_keeps_boundaries(self, evaluator: TensorEvaluator) -> None:
        conc = _field([0.0, 0.0, 1.0, 0.0, 0.0])
        out = evaluator.model_diffusion(conc, evaluator.scalar_field(0.1), 1.0)
        assert out.data[0] == 0.0
        assert out.data[4] == 0.0
        assert out.data[2] == pytest.approx(0.8)
        assert out.data[1] == pytest.approx(0.1)

    def test_diffusion_2d_interior_only(self, evaluator: TensorEvaluator) -> None:
        conc = evaluator.concentration_field_2d(3, 3, 0.0)
        conc.data[4] = 1.0
        out = evaluator.model_diffusion(conc, evaluator.scalar_field(0.1), 1.0)
        assert out.data[4] == pytest.approx(0.6)
        assert out.data[0] == 0.0

    def test_synergistic_beats_antagonistic(self, evaluator: TensorEvaluator) -> None:
        a, b = evaluator.scalar_field(2.0), evaluator.scalar_field(3.0)
        syn = evaluator.calculate_interaction(a, b, "synergistic").value()
        ant = evaluator.calculate_interaction(a, b, "antagonistic").value()
        assert syn > ant
        assert syn == pytest.approx(7.2)

    def test_unknown_interaction_type_is_neutral(self, evaluator: TensorEvaluator) -> None:
        out = evaluator.calculate_interaction(evaluator.scalar_field(2.0), evaluator.scalar_field(3.0), "mystery")
        assert out.value() == pytest.approx(6.0)

    def test_layer_transport_broadcasts_scalar(self, evaluator: TensorEvaluator) -> None:
        out = evaluator.execute("layer_transport", [_field([3.0, 2.0]), _field([1.0]), evaluator.scalar_field(0.5)])
        assert out.data.tolist() == pytest.approx([1.0, 0.5])

    def test_multilayer_transport_requires_matching_counts(self, evaluator: TensorEvaluator) -> None:
        with pytest.raises(ShapeMismatch):
            evaluator.model_multilayer_transport([_field([1.0]), _field([0.5])], [evaluator.scalar_field(0.1)])

    def test_multilayer_transport(self, evaluator: TensorEvaluator) -> None:
        layers = [_field([1.0]), _field([0.4])]
        coeffs = [evaluator.scalar_field(0.5), evaluator.scalar_field(0.5)]
        out = evaluator.model_multilayer_transport(layers, coeffs)
        assert out.value() == pytest.approx(0.4 + 0.5 * 0.6)

    def test_barrier_function(self, evaluator: TensorEvaluator) -> None:
        out = evaluator.model_barrier_function(_field([0.9]), _field([0.2]))
        assert out.value() == pytest.approx(0.18)
        assert out.units == "cm/s"

    def test_effectiveness_is_capped(self, evaluator: TensorEvaluator) -> None:
        out = evaluator.calculate_effectiveness(_field([50.0, 10.0]), _field([2.0]), _field([2.0]))
        assert out.data.tolist() == pytest.approx([1.0, 0.4])

    def test_skin_field_3d_layers(self, evaluator: TensorEvaluator) -> None:
        f = evaluator.skin_field_3d(2, 2, 3, [0.1, 0.3])
        assert f.size == 12
        grid = f.grid()
        assert grid.shape == (3, 2, 2)
        assert np.all(grid[0] == 0.1)
        assert np.all(grid[2] == 0.3)
