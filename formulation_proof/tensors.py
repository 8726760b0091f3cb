"""Tensor fields and the named-operation registry used for skin transport modeling.

Each operation declares its input roles, a numpy kernel and a post-condition
validator. ``TensorEvaluator.execute`` checks arity before running the kernel and
the validator after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import time
import numpy as np

from .errors import ArityMismatch, InvalidResult, ShapeMismatch, UnknownOperation

logger = logging.getLogger(__name__)

INTERACTION_COEFFICIENTS: Dict[str, float] = {
    "synergistic": 1.2,
    "antagonistic": 0.8,
    "competitive": 0.9,
}


@dataclass
class TensorField:
    """An n-dimensional field stored flat, row-major (last dimension fastest)."""

    dimensions: Tuple[int, ...]
    data: np.ndarray
    units: str = "unitless"
    description: str = ""
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.dimensions = tuple(int(d) for d in self.dimensions)
        self.data = np.asarray(self.data, dtype=float).reshape(-1)
        expected = int(np.prod(self.dimensions)) if self.dimensions else 0
        if self.data.size != expected:
            raise ShapeMismatch(
                f"Field data length {self.data.size} does not match dimensions {self.dimensions}"
            )

    @property
    def size(self) -> int:
        return int(self.data.size)

    def value(self) -> float:
        return float(self.data[0])

    def grid(self) -> np.ndarray:
        """Data as an array whose axes run slowest-first (dimensions reversed)."""
        return self.data.reshape(tuple(reversed(self.dimensions)))

    def derive(self, data: np.ndarray, description: str, units: Optional[str] = None) -> "TensorField":
        return TensorField(self.dimensions, data, units or self.units, description)


Kernel = Callable[[List[TensorField]], TensorField]
Validator = Callable[[TensorField], bool]


@dataclass
class TensorOperation:
    name: str
    input_roles: Tuple[str, ...]
    output_role: str
    kernel: Kernel
    validator: Validator
    validator_name: str = "finite"


# -------------------- Validators --------------------


def is_finite_field(f: TensorField) -> bool:
    return len(f.dimensions) > 0 and f.size > 0 and bool(np.all(np.isfinite(f.data)))


def is_non_negative_field(f: TensorField) -> bool:
    return is_finite_field(f) and bool(np.all(f.data >= 0))


def is_positive_field(f: TensorField) -> bool:
    return is_finite_field(f) and bool(np.all(f.data > 0))


def is_normalized_field(f: TensorField) -> bool:
    return is_finite_field(f) and bool(np.all((f.data >= 0) & (f.data <= 1)))


# -------------------- Kernels --------------------


def _same_shape(a: TensorField, b: TensorField) -> bool:
    return a.dimensions == b.dimensions


def _aligned(a: TensorField, b: TensorField, operation: str) -> np.ndarray:
    """Return b's data aligned to a: equal shapes, or b broadcast from one element."""
    if _same_shape(a, b):
        return b.data
    if b.size == 1:
        return np.full(a.size, b.data[0])
    raise ShapeMismatch(f"{operation}: shapes {a.dimensions} and {b.dimensions} are incompatible")


def diffusion_kernel(inputs: List[TensorField]) -> TensorField:
    concentration, diffusivity, time_field = inputs
    d = diffusivity.value() * time_field.value()
    c = concentration.grid()
    out = c.copy()
    if c.ndim == 1:
        out[1:-1] += d * (c[2:] - 2 * c[1:-1] + c[:-2])
    elif c.ndim == 2:
        out[1:-1, 1:-1] += d * (
            c[1:-1, 2:] + c[1:-1, :-2] + c[2:, 1:-1] + c[:-2, 1:-1] - 4 * c[1:-1, 1:-1]
        )
    else:
        raise ShapeMismatch(f"diffusion supports 1-D and 2-D fields, got {len(concentration.dimensions)}-D")
    return concentration.derive(out, "Diffused concentration field")


def penetration_depth_kernel(inputs: List[TensorField]) -> TensorField:
    mw, log_p, conc = (f.value() for f in inputs)
    base_penetration = 100.0  # micrometers
    # out-of-domain inputs give inf or nan, which the positive validator rejects
    with np.errstate(all="ignore"):
        mw_factor = np.exp(-mw / 1000.0)
        log_p_factor = min(2.0, max(0.1, log_p))
        conc_factor = np.minimum(2.0, np.log(conc + 1.0))
        depth = float(base_penetration * mw_factor * log_p_factor * conc_factor)
    return TensorField((1,), np.array([depth]), "micrometers", "Calculated penetration depth")


def layer_transport_kernel(inputs: List[TensorField]) -> TensorField:
    source, target, coefficient = inputs
    gradient = source.data - _aligned(source, target, "layer_transport")
    return source.derive(gradient * coefficient.value(), "Layer transport flux")


def tensor_add_kernel(inputs: List[TensorField]) -> TensorField:
    a, b = inputs
    if not _same_shape(a, b):
        raise ShapeMismatch(f"Tensor dimensions must match for addition: {a.dimensions} vs {b.dimensions}")
    return a.derive(a.data + b.data, "Tensor sum")


def ingredient_interaction_kernel(inputs: List[TensorField]) -> TensorField:
    first, second, interaction = inputs
    other = _aligned(first, second, "ingredient_interaction")
    return first.derive(first.data * other * interaction.value(), "Ingredient interaction field")


def barrier_function_kernel(inputs: List[TensorField]) -> TensorField:
    integrity, permeability = inputs
    perm = _aligned(integrity, permeability, "barrier_function")
    return integrity.derive(perm * integrity.data, "Effective barrier permeability", units="cm/s")


def effectiveness_kernel(inputs: List[TensorField]) -> TensorField:
    concentration, target, mechanism = inputs
    density = _aligned(concentration, target, "effectiveness")
    factor = _aligned(concentration, mechanism, "effectiveness")
    eff = np.minimum(1.0, concentration.data * density * factor / 100.0)
    return concentration.derive(eff, "Calculated effectiveness", units="unitless")


# -------------------- Evaluator --------------------


@dataclass
class TensorEvaluator:
    operations: Dict[str, TensorOperation] = field(default_factory=dict)
    precision: float = 1e-6

    @staticmethod
    def create_default(precision: float = 1e-6) -> "TensorEvaluator":
        ev = TensorEvaluator(precision=precision)
        for op in [
            TensorOperation("diffusion", ("concentration", "diffusivity", "time"), "concentration_new",
                            diffusion_kernel, is_non_negative_field, "non-negative"),
            TensorOperation("penetration_depth", ("molecular_weight", "log_p", "concentration"), "penetration_depth",
                            penetration_depth_kernel, is_positive_field, "positive"),
            TensorOperation("layer_transport", ("source_layer", "target_layer", "transport_coefficient"),
                            "transported_amount", layer_transport_kernel, is_non_negative_field, "non-negative"),
            TensorOperation("tensor_add", ("tensor_a", "tensor_b"), "sum",
                            tensor_add_kernel, is_finite_field, "finite"),
            TensorOperation("ingredient_interaction", ("ingredient_1", "ingredient_2", "interaction_type"),
                            "interaction_result", ingredient_interaction_kernel, is_non_negative_field, "non-negative"),
            TensorOperation("barrier_function", ("barrier_integrity", "permeability_map"), "effective_permeability",
                            barrier_function_kernel, is_positive_field, "positive"),
            TensorOperation("effectiveness", ("concentration_profile", "target_site", "mechanism"), "effectiveness",
                            effectiveness_kernel, is_normalized_field, "normalized"),
        ]:
            ev.register(op)
        return ev

    def register(self, op: TensorOperation) -> None:
        self.operations[op.name] = op

    def execute(self, name: str, inputs: Sequence[TensorField]) -> TensorField:
        op = self.operations.get(name)
        if op is None:
            raise UnknownOperation(name)
        if len(inputs) != len(op.input_roles):
            raise ArityMismatch(name, len(op.input_roles), len(inputs))
        result = op.kernel(list(inputs))
        if not op.validator(result):
            logger.debug("Operation %s rejected by %s validator", name, op.validator_name,
                         extra={"operation": name})
            raise InvalidResult(name, op.validator_name)
        return result

    # -------- Field constructors --------

    @staticmethod
    def scalar_field(value: float, units: str = "unitless", description: str = "") -> TensorField:
        return TensorField((1,), np.array([float(value)]), units, description)

    def time_field(self, seconds: float) -> TensorField:
        return self.scalar_field(seconds, "seconds", "Time parameter")

    def interaction_field(self, interaction_type: str) -> TensorField:
        value = INTERACTION_COEFFICIENTS.get(interaction_type, 1.0)
        return self.scalar_field(value, "unitless", f"{interaction_type} interaction coefficient")

    @staticmethod
    def concentration_field_2d(width: int, height: int, initial_value: float = 0.0) -> TensorField:
        return TensorField((width, height), np.full(width * height, float(initial_value)),
                           "mg/ml", "2D concentration field")

    @staticmethod
    def skin_field_3d(width: int, height: int, depth: int, layer_properties: Sequence[float]) -> TensorField:
        if not layer_properties:
            raise ShapeMismatch("At least one layer property is required")
        per_layer = [layer_properties[min(z, len(layer_properties) - 1)] for z in range(depth)]
        data = np.repeat(np.asarray(per_layer, dtype=float), width * height)
        return TensorField((width, height, depth), data, "tissue_property", "3D skin model field")

    # -------- Modeling helpers --------

    def model_diffusion(self, concentration: TensorField, diffusivity: TensorField, time_step: float) -> TensorField:
        return self.execute("diffusion", [concentration, diffusivity, self.time_field(time_step)])

    def calculate_penetration_depth(self, molecular_weight: float, log_p: float, concentration: float) -> TensorField:
        return self.execute("penetration_depth", [
            self.scalar_field(molecular_weight, "daltons", "Molecular weight"),
            self.scalar_field(log_p, "unitless", "Partition coefficient"),
            self.scalar_field(concentration, "mg/ml", "Concentration"),
        ])

    def model_multilayer_transport(self, layers: Sequence[TensorField],
                                   coefficients: Sequence[TensorField]) -> TensorField:
        if len(layers) != len(coefficients):
            raise ShapeMismatch("Number of layers must match number of transport coefficients")
        if not layers:
            raise ShapeMismatch("At least one layer is required")
        current = layers[0]
        for layer, coefficient in zip(layers[1:], coefficients[1:]):
            flux = self.execute("layer_transport", [current, layer, coefficient])
            current = self.execute("tensor_add", [layer, flux])
        return current

    def calculate_interaction(self, first: TensorField, second: TensorField, interaction_type: str) -> TensorField:
        return self.execute("ingredient_interaction", [first, second, self.interaction_field(interaction_type)])

    def model_barrier_function(self, integrity: TensorField, permeability: TensorField) -> TensorField:
        return self.execute("barrier_function", [integrity, permeability])

    def calculate_effectiveness(self, concentration: TensorField, target_site: TensorField,
                                mechanism: TensorField) -> TensorField:
        return self.execute("effectiveness", [concentration, target_site, mechanism])
