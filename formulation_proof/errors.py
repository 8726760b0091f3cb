"""Exception taxonomy for the proof pipeline.

Request errors abort a verification before any stage runs. Tensor errors are
raised by the evaluator and degraded per item by batch callers. Tactic failures
are collected by derivation validation rather than propagated.
"""

from __future__ import annotations


class ProofAssistantError(Exception):
    """Base class for every error raised by formulation_proof."""


class InvalidRequest(ProofAssistantError):
    """A verification request is missing required fields."""


# -------------------- Tensor Evaluator --------------------


class TensorError(ProofAssistantError):
    """Base class for tensor evaluation failures."""


class UnknownOperation(TensorError):
    def __init__(self, name: str) -> None:
        self.operation = name
        super().__init__(f"Unknown tensor operation: {name}")


class ArityMismatch(TensorError):
    def __init__(self, name: str, expected: int, got: int) -> None:
        self.operation = name
        self.expected = expected
        self.got = got
        super().__init__(f"Operation {name} expects {expected} inputs, got {got}")


class InvalidResult(TensorError):
    def __init__(self, name: str, validator: str) -> None:
        self.operation = name
        self.validator = validator
        super().__init__(f"Operation {name} produced invalid result (failed {validator} check)")


class ShapeMismatch(TensorError):
    """Tensor shapes are incompatible, or data length disagrees with the shape."""


# -------------------- Formal Derivation Engine --------------------


class TacticFailure(ProofAssistantError):
    def __init__(self, tactic: str, reason: str) -> None:
        self.tactic = tactic
        self.reason = reason
        super().__init__(reason)


# -------------------- Hypergraph Integrator --------------------


class HypergraphError(ProofAssistantError):
    """Base class for hypergraph integration failures."""


class GraphNotFound(HypergraphError, KeyError):
    def __init__(self, proof_id: str) -> None:
        self.proof_id = proof_id
        super().__init__(f"Proof graph {proof_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class UnknownQuery(HypergraphError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown query type: {kind}")


class InvalidHyperedge(HypergraphError):
    """A hyperedge has fewer than two members or references a missing node."""
