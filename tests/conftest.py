"""Shared test fixtures for formulation_proof.

Fixtures defined here are available to all tests in the suite without
needing an explicit import.
"""
from __future__ import annotations

from typing import Sequence

import pytest

from formulation_proof.cognition import CognitiveAllocator, CognitiveSession
from formulation_proof.config import Settings
from formulation_proof.model import Evidence, ProofStep, VerificationRequest
from formulation_proof.reference import default_reference_store
from formulation_proof.sample_requests import hyaluronic_acid_request
from formulation_proof.verifier import FormulationVerifier


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_step(
    step_id: str,
    step_type: str = "verification",
    statement: str = "",
    premises: Sequence[str] = (),
    produces: Sequence[str] = (),
    confidence: float = 0.8,
    evidence: Sequence[Evidence] = (),
    created_at: float = 0.0,
) -> ProofStep:
    return ProofStep(
        id=step_id,
        type=step_type,
        statement=statement or f"{step_type} step {step_id}",
        premises=tuple(premises),
        produces=tuple(produces),
        confidence=confidence,
        evidence=tuple(evidence),
        created_at=created_at,
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def allocator(settings: Settings, clock: FakeClock) -> CognitiveAllocator:
    return CognitiveAllocator.from_settings(settings, clock=clock)


@pytest.fixture()
def verifier(settings: Settings) -> FormulationVerifier:
    return FormulationVerifier(settings=settings, session=CognitiveSession(CognitiveAllocator.from_settings(settings)))


@pytest.fixture()
def reference_verifier(settings: Settings) -> FormulationVerifier:
    return FormulationVerifier(
        settings=settings,
        session=CognitiveSession(CognitiveAllocator.from_settings(settings)),
        reference=default_reference_store(),
    )


@pytest.fixture()
def hyaluronic_request() -> VerificationRequest:
    return VerificationRequest.from_dict(hyaluronic_acid_request())
