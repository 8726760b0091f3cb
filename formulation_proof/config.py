"""Tunable constants for the proof pipeline, overridable from the environment.

Every confidence literal, threshold and capacity used by the pipeline is declared
here so callers and tests can refer to it by name. Values are read from
``FORMULATION_PROOF_*`` environment variables (or a ``.env`` file) on first use.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="FORMULATION_PROOF_", env_file=".env", case_sensitive=False, extra="ignore",
    )

    # Cognitive allocator
    attention_capacity: int = Field(default=7, ge=1)
    memory_decay_rate: float = Field(default=0.1, ge=0.0, lt=1.0)
    relevance_threshold: float = 0.5
    memory_time_constant_s: float = 3600.0
    context_history_size: int = 10

    # Relevance realizer
    realization_keep_threshold: float = 0.3

    # Soundness
    validity_threshold: float = 0.6
    completeness_threshold: float = 0.7
    completeness_penalty: float = 0.8
    low_confidence_threshold: float = 0.5
    low_confidence_penalty: float = 0.9
    conclusion_support_threshold: float = 0.7
    alternatives_validity_threshold: float = 0.7
    recommend_validity_below: float = 0.8
    recommend_completeness_below: float = 0.8
    recommend_safety_below: float = 0.7

    # Base step confidences
    assumption_confidence: float = 1.0
    safety_confidence: float = 0.85
    compatibility_confidence: float = 0.8
    synergy_confidence: float = 0.9
    incompatibility_confidence: float = 0.3
    constraint_confidence: float = 0.9
    penetration_step_confidence: float = 0.75
    penetration_failure_confidence: float = 0.3
    safety_rating_confidence: Dict[str, float] = Field(
        default_factory=lambda: {"high": 0.9, "medium": 0.75, "low": 0.45},
    )

    # Tensor modeling
    penetration_model_confidence: float = 0.8
    tensor_precision: float = 1e-6
    default_molecular_weight: float = 500.0
    default_log_p: float = 1.0
    default_concentration: float = 1.0

    # Alternative formulations
    reduced_risk_confidence: float = 0.7
    enhanced_penetration_confidence: float = 0.6
    simplified_confidence: float = 0.8
    simplified_ingredient_count: int = 3

    # Environment defaults
    default_ph: float = 7.0
    default_temperature: float = 25.0
    default_skin_condition: str = "epidermis"

    # Hypergraph
    hypergraph_analysis_depth: int = Field(default=5, ge=1)

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
