"""Formulation proof package: cognitive verification of skincare formulation hypotheses.

Modules:
- model: requests, ingredients, skin model, proof steps and results
- tensors: tensor fields and the named numeric operation registry
- formal: theorem formulation and scripted derivations
- cognition: attention-bounded resource allocation and caller-owned sessions
- relevance: salience, coherence and elegance scoring of proof steps
- verifier: proof orchestration, safety and penetration helpers
- hypergraph: proof hypergraphs, reference integration and vulnerability analysis
- reference: read-only ingredient, product and supplier data
- config: environment-driven settings
- errors: exception taxonomy
- observability: logging setup
- utils: helpers and shared utilities
"""

from .cognition import CognitiveAllocator, CognitiveSession, CognitiveState
from .config import Settings, get_settings
from .hypergraph import HypergraphIntegrator, ProofHypergraph
from .model import Ingredient, ProofStep, VerificationRequest, VerificationResult
from .reference import ReferenceStore, default_reference_store
from .verifier import FormulationVerifier
