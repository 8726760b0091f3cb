"""Proof orchestration for formulation hypotheses.

``FormulationVerifier.verify`` walks a request through the pipeline stages

    validating -> generating -> realizing -> deriving -> validated

and converts any failure into a zero-confidence result at stage ``failed``.
Candidate steps are linked through named facts: the assumption step produces
``hypothesis``, ``skin_model``, ``formulation_parameters``, ``ingredient_<id>`` and
``layer_<id>``; every other step lists the facts it consumes in ``premises``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Sequence, Tuple
import itertools
import logging
import re
import time
import uuid

from .cognition import CognitiveSession, CognitiveAllocator
from .config import Settings, get_settings
from .errors import InvalidRequest, TensorError
from .formal import FormalDerivationEngine
from .model import (
    AlternativeFormulation,
    Evidence,
    FormulationConstraint,
    Ingredient,
    IngredientEffect,
    Proof,
    ProofStep,
    RelevanceContext,
    VerificationRequest,
    VerificationResult,
    default_skin_model,
)
from .reference import ReferenceStore
from .relevance import RelevanceRealizer
from .tensors import TensorEvaluator
from .utils import clip01, mean

logger = logging.getLogger(__name__)

STAGES = ("validating", "generating", "realizing", "deriving", "validated", "failed")

_PERCENT = re.compile(r"(\d+(?:\.\d+)?)%")


@dataclass
class PenetrationResult:
    ingredient_id: str
    penetration_depth: float  # micrometers
    confidence: float


@dataclass
class SafetyAssessment:
    is_safe: bool
    confidence: float
    warnings: List[str] = field(default_factory=list)
    max_safe_concentration: Optional[float] = None


@dataclass
class FormulationVerifier:
    settings: Settings = field(default_factory=get_settings)
    session: Optional[CognitiveSession] = None
    evaluator: Optional[TensorEvaluator] = None
    realizer: Optional[RelevanceRealizer] = None
    formal: FormalDerivationEngine = field(default_factory=FormalDerivationEngine)
    reference: Optional[ReferenceStore] = None

    def __post_init__(self) -> None:
        s = self.settings
        if self.session is None:
            self.session = CognitiveSession(CognitiveAllocator.from_settings(s))
        if self.evaluator is None:
            self.evaluator = TensorEvaluator.create_default(s.tensor_precision)
        if self.realizer is None:
            self.realizer = RelevanceRealizer(keep_threshold=s.realization_keep_threshold,
                                              history_size=s.context_history_size)

    # -------------------- Public API --------------------

    def verify(self, request: VerificationRequest) -> VerificationResult:
        proof_id = f"proof_{uuid.uuid4().hex[:12]}"
        stage = "validating"
        try:
            self._enter(proof_id, stage)
            self.validate_request(request)
            request = self._prepare(request)

            stage = self._enter(proof_id, "generating")
            candidates = self.generate_candidates(request)
            context = self.relevance_context(request)

            stage = self._enter(proof_id, "realizing")
            allocator = self.session.allocator
            allocator.update(context)
            analysis = self.realizer.realize(candidates, context, allocator.snapshot())
            allocation = allocator.allocate(analysis.relevant_steps, context)
            proof = self.build_proof(proof_id, analysis.relevant_steps, request)
            is_valid, confidence, warnings = self.check_soundness(proof)

            stage = self._enter(proof_id, "deriving")
            derivation = self.formal.generate_proof(request)
            try:
                warnings.extend(self.formal.validate(derivation).errors)
            finally:
                self.formal.release(derivation)

            recommendations = self.recommendations(proof)
            alternatives: List[AlternativeFormulation] = []
            if proof.validity < self.settings.alternatives_validity_threshold:
                alternatives = self.generate_alternative_formulations(request, ["safety", "efficacy"])

            stage = self._enter(proof_id, "validated")
            logger.info("Verified %r: valid=%s confidence=%.3f steps=%d", request.hypothesis, is_valid,
                        confidence, len(proof.steps), extra={"proof_id": proof_id, "stage": stage})
            return VerificationResult(
                is_valid=is_valid,
                confidence=confidence,
                proof=proof,
                warnings=warnings,
                recommendations=recommendations,
                alternative_formulations=alternatives,
                derivation=derivation,
                cognitive_load=allocation.cognitive_load,
                resource_allocation=allocation.resource_allocation,
                stage=stage,
            )
        except InvalidRequest as e:
            logger.warning("Rejected request at %s: %s", stage, e, extra={"proof_id": proof_id, "stage": stage})
            return self._failure(proof_id, request, str(e))
        except Exception as e:
            logger.exception("Verification failed at %s", stage, extra={"proof_id": proof_id, "stage": stage})
            return self._failure(proof_id, request, str(e))

    def verify_ingredient_safety(self, ingredient_id: str, concentration: float) -> SafetyAssessment:
        request = VerificationRequest(
            hypothesis=f"Ingredient {ingredient_id} is safe at {concentration:g}% concentration",
            ingredients=(Ingredient(id=ingredient_id, label=ingredient_id),),
            constraints=(FormulationConstraint("concentration", "max_safe_concentration", concentration, "lte"),),
            skin_model=default_skin_model(),
        )
        result = self.verify(request)
        return SafetyAssessment(
            is_safe=result.is_valid,
            confidence=result.confidence,
            warnings=list(result.warnings),
            max_safe_concentration=max_safe_concentration(result.proof, ingredient_id),
        )

    def model_skin_penetration(self, ingredients: Sequence[Ingredient]) -> List[PenetrationResult]:
        s = self.settings
        results = []
        for ing in ingredients:
            mw = ing.molecular_weight if ing.molecular_weight is not None else s.default_molecular_weight
            log_p = ing.log_p if ing.log_p is not None else s.default_log_p
            conc = ing.concentration if ing.concentration is not None else s.default_concentration
            try:
                depth = self.evaluator.calculate_penetration_depth(mw, log_p, conc).value()
                results.append(PenetrationResult(ing.id, depth, s.penetration_model_confidence))
            except TensorError as e:
                logger.warning("Penetration modeling failed for %s: %s", ing.id, e,
                               extra={"ingredient_id": ing.id, "operation": "penetration_depth"})
                results.append(PenetrationResult(ing.id, 0.0, 0.0))
        return results

    def generate_alternative_formulations(self, request: VerificationRequest,
                                          goals: Sequence[str]) -> List[AlternativeFormulation]:
        s = self.settings
        logger.debug("Generating alternatives for goals %s", list(goals))
        ingredients = tuple(request.ingredients)
        safer = tuple(i for i in ingredients if i.safety_rating != "low") or ingredients
        return [
            AlternativeFormulation(
                ingredients=safer,
                reasoning="Removed or reduced high-risk ingredients",
                expected_improvement="Improved safety profile",
                tradeoffs=("Potentially reduced efficacy",),
                confidence=s.reduced_risk_confidence,
            ),
            AlternativeFormulation(
                ingredients=ingredients,
                reasoning="Added penetration enhancers",
                expected_improvement="Improved ingredient delivery",
                tradeoffs=("Increased complexity",),
                confidence=s.enhanced_penetration_confidence,
            ),
            AlternativeFormulation(
                ingredients=ingredients[: s.simplified_ingredient_count],
                reasoning="Simplified ingredient list",
                expected_improvement="Reduced interaction complexity",
                tradeoffs=("Potentially reduced functionality",),
                confidence=s.simplified_confidence,
            ),
        ]

    # -------------------- Validation --------------------

    @staticmethod
    def validate_request(request: VerificationRequest) -> None:
        if not request.hypothesis or not request.ingredients:
            raise InvalidRequest("Invalid verification request: missing required fields")
        for ing in request.ingredients:
            if not ing.id or not ing.label:
                raise InvalidRequest(f"Invalid ingredient data: id={ing.id!r} label={ing.label!r}")
        for c in request.constraints:
            if not c.type or not c.parameter:
                raise InvalidRequest(f"Invalid constraint: type={c.type!r} parameter={c.parameter!r}")

    def _prepare(self, request: VerificationRequest) -> VerificationRequest:
        ingredients = request.ingredients
        if self.reference is not None:
            ingredients = self.reference.enrich_all(ingredients)
        return replace(request, ingredients=ingredients, skin_model=request.skin_model or default_skin_model())

    # -------------------- Candidate generation --------------------

    def generate_candidates(self, request: VerificationRequest) -> List[ProofStep]:
        clock = _StepClock(self.session.allocator.clock())
        steps = [self._assumption_step(request, clock())]
        steps += [self._safety_step(ing, request.constraints, clock()) for ing in request.ingredients]
        for a, b in itertools.combinations(request.ingredients, 2):
            steps.append(self._compatibility_step(a, b, clock()))
        steps += [self._effect_step(n, e, clock()) for n, e in enumerate(request.target_effects)]
        steps += [self._constraint_step(n, c, clock()) for n, c in enumerate(request.constraints)]
        penetration = self.model_skin_penetration(request.ingredients)
        steps += [self._penetration_step(ing, p, request, clock())
                  for ing, p in zip(request.ingredients, penetration)]
        logger.debug("Generated %d candidate steps", len(steps))
        return steps

    def _assumption_step(self, request: VerificationRequest, created_at: float) -> ProofStep:
        layers = [layer.id for layer in request.skin_model.layers]
        layers += [e.target_layer for e in request.target_effects if e.target_layer not in layers]
        produces = ("hypothesis", "skin_model", "formulation_parameters",
                    *(f"ingredient_{i.id}" for i in request.ingredients),
                    *(f"layer_{layer}" for layer in layers))
        return ProofStep(
            id="assumption",
            type="assumption",
            statement=f"Assume: {request.hypothesis}",
            rule="initial_hypothesis",
            confidence=self.settings.assumption_confidence,
            evidence=(Evidence("assumption_evidence", "theoretical", "user_hypothesis", 0.8, 1.0),),
            produces=produces,
            created_at=created_at,
        )

    def _safety_step(self, ing: Ingredient, constraints: Sequence[FormulationConstraint],
                     created_at: float) -> ProofStep:
        s = self.settings
        confidence = s.safety_rating_confidence.get(ing.safety_rating or "", s.safety_confidence)
        statement = f"Ingredient {ing.label} meets safety requirements"
        limit = concentration_limit(constraints, ing.id)
        if limit is not None:
            statement += f" at up to {limit:g}% concentration"
        step_id = f"safety_{ing.id}"
        return ProofStep(
            id=step_id,
            type="verification",
            statement=statement,
            premises=(f"ingredient_{ing.id}",),
            rule="safety_verification",
            confidence=confidence,
            evidence=(Evidence(f"{step_id}_evidence", "experimental", "safety_database", 0.9, 1.0),),
            produces=(f"safe_{ing.id}",),
            created_at=created_at,
        )

    def _relation(self, a: Ingredient, b: Ingredient) -> Optional[str]:
        if self.reference is not None:
            rel = self.reference.relation(a.id, b.id)
            if rel:
                return rel
        for x, y in ((a, b), (b, a)):
            if x.compatibility is not None:
                rel = x.compatibility.relation_to(y.id)
                if rel:
                    return rel
        return None

    def _compatibility_step(self, a: Ingredient, b: Ingredient, created_at: float) -> ProofStep:
        s = self.settings
        relation = self._relation(a, b)
        if relation == "avoid":
            verdict, interaction, confidence = "incompatible", "antagonistic", s.incompatibility_confidence
        elif relation == "synergistic":
            verdict, interaction, confidence = "compatible and synergistic", "synergistic", s.synergy_confidence
        else:
            verdict, interaction, confidence = "compatible", "neutral", s.compatibility_confidence
        conc_a, conc_b = (i.concentration if i.concentration is not None else s.default_concentration for i in (a, b))
        index = self.evaluator.calculate_interaction(
            self.evaluator.scalar_field(conc_a), self.evaluator.scalar_field(conc_b), interaction,
        ).value()
        step_id = f"compatibility_{a.id}_{b.id}"
        return ProofStep(
            id=step_id,
            type="verification",
            statement=f"Ingredients {a.label} and {b.label} are {verdict} (interaction index {index:.2f})",
            premises=(f"ingredient_{a.id}", f"ingredient_{b.id}"),
            rule="compatibility_check",
            confidence=confidence,
            evidence=(Evidence(f"{step_id}_evidence", "literature", "compatibility_studies", 0.8, 0.9),),
            produces=(f"compatible_{a.id}_{b.id}",) if relation != "avoid" else (),
            created_at=created_at,
        )

    def _effect_step(self, n: int, effect: IngredientEffect, created_at: float) -> ProofStep:
        step_id = f"effect_{n}_{effect.ingredient_id}"
        return ProofStep(
            id=step_id,
            type="verification",
            statement=f"{effect.effect_type} can be achieved in {effect.target_layer}",
            premises=(f"ingredient_{effect.ingredient_id}", f"layer_{effect.target_layer}"),
            rule="effect_verification",
            confidence=clip01(effect.confidence),
            evidence=(Evidence(f"{step_id}_evidence", "literature", "efficacy_studies", 0.8, 0.9),),
            produces=(f"effect_{effect.effect_type}",),
            created_at=created_at,
        )

    def _constraint_step(self, n: int, constraint: FormulationConstraint, created_at: float) -> ProofStep:
        step_id = f"constraint_{n}_{constraint.type}"
        return ProofStep(
            id=step_id,
            type="verification",
            statement=f"Constraint {constraint.label} is satisfied",
            premises=("formulation_parameters",),
            rule="constraint_verification",
            confidence=self.settings.constraint_confidence,
            evidence=(Evidence(f"{step_id}_evidence", "computational", "constraint_checker", 0.95, 1.0),),
            produces=(f"constraint_{constraint.label}",),
            created_at=created_at,
        )

    def _penetration_step(self, ing: Ingredient, result: PenetrationResult, request: VerificationRequest,
                          created_at: float) -> ProofStep:
        s = self.settings
        if result.confidence > 0:
            layer = reached_layer(request, result.penetration_depth)
            statement = (f"{ing.label} penetration depth calculated: "
                         f"{result.penetration_depth:.1f} micrometers, reaching {layer}")
            confidence = s.penetration_step_confidence
        else:
            statement = f"{ing.label} penetration depth could not be derived"
            confidence = s.penetration_failure_confidence
        step_id = f"penetration_{ing.id}"
        return ProofStep(
            id=step_id,
            type="deduction",
            statement=statement,
            premises=(f"ingredient_{ing.id}", "skin_model"),
            rule="penetration_modeling",
            confidence=confidence,
            evidence=(Evidence(f"{step_id}_evidence", "computational", "tensor_modeling", 0.8, 0.8),),
            produces=(f"penetration_{ing.id}",),
            created_at=created_at,
        )

    # -------------------- Context --------------------

    def relevance_context(self, request: VerificationRequest) -> RelevanceContext:
        s = self.settings
        skin_condition = request.target_effects[0].target_layer if request.target_effects else ""
        return RelevanceContext(
            current_goal=request.hypothesis,
            active_ingredients=tuple(i.id for i in request.ingredients),
            skin_condition=skin_condition or s.default_skin_condition,
            user_constraints=tuple(c.label for c in request.constraints),
            environmental_factors={
                "ph": constraint_value(request.constraints, "ph", s.default_ph),
                "temperature": constraint_value(request.constraints, "temperature", s.default_temperature),
            },
        )

    # -------------------- Proof assembly --------------------

    def build_proof(self, proof_id: str, steps: Sequence[ProofStep], request: VerificationRequest) -> Proof:
        ordered = order_steps(steps)
        conclusion = self._conclusion_step(ordered, request)
        ordered.append(conclusion)
        return Proof(
            id=proof_id,
            hypothesis=request.hypothesis,
            conclusion=conclusion.statement,
            steps=tuple(ordered),
            validity=proof_validity(ordered),
            completeness=proof_completeness(ordered, bool(request.target_effects)),
            cognitive_relevance=cognitive_relevance(ordered),
        )

    def _conclusion_step(self, ordered: Sequence[ProofStep], request: VerificationRequest) -> ProofStep:
        avg = mean(s.confidence for s in ordered)
        if avg > self.settings.conclusion_support_threshold:
            text = f'Therefore, the hypothesis "{request.hypothesis}" is supported by the evidence'
        else:
            text = f'The hypothesis "{request.hypothesis}" requires further investigation'
        return ProofStep(
            id="conclusion",
            type="conclusion",
            statement=text,
            premises=tuple(s.id for s in ordered),
            rule="logical_synthesis",
            confidence=clip01(avg),
            created_at=max((s.created_at for s in ordered), default=time.time()) + 1e-3,
        )

    def check_soundness(self, proof: Proof) -> Tuple[bool, float, List[str]]:
        s = self.settings
        warnings = []
        is_valid = True
        confidence = proof.validity
        if proof.validity < s.validity_threshold:
            is_valid = False
            warnings.append("Proof validity is below acceptable threshold")
        if proof.completeness < s.completeness_threshold:
            warnings.append("Proof may have logical gaps - consider additional verification steps")
            confidence *= s.completeness_penalty
        low = [st for st in proof.steps if st.confidence < s.low_confidence_threshold]
        if low:
            warnings.append(f"{len(low)} steps have low confidence - additional evidence recommended")
            confidence *= s.low_confidence_penalty
        return is_valid, min(confidence, 1.0), warnings

    def recommendations(self, proof: Proof) -> List[str]:
        s = self.settings
        out = []
        if proof.validity < s.recommend_validity_below:
            out.append("Consider adding more supporting evidence for ingredient interactions")
        if proof.completeness < s.recommend_completeness_below:
            out.append("Additional verification steps may strengthen the proof")
        safety = [st for st in proof.steps if "safety" in st.statement.lower() or "risk" in st.statement.lower()]
        if any(st.confidence < s.recommend_safety_below for st in safety):
            out.append("Review safety profiles of ingredients with lower confidence scores")
        for st in proof.steps:
            if st.rule == "compatibility_check" and " are incompatible" in st.statement:
                pair = st.statement.split(" are incompatible")[0].replace("Ingredients ", "", 1)
                out.append(f"Avoid combining {pair}: known incompatibility")
        return out

    # -------------------- Helpers --------------------

    def _enter(self, proof_id: str, stage: str) -> str:
        logger.debug("Entering stage %s", stage, extra={"proof_id": proof_id, "stage": stage})
        return stage

    @staticmethod
    def _failure(proof_id: str, request: Any, message: str) -> VerificationResult:
        hypothesis = getattr(request, "hypothesis", "") or ""
        return VerificationResult(
            is_valid=False,
            confidence=0.0,
            proof=Proof(id=f"failed_{proof_id}", hypothesis=hypothesis, conclusion="Verification failed"),
            warnings=[f"Verification failed: {message}"],
            recommendations=["Review input parameters and try again"],
            stage="failed",
        )


class _StepClock:
    """Strictly increasing timestamps for steps generated in one call."""

    def __init__(self, start: float, tick: float = 1e-3) -> None:
        self._next = start
        self._tick = tick

    def __call__(self) -> float:
        now = self._next
        self._next += self._tick
        return now


# -------------------- Proof metrics --------------------


def order_steps(steps: Sequence[ProofStep]) -> List[ProofStep]:
    """Assumptions first, then any step whose premises are all ordered ids or produced facts.

    Steps whose premises never resolve are dropped; conclusions are never ordered here.
    """
    ordered = [s for s in steps if s.type == "assumption"]
    known = {s.id for s in ordered} | {f for s in ordered for f in s.produces}
    pending = [s for s in steps if s.type not in ("assumption", "conclusion")]
    progress = True
    while pending and progress:
        progress = False
        remaining = []
        for step in pending:
            if all(p in known for p in step.premises):
                ordered.append(step)
                known.add(step.id)
                known.update(step.produces)
                progress = True
            else:
                remaining.append(step)
        pending = remaining
    if pending:
        logger.debug("Dropped %d steps with unresolved premises: %s", len(pending), [s.id for s in pending])
    return ordered


def proof_validity(steps: Sequence[ProofStep]) -> float:
    return clip01(mean(s.confidence for s in steps))


def proof_completeness(steps: Sequence[ProofStep], has_target_effects: bool) -> float:
    required = ["assumption", "verification", "conclusion"]
    if has_target_effects:
        required.append("deduction")
    present = {s.type for s in steps}
    return sum(1 for t in required if t in present) / len(required)


def cognitive_relevance(steps: Sequence[ProofStep]) -> float:
    scores = [mean((e.relevance for e in s.evidence), default=0.1) for s in steps]
    return clip01(mean(scores))


def concentration_limit(constraints: Sequence[FormulationConstraint], ingredient_id: str) -> Optional[float]:
    """Limit from the first concentration constraint naming this ingredient or the generic safe maximum."""
    for c in constraints:
        if c.parameter not in (ingredient_id, "max_safe_concentration"):
            continue
        if c.type == "concentration" and isinstance(c.value, (int, float)) and not isinstance(c.value, bool):
            return float(c.value)
    return None


def constraint_value(constraints: Sequence[FormulationConstraint], parameter: str, default: float) -> float:
    for c in constraints:
        if c.parameter == parameter:
            try:
                return float(c.value)
            except (TypeError, ValueError):
                logger.debug("Non-numeric %s constraint value %r, using default", parameter, c.value)
                return default
    return default


def reached_layer(request: VerificationRequest, depth: float) -> str:
    layers = sorted((request.skin_model or default_skin_model()).layers, key=lambda l: l.depth)
    if not layers:
        return "unknown layer"
    for layer in layers:
        if depth <= layer.depth:
            return layer.name
    return layers[-1].name


def max_safe_concentration(proof: Proof, ingredient_id: Optional[str] = None) -> Optional[float]:
    for step in proof.steps:
        if ingredient_id is not None and step.id != f"safety_{ingredient_id}":
            continue
        if step.rule == "safety_verification":
            match = _PERCENT.search(step.statement)
            if match:
                return float(match.group(1))
    return None
