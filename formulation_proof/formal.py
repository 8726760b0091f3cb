"""Scripted formal derivations over formulation theorems.

A request is turned into one theorem proposition and a fixed tactic skeleton is
replayed against it. ``apply`` checks that its target names a known axiom and then
passes the goal through; ``unfold``, ``simpl``, ``left`` and ``right`` pass it
through unchanged. The skeleton is an annotation of the informal proof, not a
search or unification procedure.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import itertools
import logging

from .errors import TacticFailure
from .model import FormulationConstraint, VerificationRequest

logger = logging.getLogger(__name__)

TERM_KINDS = ("variable", "function", "proposition", "predicate", "lambda")
TACTICS = ("intros", "apply", "unfold", "simpl", "assumption", "split", "left", "right")


@dataclass(frozen=True)
class FormalTerm:
    kind: str
    name: str
    args: Tuple["FormalTerm", ...] = ()
    body: Optional["FormalTerm"] = None
    sort: Optional[str] = None  # Prop | Set | Type

    def __post_init__(self) -> None:
        if self.kind not in TERM_KINDS:
            raise ValueError(f"Unknown term kind: {self.kind}")

    def __str__(self) -> str:
        if self.kind == "lambda" and self.body is not None:
            params = " ".join(str(a) for a in self.args)
            return f"fun {params} => {self.body}"
        if not self.args:
            return self.name
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


def var(name: str) -> FormalTerm:
    return FormalTerm("variable", name)


def pred(name: str, *args: FormalTerm) -> FormalTerm:
    return FormalTerm("predicate", name, tuple(args))


def prop(name: str, *args: FormalTerm) -> FormalTerm:
    return FormalTerm("proposition", name, tuple(args), sort="Prop")


@dataclass(frozen=True)
class FormalProposition:
    id: str
    statement: FormalTerm
    hypothesis: Tuple[FormalTerm, ...] = ()
    conclusion: Optional[FormalTerm] = None
    context: Tuple[FormalTerm, ...] = ()


@dataclass(frozen=True)
class Tactic:
    name: str
    target: Optional[str] = None
    arguments: Tuple[FormalTerm, ...] = ()

    def __str__(self) -> str:
        return f"{self.name} {self.target}" if self.target else self.name


@dataclass
class Derivation:
    id: str
    proposition: str
    tactics: List[Tactic] = field(default_factory=list)
    closed: bool = False
    assumptions: List[str] = field(default_factory=list)

    def script(self) -> str:
        lines = [f"{t}." for t in self.tactics]
        if self.closed:
            lines.append("Qed.")
        return "\n".join(lines)


@dataclass
class DerivationCheck:
    valid: bool
    errors: List[str] = field(default_factory=list)
    remaining_goals: int = 0


# -------------------- Axioms --------------------


def default_axioms() -> Dict[str, FormalProposition]:
    """Axioms keyed by the name ``apply`` uses to reach them."""
    axioms = [
        FormalProposition(
            "penetration_model", prop("FickLaw"),
            conclusion=pred("PenetrationRate", var("diffusion_coefficient"), var("concentration_gradient")),
        ),
        FormalProposition(
            "diffusion_equation", prop("DiffusionEquation"),
            conclusion=pred("ConcentrationProfile", var("time"), var("depth")),
        ),
        FormalProposition(
            "barrier_function", prop("BarrierIntegrity"),
            conclusion=pred("PermeabilityCoefficient", var("barrier_state")),
        ),
        FormalProposition(
            "safety_verification", pred("ConcentrationLimit", var("ingredient"), var("max_safe_concentration")),
            conclusion=prop("SafeForTopicalUse", var("ingredient")),
        ),
        FormalProposition(
            "compatibility_check", pred("PHCompatibility", var("ingredient1"), var("ingredient2"), var("ph_range")),
            conclusion=prop("CompatibleIngredients", var("ingredient1"), var("ingredient2")),
        ),
    ]
    return {a.id: a for a in axioms}


def constraint_term(constraint: FormulationConstraint) -> FormalTerm:
    return pred(f"Constraint_{constraint.type}", var(constraint.parameter), var(str(constraint.value)))


# -------------------- Engine --------------------


@dataclass
class FormalDerivationEngine:
    axioms: Dict[str, FormalProposition] = field(default_factory=default_axioms)
    theorems: Dict[str, FormalProposition] = field(default_factory=dict)
    _ids: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1), repr=False)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    # -------- Theorem formulation --------

    def formulate_theorem(self, request: VerificationRequest) -> FormalProposition:
        theorem = FormalProposition(
            id=self._next_id("main_theorem"),
            statement=prop("FormulationValid", var(request.hypothesis)),
            hypothesis=tuple(pred("Ingredient", var(i.id)) for i in request.ingredients)
            + tuple(constraint_term(c) for c in request.constraints),
            conclusion=prop("AchievesTargetEffects", *(var(e.effect_type) for e in request.target_effects)),
        )
        self.theorems[theorem.id] = theorem
        return theorem

    def safety_proposition(self, ingredient_id: str, concentration: float,
                           constraints: Iterable[FormulationConstraint]) -> FormalProposition:
        return FormalProposition(
            id=self._next_id(f"safety_{ingredient_id}"),
            statement=pred("IsSafe", var(ingredient_id), var(str(concentration))),
            hypothesis=tuple(constraint_term(c) for c in constraints),
            conclusion=prop("SafeForTopicalUse", var(ingredient_id)),
        )

    def penetration_proposition(self, ingredients: Sequence[Tuple[str, float, float]]) -> FormalProposition:
        """``ingredients`` holds (id, molecular weight, logP) triples."""
        args = tuple(
            FormalTerm("function", "Penetration", (var(i), var(str(mw)), var(str(lp))))
            for i, mw, lp in ingredients
        )
        return FormalProposition(
            id=self._next_id("penetration"),
            statement=pred("PenetrationModel", *args),
            hypothesis=(self.axioms["penetration_model"].statement,),
            conclusion=prop("ValidPenetrationProfile", var("skin_layer_distribution")),
        )

    # -------- Tactics --------

    def apply_tactic(self, tactic: Tactic, goal: FormalProposition) -> List[FormalProposition]:
        name = tactic.name
        if name == "intros":
            focus = goal.conclusion if goal.conclusion is not None else goal.statement
            return [replace(goal, statement=focus, hypothesis=(), context=goal.context + goal.hypothesis)]
        if name == "apply":
            if tactic.target not in self.axioms:
                raise TacticFailure(name, f"No axiom named {tactic.target!r}")
            return [goal]
        if name in ("unfold", "simpl", "left", "right"):
            return [goal]
        if name == "split":
            return [goal, goal]
        if name == "assumption":
            return []
        raise TacticFailure(name, f"Unknown tactic: {name}")

    def _replay(self, theorem: FormalProposition, tactics: Sequence[Tactic]) -> Tuple[List[FormalProposition], List[str]]:
        goals = [theorem]
        errors: List[str] = []
        for tactic in tactics:
            try:
                goals = [sub for g in goals for sub in self.apply_tactic(tactic, g)]
            except TacticFailure as e:
                errors.append(f"Tactic {tactic.name} failed: {e}")
        return goals, errors

    # -------- Derivations --------

    def generate_proof(self, request: VerificationRequest) -> Derivation:
        theorem = self.formulate_theorem(request)
        tactics = [
            Tactic("intros"),
            Tactic("apply", "safety_verification", (self.axioms["safety_verification"].statement,)),
            Tactic("apply", "penetration_model", (self.axioms["penetration_model"].statement,)),
            Tactic("apply", "compatibility_check", (self.axioms["compatibility_check"].statement,)),
            Tactic("simpl"),
            Tactic("assumption"),
        ]
        goals, errors = self._replay(theorem, tactics)
        derivation = Derivation(
            id=f"proof_{theorem.id}",
            proposition=theorem.id,
            tactics=tactics,
            closed=not errors and not goals,
            assumptions=[h.name for h in theorem.hypothesis],
        )
        logger.debug("Generated derivation %s (closed=%s)", derivation.id, derivation.closed)
        return derivation

    def validate(self, derivation: Derivation) -> DerivationCheck:
        theorem = self.theorems.get(derivation.proposition)
        if theorem is None:
            return DerivationCheck(False, [f"Unknown theorem: {derivation.proposition}"])
        goals, errors = self._replay(theorem, derivation.tactics)
        if goals and not derivation.closed:
            errors.append("Proof incomplete: unresolved goals remain")
        return DerivationCheck(not errors, errors, len(goals))

    def release(self, derivation: Derivation) -> None:
        """Forget the theorem behind a derivation once it has been validated."""
        self.theorems.pop(derivation.proposition, None)
