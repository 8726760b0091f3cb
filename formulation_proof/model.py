from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import re
import time


STEP_TYPES = ("assumption", "deduction", "verification", "conclusion")
EVIDENCE_TYPES = ("experimental", "theoretical", "computational", "literature")
CONSTRAINT_TYPES = ("concentration", "ph", "temperature", "compatibility", "regulatory")
CONSTRAINT_OPERATORS = ("eq", "lt", "gt", "lte", "gte", "in", "not_in")


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, so camelCase and snake_case inputs both work."""
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


def _as_float(value: Any) -> Optional[float]:
    """Coerce numbers and strings such as "~1,000 Da" to float; None when absent."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"-?\d+(?:\.\d+)?", str(value).replace(",", ""))
    return float(match.group(0)) if match else None


# -------------------- Ingredients and effects --------------------


@dataclass(frozen=True)
class IngredientCompatibility:
    synergistic: Tuple[str, ...] = ()
    avoid: Tuple[str, ...] = ()
    neutral: Tuple[str, ...] = ()

    def relation_to(self, other_id: str) -> Optional[str]:
        if other_id in self.avoid:
            return "avoid"
        if other_id in self.synergistic:
            return "synergistic"
        if other_id in self.neutral:
            return "neutral"
        return None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "IngredientCompatibility":
        return IngredientCompatibility(
            synergistic=tuple(data.get("synergistic", ())),
            avoid=tuple(data.get("avoid", ())),
            neutral=tuple(data.get("neutral", ())),
        )


@dataclass(frozen=True)
class Ingredient:
    """A candidate ingredient. Only ``id`` and ``label`` are required."""

    id: str
    label: str
    inci_name: Optional[str] = None
    category: Optional[str] = None
    molecular_weight: Optional[float] = None
    log_p: Optional[float] = None
    concentration: Optional[float] = None
    safety_rating: Optional[str] = None
    functions: Tuple[str, ...] = ()
    compatibility: Optional[IngredientCompatibility] = None
    pricing: Optional[float] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Ingredient":
        compat = data.get("compatibility")
        return Ingredient(
            id=str(data.get("id") or ""),
            label=str(data.get("label") or ""),
            inci_name=_pick(data, "inci_name", "inciName"),
            category=data.get("category"),
            molecular_weight=_as_float(_pick(data, "molecular_weight", "molecularWeight")),
            log_p=_as_float(_pick(data, "log_p", "logP")),
            concentration=_as_float(data.get("concentration")),
            safety_rating=_pick(data, "safety_rating", "safetyRating"),
            functions=tuple(data.get("functions", ())),
            compatibility=IngredientCompatibility.from_dict(compat) if compat else None,
            pricing=_as_float(_pick(data, "pricing", "pricing_zar")),
        )


@dataclass(frozen=True)
class IngredientEffect:
    ingredient_id: str
    target_layer: str
    effect_type: str
    magnitude: float = 1.0
    timeframe: float = 0.0  # minutes
    confidence: float = 0.8
    mechanism_of_action: str = ""

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "IngredientEffect":
        return IngredientEffect(
            ingredient_id=str(_pick(data, "ingredient_id", "ingredientId", default="")),
            target_layer=str(_pick(data, "target_layer", "targetLayer", default="")),
            effect_type=str(_pick(data, "effect_type", "effectType", default="")),
            magnitude=float(_pick(data, "magnitude", default=1.0)),
            timeframe=float(_pick(data, "timeframe", default=0.0)),
            confidence=float(_pick(data, "confidence", default=0.8)),
            mechanism_of_action=str(_pick(data, "mechanism_of_action", "mechanismOfAction", default="")),
        )


@dataclass(frozen=True)
class IngredientInteraction:
    source: str
    target: str
    type: str = "unknown"  # synergistic | antagonistic | neutral | unknown
    mechanism: str = ""
    confidence: float = 0.5
    evidence_level: str = "theoretical"  # theoretical | in-vitro | in-vivo | clinical


@dataclass(frozen=True)
class FormulationConstraint:
    type: str
    parameter: str
    value: Union[float, str] = 0.0
    operator: str = "eq"
    required: bool = True

    @property
    def label(self) -> str:
        return f"{self.type}:{self.parameter}"

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "FormulationConstraint":
        return FormulationConstraint(
            type=str(data.get("type") or ""),
            parameter=str(data.get("parameter") or ""),
            value=data.get("value", 0.0),
            operator=str(data.get("operator", "eq")),
            required=bool(data.get("required", True)),
        )


# -------------------- Skin model --------------------


@dataclass(frozen=True)
class SkinLayer:
    id: str
    name: str
    depth: float  # micrometers from surface
    cell_types: Tuple[str, ...] = ()
    permeability: float = 0.0
    ph: float = 7.0
    functions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SkinBarrier:
    id: str
    location: str
    type: str  # lipid | protein | enzymatic
    strength: float
    selectivity: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TransportMechanism:
    id: str
    type: str  # passive | active | facilitated
    pathway: str  # transcellular | intercellular | appendage
    efficiency: float
    molecular_weight_limit: float


@dataclass(frozen=True)
class SkinModel:
    layers: Tuple[SkinLayer, ...] = ()
    barriers: Tuple[SkinBarrier, ...] = ()
    transport: Tuple[TransportMechanism, ...] = ()

    def layer(self, layer_id: str) -> Optional[SkinLayer]:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SkinModel":
        layers = tuple(
            SkinLayer(
                id=str(l["id"]),
                name=str(l.get("name", l["id"])),
                depth=float(l.get("depth", 0.0)),
                cell_types=tuple(_pick(l, "cell_types", "cellTypes", default=())),
                permeability=float(l.get("permeability", 0.0)),
                ph=float(l.get("ph", 7.0)),
                functions=tuple(l.get("functions", ())),
            )
            for l in data.get("layers", [])
        )
        barriers = tuple(
            SkinBarrier(
                id=str(b["id"]),
                location=str(b.get("location", "")),
                type=str(b.get("type", "lipid")),
                strength=float(b.get("strength", 0.0)),
                selectivity=tuple(b.get("selectivity", ())),
            )
            for b in data.get("barriers", [])
        )
        transport = tuple(
            TransportMechanism(
                id=str(t["id"]),
                type=str(t.get("type", "passive")),
                pathway=str(t.get("pathway", "transcellular")),
                efficiency=float(t.get("efficiency", 0.0)),
                molecular_weight_limit=float(_pick(t, "molecular_weight_limit", "molecularWeightLimit", default=500.0)),
            )
            for t in data.get("transport", [])
        )
        return SkinModel(layers=layers, barriers=barriers, transport=transport)


def default_skin_model() -> SkinModel:
    """Three-layer model used when a request does not carry its own."""
    return SkinModel(
        layers=(
            SkinLayer("stratum_corneum", "Stratum Corneum", 15, ("corneocytes",), 0.1, 5.5, ("barrier", "protection")),
            SkinLayer("epidermis", "Epidermis", 100, ("keratinocytes", "melanocytes"), 0.3, 6.5, ("renewal", "pigmentation")),
            SkinLayer("dermis", "Dermis", 2000, ("fibroblasts", "endothelial"), 0.7, 7.2, ("structure", "nutrition")),
        ),
        barriers=(SkinBarrier("lipid_barrier", "stratum_corneum", "lipid", 0.9, ("lipophilic",)),),
        transport=(TransportMechanism("passive_diffusion", "passive", "transcellular", 0.6, 500),),
    )


# -------------------- Request --------------------


@dataclass(frozen=True)
class VerificationRequest:
    hypothesis: str
    ingredients: Tuple[Ingredient, ...] = ()
    target_effects: Tuple[IngredientEffect, ...] = ()
    constraints: Tuple[FormulationConstraint, ...] = ()
    skin_model: Optional[SkinModel] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "VerificationRequest":
        skin = _pick(data, "skin_model", "skinModel")
        return VerificationRequest(
            hypothesis=str(data.get("hypothesis") or ""),
            ingredients=tuple(Ingredient.from_dict(i) for i in data.get("ingredients") or []),
            target_effects=tuple(
                IngredientEffect.from_dict(e) for e in _pick(data, "target_effects", "targetEffects", default=[])
            ),
            constraints=tuple(FormulationConstraint.from_dict(c) for c in data.get("constraints") or []),
            skin_model=SkinModel.from_dict(skin) if isinstance(skin, dict) else skin,
        )


@dataclass(frozen=True)
class RelevanceContext:
    current_goal: str
    active_ingredients: Tuple[str, ...] = ()
    skin_condition: str = ""
    user_constraints: Tuple[str, ...] = ()
    environmental_factors: Dict[str, Any] = field(default_factory=dict)


# -------------------- Proof artifacts --------------------


@dataclass(frozen=True)
class Evidence:
    id: str
    type: str
    source: str
    reliability: float
    relevance: float
    citation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id, "type": self.type, "source": self.source,
            "reliability": self.reliability, "relevance": self.relevance,
        }
        if self.citation:
            out["citation"] = self.citation
        return out


@dataclass(frozen=True)
class ProofStep:
    """One typed unit of reasoning.

    ``premises`` name the facts (or step ids) the step consumes and ``produces``
    names the facts it establishes. Ordering links steps through these names only.
    """

    id: str
    type: str
    statement: str
    premises: Tuple[str, ...] = ()
    rule: str = ""
    confidence: float = 0.0
    evidence: Tuple[Evidence, ...] = ()
    produces: Tuple[str, ...] = ()
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.type not in STEP_TYPES:
            raise ValueError(f"Unknown proof step type: {self.type}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Step confidence out of range: {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "statement": self.statement,
            "premises": list(self.premises),
            "produces": list(self.produces),
            "rule": self.rule,
            "confidence": self.confidence,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True)
class Proof:
    id: str
    hypothesis: str
    conclusion: str
    steps: Tuple[ProofStep, ...] = ()
    validity: float = 0.0
    completeness: float = 0.0
    cognitive_relevance: float = 0.0

    def steps_of_type(self, step_type: str) -> List[ProofStep]:
        return [s for s in self.steps if s.type == step_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hypothesis": self.hypothesis,
            "conclusion": self.conclusion,
            "steps": [s.to_dict() for s in self.steps],
            "validity": self.validity,
            "completeness": self.completeness,
            "cognitiveRelevance": self.cognitive_relevance,
        }


@dataclass(frozen=True)
class AlternativeFormulation:
    ingredients: Tuple[Ingredient, ...]
    reasoning: str
    expected_improvement: str
    tradeoffs: Tuple[str, ...]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredients": [{"id": i.id, "label": i.label} for i in self.ingredients],
            "reasoning": self.reasoning,
            "expectedImprovement": self.expected_improvement,
            "tradeoffs": list(self.tradeoffs),
            "confidence": self.confidence,
        }


@dataclass
class VerificationResult:
    is_valid: bool
    confidence: float
    proof: Proof
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    alternative_formulations: List[AlternativeFormulation] = field(default_factory=list)
    derivation: Optional[Any] = None
    cognitive_load: float = 0.0
    resource_allocation: Dict[str, float] = field(default_factory=dict)
    stage: str = "validated"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "confidence": self.confidence,
            "proof": self.proof.to_dict(),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "alternativeFormulations": [a.to_dict() for a in self.alternative_formulations],
        }
