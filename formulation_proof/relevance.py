"""Relevance realization: salience, coherence and elegance of candidate proof steps.

Scores are computed per step against the whole candidate set, the request context
and a snapshot of the cognitive state. Steps whose combined score exceeds the keep
threshold are returned, most relevant first.
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence
import logging
import re

from .cognition import CognitiveState
from .model import ProofStep, RelevanceContext
from .utils import clip01, contains, mean, variance

logger = logging.getLogger(__name__)


@dataclass
class SaliencePattern:
    name: str
    pattern: re.Pattern
    weight: float


@dataclass
class CoherenceRule:
    name: str
    condition: Callable[[Sequence[ProofStep]], bool]
    boost: float
    description: str


@dataclass
class EleganceMetric:
    name: str
    calculate: Callable[[ProofStep], float]
    weight: float
    description: str


def default_salience_patterns() -> List[SaliencePattern]:
    return [
        SaliencePattern("ingredient", re.compile(r"ingredient|compound|chemical|molecule", re.I), 0.2),
        SaliencePattern("effect", re.compile(r"effect|benefit|improve|enhance|reduce|increase", re.I), 0.25),
        SaliencePattern("safety", re.compile(r"safe|safety|toxic|harm|risk|danger", re.I), 0.3),
        SaliencePattern("interaction", re.compile(r"interact|synerg|antagon|compatible|incompatible", re.I), 0.2),
        SaliencePattern("mechanism", re.compile(r"mechanism|pathway|process|reaction|binding", re.I), 0.15),
        SaliencePattern("skin_layer", re.compile(r"epidermis|dermis|subcutaneous|stratum|barrier", re.I), 0.25),
        SaliencePattern("penetration", re.compile(r"penetrat|absorb|permeab|transport|diffus", re.I), 0.2),
    ]


def _has_types(*types: str) -> Callable[[Sequence[ProofStep]], bool]:
    return lambda steps: all(any(s.type == t for s in steps) for t in types)


def default_coherence_rules() -> List[CoherenceRule]:
    return [
        CoherenceRule("assumption_before_conclusion", _has_types("assumption", "conclusion"), 0.2,
                      "Logical flow from assumptions to conclusions"),
        CoherenceRule("verification_supports_conclusion", _has_types("verification", "conclusion"), 0.15,
                      "Verification steps support conclusions"),
        CoherenceRule("consistent_confidence_levels",
                      lambda steps: variance([s.confidence for s in steps]) < 0.1, 0.1,
                      "Consistent confidence levels across steps"),
    ]


def reliability(step: ProofStep) -> float:
    if not step.evidence:
        return 0.1
    return mean(e.reliability for e in step.evidence)


def default_elegance_metrics() -> List[EleganceMetric]:
    return [
        EleganceMetric("simplicity", lambda s: max(0.0, 1.0 - 0.1 * (len(s.premises) + len(s.evidence))), 0.3,
                       "Fewer premises and evidence items"),
        EleganceMetric("confidence", lambda s: s.confidence, 0.4, "Higher confidence"),
        EleganceMetric("evidence_quality", reliability, 0.2, "Reliable evidence"),
        EleganceMetric("clarity", lambda s: min(1.0, 100.0 / max(len(s.statement), 1)), 0.1,
                       "Concise statements"),
    ]


NARRATIVE_KEYWORDS: Dict[str, tuple] = {
    "assumption": ("assume",),
    "verification": ("verify", "check", "meets", "compatible", "satisfied", "achieved"),
    "deduction": ("calculated", "derived"),
    "conclusion": ("therefore", "supported"),
}


@dataclass
class RelevanceAnalysis:
    relevant_steps: List[ProofStep]
    salience: Dict[str, float]
    coherence: Dict[str, float]
    elegance: Dict[str, float]
    overall: Dict[str, float]


@dataclass
class RelevanceRealizer:
    keep_threshold: float = 0.3
    history_size: int = 10
    salience_patterns: List[SaliencePattern] = field(default_factory=default_salience_patterns)
    coherence_rules: List[CoherenceRule] = field(default_factory=default_coherence_rules)
    elegance_metrics: List[EleganceMetric] = field(default_factory=default_elegance_metrics)
    weights: Dict[str, float] = field(default_factory=lambda: {"salience": 0.4, "coherence": 0.4, "elegance": 0.2})
    history: Deque[RelevanceContext] = field(default_factory=deque)

    def realize(self, candidates: Sequence[ProofStep], context: RelevanceContext,
                state: Optional[CognitiveState] = None) -> RelevanceAnalysis:
        state = state or CognitiveState()
        self._remember(context)

        salience = {s.id: self.salience(s, context, state) for s in candidates}
        coherence = {s.id: self.coherence(s, candidates, context) for s in candidates}
        elegance = {s.id: self.elegance(s) for s in candidates}
        overall = {
            s.id: clip01(self.weights["salience"] * salience[s.id]
                         + self.weights["coherence"] * coherence[s.id]
                         + self.weights["elegance"] * elegance[s.id])
            for s in candidates
        }
        kept = [s for s in candidates if overall[s.id] > self.keep_threshold]
        kept = sorted(kept, key=lambda s: overall[s.id], reverse=True)
        logger.debug("Relevance realization kept %d of %d steps", len(kept), len(candidates))
        return RelevanceAnalysis(kept, salience, coherence, elegance, overall)

    # -------------------- Salience --------------------

    def salience(self, step: ProofStep, context: RelevanceContext, state: CognitiveState) -> float:
        text = step.statement
        score = sum(p.weight for p in self.salience_patterns if p.pattern.search(text))
        score += self._contextual_salience(text, context)
        score += min(0.2, sum(0.1 * a for k, a in state.memory_activation.items() if contains(text, k)))
        score += min(0.5, sum(0.1 * w for k, w in state.relevance_weights.items() if contains(text, k)))
        score += min(0.6, sum(0.15 for f in state.attentional_focus if contains(text, f)))
        return clip01(score)

    @staticmethod
    def _contextual_salience(text: str, context: RelevanceContext) -> float:
        score = 0.0
        if contains(text, context.current_goal):
            score += 0.3
        score += 0.1 * sum(1 for i in context.active_ingredients if contains(text, i))
        if contains(text, context.skin_condition):
            score += 0.2
        score += 0.05 * sum(1 for c in context.user_constraints if contains(text, c))
        return min(score, 0.8)

    # -------------------- Coherence --------------------

    def coherence(self, step: ProofStep, steps: Sequence[ProofStep], context: RelevanceContext) -> float:
        siblings = [s for s in steps if s.id != step.id]
        score = 0.5
        group = [step, *siblings]
        for rule in self.coherence_rules:
            if rule.condition(group):
                score += rule.boost
        score += self._dependency_coherence(step, siblings)
        score += self._narrative_coherence(step, context)
        score += self._temporal_coherence(step, siblings)
        return clip01(score)

    @staticmethod
    def _dependency_coherence(step: ProofStep, siblings: Sequence[ProofStep]) -> float:
        sibling_ids = {s.id for s in siblings}
        sibling_facts = {f for s in siblings for f in s.produces}
        score = 0.0
        if step.premises:
            satisfied = sum(1 for p in step.premises if p in sibling_ids or p in sibling_facts)
            score += 0.3 * satisfied / len(step.premises)
        produced = set(step.produces)
        consumers = sum(
            1 for s in siblings
            if step.id in s.premises or produced.intersection(s.premises)
        )
        return score + min(0.2, 0.1 * consumers)

    @staticmethod
    def _narrative_coherence(step: ProofStep, context: RelevanceContext) -> float:
        text = step.statement.lower()
        score = 0.0
        if any(k in text for k in NARRATIVE_KEYWORDS.get(step.type, ())):
            score += 0.2
        if contains(text, context.skin_condition):
            score += 0.1
        return score

    @staticmethod
    def _temporal_coherence(step: ProofStep, siblings: Sequence[ProofStep]) -> float:
        produced_by = {f: s for s in siblings for f in s.produces}
        by_id = {s.id: s for s in siblings}
        earlier = set()
        for p in step.premises:
            source = by_id.get(p) or produced_by.get(p)
            if source is not None and source.created_at < step.created_at:
                earlier.add(source.id)
        return min(0.5, 0.2 + 0.1 * len(earlier))

    # -------------------- Elegance --------------------

    def elegance(self, step: ProofStep) -> float:
        return clip01(sum(m.weight * m.calculate(step) for m in self.elegance_metrics))

    # -------------------- Context history --------------------

    def _remember(self, context: RelevanceContext) -> None:
        self.history.append(context)
        while len(self.history) > self.history_size:
            self.history.popleft()

    def learning_patterns(self) -> Dict[str, List[str]]:
        goals = Counter(c.current_goal for c in self.history)
        ingredients = Counter(i for c in self.history for i in c.active_ingredients)
        return {
            "frequent_goals": [g for g, _ in goals.most_common(5)],
            "common_ingredients": [i for i, _ in ingredients.most_common(10)],
        }
