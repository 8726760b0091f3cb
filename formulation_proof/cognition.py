from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
import logging
import time

from .config import Settings, get_settings
from .model import ProofStep, RelevanceContext
from .utils import clip01, contains, exp_decay, goal_words, mean

logger = logging.getLogger(__name__)


@dataclass
class CognitiveState:
    """Working set of the allocator.

    ``memory_activation`` holds activations in (0, 1]; the time each key was last
    touched is kept separately in ``last_touched``.
    """

    relevance_weights: Dict[str, float] = field(default_factory=dict)
    attentional_focus: List[str] = field(default_factory=list)
    memory_activation: Dict[str, float] = field(default_factory=dict)
    uncertainty_levels: Dict[str, float] = field(default_factory=dict)
    last_touched: Dict[str, float] = field(default_factory=dict)

    def copy(self) -> "CognitiveState":
        return CognitiveState(
            relevance_weights=dict(self.relevance_weights),
            attentional_focus=list(self.attentional_focus),
            memory_activation=dict(self.memory_activation),
            uncertainty_levels=dict(self.uncertainty_levels),
            last_touched=dict(self.last_touched),
        )


@dataclass
class Allocation:
    priority_steps: List[ProofStep]
    cognitive_load: float
    resource_allocation: Dict[str, float]


@dataclass
class CognitiveAllocator:
    relevance_threshold: float = 0.5
    attention_capacity: int = 7
    decay_rate: float = 0.1
    time_constant_s: float = 3600.0
    clock: Callable[[], float] = time.time
    state: CognitiveState = field(default_factory=CognitiveState)

    @staticmethod
    def from_settings(settings: Optional[Settings] = None, clock: Callable[[], float] = time.time) -> "CognitiveAllocator":
        s = settings or get_settings()
        return CognitiveAllocator(
            relevance_threshold=s.relevance_threshold,
            attention_capacity=s.attention_capacity,
            decay_rate=s.memory_decay_rate,
            time_constant_s=s.memory_time_constant_s,
            clock=clock,
        )

    # -------------------- State updates --------------------

    def update(self, context: RelevanceContext) -> None:
        self._update_relevance_weights(context)
        self._update_attentional_focus(context)
        self._update_memory_activation(context)
        self._update_uncertainty(context)
        logger.debug(
            "Cognitive state updated: %d weights, focus=%d, %d activations",
            len(self.state.relevance_weights), len(self.state.attentional_focus),
            len(self.state.memory_activation),
        )

    def _update_relevance_weights(self, context: RelevanceContext) -> None:
        weights = self.state.relevance_weights
        for ingredient_id in context.active_ingredients:
            boost = 0.2 if contains(context.current_goal, ingredient_id) else 0.1
            weights[ingredient_id] = weights.get(ingredient_id, 0.0) + boost
        for key in list(weights):
            decayed = weights[key] * (1.0 - self.decay_rate)
            if decayed < 0.01:
                del weights[key]
            else:
                weights[key] = decayed

    def _update_attentional_focus(self, context: RelevanceContext) -> None:
        candidates = [context.current_goal, *context.active_ingredients,
                      context.skin_condition, *context.user_constraints]
        seen = set()
        scored = []
        for focus in candidates:
            if not focus or focus in seen:
                continue
            seen.add(focus)
            scored.append((self.state.relevance_weights.get(focus, 0.1), focus))
        # sorted() is stable, so ties keep candidate order
        scored = sorted(scored, key=lambda x: x[0], reverse=True)
        self.state.attentional_focus = [f for _, f in scored[: self.attention_capacity]]

    def _update_memory_activation(self, context: RelevanceContext) -> None:
        now = self.clock()
        for key in [context.current_goal, context.skin_condition, *context.active_ingredients]:
            if key:
                self.state.last_touched[key] = now
        for key in list(self.state.last_touched):
            activation = exp_decay(now - self.state.last_touched[key], self.time_constant_s)
            if activation < 0.1:
                del self.state.last_touched[key]
                self.state.memory_activation.pop(key, None)
            else:
                self.state.memory_activation[key] = activation

    def _update_uncertainty(self, context: RelevanceContext) -> None:
        complexity = min(len(context.active_ingredients) * len(context.user_constraints) / 100.0, 0.8)
        information = max(0.1, 1.0 - len(context.environmental_factors) / 10.0)
        self.state.uncertainty_levels["complexity"] = complexity
        self.state.uncertainty_levels["information"] = information
        self.state.uncertainty_levels["overall"] = (complexity + information) / 2.0

    # -------------------- Scoring --------------------

    def relevance_score(self, step: ProofStep, context: RelevanceContext) -> float:
        score = (
            0.4 * self._goal_alignment(step, context)
            + 0.3 * self._ingredient_overlap(step, context)
            + 0.2 * evidence_quality(step)
            + 0.1 * self._temporal_recency(step)
        )
        return clip01(score)

    def _goal_alignment(self, step: ProofStep, context: RelevanceContext) -> float:
        words = goal_words(context.current_goal)
        text = step.statement.lower()
        return sum(1 for w in words if w in text) / max(len(words), 1)

    def _ingredient_overlap(self, step: ProofStep, context: RelevanceContext) -> float:
        hits = sum(1 for ing in context.active_ingredients if contains(step.statement, ing))
        return hits / max(len(context.active_ingredients), 1)

    def _temporal_recency(self, step: ProofStep) -> float:
        return exp_decay(self.clock() - step.created_at, self.time_constant_s)

    def allocate(self, steps: Sequence[ProofStep], context: RelevanceContext) -> Allocation:
        ranked = sorted(steps, key=lambda s: self.relevance_score(s, context), reverse=True)
        priority = ranked[: self.attention_capacity]
        return Allocation(
            priority_steps=priority,
            cognitive_load=cognitive_load(priority),
            resource_allocation={s.id: max(0.1, 1.0 - i * 0.1) for i, s in enumerate(priority)},
        )

    def realize(self, candidates: Sequence[ProofStep], context: RelevanceContext) -> List[ProofStep]:
        """Threshold filter followed by a connectivity check and elegance ordering.

        A lighter companion to ``RelevanceRealizer``: keeps steps whose relevance
        score reaches the threshold and that are linked to another kept step (or are
        assumptions/conclusions), ordered by confidence per premise.
        """
        salient = [s for s in candidates if self.relevance_score(s, context) >= self.relevance_threshold]
        produced = {f: s.id for s in salient for f in s.produces}
        coherent = []
        for step in salient:
            linked = any(
                p in produced and produced[p] != step.id or any(p == o.id for o in salient)
                for p in step.premises
            ) or any(step.id in o.premises or set(step.produces) & set(o.premises) for o in salient if o is not step)
            if linked or step.type in ("assumption", "conclusion"):
                coherent.append(step)
        return sorted(coherent, key=lambda s: s.confidence / max(len(s.premises), 1), reverse=True)

    def track_effort(self, step: ProofStep, effort: float, alpha: float = 0.3) -> float:
        key = f"effort_{step.id}"
        current = self.state.memory_activation.get(key, 0.0)
        smoothed = alpha * effort + (1 - alpha) * current
        self.state.memory_activation[key] = smoothed
        self.state.uncertainty_levels[step.id] = min(effort / 10.0, 1.0)
        return smoothed

    def snapshot(self) -> CognitiveState:
        return self.state.copy()

    def reset(self) -> None:
        self.state = CognitiveState()


def evidence_quality(step: ProofStep) -> float:
    if not step.evidence:
        return 0.1
    return (mean(e.reliability for e in step.evidence) + mean(e.relevance for e in step.evidence)) / 2.0


def cognitive_load(steps: Sequence[ProofStep]) -> float:
    total = 0.0
    for step in steps:
        total += 0.1 + 0.05 * len(step.premises) + 0.03 * len(step.evidence) + 0.1 * (1.0 - step.confidence)
    return min(total, 1.0)


@dataclass
class CognitiveSession:
    """Caller-owned holder of one allocator.

    Verifications sharing a session share attention state; separate sessions are
    independent. There is no locking, so a session must not be used from several
    threads at once.
    """

    allocator: CognitiveAllocator = field(default_factory=CognitiveAllocator.from_settings)

    @property
    def state(self) -> CognitiveState:
        return self.allocator.state

    def reset(self) -> None:
        self.allocator.reset()
