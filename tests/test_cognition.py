"""Unit tests for formulation_proof.cognition: attention, memory decay,
relevance scoring, allocation and sessions.
"""
from __future__ import annotations

import math

import pytest

from conftest import FakeClock, make_step
from formulation_proof.cognition import CognitiveAllocator, CognitiveSession, cognitive_load
from formulation_proof.model import Evidence, RelevanceContext


def _context(goal: str = "niacinamide boosts barrier", ingredients=("niacinamide", "retinol"),
             constraints=(), env=None, skin: str = "epidermis") -> RelevanceContext:
    return RelevanceContext(
        current_goal=goal,
        active_ingredients=tuple(ingredients),
        skin_condition=skin,
        user_constraints=tuple(constraints),
        environmental_factors=env or {},
    )


# ---------------------------------------------------------------------------
# update()
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_goal_mentioned_ingredient_gets_larger_boost(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context())
        weights = allocator.state.relevance_weights
        assert weights["niacinamide"] == pytest.approx(0.18)
        assert weights["retinol"] == pytest.approx(0.09)

    def test_weights_decay_and_prune(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context(ingredients=("retinol",)))
        for _ in range(30):
            allocator.update(_context(ingredients=()))
        assert "retinol" not in allocator.state.relevance_weights

    @pytest.mark.parametrize("capacity", [1, 3, 7])
    def test_focus_bounded_by_capacity(self, clock: FakeClock, capacity: int) -> None:
        allocator = CognitiveAllocator(attention_capacity=capacity, clock=clock)
        for n in range(4):
            allocator.update(_context(
                ingredients=[f"ing_{i}" for i in range(n + 5)],
                constraints=[f"ph:ph_{i}" for i in range(6)],
            ))
            assert len(allocator.state.attentional_focus) <= capacity

    def test_focus_ordered_by_weight(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context(constraints=("ph:ph",)))
        focus = allocator.state.attentional_focus
        assert focus[0] == "niacinamide"
        assert focus[1] == "niacinamide boosts barrier"
        assert focus[-1] == "retinol"

    def test_memory_activation_decays_and_prunes(self, allocator: CognitiveAllocator, clock: FakeClock) -> None:
        allocator.update(_context(goal="first goal", ingredients=("a",)))
        clock.advance(2 * 3600)
        allocator.update(_context(goal="second goal", ingredients=("b",)))
        assert allocator.state.memory_activation["a"] == pytest.approx(math.exp(-2))
        assert allocator.state.memory_activation["b"] == pytest.approx(1.0)
        clock.advance(3600)
        allocator.update(_context(goal="third goal", ingredients=("c",)))
        assert "a" not in allocator.state.memory_activation
        assert "b" in allocator.state.memory_activation

    def test_uncertainty_levels(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context(ingredients=("a", "b"), constraints=("x", "y", "z"),
                                  env={"ph": 5.5, "temperature": 25.0}))
        levels = allocator.state.uncertainty_levels
        assert levels["complexity"] == pytest.approx(0.06)
        assert levels["information"] == pytest.approx(0.8)
        assert levels["overall"] == pytest.approx(0.43)


# ---------------------------------------------------------------------------
# Scoring and allocation
# ---------------------------------------------------------------------------


class TestScoring:
    def test_relevance_score_components(self, allocator: CognitiveAllocator, clock: FakeClock) -> None:
        step = make_step("s", statement="Niacinamide supports barrier repair", created_at=clock.now)
        score = allocator.relevance_score(step, _context(ingredients=("niacinamide",)))
        assert score == pytest.approx(0.4 * 2 / 3 + 0.3 + 0.2 * 0.1 + 0.1)

    def test_recency_uses_created_at(self, allocator: CognitiveAllocator, clock: FakeClock) -> None:
        fresh = make_step("fresh", statement="x", created_at=clock.now)
        stale = make_step("stale", statement="x", created_at=clock.now - 10 * 3600)
        ctx = _context(ingredients=())
        assert allocator.relevance_score(fresh, ctx) > allocator.relevance_score(stale, ctx)

    def test_allocate_limits_to_capacity(self, allocator: CognitiveAllocator, clock: FakeClock) -> None:
        steps = [make_step(f"s{i}", confidence=1.0, created_at=clock.now) for i in range(10)]
        allocation = allocator.allocate(steps, _context())
        assert len(allocation.priority_steps) == 7
        assert allocation.cognitive_load == pytest.approx(0.7)
        weights = [allocation.resource_allocation[s.id] for s in allocation.priority_steps]
        assert weights == pytest.approx([1.0, 0.9, 0.8, 0.7, 0.6, 0.5, 0.4])

    def test_cognitive_load_is_capped(self) -> None:
        ev = Evidence("e", "literature", "src", 0.5, 0.5)
        steps = [make_step(f"s{i}", premises=("a", "b"), evidence=(ev,), confidence=0.0) for i in range(10)]
        assert cognitive_load(steps) == 1.0

    def test_realize_returns_subset(self, allocator: CognitiveAllocator, clock: FakeClock) -> None:
        steps = [
            make_step("a", "assumption", "Assume niacinamide boosts barrier", produces=("f",), created_at=clock.now),
            make_step("v", statement="niacinamide barrier check", premises=("f",), created_at=clock.now),
            make_step("x", statement="unrelated", created_at=clock.now),
        ]
        kept = allocator.realize(steps, _context(ingredients=("niacinamide",)))
        ids = [s.id for s in kept]
        assert set(ids) <= {"a", "v", "x"}
        assert "x" not in ids
        assert "v" in ids


# ---------------------------------------------------------------------------
# Effort tracking, snapshots and sessions
# ---------------------------------------------------------------------------


class TestStateManagement:
    def test_track_effort_is_moving_average(self, allocator: CognitiveAllocator) -> None:
        step = make_step("s")
        assert allocator.track_effort(step, 5.0) == pytest.approx(1.5)
        assert allocator.track_effort(step, 5.0) == pytest.approx(2.55)
        assert allocator.state.uncertainty_levels["s"] == pytest.approx(0.5)

    def test_snapshot_is_a_copy(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context())
        snap = allocator.snapshot()
        snap.relevance_weights["injected"] = 1.0
        assert "injected" not in allocator.state.relevance_weights

    def test_reset_clears_state(self, allocator: CognitiveAllocator) -> None:
        allocator.update(_context())
        allocator.reset()
        assert allocator.state.relevance_weights == {}
        assert allocator.state.attentional_focus == []

    def test_sessions_are_independent(self, clock: FakeClock) -> None:
        first = CognitiveSession(CognitiveAllocator(clock=clock))
        second = CognitiveSession(CognitiveAllocator(clock=clock))
        first.allocator.update(_context())
        assert first.state.relevance_weights
        assert second.state.relevance_weights == {}
        first.reset()
        assert first.state.relevance_weights == {}
