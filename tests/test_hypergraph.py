"""Tests for formulation_proof.hypergraph: construction, metrics, reference
integration, support queries, paths and vulnerabilities.
"""
from __future__ import annotations

import pytest

from conftest import make_step
from formulation_proof.errors import GraphNotFound, InvalidHyperedge, UnknownQuery
from formulation_proof.hypergraph import (
    HypergraphIntegrator,
    HypergraphNode,
    Hyperedge,
    ProofHypergraph,
    consistency,
    reference_graph,
)
from formulation_proof.model import Evidence, Ingredient, IngredientCompatibility, IngredientInteraction
from formulation_proof.reference import ReferenceData, default_reference_data


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

EV_A = Evidence("ev_a", "theoretical", "user_hypothesis", 0.8, 1.0)
EV_V = Evidence("ev_v", "experimental", "safety_database", 0.9, 1.0)


def _steps():
    return [
        make_step("A", "assumption", "Assume: X hydrates", produces=("fx",), confidence=1.0, evidence=(EV_A,)),
        make_step("V", "verification", "Ingredient X meets safety requirements", premises=("ingredient_x",),
                  confidence=0.9, evidence=(EV_V,)),
        make_step("D", "deduction", "X penetration depth calculated", premises=("fx",), confidence=0.4),
        make_step("C", "conclusion", "Therefore X improves hydration", premises=("V", "D"), confidence=0.65),
    ]


def _ingredients():
    return [Ingredient("x", "X", safety_rating="high"), Ingredient("y", "Y")]


@pytest.fixture()
def integrator() -> HypergraphIntegrator:
    integ = HypergraphIntegrator(analysis_depth=5)
    integ.create_proof_hypergraph("p1", _steps(), _ingredients(),
                                  [IngredientInteraction("x", "y", "synergistic")])
    return integ


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_nodes_and_edges(self, integrator: HypergraphIntegrator) -> None:
        graph = integrator.get("p1")
        assert set(graph.nodes) == {"A", "V", "D", "C", "ev_a", "ev_v", "ingredient_x", "ingredient_y"}
        assert set(graph.hyperedges) == {
            "dependency_V", "dependency_D", "dependency_C",
            "supports_A_ev_a", "supports_V_ev_v", "interaction_x_y",
        }

    def test_dependency_members(self, integrator: HypergraphIntegrator) -> None:
        graph = integrator.get("p1")
        assert graph.hyperedges["dependency_D"].nodes == ("A", "D")
        assert graph.hyperedges["dependency_C"].nodes == ("V", "D", "C")
        assert graph.hyperedges["dependency_V"].nodes == ("ingredient_x", "V")
        assert graph.hyperedges["interaction_x_y"].type == "enhancement"

    def test_every_edge_has_two_members(self, integrator: HypergraphIntegrator) -> None:
        graph = integrator.get("p1")
        for edge in graph.hyperedges.values():
            assert len(set(edge.nodes)) >= 2
            assert all(n in graph.nodes for n in edge.nodes)

    def test_ingredient_relevance(self, integrator: HypergraphIntegrator) -> None:
        graph = integrator.get("p1")
        assert graph.nodes["ingredient_x"].relevance_score == pytest.approx(0.45)
        assert graph.nodes["ingredient_y"].relevance_score == pytest.approx(0.25)

    def test_single_member_edge_rejected(self) -> None:
        graph = ProofHypergraph()
        graph.add_node(HypergraphNode("a", "effect"))
        with pytest.raises(InvalidHyperedge):
            graph.add_edge(Hyperedge("e", ("a", "a"), "dependency", 1.0, 1.0))

    def test_missing_member_rejected(self) -> None:
        graph = ProofHypergraph()
        graph.add_node(HypergraphNode("a", "effect"))
        with pytest.raises(InvalidHyperedge):
            graph.add_edge(Hyperedge("e", ("a", "b"), "dependency", 1.0, 1.0))

    def test_interaction_with_unknown_ingredient_rejected(self) -> None:
        integ = HypergraphIntegrator()
        with pytest.raises(InvalidHyperedge):
            integ.create_proof_hypergraph("p", _steps(), _ingredients(),
                                          [IngredientInteraction("x", "ghost", "antagonistic")])

    def test_add_node_merges_properties(self) -> None:
        graph = ProofHypergraph()
        graph.add_node(HypergraphNode("a", "ingredient", {"label": "A"}))
        graph.add_node(HypergraphNode("a", "ingredient", {"label": "other", "source": "reference"}))
        assert graph.nodes["a"].properties == {"label": "A", "source": "reference"}

    def test_unknown_graph(self) -> None:
        with pytest.raises(GraphNotFound):
            HypergraphIntegrator().get("missing")


# ---------------------------------------------------------------------------
# Analysis metrics
# ---------------------------------------------------------------------------


class TestAnalysis:
    def test_connectivity_and_clustering(self, integrator: HypergraphIntegrator) -> None:
        analysis = integrator.get("p1").analysis
        assert analysis.connectivity == pytest.approx(0.75)
        assert analysis.clustering == pytest.approx(0.2)

    def test_critical_path(self, integrator: HypergraphIntegrator) -> None:
        assert integrator.get("p1").analysis.critical_paths == [["A", "D", "C"]]

    def test_vulnerabilities(self, integrator: HypergraphIntegrator) -> None:
        assert set(integrator.get("p1").analysis.vulnerabilities) == {"D", "C", "ev_a", "ev_v", "ingredient_y"}

    def test_opportunities(self, integrator: HypergraphIntegrator) -> None:
        assert set(integrator.get("p1").analysis.opportunities) == {
            "leverage_A", "leverage_V",
            "synergy_supports_A_ev_a", "synergy_supports_V_ev_v", "synergy_interaction_x_y",
        }


# ---------------------------------------------------------------------------
# Reference integration
# ---------------------------------------------------------------------------


class TestReferenceIntegration:
    def test_merge(self, integrator: HypergraphIntegrator) -> None:
        merged, metrics = integrator.integrate_reference_data("p1", default_reference_data())
        assert "ingredient_niacinamide" in merged.nodes
        assert "supplier_actives_direct" in merged.nodes
        assert "product_hydrating_serum_contains" in merged.hyperedges
        assert metrics.node_overlap == 0.0
        assert metrics.consistency == 1.0
        assert integrator.get("p1") is merged

    def test_reference_relation_edges(self) -> None:
        graph = reference_graph(default_reference_data())
        assert graph.hyperedges["avoid_niacinamide_vitamin_c"].type == "inhibition"
        assert graph.hyperedges["synergy_hyaluronic_acid_niacinamide"].confidence == pytest.approx(0.8)
        assert graph.hyperedges["neutral_hyaluronic_acid_retinol"].type == "correlation"

    def test_conflicting_relations_lower_consistency(self) -> None:
        data = ReferenceData(ingredients=(
            Ingredient("p", "P", compatibility=IngredientCompatibility(synergistic=("q",))),
            Ingredient("q", "Q", compatibility=IngredientCompatibility(avoid=("p",))),
        ))
        assert consistency(reference_graph(data)) == 0.0

    def test_unknown_relation_target_skipped(self) -> None:
        data = ReferenceData(ingredients=(
            Ingredient("p", "P", compatibility=IngredientCompatibility(avoid=("unknown",))),
        ))
        assert reference_graph(data).hyperedges == {}


# ---------------------------------------------------------------------------
# Support queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_compatibility_synergy(self, integrator: HypergraphIntegrator) -> None:
        result = integrator.query_proof_support("p1", "ingredient_compatibility",
                                                {"ingredient1": "x", "ingredient2": "y"})
        assert [e.id for e in result.supporting_edges] == ["interaction_x_y"]
        assert result.confidence == pytest.approx(0.5)
        assert result.recommendations == ["This ingredient combination shows synergistic potential"]

    def test_compatibility_avoid_after_merge(self, integrator: HypergraphIntegrator) -> None:
        integrator.integrate_reference_data("p1", default_reference_data())
        result = integrator.query_proof_support("p1", "ingredient_compatibility",
                                                {"ingredient1": "niacinamide", "ingredient2": "vitamin_c"})
        assert result.confidence == pytest.approx(0.9)
        assert any("avoiding" in r for r in result.recommendations)

    def test_compatibility_without_data(self, integrator: HypergraphIntegrator) -> None:
        result = integrator.query_proof_support("p1", "ingredient_compatibility",
                                                {"ingredient1": "x", "ingredient2": "zzz"})
        assert result.supporting_edges == []
        assert result.confidence == 0.5
        assert "compatibility testing" in result.recommendations[0]

    def test_effect_pathways(self, integrator: HypergraphIntegrator) -> None:
        result = integrator.query_proof_support("p1", "effect_pathways", {"target_effect": "hydration"})
        assert [n.id for n in result.supporting_nodes] == ["C"]
        assert [e.id for e in result.supporting_edges] == ["dependency_C"]
        assert result.confidence == pytest.approx(0.65)

    def test_safety_evidence(self, integrator: HypergraphIntegrator) -> None:
        result = integrator.query_proof_support("p1", "safety_evidence", {"ingredient_id": "x"})
        assert [n.id for n in result.supporting_nodes] == ["V"]
        assert [e.id for e in result.supporting_edges] == ["dependency_V"]
        assert result.confidence == pytest.approx(0.9)

    def test_supply_risk_without_suppliers(self, integrator: HypergraphIntegrator) -> None:
        result = integrator.query_proof_support("p1", "supply_risk", {"ingredient_id": "x"})
        assert result.confidence == pytest.approx(0.7)
        assert result.recommendations[0].startswith("No supplier data available")

    def test_supply_risk_single_source(self, integrator: HypergraphIntegrator) -> None:
        integrator.integrate_reference_data("p1", default_reference_data())
        result = integrator.query_proof_support("p1", "supply_risk", {"ingredient_id": "ceramides"})
        assert result.confidence == pytest.approx(0.75)
        assert result.recommendations[0].startswith("Single-source ingredient")

    def test_supply_risk_all_suppliers(self, integrator: HypergraphIntegrator) -> None:
        integrator.integrate_reference_data("p1", default_reference_data())
        result = integrator.query_proof_support("p1", "supply_risk")
        assert result.confidence == pytest.approx(0.8)
        assert result.recommendations == []

    def test_unknown_query(self, integrator: HypergraphIntegrator) -> None:
        with pytest.raises(UnknownQuery):
            integrator.query_proof_support("p1", "astrology")


# ---------------------------------------------------------------------------
# Paths and vulnerabilities
# ---------------------------------------------------------------------------


class TestPaths:
    def test_critical_paths(self, integrator: HypergraphIntegrator) -> None:
        report = integrator.find_critical_proof_paths("p1", "A", "C")
        assert report.paths == [["A", "D", "C"], ["A", "D", "V", "C"]]
        assert report.criticality_scores[0] == pytest.approx(0.74)
        assert report.criticality_scores[1] == pytest.approx(1.0 - 0.4 * 0.9 * 0.65)
        assert report.bottlenecks == ["D"]
        assert report.alternatives == []

    def test_paths_to_unknown_node(self, integrator: HypergraphIntegrator) -> None:
        report = integrator.find_critical_proof_paths("p1", "A", "nowhere")
        assert report.paths == []
        assert report.bottlenecks == []

    def test_vulnerability_report(self, integrator: HypergraphIntegrator) -> None:
        report = integrator.analyze_proof_vulnerabilities("p1")
        assert report.single_point_failures == ["A", "D", "V", "ingredient_x"]
        assert report.weak_links[0] == ("dependency_D", pytest.approx(0.9))
        assert "dependency_C" not in {edge_id for edge_id, _ in report.weak_links}
        assert report.robustness == pytest.approx(0.25 + 0.5 * (0.9 + 0.8 + 0.9 + 0.4 + 0.65 + 0.5) / 6)
        assert len(report.mitigation_strategies) == 2


# ---------------------------------------------------------------------------
# Verifier output
# ---------------------------------------------------------------------------


class TestFromVerification:
    def test_verified_proof_links_assumption_to_conclusion(self, reference_verifier, hyaluronic_request) -> None:
        result = reference_verifier.verify(hyaluronic_request)
        integ = HypergraphIntegrator()
        graph = integ.create_proof_hypergraph(result.proof.id, result.proof.steps, hyaluronic_request.ingredients)
        assert graph.analysis.critical_paths == [["assumption", "conclusion"]]
        assert "ingredient_hyaluronic_acid" in graph.nodes
        assert integ.get(result.proof.id) is graph
