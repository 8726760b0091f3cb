"""Hypergraph view of a proof, merged with reference ingredient data.

Nodes are proof steps, evidence items, ingredients, products and suppliers.
Hyperedges join two or more nodes. Path and cut analyses run on the clique
expansion of the hypergraph as an undirected ``networkx.Graph``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import itertools
import logging

import networkx as nx

from .errors import GraphNotFound, InvalidHyperedge, UnknownQuery
from .model import Evidence, Ingredient, IngredientInteraction, ProofStep
from .reference import ReferenceData
from .utils import clip01, contains, mean

logger = logging.getLogger(__name__)

NODE_CATEGORIES = ("ingredient", "effect", "interaction", "constraint", "evidence", "supplier")
EDGE_TYPES = ("causation", "correlation", "inhibition", "enhancement", "dependency")
QUERY_KINDS = ("ingredient_compatibility", "effect_pathways", "safety_evidence", "supply_risk")

STEP_CATEGORY = {
    "assumption": "constraint",
    "verification": "constraint",
    "deduction": "interaction",
    "conclusion": "effect",
}
INTERACTION_EDGE = {"synergistic": "enhancement", "antagonistic": "inhibition", "neutral": "correlation"}
EVIDENCE_LEVEL_RELIABILITY = {"clinical": 0.95, "in-vivo": 0.85, "in-vitro": 0.75, "theoretical": 0.5}
SAFETY_SCORE = {"high": 0.9, "medium": 0.7}


@dataclass
class HypergraphNode:
    id: str
    category: str
    properties: Dict[str, Any] = field(default_factory=dict)
    relevance_score: float = 0.0

    @property
    def confidence(self) -> Optional[float]:
        return self.properties.get("confidence")


@dataclass
class Hyperedge:
    id: str
    nodes: Tuple[str, ...]
    type: str
    weight: float
    confidence: float
    evidence: Tuple[Evidence, ...] = ()


@dataclass
class HypergraphAnalysis:
    connectivity: float = 0.0
    clustering: float = 0.0
    critical_paths: List[List[str]] = field(default_factory=list)
    vulnerabilities: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)


@dataclass
class ProofHypergraph:
    nodes: Dict[str, HypergraphNode] = field(default_factory=dict)
    hyperedges: Dict[str, Hyperedge] = field(default_factory=dict)
    analysis: HypergraphAnalysis = field(default_factory=HypergraphAnalysis)

    def add_node(self, node: HypergraphNode) -> None:
        existing = self.nodes.get(node.id)
        if existing is None:
            self.nodes[node.id] = node
            return
        for key, value in node.properties.items():
            existing.properties.setdefault(key, value)

    def add_edge(self, edge: Hyperedge) -> None:
        if len(set(edge.nodes)) < 2:
            raise InvalidHyperedge(f"Hyperedge {edge.id} needs at least two distinct nodes")
        missing = [n for n in edge.nodes if n not in self.nodes]
        if missing:
            raise InvalidHyperedge(f"Hyperedge {edge.id} references missing nodes: {missing}")
        self.hyperedges.setdefault(edge.id, edge)

    def incident(self, node_id: str) -> List[Hyperedge]:
        return [e for e in self.hyperedges.values() if node_id in e.nodes]

    def to_networkx(self) -> nx.Graph:
        graph = nx.Graph()
        for node in self.nodes.values():
            graph.add_node(node.id, category=node.category)
        for edge in self.hyperedges.values():
            for a, b in itertools.combinations(dict.fromkeys(edge.nodes), 2):
                graph.add_edge(a, b, hyperedge=edge.id, confidence=edge.confidence)
        return graph


@dataclass
class QueryResult:
    supporting_nodes: List[HypergraphNode]
    supporting_edges: List[Hyperedge]
    confidence: float
    recommendations: List[str]


@dataclass
class IntegrationMetrics:
    node_overlap: float
    edge_overlap: float
    consistency: float


@dataclass
class CriticalPathReport:
    paths: List[List[str]]
    criticality_scores: List[float]
    bottlenecks: List[str]
    alternatives: List[List[str]]


@dataclass
class VulnerabilityReport:
    single_point_failures: List[str]
    weak_links: List[Tuple[str, float]]
    robustness: float
    mitigation_strategies: List[str]


# -------------------- Node and edge builders --------------------


def ingredient_node(ingredient: Ingredient, source: Optional[str] = None) -> HypergraphNode:
    safety = SAFETY_SCORE.get(ingredient.safety_rating or "", 0.5)
    functions = min(len(ingredient.functions) / 5.0, 1.0)
    props: Dict[str, Any] = {
        "label": ingredient.label,
        "inci_name": ingredient.inci_name,
        "category": ingredient.category,
        "molecular_weight": ingredient.molecular_weight,
        "safety_rating": ingredient.safety_rating,
        "pricing": ingredient.pricing,
    }
    if source:
        props["source"] = source
    return HypergraphNode(f"ingredient_{ingredient.id}", "ingredient",
                          {k: v for k, v in props.items() if v is not None}, (safety + functions) / 2.0)


def step_node(step: ProofStep) -> HypergraphNode:
    return HypergraphNode(
        step.id,
        STEP_CATEGORY.get(step.type, "evidence"),
        {
            "statement": step.statement,
            "confidence": step.confidence,
            "rule": step.rule,
            "step_type": step.type,
            "evidence_count": len(step.evidence),
        },
        step.confidence,
    )


def evidence_node(evidence: Evidence) -> HypergraphNode:
    return HypergraphNode(
        evidence.id,
        "evidence",
        {"type": evidence.type, "source": evidence.source,
         "reliability": evidence.reliability, "relevance": evidence.relevance},
        evidence.relevance,
    )


def _ingredient_key(value: str) -> str:
    return value if value.startswith("ingredient_") else f"ingredient_{value}"


# -------------------- Integrator --------------------


@dataclass
class HypergraphIntegrator:
    analysis_depth: int = 5
    graphs: Dict[str, ProofHypergraph] = field(default_factory=dict)

    def get(self, proof_id: str) -> ProofHypergraph:
        graph = self.graphs.get(proof_id)
        if graph is None:
            raise GraphNotFound(proof_id)
        return graph

    def create_proof_hypergraph(self, proof_id: str, steps: Sequence[ProofStep],
                                ingredients: Iterable[Ingredient] = (),
                                interactions: Iterable[IngredientInteraction] = ()) -> ProofHypergraph:
        graph = ProofHypergraph()
        for step in steps:
            graph.add_node(step_node(step))
        for step in steps:
            for ev in step.evidence:
                graph.add_node(evidence_node(ev))
        for ing in ingredients:
            graph.add_node(ingredient_node(ing))

        producers = {f: s.id for s in steps for f in s.produces}
        for step in steps:
            members = []
            for premise in step.premises:
                if premise in graph.nodes:
                    members.append(premise)
                elif premise in producers:
                    members.append(producers[premise])
            members = list(dict.fromkeys(m for m in members if m != step.id))
            if members:
                graph.add_edge(Hyperedge(f"dependency_{step.id}", (*members, step.id), "dependency",
                                         step.confidence, step.confidence, step.evidence))
            for ev in step.evidence:
                graph.add_edge(Hyperedge(f"supports_{step.id}_{ev.id}", (ev.id, step.id), "enhancement",
                                         ev.reliability, ev.reliability, (ev,)))

        for inter in interactions:
            edge_id = f"interaction_{inter.source}_{inter.target}"
            reliability = EVIDENCE_LEVEL_RELIABILITY.get(inter.evidence_level, 0.3)
            graph.add_edge(Hyperedge(
                edge_id,
                (f"ingredient_{inter.source}", f"ingredient_{inter.target}"),
                INTERACTION_EDGE.get(inter.type, "dependency"),
                inter.confidence,
                inter.confidence,
                (Evidence(f"{edge_id}_evidence", "literature", inter.mechanism or "interaction_studies",
                          reliability, inter.confidence),),
            ))

        graph.analysis = self.analyze(graph)
        self.graphs[proof_id] = graph
        logger.debug("Built hypergraph %s: %d nodes, %d hyperedges", proof_id,
                     len(graph.nodes), len(graph.hyperedges), extra={"proof_id": proof_id})
        return graph

    # -------------------- Analysis --------------------

    def analyze(self, graph: ProofHypergraph) -> HypergraphAnalysis:
        return HypergraphAnalysis(
            connectivity=connectivity(graph),
            clustering=clustering(graph),
            critical_paths=critical_paths(graph),
            vulnerabilities=vulnerabilities(graph),
            opportunities=opportunities(graph),
        )

    # -------------------- Reference integration --------------------

    def integrate_reference_data(self, proof_id: str,
                                 data: ReferenceData) -> Tuple[ProofHypergraph, IntegrationMetrics]:
        proof_graph = self.get(proof_id)
        ref = reference_graph(data)

        merged = ProofHypergraph()
        for node in itertools.chain(proof_graph.nodes.values(), ref.nodes.values()):
            merged.add_node(HypergraphNode(node.id, node.category, dict(node.properties), node.relevance_score))
        for edge in itertools.chain(proof_graph.hyperedges.values(), ref.hyperedges.values()):
            merged.add_edge(edge)
        merged.analysis = self.analyze(merged)

        metrics = IntegrationMetrics(
            node_overlap=_overlap(proof_graph.nodes, ref.nodes),
            edge_overlap=_overlap(proof_graph.hyperedges, ref.hyperedges),
            consistency=consistency(merged),
        )
        self.graphs[proof_id] = merged
        logger.info("Merged reference data into %s: %d nodes, consistency %.2f", proof_id,
                    len(merged.nodes), metrics.consistency, extra={"proof_id": proof_id})
        return merged, metrics

    # -------------------- Queries --------------------

    def query_proof_support(self, proof_id: str, kind: str,
                            params: Optional[Dict[str, Any]] = None) -> QueryResult:
        graph = self.get(proof_id)
        params = params or {}
        if kind == "ingredient_compatibility":
            return self._query_compatibility(graph, params)
        if kind == "effect_pathways":
            return self._query_effect_pathways(graph, params)
        if kind == "safety_evidence":
            return self._query_safety_evidence(graph, params)
        if kind == "supply_risk":
            return self._query_supply_risk(graph, params)
        raise UnknownQuery(kind)

    @staticmethod
    def _support(graph: ProofHypergraph, edges: List[Hyperedge]) -> List[HypergraphNode]:
        members = {n for e in edges for n in e.nodes}
        return [n for n in graph.nodes.values() if n.id in members]

    def _query_compatibility(self, graph: ProofHypergraph, params: Dict[str, Any]) -> QueryResult:
        first = _ingredient_key(str(params.get("ingredient1", "")))
        second = _ingredient_key(str(params.get("ingredient2", "")))
        edges = [e for e in graph.hyperedges.values() if first in e.nodes and second in e.nodes]
        recs = []
        if any(e.type == "inhibition" for e in edges):
            recs.append("Consider avoiding this ingredient combination due to potential antagonistic effects")
        if any(e.type == "enhancement" for e in edges):
            recs.append("This ingredient combination shows synergistic potential")
        if not edges:
            recs.append("Limited interaction data available - consider conducting compatibility testing")
        return QueryResult(self._support(graph, edges), edges,
                           mean((e.confidence for e in edges), default=0.5), recs)

    def _query_effect_pathways(self, graph: ProofHypergraph, params: Dict[str, Any]) -> QueryResult:
        effect = str(params.get("target_effect", ""))
        nodes = [n for n in graph.nodes.values()
                 if n.category == "effect" and contains(str(n.properties.get("statement", "")), effect)]
        ids = {n.id for n in nodes}
        edges = [e for e in graph.hyperedges.values() if ids.intersection(e.nodes)]
        return QueryResult(nodes, edges, mean((e.confidence for e in edges), default=0.3),
                           ["Consider additional mechanistic studies for pathway validation"])

    def _query_safety_evidence(self, graph: ProofHypergraph, params: Dict[str, Any]) -> QueryResult:
        ingredient = _ingredient_key(str(params.get("ingredient_id", "")))
        nodes = [n for n in graph.nodes.values() if contains(str(n.properties.get("statement", "")), "safe")]
        edges = [e for e in graph.hyperedges.values()
                 if ingredient in e.nodes and any(ev.type == "experimental" for ev in e.evidence)]
        return QueryResult(nodes, edges, mean((e.confidence for e in edges), default=0.6),
                           ["Review regulatory safety databases for additional evidence"])

    def _query_supply_risk(self, graph: ProofHypergraph, params: Dict[str, Any]) -> QueryResult:
        ingredient = params.get("ingredient_id")
        key = _ingredient_key(str(ingredient)) if ingredient else None
        suppliers = {n.id for n in graph.nodes.values() if n.category == "supplier"}
        edges = [e for e in graph.hyperedges.values()
                 if suppliers.intersection(e.nodes) and (key is None or key in e.nodes)]
        supplier_nodes = [graph.nodes[n] for n in dict.fromkeys(n for e in edges for n in e.nodes)
                          if n in suppliers]
        recs = []
        if not supplier_nodes:
            recs.append("No supplier data available - integrate supply chain risk assessment")
        elif key is not None and len(supplier_nodes) == 1:
            recs.append("Single-source ingredient - consider qualifying an alternative supplier")
        confidence = mean((n.properties.get("reliability", 0.7) for n in supplier_nodes), default=0.7)
        return QueryResult(self._support(graph, edges), edges, confidence, recs)

    # -------------------- Path and vulnerability analysis --------------------

    def find_critical_proof_paths(self, proof_id: str, start: str, end: str) -> CriticalPathReport:
        graph = self.get(proof_id)
        g = graph.to_networkx()
        paths = _simple_paths(g, start, end, self.analysis_depth)
        scores = [path_criticality(graph, p) for p in paths]
        bottlenecks: List[str] = []
        if paths:
            common = set(paths[0][1:-1])
            for p in paths[1:]:
                common &= set(p[1:-1])
            bottlenecks = [n for n in paths[0] if n in common]
        alternatives: List[List[str]] = []
        if bottlenecks:
            pruned = g.subgraph(n for n in g.nodes if n not in bottlenecks)
            alternatives = _simple_paths(pruned, start, end, self.analysis_depth)
        return CriticalPathReport(paths, scores, bottlenecks, alternatives)

    def analyze_proof_vulnerabilities(self, proof_id: str) -> VulnerabilityReport:
        graph = self.get(proof_id)
        g = graph.to_networkx()
        failures = sorted(nx.articulation_points(g)) if g.number_of_nodes() else []
        bridges = {frozenset(b) for b in nx.bridges(g)} if g.number_of_edges() else set()

        weak: List[Tuple[str, float]] = []
        for edge in graph.hyperedges.values():
            pairs = {frozenset(p) for p in itertools.combinations(dict.fromkeys(edge.nodes), 2)}
            is_bridge = bool(pairs & bridges)
            if edge.confidence < 0.6 or is_bridge:
                weak.append((edge.id, clip01(1.0 - edge.confidence + (0.3 if is_bridge else 0.0))))
        weak.sort(key=lambda x: x[1], reverse=True)

        n = len(graph.nodes)
        robustness = 0.0
        if n:
            edge_conf = mean((e.confidence for e in graph.hyperedges.values()), default=0.0)
            robustness = clip01(0.5 * (1.0 - len(failures) / n) + 0.5 * edge_conf)

        strategies = []
        if failures:
            strategies.append("Consider adding redundant verification paths to reduce single point failures")
        if weak:
            strategies.append("Strengthen evidence for weak links in the proof chain")
        return VulnerabilityReport(failures, weak, robustness, strategies)


# -------------------- Metrics --------------------


def connectivity(graph: ProofHypergraph) -> float:
    if len(graph.nodes) <= 1:
        return 0.0
    return min(len(graph.hyperedges) / len(graph.nodes), 1.0)


def clustering(graph: ProofHypergraph) -> float:
    groups: Dict[str, set] = {}
    for node in graph.nodes.values():
        groups.setdefault(node.category, set()).add(node.id)
    scores = []
    for members in groups.values():
        pairs = len(members) * (len(members) - 1) / 2
        internal = sum(1 for e in graph.hyperedges.values() if members.issuperset(e.nodes))
        scores.append(min(1.0, internal / pairs) if pairs else 0.0)
    return mean(scores)


def _nodes_with_step_type(graph: ProofHypergraph, step_type: str) -> List[str]:
    return [n.id for n in graph.nodes.values() if n.properties.get("step_type") == step_type]


def critical_paths(graph: ProofHypergraph) -> List[List[str]]:
    g = graph.to_networkx()
    paths = []
    for start in _nodes_with_step_type(graph, "assumption"):
        for end in _nodes_with_step_type(graph, "conclusion"):
            try:
                paths.append(nx.shortest_path(g, start, end))
            except nx.NetworkXNoPath:
                continue
    return paths


def vulnerabilities(graph: ProofHypergraph) -> List[str]:
    out = [n.id for n in graph.nodes.values() if (n.confidence if n.confidence is not None else 1.0) < 0.5]
    for node_id in graph.nodes:
        if len(graph.incident(node_id)) == 1 and node_id not in out:
            out.append(node_id)
    return out


def opportunities(graph: ProofHypergraph) -> List[str]:
    out = [f"leverage_{n.id}" for n in graph.nodes.values() if (n.confidence or 0.0) > 0.8]
    out += [f"synergy_{e.id}" for e in graph.hyperedges.values() if e.type == "enhancement"]
    return out


def consistency(graph: ProofHypergraph) -> float:
    """Share of ingredient pairs that are not both enhanced and inhibited."""
    kinds: Dict[frozenset, set] = {}
    for edge in graph.hyperedges.values():
        members = frozenset(edge.nodes)
        if len(members) == 2 and all(graph.nodes[m].category == "ingredient" for m in members):
            kinds.setdefault(members, set()).add(edge.type)
    if not kinds:
        return 1.0
    conflicting = sum(1 for k in kinds.values() if {"enhancement", "inhibition"} <= k)
    return 1.0 - conflicting / len(kinds)


def path_criticality(graph: ProofHypergraph, path: Sequence[str]) -> float:
    """One minus the product of node confidences along the path."""
    strength = 1.0
    for node_id in path:
        conf = graph.nodes[node_id].confidence
        strength *= conf if conf is not None else 1.0
    return clip01(1.0 - strength)


def _simple_paths(g: nx.Graph, start: str, end: str, cutoff: int) -> List[List[str]]:
    if start not in g or end not in g:
        return []
    return sorted(nx.all_simple_paths(g, start, end, cutoff=cutoff), key=len)


def _overlap(proof_items: Dict[str, Any], ref_items: Dict[str, Any]) -> float:
    if not proof_items:
        return 0.0
    return sum(1 for k in proof_items if k in ref_items) / len(proof_items)


def reference_graph(data: ReferenceData) -> ProofHypergraph:
    graph = ProofHypergraph()
    for ing in data.ingredients:
        graph.add_node(ingredient_node(ing, source="reference"))
    for product in data.products:
        graph.add_node(HypergraphNode(
            f"product_{product.id}", "effect",
            {"label": product.label, "category": product.category,
             "complexity_score": product.complexity_score, "target_skin_type": product.target_skin_type,
             "benefits": ", ".join(product.benefits), "source": "reference"},
            clip01(product.complexity_score / 100.0),
        ))
    for supplier in data.suppliers:
        graph.add_node(HypergraphNode(
            f"supplier_{supplier.id}", "supplier",
            {"label": supplier.name, "reliability": supplier.reliability, "region": supplier.region},
            supplier.reliability,
        ))

    relation_edges = (
        ("synergistic", "synergy", "enhancement", 0.8, "experimental"),
        ("avoid", "avoid", "inhibition", 0.9, "experimental"),
        ("neutral", "neutral", "correlation", 0.5, "literature"),
    )
    for ing in data.ingredients:
        if ing.compatibility is None:
            continue
        for attr, prefix, edge_type, conf, ev_type in relation_edges:
            for other in getattr(ing.compatibility, attr):
                a, b = f"ingredient_{ing.id}", f"ingredient_{other}"
                if b not in graph.nodes:
                    logger.debug("Skipping %s relation to unknown ingredient %s", attr, other)
                    continue
                edge_id = f"{prefix}_{ing.id}_{other}"
                graph.add_edge(Hyperedge(edge_id, (a, b), edge_type, conf, conf, (
                    Evidence(f"{edge_id}_evidence", ev_type, "reference_compatibility", conf, 1.0),
                )))

    for product in data.products:
        members = [f"ingredient_{i}" for i in product.ingredients if f"ingredient_{i}" in graph.nodes]
        if members:
            graph.add_edge(Hyperedge(f"product_{product.id}_contains", (f"product_{product.id}", *members),
                                     "dependency", 0.7, 0.7))
    for supplier in data.suppliers:
        for ing_id in supplier.ingredients:
            node = f"ingredient_{ing_id}"
            if node in graph.nodes:
                edge_id = f"supplies_{supplier.id}_{ing_id}"
                graph.add_edge(Hyperedge(edge_id, (f"supplier_{supplier.id}", node), "dependency",
                                         supplier.reliability, supplier.reliability, (
                    Evidence(f"{edge_id}_evidence", "literature", "supplier_records", supplier.reliability, 0.8),
                )))
    return graph
