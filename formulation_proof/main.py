from __future__ import annotations

import json
import sys
from typing import List, Optional

from formulation_proof.cognition import CognitiveSession
from formulation_proof.config import get_settings
from formulation_proof.hypergraph import HypergraphIntegrator
from formulation_proof.model import VerificationRequest
from formulation_proof.observability import setup_logging
from formulation_proof.reference import default_reference_store
from formulation_proof.sample_requests import conflicting_actives_request, hyaluronic_acid_request
from formulation_proof.verifier import FormulationVerifier


def main(argv: Optional[List[str]] = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    reference = default_reference_store()
    verifier = FormulationVerifier(settings=settings, session=CognitiveSession(), reference=reference)
    graphs = HypergraphIntegrator(analysis_depth=settings.hypergraph_analysis_depth)

    for raw in (hyaluronic_acid_request(), conflicting_actives_request()):
        request = VerificationRequest.from_dict(raw)
        result = verifier.verify(request)

        if "--json" in args:
            print(json.dumps(result.to_dict(), indent=2))
            continue

        print(f"Hypothesis: {request.hypothesis}")
        print(f"  valid={result.is_valid} confidence={result.confidence:.3f} "
              f"cognitive_load={result.cognitive_load:.2f}")
        print("  Proof steps:")
        for n, step in enumerate(result.proof.steps, 1):
            print(f"    {n:02d}. [{step.type}] {step.statement} (confidence={step.confidence:.2f})")
        for w in result.warnings:
            print(f"  warning: {w}")
        for r in result.recommendations:
            print(f"  recommendation: {r}")
        for alt in result.alternative_formulations:
            print(f"  alternative: {alt.reasoning} ({', '.join(i.id for i in alt.ingredients)})")

        proof_id = result.proof.id
        graphs.create_proof_hypergraph(proof_id, result.proof.steps, request.ingredients)
        graph, metrics = graphs.integrate_reference_data(proof_id, reference.data)
        print(f"  hypergraph: {len(graph.nodes)} nodes, {len(graph.hyperedges)} hyperedges, "
              f"consistency={metrics.consistency:.2f}")
        ids = [i.id for i in request.ingredients]
        if len(ids) >= 2:
            support = graphs.query_proof_support(proof_id, "ingredient_compatibility",
                                                 {"ingredient1": ids[0], "ingredient2": ids[1]})
            for r in support.recommendations:
                print(f"  compatibility {ids[0]}/{ids[1]}: {r}")
        report = graphs.analyze_proof_vulnerabilities(proof_id)
        print(f"  robustness={report.robustness:.2f} single_point_failures={len(report.single_point_failures)}")
        print()


if __name__ == "__main__":
    main()
