from __future__ import annotations

from typing import Any, Dict


def hyaluronic_acid_request() -> Dict[str, Any]:
    return {
        "hypothesis": "Hyaluronic acid with niacinamide improves epidermis hydration",
        "ingredients": [
            {"id": "hyaluronic_acid", "label": "Hyaluronic Acid", "molecularWeight": 1000,
             "logP": -4.0, "concentration": 1.0, "safetyRating": "high"},
            {"id": "niacinamide", "label": "Niacinamide", "molecularWeight": 122.1,
             "logP": -0.4, "concentration": 5.0},
        ],
        "targetEffects": [
            {"ingredientId": "hyaluronic_acid", "targetLayer": "epidermis", "effectType": "hydration",
             "magnitude": 0.8, "timeframe": 30, "confidence": 0.8,
             "mechanismOfAction": "water binding in the epidermis"},
        ],
        "constraints": [
            {"type": "ph", "parameter": "ph", "value": 5.5, "operator": "eq"},
            {"type": "concentration", "parameter": "niacinamide", "value": 5, "operator": "lte"},
        ],
    }


def conflicting_actives_request() -> Dict[str, Any]:
    return {
        "hypothesis": "Vitamin C and niacinamide together brighten the epidermis",
        "ingredients": [
            {"id": "vitamin_c", "label": "Vitamin C", "concentration": 10.0},
            {"id": "niacinamide", "label": "Niacinamide", "concentration": 5.0},
            {"id": "glycolic_acid", "label": "Glycolic Acid", "concentration": 8.0},
        ],
        "targetEffects": [
            {"ingredientId": "vitamin_c", "targetLayer": "epidermis", "effectType": "brightening",
             "confidence": 0.6},
        ],
        "constraints": [
            {"type": "ph", "parameter": "ph", "value": 3.5, "operator": "lte"},
        ],
    }
