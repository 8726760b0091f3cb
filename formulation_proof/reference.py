"""Read-only ingredient, product and supplier reference data.

The verifier consults the store for compatibility lists and safety ratings; the
hypergraph integrator merges the whole catalogue into a proof graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
import json
import logging
from pathlib import Path

from .model import Ingredient, IngredientCompatibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceProduct:
    id: str
    label: str
    category: str = ""
    ingredients: Tuple[str, ...] = ()
    complexity_score: float = 0.0
    target_skin_type: str = ""
    benefits: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ReferenceProduct":
        return ReferenceProduct(
            id=str(data["id"]),
            label=str(data.get("label", data["id"])),
            category=str(data.get("category", "")),
            ingredients=tuple(data.get("ingredients", ())),
            complexity_score=float(data.get("complexity_score", 0.0)),
            target_skin_type=str(data.get("target_skin_type", "")),
            benefits=tuple(data.get("benefits", ())),
        )


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    ingredients: Tuple[str, ...] = ()
    reliability: float = 0.7
    region: str = ""

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Supplier":
        return Supplier(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            ingredients=tuple(data.get("ingredients", ())),
            reliability=float(data.get("reliability", 0.7)),
            region=str(data.get("region", "")),
        )


@dataclass(frozen=True)
class ReferenceData:
    ingredients: Tuple[Ingredient, ...] = ()
    products: Tuple[ReferenceProduct, ...] = ()
    suppliers: Tuple[Supplier, ...] = ()

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ReferenceData":
        return ReferenceData(
            ingredients=tuple(Ingredient.from_dict(i) for i in data.get("ingredients", [])),
            products=tuple(ReferenceProduct.from_dict(p) for p in data.get("products", [])),
            suppliers=tuple(Supplier.from_dict(s) for s in data.get("suppliers", [])),
        )


@dataclass
class ReferenceStore:
    data: ReferenceData = field(default_factory=ReferenceData)

    def __post_init__(self) -> None:
        self._by_id: Dict[str, Ingredient] = {i.id: i for i in self.data.ingredients}

    @staticmethod
    def load(path: str) -> "ReferenceStore":
        with Path(path).open(encoding="utf-8") as fh:
            raw = json.load(fh)
        store = ReferenceStore(ReferenceData.from_dict(raw))
        logger.info("Loaded reference data from %s: %d ingredients, %d products, %d suppliers",
                    path, len(store.data.ingredients), len(store.data.products), len(store.data.suppliers))
        return store

    def get(self, ingredient_id: str) -> Optional[Ingredient]:
        return self._by_id.get(ingredient_id)

    def relation(self, first: str, second: str) -> Optional[str]:
        """Compatibility relation between two ingredients, checked from both sides."""
        relations = []
        for a, b in ((first, second), (second, first)):
            ref = self.get(a)
            if ref is not None and ref.compatibility is not None:
                rel = ref.compatibility.relation_to(b)
                if rel:
                    relations.append(rel)
        for rel in ("avoid", "synergistic", "neutral"):
            if rel in relations:
                return rel
        return None

    def suppliers_for(self, ingredient_id: str) -> List[Supplier]:
        return [s for s in self.data.suppliers if ingredient_id in s.ingredients]

    def enrich(self, ingredient: Ingredient) -> Ingredient:
        """Fill attributes the caller left empty from the catalogue entry."""
        ref = self.get(ingredient.id)
        if ref is None:
            return ingredient
        updates: Dict[str, Any] = {}
        for name in ("inci_name", "category", "molecular_weight", "log_p", "safety_rating",
                     "compatibility", "pricing"):
            if getattr(ingredient, name) is None and getattr(ref, name) is not None:
                updates[name] = getattr(ref, name)
        if not ingredient.functions and ref.functions:
            updates["functions"] = ref.functions
        return replace(ingredient, **updates) if updates else ingredient

    def enrich_all(self, ingredients: Iterable[Ingredient]) -> Tuple[Ingredient, ...]:
        return tuple(self.enrich(i) for i in ingredients)


def _ingredient(ingredient_id: str, label: str, **kw: Any) -> Ingredient:
    compat = kw.pop("compatibility", None)
    return Ingredient(
        id=ingredient_id, label=label,
        compatibility=IngredientCompatibility.from_dict(compat) if compat else None,
        **kw,
    )


def default_reference_data() -> ReferenceData:
    """A small built-in catalogue of common actives."""
    ingredients = (
        _ingredient("hyaluronic_acid", "Hyaluronic Acid", inci_name="Sodium Hyaluronate", category="humectant",
                    molecular_weight=1000.0, log_p=-4.0, safety_rating="high",
                    functions=("hydration", "plumping"), pricing=850.0,
                    compatibility={"synergistic": ["niacinamide", "ceramides"], "neutral": ["retinol"]}),
        _ingredient("niacinamide", "Niacinamide", inci_name="Niacinamide", category="vitamin",
                    molecular_weight=122.1, log_p=-0.4, safety_rating="high",
                    functions=("barrier repair", "brightening", "sebum control"), pricing=320.0,
                    compatibility={"synergistic": ["hyaluronic_acid", "ceramides"], "avoid": ["vitamin_c"]}),
        _ingredient("vitamin_c", "Vitamin C", inci_name="Ascorbic Acid", category="antioxidant",
                    molecular_weight=176.1, log_p=-1.85, safety_rating="medium",
                    functions=("antioxidant", "brightening"), pricing=410.0,
                    compatibility={"avoid": ["niacinamide", "retinol"], "synergistic": ["vitamin_e"]}),
        _ingredient("retinol", "Retinol", inci_name="Retinol", category="retinoid",
                    molecular_weight=286.5, log_p=5.68, safety_rating="medium",
                    functions=("anti-aging", "cell turnover"), pricing=1250.0,
                    compatibility={"avoid": ["vitamin_c", "glycolic_acid"], "synergistic": ["ceramides"]}),
        _ingredient("glycolic_acid", "Glycolic Acid", inci_name="Glycolic Acid", category="exfoliant",
                    molecular_weight=76.05, log_p=-1.11, safety_rating="low",
                    functions=("exfoliation",), pricing=190.0,
                    compatibility={"avoid": ["retinol"]}),
        _ingredient("ceramides", "Ceramides", inci_name="Ceramide NP", category="lipid",
                    molecular_weight=600.0, log_p=8.0, safety_rating="high",
                    functions=("barrier repair",), pricing=1500.0,
                    compatibility={"synergistic": ["niacinamide", "hyaluronic_acid", "retinol"]}),
        _ingredient("vitamin_e", "Vitamin E", inci_name="Tocopherol", category="antioxidant",
                    molecular_weight=430.7, log_p=12.2, safety_rating="high",
                    functions=("antioxidant",), pricing=270.0,
                    compatibility={"synergistic": ["vitamin_c"]}),
    )
    products = (
        ReferenceProduct("hydrating_serum", "Hydrating Serum", "serum", ("hyaluronic_acid", "niacinamide"),
                         35.0, "dry", ("hydration", "barrier support")),
        ReferenceProduct("night_repair_cream", "Night Repair Cream", "cream", ("retinol", "ceramides"),
                         60.0, "mature", ("anti-aging", "barrier repair")),
    )
    suppliers = (
        Supplier("actives_direct", "Actives Direct", ("hyaluronic_acid", "niacinamide", "vitamin_c"), 0.85, "ZA"),
        Supplier("lipid_labs", "Lipid Labs", ("ceramides", "vitamin_e", "retinol"), 0.75, "EU"),
    )
    return ReferenceData(ingredients, products, suppliers)


def default_reference_store() -> ReferenceStore:
    return ReferenceStore(default_reference_data())
