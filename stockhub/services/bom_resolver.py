"""Recursive bill-of-materials expansion.

``BomResolver.resolve`` flattens a recipe into the leaf raw materials and any
nested finished goods it consumes. Expansion walks the BOM graph with an
explicit stack, so deep recipes never hit the interpreter recursion limit and a
cycle of any length is reported as ``CircularBomReference`` with its path.
Quantities are summed per code and never rounded.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from stockhub.core.errors import BomNotFound, CircularBomReference, ValidationError


@dataclass(frozen=True)
class BomLine:
    item_type: str
    material_code: str
    quantity: float
    bom_code: str | None = None


@dataclass(frozen=True)
class BomDefinition:
    bom_code: str
    lines: tuple[BomLine, ...]


@dataclass
class BomDemand:
    raw_materials: dict[str, float] = field(default_factory=dict)
    finished_goods: dict[str, float] = field(default_factory=dict)

    def add_raw_material(self, code: str, qty: float) -> None:
        self.raw_materials[code] = self.raw_materials.get(code, 0.0) + qty

    def add_finished_good(self, code: str, qty: float) -> None:
        self.finished_goods[code] = self.finished_goods.get(code, 0.0) + qty

    def merge(self, other: "BomDemand") -> "BomDemand":
        for code, qty in other.raw_materials.items():
            self.add_raw_material(code, qty)
        for code, qty in other.finished_goods.items():
            self.add_finished_good(code, qty)
        return self

    def is_empty(self) -> bool:
        return not self.raw_materials and not self.finished_goods


class BomResolver:
    """Expand recipes against a BOM lookup.

    ``find_bom`` returns a ``BomDefinition`` or ``None``. ``is_finished_good``
    probes the consuming outlet's finished-goods ledger; raw-material lines
    whose code is stocked there as a finished good are reported as
    finished-good demand. Without a probe every leaf is a raw material.
    """

    def __init__(
        self,
        find_bom: Callable[[str], BomDefinition | None],
        is_finished_good: Callable[[str], bool] | None = None,
    ):
        self._find_bom = find_bom
        self._is_finished_good = is_finished_good

    def resolve(self, bom_code: str, multiplier: float = 1.0) -> BomDemand:
        if multiplier <= 0:
            raise ValidationError("BOM quantity must be greater than zero")

        loaded: dict[str, BomDefinition] = {}
        probes: dict[str, bool] = {}
        demand = BomDemand()

        def load(code: str) -> BomDefinition:
            if code not in loaded:
                bom = self._find_bom(code)
                if bom is None:
                    raise BomNotFound(code)
                loaded[code] = bom
            return loaded[code]

        def classify(code: str) -> bool:
            if self._is_finished_good is None:
                return False
            if code not in probes:
                probes[code] = bool(self._is_finished_good(code))
            return probes[code]

        path = [bom_code]
        stack: list[tuple[float, Iterator[BomLine]]] = [(multiplier, iter(load(bom_code).lines))]
        while stack:
            scale, lines = stack[-1]
            line = next(lines, None)
            if line is None:
                stack.pop()
                path.pop()
                continue

            qty = line.quantity * scale
            if line.item_type == "bom":
                child = line.bom_code
                if not child:
                    raise ValidationError(
                        f"BOM line '{line.material_code}' in '{path[-1]}' is a sub-recipe without a bom_code"
                    )
                if child in path:
                    raise CircularBomReference(path[path.index(child):] + [child])
                path.append(child)
                stack.append((qty, iter(load(child).lines)))
            elif classify(line.material_code):
                demand.add_finished_good(line.material_code, qty)
            else:
                demand.add_raw_material(line.material_code, qty)

        return demand
