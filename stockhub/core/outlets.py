import re
from dataclasses import dataclass
from enum import Enum

from stockhub.core.errors import ValidationError


@dataclass(frozen=True)
class OutletProfile:
    code: str
    display_name: str
    outlet_type: str
    location: str
    database_setting: str
    external_location_names: tuple[str, ...]


class Outlet(str, Enum):
    CENTRAL_KITCHEN = "central-kitchen"
    KUWAIT_CITY = "kuwait-city"
    MALL_360 = "360-mall"
    VIBE_COMPLEX = "vibe-complex"
    TAIBA_HOSPITAL = "taiba-hospital"

    @property
    def profile(self) -> OutletProfile:
        return _PROFILES[self]

    @property
    def code(self) -> str:
        return self.profile.code

    @property
    def display_name(self) -> str:
        return self.profile.display_name

    @property
    def is_central_kitchen(self) -> bool:
        return self is Outlet.CENTRAL_KITCHEN


_PROFILES: dict[Outlet, OutletProfile] = {
    Outlet.CENTRAL_KITCHEN: OutletProfile(
        code="CK-001",
        display_name="Central Kitchen",
        outlet_type="Central Kitchen",
        location="Kuwait City, Kuwait",
        database_setting="central_kitchen_database_url",
        external_location_names=("TLB central kitchen", "Central Kitchen"),
    ),
    Outlet.KUWAIT_CITY: OutletProfile(
        code="OUT-001",
        display_name="Kuwait City",
        outlet_type="Restaurant",
        location="Kuwait City, Kuwait",
        database_setting="kuwait_city_database_url",
        external_location_names=("TLB City", "Kuwait City"),
    ),
    Outlet.VIBE_COMPLEX: OutletProfile(
        code="OUT-002",
        display_name="Vibe Complex",
        outlet_type="Cafe",
        location="Kuwait City, Kuwait",
        database_setting="vibe_complex_database_url",
        external_location_names=("TLB vibes", "Vibe Complex", "Vibes Complex"),
    ),
    Outlet.MALL_360: OutletProfile(
        code="OUT-003",
        display_name="360 Mall",
        outlet_type="Food Court",
        location="Kuwait City, Kuwait",
        database_setting="mall_360_database_url",
        external_location_names=("TLB 360 RNA", "360 Mall", "Mall 360"),
    ),
    Outlet.TAIBA_HOSPITAL: OutletProfile(
        code="OUT-004",
        display_name="Taiba Hospital",
        outlet_type="Drive-Thru",
        location="Kuwait City, Kuwait",
        database_setting="taiba_hospital_database_url",
        external_location_names=("clinic", "Taiba Hospital", "Taiba Kitchen"),
    ),
}

_SYNONYMS: dict[str, Outlet] = {
    "central kitchen": Outlet.CENTRAL_KITCHEN,
    "kitchen": Outlet.CENTRAL_KITCHEN,
    "ck": Outlet.CENTRAL_KITCHEN,
    "tlb central kitchen": Outlet.CENTRAL_KITCHEN,
    "kuwait city": Outlet.KUWAIT_CITY,
    "kuwait": Outlet.KUWAIT_CITY,
    "city": Outlet.KUWAIT_CITY,
    "tlb city": Outlet.KUWAIT_CITY,
    "360 mall": Outlet.MALL_360,
    "mall 360": Outlet.MALL_360,
    "360": Outlet.MALL_360,
    "mall": Outlet.MALL_360,
    "360 rna": Outlet.MALL_360,
    "tlb 360 rna": Outlet.MALL_360,
    "vibe complex": Outlet.VIBE_COMPLEX,
    "vibes complex": Outlet.VIBE_COMPLEX,
    "vibe": Outlet.VIBE_COMPLEX,
    "vibes": Outlet.VIBE_COMPLEX,
    "tlb vibes": Outlet.VIBE_COMPLEX,
    "taiba hospital": Outlet.TAIBA_HOSPITAL,
    "taiba": Outlet.TAIBA_HOSPITAL,
    "taiba kitchen": Outlet.TAIBA_HOSPITAL,
    "drive": Outlet.TAIBA_HOSPITAL,
    "drive thru": Outlet.TAIBA_HOSPITAL,
    "clinic": Outlet.TAIBA_HOSPITAL,
}
for _outlet, _profile in _PROFILES.items():
    _SYNONYMS.setdefault(_profile.code.lower().replace("-", " "), _outlet)


def _normalize_name(value: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[-_]+", " ", value.strip().lower())).strip()


def canonicalize_outlet(value: "str | Outlet") -> Outlet:
    """Map any accepted outlet spelling (slug, display name, code or legacy alias) to an Outlet."""
    if isinstance(value, Outlet):
        return value
    normalized = _normalize_name(value or "")
    if not normalized:
        raise ValidationError("Outlet is required")
    outlet = _SYNONYMS.get(normalized)
    if outlet is None:
        allowed = ", ".join(outlet.value for outlet in Outlet)
        raise ValidationError(f"Unknown outlet '{value}'. Allowed: {allowed}")
    return outlet
