from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence, TypeVar

from brokerage.models.domain import CoverGroup, Department

T = TypeVar("T", bound=str)

MARINE_PRODUCT_TYPES: tuple[str, ...] = (
    "Marine Cargo Single Shipment",
    "Marine Open Cover",
    "Haulier Liability/FFL",
    "Commercial Vessel",
    "Pleasure Boats",
    "Jetski",
    "P&I",
    "Marine Liability",
    "Goods in Transit",
)

ENGINEERING_PRODUCT_TYPES: tuple[str, ...] = (
    "CONTRACTORS ALL RISKS",
    "ERECTION ALL RISKS",
    "Comprehensive Project (CP)",
    "Delay in Start Up (DSU) / Advanced Loss of Profit only in conjunction with CAR / EAR / CP sublimit 10% of Total Contract Value maximum USD 1,361,470",
    "Contractor's Plant and Machinery (CPM) including own damage losses of self propelled CPM's whilst in transit on the road",
    "Third Party Liability when written in conjunction with CAR / EAR / CPM / BPV only",
    "MACHINERY ALL RISKS",
    "MACHINERY BREAKDOWN",
    "LOSS OF PROFIT FOLLOWING MACHINERY BREAKDOWN",
    "BOILER AND PRESSURE VESSEL",
    "ELECTRONIC EQUIPMENT",
    "DETERIORATION OF STOCKS IN COLD STORAGE",
    "CONTRACTORS PLANT AND MACHINERY SCHEDULE",
)

PROPERTY_PRODUCT_TYPES: tuple[str, ...] = (
    "FIRE & PERILS",
    "PROPERTY ALL RISKS",
    "BUSINESS INTERRUPTION ( Loss of Profits, Additional/Increased Cost of Working, Auditors Fee etc.)",
    "HOUSE HOLDER/OWNER COMPREHENSIVE",
    "OFFICE CONTENTS",
    "HOTEL COMP RISK",
    "Contingent Business Interruption (CBI) if written in accordance with the Contingent Business Interruption (CBI) Clause in the Contractual Wording",
    "MECHANICAL/ELECTRICAL BREKDOWN",
    "BURGLARY when written in conjunction with fire",
    "MONEY/CASH (CIT)",
    "FIDELITY GUARANTEE (FG)",
    "PUBLIC LIABILITY/TPL if also covered under a Fire or PAR",
)

LIABILITY_PRODUCT_TYPES: tuple[str, ...] = (
    "Commercial General Liability (CGL) Insurance",
    "Public Liability Insurance",
    "Product Liability Insurance",
    "Professional Indemnity (Errors & Omissions) Insurance",
    "Employers' Liability Insurance",
    "Workers' Compensation Insurance",
    "Directors & Officers (D&O) Liability Insurance",
    "Commercial Auto Liability Insurance",
    "Umbrella/Excess Liability Insurance",
    "Product Recall Insurance",
    "Medical Malpractice Insurance",
    "Cyber Liability Insurance",
    "Environmental Liability Insurance",
    "Personal Liability Insurance",
    "Airside Aviation Liability Insurance",
    "Event Liability Insurance",
    "Employment Practices Liability Insurance (EPL)",
    "Crime Insurance (Commercial Crime/Fidelity Guarantee)",
    "Financial Institutions Professional Indemnity Insurance",
    "Bankers Blanket Bond",
    "Public Offering of Securities Insurance (POSI)",
    "Pension Trustee Liability Insurance",
    "Fiduciary Liability Insurance",
    "Prospectus Liability Insurance",
)

# Products whose uploads carry a vessel name worth keeping in the notes.
VESSEL_PRODUCT_TYPES = frozenset({"Pleasure Boats", "Jetski"})


def normalize_choice(
    value: str | None,
    options: Sequence[T],
    aliases: Mapping[str, T],
    default: T,
) -> T:
    """Map free text onto one of `options`.

    Resolution order:
    - exact, case-insensitive match
    - alias lookup on the lowercased text
    - first option whose text is contained in the input
    - `default`
    """

    if not value:
        return default
    trimmed = str(value).strip()
    if not trimmed:
        return default
    lower = trimmed.lower()
    for option in options:
        if option.lower() == lower:
            return option
    if lower in aliases:
        return aliases[lower]
    for option in options:
        if option.lower() in lower:
            return option
    return default


@dataclass(frozen=True)
class DepartmentProfile:
    department: Department
    slug: str
    product_types: tuple[str, ...]
    default_product_type: str
    product_aliases: Mapping[str, str] = field(default_factory=dict)
    cover_groups: Mapping[str, CoverGroup] = field(default_factory=dict)

    @property
    def uses_cover_groups(self) -> bool:
        return bool(self.cover_groups)

    def validate_product_type(
        self, product_type: str, cover_group: CoverGroup | None = None
    ) -> tuple[str, CoverGroup | None]:
        """Check a product type against this department's catalogue.

        Returns the product type together with the resolved cover group
        (always None outside Property & Engineering).
        """

        if product_type not in self.product_types:
            raise ValueError(
                f"Invalid product type for {self.department.value}: {product_type}"
            )
        if not self.uses_cover_groups:
            return product_type, None

        expected = self.cover_groups[product_type]
        if cover_group is not None and cover_group != expected:
            raise ValueError(
                f"Product type {product_type} belongs to cover group {expected.value}"
            )
        return product_type, expected

    def normalize_product_type(self, raw: str | None) -> str:
        return normalize_choice(
            raw, self.product_types, self.product_aliases, self.default_product_type
        )


MARINE = DepartmentProfile(
    department=Department.marine,
    slug="marine",
    product_types=MARINE_PRODUCT_TYPES,
    default_product_type="Marine Cargo Single Shipment",
    product_aliases={
        "pleasure boat": "Pleasure Boats",
        "pleasure boats": "Pleasure Boats",
        "jetski": "Jetski",
        "jet ski": "Jetski",
        "marine cargo": "Marine Cargo Single Shipment",
        "cargo single": "Marine Cargo Single Shipment",
        "open cover": "Marine Open Cover",
        "haulier liability": "Haulier Liability/FFL",
        "haulier liability/ffl": "Haulier Liability/FFL",
        "goods in transit": "Goods in Transit",
        "marine liability": "Marine Liability",
        "p&i": "P&I",
        "p & i": "P&I",
    },
)

PROPERTY_ENGINEERING = DepartmentProfile(
    department=Department.property_engineering,
    slug="property-engineering",
    product_types=ENGINEERING_PRODUCT_TYPES + PROPERTY_PRODUCT_TYPES,
    default_product_type="PROPERTY ALL RISKS",
    product_aliases={
        "car": "CONTRACTORS ALL RISKS",
        "contractors all risk": "CONTRACTORS ALL RISKS",
        "ear": "ERECTION ALL RISKS",
        "erection all risk": "ERECTION ALL RISKS",
        "cpm": "CONTRACTORS PLANT AND MACHINERY SCHEDULE",
        "mb": "MACHINERY BREAKDOWN",
        "par": "PROPERTY ALL RISKS",
        "property all risk": "PROPERTY ALL RISKS",
        "fire": "FIRE & PERILS",
        "fire and perils": "FIRE & PERILS",
        "bi": "BUSINESS INTERRUPTION ( Loss of Profits, Additional/Increased Cost of Working, Auditors Fee etc.)",
        "business interruption": "BUSINESS INTERRUPTION ( Loss of Profits, Additional/Increased Cost of Working, Auditors Fee etc.)",
        "money": "MONEY/CASH (CIT)",
        "fidelity guarantee": "FIDELITY GUARANTEE (FG)",
    },
    cover_groups={
        **{p: CoverGroup.engineering for p in ENGINEERING_PRODUCT_TYPES},
        **{p: CoverGroup.property for p in PROPERTY_PRODUCT_TYPES},
    },
)

LIABILITY_FINANCIAL = DepartmentProfile(
    department=Department.liability_financial,
    slug="liability",
    product_types=LIABILITY_PRODUCT_TYPES,
    default_product_type="Commercial General Liability (CGL) Insurance",
    product_aliases={
        "cgl": "Commercial General Liability (CGL) Insurance",
        "general liability": "Commercial General Liability (CGL) Insurance",
        "public liability": "Public Liability Insurance",
        "product liability": "Product Liability Insurance",
        "pi": "Professional Indemnity (Errors & Omissions) Insurance",
        "professional indemnity": "Professional Indemnity (Errors & Omissions) Insurance",
        "e&o": "Professional Indemnity (Errors & Omissions) Insurance",
        "d&o": "Directors & Officers (D&O) Liability Insurance",
        "directors and officers": "Directors & Officers (D&O) Liability Insurance",
        "cyber": "Cyber Liability Insurance",
        "epl": "Employment Practices Liability Insurance (EPL)",
        "workmen compensation": "Workers' Compensation Insurance",
        "bbb": "Bankers Blanket Bond",
    },
)

PROFILES: dict[Department, DepartmentProfile] = {
    p.department: p for p in (MARINE, PROPERTY_ENGINEERING, LIABILITY_FINANCIAL)
}
_BY_SLUG: dict[str, DepartmentProfile] = {p.slug: p for p in PROFILES.values()}


def get_profile(department: Department) -> DepartmentProfile:
    return PROFILES[department]


def profile_for_slug(slug: str) -> DepartmentProfile:
    profile = _BY_SLUG.get(str(slug or "").strip().lower())
    if profile is None:
        raise LookupError(f"Unknown department: {slug}")
    return profile
