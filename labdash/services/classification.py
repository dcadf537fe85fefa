"""
Sample Classification Rules

Static lookup tables and pure mapping functions used by every report:

- which specimen-type codes make up each reporting category
- which result mnemonics mark a sample as unsatisfactory
- which province bucket a submitting facility belongs to
- which lab numbers are excluded from unsatisfactory reports

The Nearby Bucket:
    A fixed set of submitter IDs is reported under the synthetic province
    LOPEZ_NEARBY regardless of the county recorded on the facility address.
    The override is unconditional: it applies to every query, every filter,
    received and screened alike. A filter for a literal county therefore never
    returns one of these submitters.

The tables are immutable. They are built once per process by
get_classification_rules() and injected into the aggregation engine; nothing
in the request path mutates them.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from labdash.core.errors import InvalidWindow
from labdash.models.enums import SpecimenCategory


# =============================================================================
# Default Tables
# =============================================================================

NEARBY_GROUP = "LOPEZ_NEARBY"

ALL_PROVINCES = "all"

# Submitter IDs reported under LOPEZ_NEARBY
NEARBY_SUBMITTER_IDS: Tuple[int, ...] = (
    51, 174, 267, 365, 469, 488, 490, 497, 503, 537, 566, 576, 595,
    858, 930, 1002, 1071, 1502, 2283, 2286, 3471, 3784, 3871,
    3978, 4305, 4459, 4468, 4477, 4705, 4710, 4781, 4801,
    4802, 4810, 4880, 4890, 5638, 5686, 5958, 6074, 6282,
    6390, 6399, 6472, 6519, 6915, 6976, 7120, 7293, 7339,
    7887, 7972, 8306,
)

# Canonical union of rejection mnemonics across all unsatisfactory reports
UNSATISFACTORY_MNEMONICS: Tuple[str, ...] = (
    "DE", "INS", "E101", "E100", "E102", "E103", "E107",
    "E109", "UD", "ODC", "NDE", "NE", "E108",
)

# Ordered specimen-type code sets per named category variant
SPECIMEN_CODES: Mapping[SpecimenCategory, Tuple[str, ...]] = MappingProxyType({
    SpecimenCategory.RECEIVED: ("1", "87", "20", "2", "3", "4", "5", "18"),
    SpecimenCategory.RECEIVED_SUMMARY: ("5", "4", "3", "20", "2", "87"),
    SpecimenCategory.SCREENED_DAILY: ("20", "1"),
    SpecimenCategory.SCREENED_SUMMARY: ("4", "3", "20", "2", "1", "87"),
    SpecimenCategory.UNSAT_DETAIL: ("2", "3", "4", "20", "87"),
    SpecimenCategory.PROVINCE_COMPARISON: ("20", "87"),
})

# Categories that are names for another variant
CATEGORY_ALIASES: Mapping[SpecimenCategory, SpecimenCategory] = MappingProxyType({
    SpecimenCategory.SCREENED: SpecimenCategory.SCREENED_DAILY,
})

# Lab numbers with this marker at this (1-based) position are excluded
EXCLUDED_LABNO_POSITION = 8
EXCLUDED_LABNO_MARKER = "8"


# =============================================================================
# Helpers
# =============================================================================

def normalize_submitter_id(value: Any) -> Optional[str]:
    """
    Normalize a submitter ID to its canonical string form.

    IDs arrive as int from configuration, as int/Decimal/str from the
    database, and occasionally as float from spreadsheets. 51, "51",
    Decimal("51") and 51.0 all normalize to "51".
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text:
        return None
    if "." in text:
        whole, _, fraction = text.partition(".")
        if whole.isdigit() and set(fraction) <= {"0"}:
            text = whole
    return text


def province_key(name: Optional[str]) -> str:
    """Comparison key for a province/county value: trimmed and uppercased."""
    if name is None:
        return ""
    return str(name).strip().upper()


# =============================================================================
# Rules
# =============================================================================

@dataclass(frozen=True)
class ClassificationRules:
    """
    Immutable classification tables plus the mapping functions over them.

    Attributes:
        specimen_codes: Category variant -> ordered specimen-type codes.
        nearby_submitter_ids: Submitter IDs (normalized strings) always
            grouped under nearby_group.
        unsatisfactory_mnemonics: Ordered rejection mnemonics.
        nearby_group: Name of the synthetic province bucket.
        excluded_labno_position: 1-based position checked for the exclusion marker.
        excluded_labno_marker: Character that excludes a lab number.
    """
    specimen_codes: Mapping[SpecimenCategory, Tuple[str, ...]] = field(
        default_factory=lambda: SPECIMEN_CODES
    )
    nearby_submitter_ids: FrozenSet[str] = field(
        default_factory=lambda: frozenset(
            normalize_submitter_id(i) for i in NEARBY_SUBMITTER_IDS
        )
    )
    unsatisfactory_mnemonics: Tuple[str, ...] = UNSATISFACTORY_MNEMONICS
    nearby_group: str = NEARBY_GROUP
    excluded_labno_position: int = EXCLUDED_LABNO_POSITION
    excluded_labno_marker: str = EXCLUDED_LABNO_MARKER

    # -------------------------------------------------------------------------
    # Specimen categories
    # -------------------------------------------------------------------------

    def category_to_specimen_codes(self, category: Any) -> Tuple[str, ...]:
        """
        Return the ordered specimen-type codes for a category variant.

        Accepts a SpecimenCategory or its string value (case-insensitive).

        Raises:
            InvalidWindow: If the category is unknown.
        """
        resolved = self.resolve_category(category)
        return self.specimen_codes[resolved]

    def resolve_category(self, category: Any) -> SpecimenCategory:
        """Map a category name or alias to the variant that owns a code set."""
        if isinstance(category, SpecimenCategory):
            member = category
        else:
            try:
                member = SpecimenCategory(str(category).strip().lower())
            except ValueError:
                valid = ", ".join(c.value for c in SpecimenCategory)
                raise InvalidWindow(
                    f"Unknown category '{category}'. Must be one of: {valid}"
                )
        member = CATEGORY_ALIASES.get(member, member)
        if member not in self.specimen_codes:
            raise InvalidWindow(f"No specimen codes configured for category '{member.value}'")
        return member

    # -------------------------------------------------------------------------
    # Province grouping
    # -------------------------------------------------------------------------

    def is_nearby_submitter(self, submitter_id: Any) -> bool:
        return normalize_submitter_id(submitter_id) in self.nearby_submitter_ids

    def resolve_province_group(self, submitter_id: Any, raw_county: Optional[str]) -> str:
        """
        Return the reporting province for a submitter.

        Submitters in the nearby set always resolve to the nearby bucket,
        whatever their county (including None). Everyone else resolves to
        their county with padding stripped and original casing kept; a
        missing county resolves to "".
        """
        if self.is_nearby_submitter(submitter_id):
            return self.nearby_group
        if raw_county is None:
            return ""
        return str(raw_county).strip()

    def is_all_provinces(self, requested: Optional[str]) -> bool:
        return requested is None or province_key(requested) in ("", ALL_PROVINCES.upper())

    def is_nearby_request(self, requested: Optional[str]) -> bool:
        return province_key(requested) == self.nearby_group

    def matches_province_filter(self, group: str, requested: Optional[str]) -> bool:
        """
        Whether a resolved province group satisfies a requested province filter.

        - None, "" or "all" match every group
        - the nearby sentinel matches only the nearby bucket, exactly
        - any other value is a case-insensitive prefix of a literal county
        """
        if self.is_all_provinces(requested):
            return True
        group_key = province_key(group)
        if self.is_nearby_request(requested):
            return group_key == self.nearby_group
        if group_key == self.nearby_group:
            return False
        return group_key.startswith(province_key(requested))

    # -------------------------------------------------------------------------
    # Unsatisfactory samples
    # -------------------------------------------------------------------------

    def is_unsatisfactory_mnemonic(self, code: Optional[str]) -> bool:
        if code is None:
            return False
        return str(code).strip().upper() in self.unsatisfactory_mnemonics

    def is_excluded_lab_number(self, lab_number: Optional[str]) -> bool:
        """Lab numbers carrying the exclusion marker are left out of unsat reports."""
        if lab_number is None:
            return False
        text = str(lab_number)
        index = self.excluded_labno_position - 1
        return len(text) > index and text[index] == self.excluded_labno_marker

    @property
    def sorted_nearby_ids(self) -> Tuple[str, ...]:
        """Nearby IDs in a stable order, for binding as a query parameter."""
        return tuple(sorted(self.nearby_submitter_ids, key=lambda v: (len(v), v)))


@lru_cache()
def get_classification_rules() -> ClassificationRules:
    """Process-wide immutable rules instance."""
    return ClassificationRules()


# =============================================================================
# Module-level shortcuts over the default rules
# =============================================================================

def category_to_specimen_codes(category: Any) -> Tuple[str, ...]:
    return get_classification_rules().category_to_specimen_codes(category)


def resolve_province_group(submitter_id: Any, raw_county: Optional[str]) -> str:
    return get_classification_rules().resolve_province_group(submitter_id, raw_county)


def is_unsatisfactory_mnemonic(code: Optional[str]) -> bool:
    return get_classification_rules().is_unsatisfactory_mnemonic(code)
