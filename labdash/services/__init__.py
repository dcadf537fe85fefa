"""
Backend Services Module

Business logic for the laboratory dashboard.

Services:
- classification: Immutable classification tables (specimen code sets,
  rejection mnemonics, nearby-submitter bucket) and pure mapping functions
- windows: Report date-range parsing and validation
- gateway: SampleRepository, scoped connection checkout and query execution
- shaping: Grouping of flat rows into report structures and response envelopes
- aggregation: AggregationEngine, the report operations

Only the dependency-free modules are re-exported here. Import gateway,
shaping and aggregation from their own modules.
"""

from labdash.services.classification import (
    ALL_PROVINCES,
    NEARBY_GROUP,
    ClassificationRules,
    category_to_specimen_codes,
    get_classification_rules,
    is_unsatisfactory_mnemonic,
    normalize_submitter_id,
    province_key,
    resolve_province_group,
)
from labdash.services.windows import (
    AggregationWindow,
    current_month_window,
    parse_window,
)


__all__ = [
    # classification
    'ALL_PROVINCES',
    'NEARBY_GROUP',
    'ClassificationRules',
    'category_to_specimen_codes',
    'get_classification_rules',
    'is_unsatisfactory_mnemonic',
    'normalize_submitter_id',
    'province_key',
    'resolve_province_group',
    # windows
    'AggregationWindow',
    'current_month_window',
    'parse_window',
]
