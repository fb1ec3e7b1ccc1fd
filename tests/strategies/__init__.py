"""
Hypothesis strategies for property-based testing.

Contains test data generators for the catalog, policy and access models.
"""

from tests.strategies.common_strategies import (
    ManualClock,
    non_empty_string_strategy,
    identity_strategy,
    blank_justification_strategy,
    justification_strategy,
    timestamp_strategy,
)

from tests.strategies.product_strategies import (
    sensitivity_strategy,
    requestable_status_strategy,
    domain_strategy,
    sort_key_strategy,
    data_product_strategy,
    catalog_strategy,
    policy_strategy,
)

from tests.strategies.access_strategies import (
    access_type_strategy,
    any_justification_strategy,
    access_request_strategy,
    stored_grant_strategy,
)

__all__ = [
    'ManualClock',
    'non_empty_string_strategy',
    'identity_strategy',
    'blank_justification_strategy',
    'justification_strategy',
    'timestamp_strategy',
    'sensitivity_strategy',
    'requestable_status_strategy',
    'domain_strategy',
    'sort_key_strategy',
    'data_product_strategy',
    'catalog_strategy',
    'policy_strategy',
    'access_type_strategy',
    'any_justification_strategy',
    'access_request_strategy',
    'stored_grant_strategy',
]
