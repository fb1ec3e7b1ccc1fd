"""
Hypothesis strategies for access requests and grants.
"""

from datetime import timedelta

from hypothesis import strategies as st
from hypothesis.strategies import composite

from mesh_governance.models import AccessGrant, AccessRequest, AccessType, GrantStatus
from tests.strategies.common_strategies import (
    blank_justification_strategy,
    identity_strategy,
    justification_strategy,
    timestamp_strategy,
)


access_type_strategy = st.sampled_from(list(AccessType))

any_justification_strategy = st.one_of(blank_justification_strategy, justification_strategy)


@composite
def access_request_strategy(draw, product_id: str = None, justification=None):
    """
    Generate an AccessRequest in its initial state.

    Args:
        product_id: Optional specific product.
        justification: Optional strategy for the justification text.
    """
    return AccessRequest(
        user_id=draw(identity_strategy),
        product_id=product_id or draw(st.uuids().map(str)),
        access_type=draw(access_type_strategy),
        justification=draw(justification or any_justification_strategy),
        requested_at=draw(timestamp_strategy),
    )


@composite
def stored_grant_strategy(draw, with_expiry: bool = None):
    """
    Generate a grant as it is stored: ``active`` or ``revoked``.

    Args:
        with_expiry: Force an expiry (True), no expiry (False) or either (None).
    """
    granted_at = draw(timestamp_strategy)
    has_expiry = with_expiry if with_expiry is not None else draw(st.booleans())
    expires_at = None
    if has_expiry:
        expires_at = granted_at + timedelta(days=draw(st.integers(min_value=1, max_value=400)))

    return AccessGrant(
        product_id=draw(st.uuids().map(str)),
        holder_id=draw(identity_strategy),
        access_type=draw(access_type_strategy),
        granted_at=granted_at,
        expires_at=expires_at,
        status=draw(st.sampled_from([GrantStatus.ACTIVE, GrantStatus.REVOKED])),
        usage_count=draw(st.integers(min_value=0, max_value=100)),
    )
