"""
Integration tests for end-to-end access scenarios through the service facade.
"""

from datetime import datetime, timezone

import pytest

from mesh_governance.models import (
    AuditOutcome,
    DataProduct,
    Principal,
    ProductStatus,
    RequestStatus,
    Role,
    Sensitivity,
)

OWNER = Principal(id="ana.costa", role=Role.DOMAIN_OWNER)
CONSUMER = Principal(id="joao.lima")


@pytest.fixture
def two_products(governance_service):
    """P1 (public, quality 95) and P2 (restricted, quality 88)."""
    p1 = governance_service.publish_product(OWNER, DataProduct(
        id="P1",
        name="Product Inventory Stream",
        domain="Operations",
        owner="ana.costa",
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.PUBLIC,
        quality_score=95,
        last_updated=datetime(2024, 1, 20, tzinfo=timezone.utc),
    ))
    p2 = governance_service.publish_product(OWNER, DataProduct(
        id="P2",
        name="Financial Reports API",
        domain="Finance",
        owner="ana.costa",
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.RESTRICTED,
        quality_score=88,
        last_updated=datetime(2024, 1, 19, tzinfo=timezone.utc),
    ))
    return p1, p2


def test_quality_search_then_policy_denial(governance_service, two_products, admin):
    results = governance_service.search_products("", "all", "quality")
    assert [p.id for p in results] == ["P1", "P2"]

    governance_service.update_policy(admin, auto_approve=True, require_justification=True)
    entries_before = len(governance_service.audit_log)

    request = governance_service.submit_request(CONSUMER, "P2", "api", "")

    assert request.status == RequestStatus.DENIED
    assert governance_service.list_grants() == []
    assert len(governance_service.audit_log) == entries_before + 1
    entry = governance_service.query_audit().entries[0]
    assert entry.subject_id == request.id
    assert entry.outcome == AuditOutcome.DENIED


def test_auto_approval_of_public_product(governance_service, two_products, admin):
    governance_service.update_policy(admin, auto_approve=True)

    public = governance_service.submit_request(CONSUMER, "P1", "download", "Stock dashboard")
    restricted = governance_service.submit_request(CONSUMER, "P2", "api", "Budget planning")

    assert public.status == RequestStatus.APPROVED
    assert restricted.status == RequestStatus.PENDING
    assert governance_service.get_product("P1").consumers == 1
    assert governance_service.get_product("P2").consumers == 0


def test_grant_expiry_visible_on_dashboard(governance_service, two_products, clock):
    request = governance_service.submit_request(CONSUMER, "P2", "api", "Budget planning")
    governance_service.approve_request(OWNER, request.id)

    assert governance_service.access_summary().active_grants == 1
    clock.advance(days=160)
    assert governance_service.access_summary().expiring_grants == 1
    clock.advance(days=30)
    summary = governance_service.access_summary()
    assert summary.expired_grants == 1
    assert summary.expiring_grants == 0
