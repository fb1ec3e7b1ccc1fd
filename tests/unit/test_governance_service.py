"""
Unit tests for the GovernanceService facade and the demo seed.
"""

import pytest

from mesh_governance.core import (
    AuditStorageExhaustedError,
    AuthorizationError,
    GovernanceConfig,
    InvalidStateError,
    ValidationError,
)
from mesh_governance.models import (
    AccessType,
    ApiKeyStatus,
    AuditAction,
    AuditFilters,
    DataProduct,
    GrantStatus,
    Principal,
    ProductStatus,
    RequestStatus,
    Role,
    Sensitivity,
)
from mesh_governance.seed import load_demo_data

OWNER = Principal(id="maria.santos", role=Role.DOMAIN_OWNER)
OTHER_OWNER = Principal(id="carlos.silva", role=Role.DOMAIN_OWNER)
CONSUMER = Principal(id="joao.lima", role=Role.DATA_CONSUMER)
STEWARD = Principal(id="lucia.steward", role=Role.DATA_STEWARD)


@pytest.fixture
def service(governance_service):
    governance_service.publish_product(OWNER, DataProduct(
        id="inv",
        name="Product Inventory Stream",
        domain="Operations",
        owner="maria.santos",
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.INTERNAL,
        quality_score=92,
    ))
    return governance_service


class TestCatalogOperations:

    def test_publish_is_audited(self, service):
        entries = service.query_audit(AuditFilters(action=AuditAction.PRODUCT_PUBLISHED)).entries
        assert len(entries) == 1
        assert entries[0].subject_id == "inv"
        assert entries[0].actor_id == "maria.santos"

    def test_consumer_cannot_publish(self, service):
        with pytest.raises(AuthorizationError):
            service.publish_product(CONSUMER, DataProduct(name="X", domain="Y", owner="joao.lima"))

    def test_owner_deprecates_own_product(self, service):
        assert service.deprecate_product(OWNER, "inv").status == ProductStatus.DEPRECATED
        with pytest.raises(InvalidStateError):
            service.submit_request(CONSUMER, "inv", AccessType.API, "Stock levels")

    def test_other_owner_cannot_deprecate(self, service):
        with pytest.raises(AuthorizationError):
            service.deprecate_product(OTHER_OWNER, "inv")
        assert service.get_product("inv").status == ProductStatus.ACTIVE

    def test_update_quality(self, service):
        assert service.update_quality(STEWARD, "inv", 97).quality_score == 97

    def test_feedback(self, service):
        service.submit_feedback(CONSUMER, "inv", 4, "Reliable")
        assert [f.user_id for f in service.list_feedback("inv")] == ["joao.lima"]
        assert service.domain_rollup("Operations").average_rating == 4.0


class TestAccessOperations:

    def test_full_lifecycle(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Replenishment forecast")
        assert request.status == RequestStatus.PENDING

        reviewed = service.start_review(OWNER, request.id)
        approved = service.approve_request(OWNER, request.id, expected_version=reviewed.version)
        assert approved.status == RequestStatus.APPROVED

        grant = service.record_usage(CONSUMER, approved.grant_id)
        assert grant.usage_count == 1

        revoked = service.revoke_grant(OWNER, grant.id, reason="Forecast delivered")
        assert revoked.status == GrantStatus.REVOKED
        assert service.access_summary().revoked_grants == 1

    def test_consumer_cannot_approve(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Forecast")
        with pytest.raises(AuthorizationError):
            service.approve_request(CONSUMER, request.id)
        with pytest.raises(AuthorizationError):
            service.deny_request(OTHER_OWNER, request.id)
        assert service.get_request(request.id).status == RequestStatus.PENDING

    def test_steward_may_deny_any_request(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Forecast")
        assert service.deny_request(STEWARD, request.id, reason="Out of scope").status == RequestStatus.DENIED

    def test_only_holder_records_usage(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Forecast")
        approved = service.approve_request(OWNER, request.id)
        with pytest.raises(AuthorizationError):
            service.record_usage(Principal(id="someone.else"), approved.grant_id)

    def test_policy_update_requires_admin(self, service, admin):
        with pytest.raises(AuthorizationError):
            service.update_policy(STEWARD, auto_approve=True)
        assert service.update_policy(admin, auto_approve=True).version == 2
        assert service.get_policy(admin).auto_approve is True

    def test_policy_read_requires_admin(self, service, admin):
        for principal in (CONSUMER, OWNER, STEWARD):
            with pytest.raises(AuthorizationError):
                service.get_policy(principal)
        assert service.get_policy(admin).version == 1

    def test_audit_chain_stays_valid(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Forecast")
        service.approve_request(OWNER, request.id)
        assert service.verify_audit_chain().is_valid


class TestApiKeys:

    @pytest.fixture
    def grant(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.API, "Forecast")
        return service.get_grant(service.approve_request(OWNER, request.id).grant_id)

    def test_issue_returns_raw_key_once(self, service, grant):
        raw_key, api_key = service.issue_api_key(CONSUMER, grant.id, name="forecast-job")
        assert raw_key.startswith("dp_live_sk_")
        assert api_key.masked_key.startswith("dp_live_sk_")
        assert raw_key not in api_key.masked_key
        assert raw_key[-4:] == api_key.masked_key[-4:]
        assert "key_hash" not in api_key.model_dump()
        assert service.get_api_key(api_key.id).name == "forecast-job"
        assert service.lifecycle.validate_api_key(raw_key).id == grant.id

        entries = service.query_audit(AuditFilters(action=AuditAction.API_KEY_ISSUED)).entries
        assert [e.subject_id for e in entries] == [api_key.id]

    def test_usage_touches_last_used(self, service, grant, clock):
        _, api_key = service.issue_api_key(CONSUMER, grant.id)
        assert api_key.last_used is None
        clock.advance(hours=2)
        service.record_usage(CONSUMER, grant.id)
        assert service.get_api_key(api_key.id).last_used == clock()

    def test_reissue_revokes_previous_key(self, service, grant, clock):
        old_raw, old_key = service.issue_api_key(CONSUMER, grant.id)
        clock.advance(minutes=5)
        new_raw, new_key = service.issue_api_key(CONSUMER, grant.id)
        assert service.get_api_key(old_key.id).status == ApiKeyStatus.REVOKED
        assert service.get_api_key(new_key.id).status == ApiKeyStatus.ACTIVE
        with pytest.raises(AuthorizationError):
            service.lifecycle.validate_api_key(old_raw)
        assert service.lifecycle.validate_api_key(new_raw).id == grant.id
        assert [k.id for k in service.list_api_keys(grant_id=grant.id)] == [new_key.id, old_key.id]

    def test_revoking_grant_revokes_keys(self, service, grant):
        raw_key, api_key = service.issue_api_key(CONSUMER, grant.id)
        service.revoke_grant(OWNER, grant.id, reason="Project ended")
        revoked = service.get_api_key(api_key.id)
        assert revoked.status == ApiKeyStatus.REVOKED
        assert revoked.revoked_at is not None
        with pytest.raises(AuthorizationError):
            service.lifecycle.validate_api_key(raw_key)
        with pytest.raises(InvalidStateError):
            service.issue_api_key(CONSUMER, grant.id)

    def test_key_reads_as_expired_with_grant(self, service, grant, clock):
        raw_key, api_key = service.issue_api_key(CONSUMER, grant.id)
        clock.advance(days=181)
        assert service.get_api_key(api_key.id).status == ApiKeyStatus.EXPIRED
        assert service.list_api_keys(holder_id="joao.lima")[0].status == ApiKeyStatus.EXPIRED
        with pytest.raises(AuthorizationError):
            service.lifecycle.validate_api_key(raw_key)

    def test_download_grant_has_no_keys(self, service):
        request = service.submit_request(CONSUMER, "inv", AccessType.DOWNLOAD, "Monthly extract")
        approved = service.approve_request(OWNER, request.id)
        with pytest.raises(ValidationError):
            service.issue_api_key(CONSUMER, approved.grant_id)

    def test_only_holder_issues_keys(self, service, grant):
        with pytest.raises(AuthorizationError):
            service.issue_api_key(Principal(id="someone.else"), grant.id)
        assert service.list_api_keys(grant_id=grant.id) == []

    def test_unknown_raw_key(self, service):
        with pytest.raises(AuthorizationError):
            service.lifecycle.validate_api_key("dp_live_sk_not-a-real-key")


class TestLineage:

    def test_owner_registers_lineage(self, service):
        record = service.register_lineage(
            OWNER, "inv", "ERP", "Data Lake", transformations=["Dedupe", " ", "Aggregate by store"],
        )
        assert record.transformations == ["Dedupe", "Aggregate by store"]
        assert [r.id for r in service.list_lineage("inv")] == [record.id]

        entries = service.query_audit(AuditFilters(action=AuditAction.LINEAGE_RECORDED)).entries
        assert entries[0].subject_id == record.id
        assert entries[0].details["source"] == "ERP"

    def test_other_owner_cannot_register(self, service):
        with pytest.raises(AuthorizationError):
            service.register_lineage(OTHER_OWNER, "inv", "ERP", "Data Lake")
        assert service.list_lineage() == []

    def test_blank_destination_rejected(self, service):
        with pytest.raises(ValidationError):
            service.register_lineage(OWNER, "inv", "ERP", "  ")
        assert service.query_audit(AuditFilters(action=AuditAction.LINEAGE_RECORDED)).entries == []


class TestAuditAtomicity:
    """A failed audit append must leave product state untouched."""

    def make_service(self, clock, capacity):
        from mesh_governance.service import GovernanceService
        return GovernanceService(config=GovernanceConfig(audit_capacity=capacity), clock=clock)

    def test_publish_not_visible_when_audit_full(self, clock):
        service = self.make_service(clock, capacity=0)
        try:
            with pytest.raises(AuditStorageExhaustedError):
                service.publish_product(OWNER, DataProduct(id="inv", name="Inventory", domain="Ops", owner="maria.santos"))
            assert service.search_products() == []
            assert service.catalog_stats().total_products == 0
        finally:
            service.close()

    def test_update_and_deprecate_unchanged_when_audit_full(self, clock):
        service = self.make_service(clock, capacity=1)
        try:
            service.publish_product(OWNER, DataProduct(
                id="inv", name="Inventory", domain="Ops", owner="maria.santos", quality_score=80,
            ))
            with pytest.raises(AuditStorageExhaustedError):
                service.update_quality(OWNER, "inv", 99)
            with pytest.raises(AuditStorageExhaustedError):
                service.deprecate_product(OWNER, "inv")
            product = service.get_product("inv")
            assert product.quality_score == 80
            assert product.status == ProductStatus.ACTIVE
        finally:
            service.close()

    def test_lineage_not_stored_when_audit_full(self, clock):
        service = self.make_service(clock, capacity=1)
        try:
            service.publish_product(OWNER, DataProduct(id="inv", name="Inventory", domain="Ops", owner="maria.santos"))
            with pytest.raises(AuditStorageExhaustedError):
                service.register_lineage(OWNER, "inv", "ERP", "Data Lake")
            assert service.list_lineage("inv") == []
        finally:
            service.close()

    def test_rejected_publish_writes_no_entry(self, service):
        with pytest.raises(ValidationError):
            service.publish_product(OWNER, DataProduct(
                id="inv", name="Another", domain="Operations", owner="maria.santos",
            ))
        entries = service.query_audit(AuditFilters(action=AuditAction.PRODUCT_PUBLISHED)).entries
        assert [e.subject_id for e in entries] == ["inv"]


class TestComplianceOperations:

    def test_consumer_cannot_register_rules(self, service):
        with pytest.raises(AuthorizationError):
            service.register_rule(CONSUMER, "Retention")

    def test_steward_manages_rules(self, service):
        rule = service.register_rule(STEWARD, "Retention", severity="high")
        service.record_check(STEWARD, rule.id, 3)
        assert service.compliance_rollup().compliance_score == 91
        service.set_rule_enabled(STEWARD, rule.id, False)
        assert service.compliance_rollup().compliance_score == 100


class TestDemoSeed:

    def test_demo_data(self, governance_service):
        load_demo_data(governance_service)

        stats = governance_service.catalog_stats()
        assert stats.total_products == 4
        assert stats.active_domains == 4
        assert stats.total_consumers == 40
        assert stats.average_quality == 88

        names = [p.name for p in governance_service.search_products(sort_key="quality")]
        assert names == [
            "Customer Analytics Dataset",
            "Product Inventory Stream",
            "Financial Reports API",
            "HR Employee Data",
        ]

        rollup = governance_service.compliance_rollup()
        assert rollup.total_rules == 3
        assert rollup.rules_in_warning == 1
        assert rollup.total_violations == 7
        assert rollup.compliance_score == 86

        lineage = governance_service.list_lineage()
        assert len(lineage) == 2
        assert {r.destination for r in lineage} == {"Data Lake", "Analytics Warehouse"}
