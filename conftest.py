"""
Pytest configuration and shared fixtures for the mesh-governance project.
"""
import pytest
from hypothesis import settings, Verbosity

# Configure Hypothesis settings for all property-based tests
settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    suppress_health_check=[],
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    suppress_health_check=[],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    suppress_health_check=[],
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")


@pytest.fixture
def clock():
    """A manually advanced clock pinned to 2024-01-22 UTC."""
    from tests.strategies.common_strategies import ManualClock
    return ManualClock()


@pytest.fixture
def audit_log(clock):
    from mesh_governance.audit import AuditLog
    return AuditLog(clock=clock)


@pytest.fixture
def catalog(clock):
    from mesh_governance.catalog import CatalogIndex
    return CatalogIndex(clock=clock)


@pytest.fixture
def policy_store(audit_log, clock):
    from mesh_governance.policy import PolicyStore
    return PolicyStore(audit_log, clock=clock)


@pytest.fixture
def lifecycle(catalog, policy_store, audit_log, clock):
    """Lifecycle manager without a notification dispatcher."""
    from mesh_governance.access import AccessLifecycleManager
    return AccessLifecycleManager(
        catalog=catalog,
        policy_store=policy_store,
        audit_log=audit_log,
        clock=clock,
    )


@pytest.fixture
def governance_service(clock):
    """A fully wired governance service; notification workers are stopped afterwards."""
    from mesh_governance.service import GovernanceService
    service = GovernanceService(clock=clock)
    yield service
    service.close()


@pytest.fixture
def admin():
    from mesh_governance.models import Principal, Role
    return Principal(id="admin-1", role=Role.ADMIN)
