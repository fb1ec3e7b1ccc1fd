"""Demo catalog and compliance rules for local development."""

from datetime import datetime, timezone

from mesh_governance.core import get_logger
from mesh_governance.models.compliance import RuleSeverity
from mesh_governance.models.policy import Principal, Role
from mesh_governance.models.product import (
    DataProduct,
    ProductCategory,
    ProductStatus,
    Sensitivity,
    UpdateFrequency,
)
from mesh_governance.service import GovernanceService

logger = get_logger(__name__)

SEED_PRINCIPAL = Principal(id="demo-seed", role=Role.ADMIN)


def _day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


DEMO_PRODUCTS = [
    DataProduct(
        name="Customer Analytics Dataset",
        description="Dados agregados de comportamento e métricas de clientes para análises de marketing e vendas.",
        domain="Marketing",
        owner="Ana Costa",
        tags=["analytics", "customer", "marketing"],
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.INTERNAL,
        quality_score=95,
        last_updated=_day(2024, 1, 20),
        consumers=12,
        category=ProductCategory.ANALYTICAL,
        update_frequency=UpdateFrequency.DAILY,
    ),
    DataProduct(
        name="Financial Reports API",
        description="Relatórios financeiros consolidados com dados de receita, despesas e métricas de performance.",
        domain="Finance",
        owner="Carlos Silva",
        tags=["finance", "reports", "api"],
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.RESTRICTED,
        quality_score=88,
        last_updated=_day(2024, 1, 19),
        consumers=8,
        category=ProductCategory.TRANSACTIONAL,
        update_frequency=UpdateFrequency.MONTHLY,
    ),
    DataProduct(
        name="Product Inventory Stream",
        description="Stream em tempo real do estoque de produtos com atualizações automáticas de disponibilidade.",
        domain="Operations",
        owner="Maria Santos",
        tags=["inventory", "realtime", "products"],
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.PUBLIC,
        quality_score=92,
        last_updated=_day(2024, 1, 21),
        consumers=15,
        category=ProductCategory.STREAMING,
        update_frequency=UpdateFrequency.REAL_TIME,
    ),
    DataProduct(
        name="HR Employee Data",
        description="Informações de funcionários, incluindo dados demográficos e métricas de performance (anonimizados).",
        domain="Human Resources",
        owner="João Oliveira",
        tags=["hr", "employees", "demographics"],
        status=ProductStatus.DEVELOPMENT,
        access_level=Sensitivity.RESTRICTED,
        quality_score=76,
        last_updated=_day(2024, 1, 18),
        consumers=5,
        category=ProductCategory.ANALYTICAL,
        update_frequency=UpdateFrequency.WEEKLY,
    ),
]

# (product name, source, transformations, destination)
DEMO_LINEAGE = [
    ("Customer Analytics Dataset", "Sistema CRM",
     ["Agregação por região", "Limpeza de dados", "Anonimização"], "Data Lake"),
    ("HR Employee Data", "Base de RH",
     ["Cálculo de métricas", "Join com metas"], "Analytics Warehouse"),
]

# (name, description, severity, violations, last check)
DEMO_RULES = [
    ("LGPD - Dados Pessoais", "Verificação automática de dados sensíveis",
     RuleSeverity.CRITICAL, 0, _day(2024, 1, 22)),
    ("Política de Retenção", "Dados devem ser arquivados após 7 anos",
     RuleSeverity.MEDIUM, 2, _day(2024, 1, 22)),
    ("Classificação de Dados", "Todos os produtos devem ter classificação",
     RuleSeverity.MEDIUM, 5, _day(2024, 1, 21)),
]


def load_demo_data(service: GovernanceService) -> None:
    """Publish the demo catalog, lineage and compliance rules into ``service``."""
    published = {}
    for product in DEMO_PRODUCTS:
        stored = service.publish_product(SEED_PRINCIPAL, product.model_copy(deep=True))
        published[stored.name] = stored.id

    for name, source, transformations, destination in DEMO_LINEAGE:
        service.register_lineage(SEED_PRINCIPAL, published[name], source, destination, transformations)

    for name, description, severity, violations, checked_at in DEMO_RULES:
        rule = service.register_rule(SEED_PRINCIPAL, name, description, severity)
        service.record_check(SEED_PRINCIPAL, rule.id, violations, checked_at)

    logger.info(
        "demo_data_loaded",
        products=len(DEMO_PRODUCTS),
        rules=len(DEMO_RULES),
        lineage=len(DEMO_LINEAGE),
    )
