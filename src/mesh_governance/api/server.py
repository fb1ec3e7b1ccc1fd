"""
Development API server.

Usage:
    python -m mesh_governance.api.server

Configuration comes from ``MESH_GOV_*`` environment variables; set
``MESH_GOV_SEED_DEMO=1`` to start with the demo catalog loaded.
"""

import os

import uvicorn

from mesh_governance.api.rest import create_app
from mesh_governance.core import GovernanceConfig, configure_logging, get_logger
from mesh_governance.seed import load_demo_data
from mesh_governance.service import GovernanceService

logger = get_logger(__name__)


def main() -> None:
    config = GovernanceConfig.from_env()
    configure_logging(level=config.log_level, json_format=config.json_logs)

    service = GovernanceService(config)
    if config.seed_demo_data:
        load_demo_data(service)

    host = os.environ.get("MESH_GOV_HOST", "0.0.0.0")
    port = int(os.environ.get("MESH_GOV_PORT", "8000"))
    logger.info("api_server_starting", host=host, port=port, seed_demo_data=config.seed_demo_data)

    try:
        uvicorn.run(create_app(service), host=host, port=port)
    finally:
        service.close()


if __name__ == "__main__":
    main()
