"""Entry point for running the gateway."""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from vault_mcp.src.services.config import get_config

load_dotenv()

logger = logging.getLogger("vault_mcp")


def main() -> None:
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not config.api_key:
        logger.error("MCP_API_KEY is not set; refusing to start an unauthenticated server")
        sys.exit(1)

    logger.info(
        f"Serving vault {config.display_vault_name} on {config.host}:{config.port}",
        extra={"vault_path": str(config.vault_path)},
    )
    uvicorn.run(
        "vault_mcp.src.api.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
