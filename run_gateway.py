#!/usr/bin/env python
"""
Chain Gateway API Server Runner.

Usage:
    python run_gateway.py

Or with PM2:
    pm2 start run_gateway.py --interpreter python
"""

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from chain_gateway.config import GatewayConfig
from chain_gateway.exceptions import ConfigurationError

load_dotenv()

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


def main():
    """Run the chain gateway API server."""
    try:
        config = GatewayConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    reload = os.getenv("ENVIRONMENT", "production") == "development"

    logger.info(f"Starting Chain Gateway API on {config.host}:{config.port}")

    try:
        uvicorn.run(
            "chain_gateway.api:app",
            host=config.host,
            port=config.port,
            reload=reload,
            log_level=config.log_level.lower(),
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start chain gateway: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
