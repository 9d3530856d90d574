"""
Process Entry Point for EchoPay

Runs one of the two server processes:

    python -m app.main ledger   # the channel ledger service (default port 8081)
    python -m app.main proxy    # the reverse proxy in front of it (default port 3000)

Host and port come from configuration (LEDGER_HOST/LEDGER_PORT,
PROXY_HOST/PROXY_PORT); see echopay.config.
"""

import argparse
from typing import Optional

import structlog
import uvicorn

from echopay.api import create_ledger_app, create_proxy_app
from echopay.audit import configure_logging
from echopay.config import get_settings, validate_all_settings


logger = structlog.get_logger("echopay.main")


def main(argv: Optional[list[str]] = None) -> None:
    """Parse arguments and serve the selected application."""
    parser = argparse.ArgumentParser(prog="echopay")
    parser.add_argument(
        "service",
        choices=["ledger", "proxy"],
        nargs="?",
        default="ledger",
        help="Which server to run",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.app.log_level)
    logger.info("settings_checked", **validate_all_settings())

    if args.service == "ledger":
        service_settings = settings.ledger
        app = create_ledger_app(settings=service_settings)
    else:
        service_settings = settings.proxy
        if not service_settings.transactions_api_base_url:
            logger.warning("proxy_upstream_not_configured")
        app = create_proxy_app(settings=service_settings)

    logger.info(
        "server_starting",
        service=args.service,
        host=service_settings.host,
        port=service_settings.port,
    )
    uvicorn.run(
        app,
        host=service_settings.host,
        port=service_settings.port,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    main()
