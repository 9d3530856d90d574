"""HTTP applications: the ledger service and its reverse proxy."""

from echopay.api.ledger_app import create_ledger_app
from echopay.api.proxy import create_proxy_app

__all__ = ["create_ledger_app", "create_proxy_app"]
