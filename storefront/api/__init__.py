"""
HTTP surface over the storefront services.
"""

from storefront.api._app import create_app
from storefront.api._codec import FailureError, STATUS_BY_KIND, respond, unwrap
from storefront.api._deps import GatewayAuthenticator

__all__ = (
    "create_app",
    "FailureError",
    "STATUS_BY_KIND",
    "respond",
    "unwrap",
    "GatewayAuthenticator",
)
