from dataclasses import dataclass
from typing import Any, Dict, Iterator

from fastapi import Depends, Request
from psycopg2.extensions import connection as PgConnection

from storefront_api import db
from storefront_api.auth_utils import get_current_claims
from storefront_api.config import Settings


@dataclass
class RequestContext:
    """Everything a protected handler may use for one request."""

    conn: PgConnection
    user: Dict[str, Any]


# PUBLIC_INTERFACE
def get_settings(request: Request) -> Settings:
    """Dependency that returns the settings the app was built with."""
    return request.app.state.settings


# PUBLIC_INTERFACE
def get_connection(request: Request) -> Iterator[PgConnection]:
    """Dependency that holds one pooled connection for the request."""
    settings = get_settings(request)
    with db.connection_scope(request.app.state.pool, settings.db_time_zone) as conn:
        yield conn


# PUBLIC_INTERFACE
def get_request_context(
    user: Dict[str, Any] = Depends(get_current_claims),
    conn: PgConnection = Depends(get_connection),
) -> RequestContext:
    """Dependency for protected routes; the token is verified before a connection is checked out."""
    return RequestContext(conn=conn, user=user)
