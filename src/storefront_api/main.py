import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from psycopg2.extensions import connection as PgConnection
from psycopg2.pool import AbstractConnectionPool

from storefront_api import db
from storefront_api.auth_utils import create_access_token, create_user_access_token, hash_password, unauthorized, verify_password
from storefront_api.config import Settings
from storefront_api.deps import RequestContext, get_connection, get_request_context, get_settings
from storefront_api.errors import register_exception_handlers
from storefront_api.schemas import (
    AuthRequest,
    NotifyRequest,
    NotifyResponse,
    ProductCreateRequest,
    ProductDescription,
    ProductUpdateRequest,
    RegisterRequest,
    ShippingRequest,
    WriteResult,
)


logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Auth", "description": "Registration and login; both return a bearer token."},
    {"name": "Products", "description": "Product CRUD."},
    {"name": "Shipping", "description": "Customer shipping addresses."},
    {"name": "Notifications", "description": "Sale alerts for the message center."},
]

public_router = APIRouter()
protected_router = APIRouter()


def _not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def _inserted(row: Dict[str, Any]) -> WriteResult:
    return WriteResult(insert_id=row["id"], affected_rows=1)


# =========================
# Auth
# =========================

@public_router.post("/register", response_model=str, tags=["Auth"], summary="Register")
def register(
    payload: RegisterRequest,
    conn: PgConnection = Depends(get_connection),
    settings: Settings = Depends(get_settings),
) -> str:
    """Create a user and return a token carrying the new id and every submitted field."""
    user = db.execute_returning_one(
        conn,
        """
        INSERT INTO users (email, fname, lname, password)
        VALUES (%(email)s, %(fname)s, %(lname)s, %(password)s)
        RETURNING id
        """,
        {
            "email": payload.email,
            "fname": payload.fname,
            "lname": payload.lname,
            "password": hash_password(payload.password),
        },
    )
    logger.info("Registered user %s", user["id"])
    return create_access_token({"userId": user["id"], **payload.model_dump()}, settings)


@public_router.post("/auth", response_model=str, tags=["Auth"], summary="Login")
def authenticate(
    payload: AuthRequest,
    conn: PgConnection = Depends(get_connection),
    settings: Settings = Depends(get_settings),
) -> str:
    """Check email and password and return a login token."""
    user = db.fetch_one(
        conn,
        "SELECT id, email, fname, lname, password FROM users WHERE email = %(email)s",
        {"email": payload.email},
    )
    if not user:
        raise unauthorized("Email not found")
    if not verify_password(payload.password, str(user["password"])):
        raise unauthorized("Invalid password")
    return create_user_access_token(user, settings)


# =========================
# Shipping / notifications
# =========================

@protected_router.post("/shipping", response_model=WriteResult, tags=["Shipping"], summary="Save shipping address")
def create_shipping_address(payload: ShippingRequest, ctx: RequestContext = Depends(get_request_context)) -> WriteResult:
    row = db.execute_returning_one(
        ctx.conn,
        """
        INSERT INTO shipping_address (name, address, date_created)
        VALUES (%(name)s, %(address)s, NOW())
        RETURNING id
        """,
        {"name": payload.customer_data.name, "address": payload.customer_data.address},
    )
    return _inserted(row)


@protected_router.post("/notify", response_model=NotifyResponse, tags=["Notifications"], summary="Post sale alerts")
def notify(payload: NotifyRequest, ctx: RequestContext = Depends(get_request_context)) -> NotifyResponse:
    """Store every alert, in order, before answering."""
    results = []
    for alert in payload.sale_alert:
        row = db.execute_returning_one(
            ctx.conn,
            """
            INSERT INTO message_center (subject, message, date_created)
            VALUES (%(subject)s, %(message)s, NOW())
            RETURNING id
            """,
            {"subject": alert.subject, "message": alert.message},
        )
        results.append(_inserted(row))
    logger.info("User %s posted %d sale alert(s)", ctx.user.get("userId"), len(results))
    return NotifyResponse(message="Alert added successfully", data=results)


# =========================
# Products
# =========================

@protected_router.post("/", response_model=WriteResult, tags=["Products"], summary="Create product")
def create_product(payload: ProductCreateRequest, ctx: RequestContext = Depends(get_request_context)) -> WriteResult:
    product = payload.product
    row = db.execute_returning_one(
        ctx.conn,
        """
        INSERT INTO products (brands, description, product_price, date_created)
        VALUES (%(brands)s, %(description)s, %(product_price)s, NOW())
        RETURNING id
        """,
        {"brands": product.brand, "description": product.name, "product_price": product.price},
    )
    return _inserted(row)


@protected_router.get("/{product_id}", response_model=ProductDescription, tags=["Products"], summary="Get product")
def get_product(product_id: int, ctx: RequestContext = Depends(get_request_context)) -> Dict[str, Any]:
    """Return the description of one product."""
    product = db.fetch_one(
        ctx.conn,
        "SELECT description FROM products WHERE id = %(id)s",
        {"id": product_id},
    )
    if not product:
        raise _not_found("Product")
    return product


@protected_router.put("/{product_id}", response_model=WriteResult, tags=["Products"], summary="Update product description")
def update_product(
    product_id: int,
    payload: ProductUpdateRequest,
    ctx: RequestContext = Depends(get_request_context),
) -> WriteResult:
    affected = db.execute(
        ctx.conn,
        "UPDATE products SET description = %(description)s WHERE id = %(id)s",
        {"description": payload.model, "id": product_id},
    )
    if affected == 0:
        raise _not_found("Product")
    return WriteResult(affected_rows=affected)


@protected_router.delete("/{product_id}", response_model=WriteResult, tags=["Products"], summary="Delete product")
def delete_product(product_id: int, ctx: RequestContext = Depends(get_request_context)) -> WriteResult:
    affected = db.execute(ctx.conn, "DELETE FROM products WHERE id = %(id)s", {"id": product_id})
    if affected == 0:
        raise _not_found("Product")
    return WriteResult(affected_rows=affected)


# PUBLIC_INTERFACE
def create_app(settings: Settings, pool: Optional[AbstractConnectionPool] = None) -> FastAPI:
    """
    Build the application.

    When ``pool`` is None a PostgreSQL pool is opened at startup and closed
    at shutdown; a pool passed in is owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_pool = app.state.pool is None
        if owns_pool:
            app.state.pool = db.create_pool(settings)
        try:
            yield
        finally:
            if owns_pool:
                app.state.pool.closeall()
                app.state.pool = None
                logger.info("Connection pool closed")

    app = FastAPI(
        title="Storefront API",
        description=(
            "Registration/login plus product, shipping and notification endpoints.\n\n"
            "Auth: Use the `Authorization: Bearer <token>` header for every route except "
            "`/register` and `/auth`."
        ),
        version="1.0.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pool = pool

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(public_router)
    app.include_router(protected_router)
    return app
