import logging

from storefront.core.config import settings

uvicorn_logger = logging.getLogger("uvicorn")

app_logger = logging.getLogger("storefront")
app_logger.setLevel(settings.LOG_LEVEL)
if uvicorn_logger.handlers:
    app_logger.handlers = uvicorn_logger.handlers
    app_logger.propagate = False

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from storefront.core.catalog_client import catalog_client
from storefront.core.errors import (
    BillingValidationError,
    CheckoutStateError,
    PaymentGatewayFailure,
    PersistenceFailure,
    StockError,
    StorefrontError,
)
from storefront.core.payment_gateway import payment_gateway
from storefront.api.cart import router as cart_router
from storefront.api.checkout import router as checkout_router
from storefront.api.orders import router as orders_router

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (BillingValidationError, status.HTTP_400_BAD_REQUEST),
    (StockError, status.HTTP_400_BAD_REQUEST),
    (CheckoutStateError, status.HTTP_409_CONFLICT),
    (PaymentGatewayFailure, status.HTTP_502_BAD_GATEWAY),
    (PersistenceFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
]


app = FastAPI(
    title=f"{settings.SHOP_NAME} - Storefront",
    description="Cart, checkout and order history for the customer-facing shop",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Session cookie carries only the user id and the shopper session id
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    max_age=3600 * 24 * 7  # 7 days
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(orders_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "shop_name": settings.SHOP_NAME}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    content = {"detail": exc.message}
    if isinstance(exc, BillingValidationError):
        content["field"] = exc.field
    return JSONResponse(status_code=status_code, content=content)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.SHOP_NAME} storefront")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down storefront")
    await catalog_client.close()
    await payment_gateway.close()
