import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.server.routers.auth_routes import auth_router
from app.server.routers.checkout_routes import checkout_router
from app.server.routers.inventory_routes import inventory_router
from app.server.routers.notification_routes import notification_router
from app.server.routers.order_routes import order_router
from app.server.routers.payment_routes import payment_router
from app.services.firestore_service import FirestoreService
from app.services.inventory.revalidation import RevalidationClient
from app.services.notifications.email_sender import ResendEmailSender
from app.services.payments.stripe import StripeGateway
from config import Config, load_config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    *,
    firestore_service: Optional[FirestoreService] = None,
    stripe_gateway: Optional[StripeGateway] = None,
    revalidation_client: Optional[RevalidationClient] = None,
    email_sender: Optional[ResendEmailSender] = None,
) -> FastAPI:
    """
    Build the application and the clients it shares across requests.

    Any client not passed in is constructed from the configuration.
    """
    if config is None:
        config = load_config()

    app = FastAPI()

    app.state.config = config
    app.state.firestore_service = firestore_service or FirestoreService(
        database_name=config.firestore_database
    )
    app.state.stripe_gateway = stripe_gateway or StripeGateway(
        api_key=config.stripe_secret_key, webhook_secret=config.stripe_webhook_secret
    )
    app.state.revalidation_client = revalidation_client or RevalidationClient(
        endpoint_url=config.revalidate_url, secret=config.revalidate_secret
    )
    if email_sender is None and config.resend_api_key:
        email_sender = ResendEmailSender(
            api_key=config.resend_api_key, sender=config.email_from
        )
    app.state.email_sender = email_sender

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,  # Allows requests from these origins
        allow_credentials=True,
        allow_methods=["*"],  # Allows all methods (GET, POST, etc.)
        allow_headers=["*"],  # Allows all headers
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.info(f"Rejected invalid payload on {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Invalid request payload"},
        )

    @app.get("/", tags=["root"])
    def root():
        return {"message": "success"}

    # Include the routers in the main app with a prefix
    app.include_router(auth_router, prefix="/auth")
    app.include_router(checkout_router, prefix="/checkout")
    app.include_router(order_router, prefix="/orders")
    app.include_router(payment_router, prefix="/webhook")
    app.include_router(inventory_router, prefix="/admin/inventory")
    app.include_router(notification_router, prefix="/notifications")

    logger.info(f"Application created (env={config.env})")
    return app
