import logging
from traceback import format_exc
from typing import Annotated, Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.models.checkout import (
    CheckoutFailureResponse,
    CreateCheckoutRequest,
    CreateCheckoutResponse,
    ResumeCheckoutRequest,
    ResumeCheckoutResponse,
)
from app.server.dependencies import get_session_broker
from app.server.routers.auth_routes import User, get_current_user
from app.services.checkout.session_broker import (
    RESTART_CHECKOUT_MESSAGE,
    PaymentSessionBroker,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create checkout router
checkout_router = APIRouter()


@checkout_router.post(
    "/resume",
    response_model=ResumeCheckoutResponse,
    responses={status.HTTP_409_CONFLICT: {"model": CheckoutFailureResponse}},
)
async def resume_checkout(
    request: ResumeCheckoutRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    broker: Annotated[PaymentSessionBroker, Depends(get_session_broker)],
) -> Union[ResumeCheckoutResponse, JSONResponse]:
    """
    Return the payment URL of a still-valid session for this exact cart.

    Any other outcome is a 409 asking the storefront to start a fresh
    checkout; the reason is never exposed.
    """
    result = await broker.resume(current_user.user_id, request.items)

    if not result.success:
        failure = CheckoutFailureResponse(
            error=result.error or RESTART_CHECKOUT_MESSAGE, should_retry=True
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=failure.model_dump(by_alias=True),
        )

    return ResumeCheckoutResponse(
        session_url=result.session_url, session_id=result.session_id
    )


@checkout_router.post("/session", response_model=CreateCheckoutResponse)
async def create_checkout_session(
    request: CreateCheckoutRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    broker: Annotated[PaymentSessionBroker, Depends(get_session_broker)],
) -> CreateCheckoutResponse:
    """Create an order and a Stripe Checkout session, or reuse a live one."""
    try:
        session = await broker.create(
            current_user.user_id, request.items, request.email
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            f"Failed to create checkout session for user {current_user.user_id}: {str(e)}\n{format_exc()}"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to start payment, please try again",
        )

    return CreateCheckoutResponse(session_url=session.url)
