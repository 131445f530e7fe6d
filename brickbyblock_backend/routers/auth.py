from fastapi import APIRouter, Depends, Request, status
import logging

from ..dependencies import get_identity_broker
from ..models.auth_models import ChallengeRequest, ChallengeResponse, VerifyRequest, VerifyResponse
from ..models.transaction_models import ErrorResponse
from ..services.identity_service import IdentityBroker
from ..services.session_service import authorize


router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"],
)

logger = logging.getLogger(__name__)


# --- API Endpoints ---
@router.post(
    "/request-message",
    response_model=ChallengeResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
def request_message(
    challenge_request: ChallengeRequest,
    broker: IdentityBroker = Depends(get_identity_broker),
):
    """
    Issues a one-time challenge for a wallet to sign.

    Requesting a new challenge replaces any challenge still pending for the
    same address.
    """
    message = broker.request_challenge(challenge_request.address)
    return ChallengeResponse(message=message)


@router.post(
    "/verify",
    response_model=VerifyResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    },
)
def verify_signature(
    verify_request: VerifyRequest,
    broker: IdentityBroker = Depends(get_identity_broker),
):
    """
    Verifies the signed challenge and returns a bearer token valid for one day.

    - **address**: The wallet that requested the challenge.
    - **signature**: The hex-encoded personal_sign signature of the challenge message.
    """
    token = broker.verify(verify_request.address, verify_request.signature)
    return VerifyResponse(token=token)


# --- Secure Dependency for Authenticated User ---
async def get_current_active_user(request: Request) -> str:
    """
    Dependency that verifies the bearer token from the Authorization header
    and returns the wallet address bound to it. Any address sent in the
    request body is ignored.
    """
    address = authorize(request.headers)
    request.state.address = address
    return address
