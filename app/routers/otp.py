"""
OTP endpoints – request a phone-bound code and verify it.
"""

from fastapi import APIRouter, HTTPException, Request, status

from app.dependencies import OtpManager, SourceAddress
from app.models import MessageResponse, OtpRequest, OtpVerifyRequest, OtpVerifyResponse
from app.rate_limit import VERIFY, limiter
from app.services.otp import NOT_VERIFIED_MESSAGE, VERIFIED_MESSAGE, RequestOutcome

router = APIRouter(prefix="/api/otp", tags=["otp"])

_ERROR_STATUS: dict[RequestOutcome, int] = {
    RequestOutcome.INVALID_PHONE_NUMBER: status.HTTP_400_BAD_REQUEST,
    RequestOutcome.ADDRESS_RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    RequestOutcome.PHONE_RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    RequestOutcome.TRANSIENT_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post(
    "/request",
    response_model=MessageResponse,
    operation_id="requestOtp",
    summary="Request a one-time code for a phone number",
    responses={
        400: {"description": "Invalid phone number"},
        429: {"description": "Too many requests from this IP or for this phone number"},
        503: {"description": "Store unavailable"},
    },
)
async def request_otp(
    body: OtpRequest,
    manager: OtpManager,
    source_address: SourceAddress,
) -> MessageResponse:
    """
    Issue a 6-digit code valid for 5 minutes. The code is written to the
    server log instead of being sent by SMS.
    """
    outcome = await manager.request_otp(body.phone_number, source_address)
    if outcome is not RequestOutcome.SENT:
        raise HTTPException(status_code=_ERROR_STATUS[outcome], detail=outcome.message)
    return MessageResponse(message=outcome.message)


@router.post(
    "/verify",
    response_model=OtpVerifyResponse,
    operation_id="verifyOtp",
    summary="Verify a one-time code",
)
@limiter.limit(VERIFY)
async def verify_otp(
    request: Request,
    body: OtpVerifyRequest,
    manager: OtpManager,
) -> OtpVerifyResponse:
    """
    A matching code is consumed and cannot be used again. Wrong, expired
    and never-issued codes all get the same answer.
    """
    verified = await manager.verify_otp(body.phone_number, body.code)
    return OtpVerifyResponse(
        verified=verified,
        message=VERIFIED_MESSAGE if verified else NOT_VERIFIED_MESSAGE,
    )
