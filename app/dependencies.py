import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from slowapi.util import get_remote_address

from app.services.otp import OtpLifecycleManager
from app.store import TtlStore

logger = logging.getLogger(__name__)


# ── Store / manager ────────────────────────────────────────────────────────


def get_store(request: Request) -> TtlStore:
    store: TtlStore | None = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store not initialised",
        )
    return store


def get_otp_manager(request: Request) -> OtpLifecycleManager:
    manager: OtpLifecycleManager | None = getattr(request.app.state, "otp_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OTP service not initialised",
        )
    return manager


# ── Client address ─────────────────────────────────────────────────────────


def get_source_address(request: Request) -> str | None:
    """Remote address of the caller, or None when the transport has none."""
    if request.client is None:
        return None
    return get_remote_address(request)


Store = Annotated[TtlStore, Depends(get_store)]
OtpManager = Annotated[OtpLifecycleManager, Depends(get_otp_manager)]
SourceAddress = Annotated[str | None, Depends(get_source_address)]
