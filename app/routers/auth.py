"""Redirect target for the external registration app.

The registration app sends the user back here with `phone` and `status`; the
user gets a WhatsApp message and the browser is redirected to a result page.
"""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from app.dependencies import get_ledger, get_notifier
from app.logging_config import get_logger, mask_phone
from app.services import messages
from app.services.errors import WalletError
from app.services.ledger_client import LedgerClient
from app.services.notifications import WelcomeNotification
from app.services.notifier import WhatsAppNotifier
from app.services.validators import is_valid_phone, normalize_phone

logger = get_logger("auth_api")

router = APIRouter(prefix="/api/auth")

SUCCESS_PAGE = "/registration-success"
ERROR_PAGE = "/registration-error"


def _error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(f"{ERROR_PAGE}?error={quote(error, safe='')}")


@router.get("/register-callback")
async def register_callback(
    phone: Optional[str] = None,
    status_: Optional[str] = Query(default=None, alias="status"),
    error: Optional[str] = None,
    ledger: LedgerClient = Depends(get_ledger),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    if not phone or not phone.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required")
    normalized = normalize_phone(phone)
    if not is_valid_phone(normalized):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone number format")

    context = {"phone": mask_phone(normalized), "status": status_}

    if status_ == "success":
        try:
            user = await ledger.lookup_user(normalized)
        except WalletError as e:
            logger.warning(f"Registration lookup failed: {e}", extra={"context": context})
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger unavailable")
        if user is None:
            logger.warning("Registration callback for unknown user", extra={"context": context})
            return _error_redirect("user_not_found")

        result = await notifier.notify(WelcomeNotification(to=normalized, first_name=user.first_name))
        if not result.ok:
            logger.warning(f"Welcome message not sent: {result.error}", extra={"context": context})
        logger.info("Registration completed", extra={"context": context})
        return RedirectResponse(SUCCESS_PAGE)

    if status_ == "error":
        result = await notifier.send(messages.text(normalized, messages.MSG_REGISTRATION_FAILED))
        if not result.ok:
            logger.warning(f"Registration failure message not sent: {result.error}", extra={"context": context})
        logger.info("Registration failed", extra={"context": {**context, "error": error}})
        return _error_redirect(error or "unknown")

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
