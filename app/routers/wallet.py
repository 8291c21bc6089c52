"""Read-only wallet endpoints for the companion app, keyed by the `phone` header."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.dependencies import get_ledger, require_api_key
from app.logging_config import get_logger, mask_phone
from app.schemas.wallet import BalanceResponse, TransactionEntry
from app.services.errors import WalletError
from app.services.ledger_client import LedgerClient
from app.services.validators import from_minor, is_valid_phone, normalize_phone

logger = get_logger("wallet_api")

router = APIRouter(prefix="/api/wallet", dependencies=[Depends(require_api_key)])


def _phone_from_header(phone: Optional[str]) -> str:
    if not phone or not phone.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number required")
    normalized = normalize_phone(phone)
    if not is_valid_phone(normalized):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone number format")
    return normalized


def _ledger_unavailable(action: str, phone: str, exc: WalletError) -> HTTPException:
    logger.warning(f"Wallet {action} failed: {exc}", extra={"context": {"phone": mask_phone(phone)}})
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger unavailable")


@router.get("/balance", response_model=BalanceResponse)
async def wallet_balance(
    phone: Optional[str] = Header(default=None),
    ledger: LedgerClient = Depends(get_ledger),
):
    normalized = _phone_from_header(phone)
    try:
        balance_minor = await ledger.get_balance(normalized)
    except WalletError as e:
        raise _ledger_unavailable("balance", normalized, e)
    return BalanceResponse(balance=float(from_minor(balance_minor)))


@router.get("/history", response_model=list[TransactionEntry])
async def wallet_history(
    phone: Optional[str] = Header(default=None),
    ledger: LedgerClient = Depends(get_ledger),
):
    normalized = _phone_from_header(phone)
    try:
        history = await ledger.get_history(normalized)
    except WalletError as e:
        raise _ledger_unavailable("history", normalized, e)
    return [
        TransactionEntry(
            id=entry.id,
            type=entry.type.value,
            amount=float(from_minor(entry.amount_minor)),
            createdAt=entry.created_at,
            fromPhone=entry.from_phone,
            toPhone=entry.to_phone,
            description=entry.description,
        )
        for entry in history
    ]
