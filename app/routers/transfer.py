from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from app.config import settings
from app.dependencies import get_orchestrator, require_api_key
from app.logging_config import get_logger, mask_phone
from app.schemas.transfer import WalletSendRequest, WalletSendResponse
from app.services.result import ErrorCode
from app.services.transfer_orchestrator import TransferOrchestrator, build_transfer_command

logger = get_logger("transfer_api")

router = APIRouter()


@router.post("/wallet/send", response_model=WalletSendResponse, dependencies=[Depends(require_api_key)])
async def send_money(
    request: WalletSendRequest,
    response: Response,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Trigger a transfer outside the chat. Both parties are notified like a chat transfer."""
    key = request.idempotencyKey or idempotency_key or str(uuid4())
    built = build_transfer_command(
        request.fromPhone.strip(),
        request.toPhone.strip(),
        request.amount,
        key,
        settings.max_transfer_amount,
    )
    if not built.ok:
        logger.info(
            "Transfer request rejected",
            extra={"context": {"from": mask_phone(request.fromPhone), "error": built.error}},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=built.error)

    outcome = await orchestrator.execute(built.value)
    if not outcome.success:
        unavailable = outcome.error_code == ErrorCode.LEDGER_UNAVAILABLE.value
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE if unavailable else status.HTTP_400_BAD_REQUEST

    return WalletSendResponse(
        success=outcome.success,
        status="sent" if outcome.success else "failed",
        message=outcome.message,
        idempotencyKey=key,
        transactionId=outcome.transaction_id,
        errorCode=outcome.error_code,
    )
