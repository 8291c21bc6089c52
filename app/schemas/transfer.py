from typing import Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field


class WalletSendRequest(BaseModel):
    fromPhone: str
    toPhone: str
    amount: Union[str, float, int]
    idempotencyKey: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("idempotencyKey", "idempotency_key"),
    )


class WalletSendResponse(BaseModel):
    success: bool
    status: Literal["sent", "failed"]
    message: str
    idempotencyKey: str
    transactionId: Optional[str] = None
    errorCode: Optional[str] = None


class TransferItem(BaseModel):
    recipientPhone: str
    amount: float
    transactionId: Optional[str] = None


class TransferNotificationRequest(BaseModel):
    type: Literal["single", "recipient_only", "bulk"]
    senderPhone: str
    recipientPhone: Optional[str] = None
    amount: Optional[float] = None
    transactionId: Optional[str] = None
    transfers: Optional[list[TransferItem]] = None


class TransferNotificationResponse(BaseModel):
    success: bool
    message: str
