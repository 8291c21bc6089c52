from typing import Optional

from pydantic import BaseModel


class BalanceResponse(BaseModel):
    balance: float


class TransactionEntry(BaseModel):
    id: str
    type: str
    amount: float
    createdAt: Optional[str] = None
    fromPhone: Optional[str] = None
    toPhone: Optional[str] = None
    description: Optional[str] = None
