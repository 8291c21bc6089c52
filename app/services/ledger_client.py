"""Client for the external Ledger Service (users, balances, transfers, coupons).

The Ledger Service is the only authority on fund movement. Users are keyed by
an email derived from their phone number, e.g. +27831234567 ->
27831234567@tata-mali.com.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.config import Settings
from app.logging_config import get_logger, mask_phone
from app.models import (
    CouponRedemption,
    TransactionType,
    TransferCommand,
    TransferOutcome,
    UserWallet,
    WalletTransaction,
    WalletUser,
)
from app.services.errors import LedgerRejectedError, UpstreamUnavailableError
from app.services.result import ErrorCode
from app.services.validators import from_minor, parse_ledger_amount

logger = get_logger("ledger_client")

# Errors raised before the request reached the ledger; a write cannot have happened.
NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)

STATUS_UNSUPPORTED = {404, 405, 501}

TRANSACTION_TYPES = {
    TransactionType.TRANSFER: ("transfer", "send", "payment", "sent"),
    TransactionType.RECEIVE: ("receive", "received", "credit"),
    TransactionType.COUPON: ("coupon", "reward", "bonus", "claim"),
    TransactionType.DEPOSIT: ("deposit", "mint"),
    TransactionType.WITHDRAWAL: ("withdrawal", "withdraw", "redeem"),
}


class LedgerClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        timeout_seconds: float = 10.0,
        email_domain: str = "tata-mali.com",
        balance_symbols: Optional[list[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.email_domain = email_domain
        self.balance_symbols = balance_symbols or ["LZAR", "ZAR"]
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_token}", "Content-Type": "application/json"},
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        return cls(
            settings.ledger_base_url,
            settings.ledger_api_token,
            timeout_seconds=settings.ledger_timeout_seconds,
            email_domain=settings.ledger_user_email_domain,
            balance_symbols=settings.balance_symbols,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def email_for(self, phone: str) -> str:
        return f"{phone.lstrip('+')}@{self.email_domain}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[dict] = None,
        headers: Optional[dict] = None,
        write: bool = False,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, endpoint, json=json, headers=headers)
        except NOT_SENT_ERRORS as exc:
            logger.warning(f"Ledger unreachable: {method} {endpoint}: {exc}")
            raise UpstreamUnavailableError(f"Ledger unreachable: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Ledger request failed: {method} {endpoint}: {exc}")
            raise UpstreamUnavailableError(f"Ledger request failed: {exc}", ambiguous=write) from exc

        if response.status_code >= 500:
            raise UpstreamUnavailableError(
                f"Ledger error {response.status_code} on {method} {endpoint}",
                ambiguous=write,
            )

        payload = _safe_json(response)
        if response.status_code >= 400:
            message = _error_message(payload) or f"Ledger request failed: {response.status_code}"
            code = ErrorCode.USER_OR_WALLET_NOT_FOUND if response.status_code == 404 else ErrorCode.UNKNOWN
            raise LedgerRejectedError(message, response.status_code, code)

        return payload

    async def lookup_user(self, phone: str) -> Optional[WalletUser]:
        """Find an existing user by phone. None when the ledger has no such user."""
        email = self.email_for(phone)
        try:
            data = await self._request("GET", f"/recipient/{quote(email, safe='')}")
        except LedgerRejectedError as exc:
            if exc.status_code == 404:
                return None
            raise

        if not data or not data.get("id"):
            return None
        return WalletUser(
            id=str(data["id"]),
            phone=phone,
            email=data.get("email") or email,
            payment_identifier=data.get("paymentIdentifier"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
        )

    async def is_registered(self, phone: str) -> bool:
        return await self.lookup_user(phone) is not None

    async def _create_user(self, phone: str) -> WalletUser:
        email = self.email_for(phone)
        data = await self._request(
            "POST",
            "/users",
            json={"email": email, "firstName": "Default", "lastName": f"Default:{phone}"},
            write=True,
        )
        created = data.get("user") if isinstance(data.get("user"), dict) else None
        if not created:
            raise LedgerRejectedError("Failed to create user", 422, ErrorCode.USER_OR_WALLET_NOT_FOUND)

        logger.info("Ledger user created", extra={"context": {"phone": mask_phone(phone)}})
        return WalletUser(
            id=str(created.get("id") or phone),
            phone=phone,
            email=email,
            payment_identifier=created.get("paymentIdentifier"),
            first_name=created.get("firstName"),
            last_name=created.get("lastName"),
        )

    async def _balance_for(self, user_id: str) -> int:
        data = await self._request("GET", f"/{quote(user_id, safe='')}/balance")
        tokens = data.get("tokens") if isinstance(data.get("tokens"), list) else []
        if not tokens:
            return 0
        for token in tokens:
            if token.get("symbol") in self.balance_symbols or token.get("currency") in self.balance_symbols:
                return parse_ledger_amount(token.get("balance"))
        return parse_ledger_amount(tokens[0].get("balance"))

    async def get_or_create_user_wallet(self, phone: str) -> UserWallet:
        user = await self.lookup_user(phone)
        if user is None:
            user = await self._create_user(phone)
        balance_minor = await self._balance_for(user.id)
        return UserWallet(user=user, balance_minor=balance_minor)

    async def get_balance(self, phone: str) -> int:
        wallet = await self.get_or_create_user_wallet(phone)
        return wallet.balance_minor

    async def get_history(self, phone: str) -> list[WalletTransaction]:
        """Ledger transactions for a phone's wallet, in the order the ledger returns them."""
        wallet = await self.get_or_create_user_wallet(phone)
        data = await self._request("GET", f"/{quote(wallet.user.id, safe='')}/transactions")
        entries = data.get("transactions") if isinstance(data.get("transactions"), list) else []
        return [_wallet_transaction(entry) for entry in entries if isinstance(entry, dict)]

    async def transfer(self, command: TransferCommand) -> TransferOutcome:
        """Move funds. The idempotency key travels as a header so retries never double-apply.

        Failures while resolving the two wallets happen before the transfer
        request is sent, so they are never ambiguous.
        """
        try:
            sender = await self.get_or_create_user_wallet(command.from_phone)
            recipient = await self.get_or_create_user_wallet(command.to_phone)
        except UpstreamUnavailableError as exc:
            if not exc.ambiguous:
                raise
            raise UpstreamUnavailableError(f"Wallet resolution failed: {exc.message}") from exc

        try:
            data = await self._request(
                "POST",
                f"/transfer/{quote(sender.user.id, safe='')}",
                json={
                    "transactionAmount": float(from_minor(command.amount_minor)),
                    "transactionRecipient": recipient.user.payment_identifier or command.to_phone,
                    "transactionNotes": f"Transfer from {command.from_phone} to {command.to_phone}",
                },
                headers={"Idempotency-Key": command.idempotency_key},
                write=True,
            )
        except LedgerRejectedError as exc:
            return TransferOutcome(
                success=False,
                message=exc.message,
                error_code=_classify_transfer_failure(exc.message, exc.code).value,
            )

        return _transfer_outcome(data)

    async def get_transfer_status(self, idempotency_key: str) -> Optional[TransferOutcome]:
        """Re-query a transfer by key. None when unknown or unsupported by the ledger."""
        try:
            data = await self._request("GET", f"/transfer/status/{quote(idempotency_key, safe='')}")
        except LedgerRejectedError as exc:
            if exc.status_code in STATUS_UNSUPPORTED:
                return None
            raise
        if not data:
            return None
        return _transfer_outcome(data)

    async def redeem_coupon(self, phone: str, token: str) -> CouponRedemption:
        wallet = await self.get_or_create_user_wallet(phone)
        try:
            data = await self._request(
                "PATCH",
                f"/coupons/claim/{quote(wallet.user.id, safe='')}",
                json={"couponId": token},
                write=True,
            )
        except LedgerRejectedError as exc:
            return CouponRedemption(success=False, message=_coupon_failure_message(exc.message, exc.status_code))

        if not data.get("message") and not data.get("transaction"):
            return CouponRedemption(success=False, message="Coupon redemption failed")

        transaction = data.get("transaction") if isinstance(data.get("transaction"), dict) else {}
        raw_amount = transaction.get("amount", transaction.get("value"))
        return CouponRedemption(
            success=True,
            message=data.get("message") or "Coupon redeemed successfully",
            amount_minor=parse_ledger_amount(raw_amount) if raw_amount is not None else None,
        )


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _error_message(payload: dict[str, Any]) -> Optional[str]:
    for key in ("message", "error", "detail"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
    return None


def _transfer_outcome(data: dict[str, Any]) -> TransferOutcome:
    message = data.get("message") if isinstance(data.get("message"), str) else ""
    transaction = data.get("transaction") if isinstance(data.get("transaction"), dict) else None

    if transaction or "successful" in message.lower():
        transaction_id = (transaction or {}).get("id") or data.get("transactionId")
        return TransferOutcome(
            success=True,
            message=message or "Transfer successful",
            transaction_id=str(transaction_id) if transaction_id else None,
        )

    reason = message or "Transfer failed"
    return TransferOutcome(
        success=False,
        message=reason,
        error_code=_classify_transfer_failure(reason, ErrorCode.UNKNOWN).value,
    )


def _classify_transfer_failure(message: str, fallback: ErrorCode) -> ErrorCode:
    lowered = (message or "").lower()
    if "insufficient" in lowered or "balance" in lowered:
        return ErrorCode.INSUFFICIENT_FUNDS
    if "not found" in lowered or fallback == ErrorCode.USER_OR_WALLET_NOT_FOUND:
        return ErrorCode.USER_OR_WALLET_NOT_FOUND
    return fallback


def _coupon_failure_message(message: str, status_code: int) -> str:
    lowered = (message or "").lower()
    if "expired" in lowered:
        return "This coupon has expired"
    if "already used" in lowered or "already claimed" in lowered:
        return "This coupon has already been used"
    if "not found" in lowered or "invalid" in lowered or status_code in (400, 404):
        return "Invalid coupon code"
    return "Coupon redemption failed"


def map_transaction_type(tx_type: Optional[str]) -> TransactionType:
    lowered = (tx_type or "").strip().lower()
    for transaction_type, names in TRANSACTION_TYPES.items():
        if lowered in names:
            return transaction_type
    return TransactionType.OTHER


def _wallet_transaction(entry: dict[str, Any]) -> WalletTransaction:
    tx_type = entry.get("txType")
    return WalletTransaction(
        id=str(entry.get("id") or ""),
        type=map_transaction_type(tx_type),
        amount_minor=parse_ledger_amount(entry.get("value")),
        created_at=entry.get("createdAt"),
        from_phone=entry.get("fromPhone"),
        to_phone=entry.get("toPhone"),
        description=entry.get("method") or tx_type,
    )
