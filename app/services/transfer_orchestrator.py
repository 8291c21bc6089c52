"""Balance check, ledger transfer and two-party notification as one operation.

A transfer command executes at most once per idempotency key. Definite
outcomes are remembered per key and returned on repeat; an ambiguous write
(request sent, no answer) is re-queried by the same key and never retried
under a new one.
"""

import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional

from app.logging_config import LoggerAdapter, get_logger, mask_phone
from app.models import TransferCommand, TransferOutcome
from app.services import messages
from app.services.alert_service import alert_warning
from app.services.errors import LedgerRejectedError, UpstreamUnavailableError, WalletError
from app.services.result import ErrorCode, Result
from app.services.transfer_notifications import TransferNotice, notify_transfer_parties
from app.services.validators import AMOUNT_NOT_POSITIVE, AMOUNT_OVER_MAXIMUM, is_valid_phone, parse_amount

logger = get_logger("transfer_orchestrator")

MSG_SELF_TRANSFER = "You cannot send money to yourself."
MSG_NOT_POSITIVE = "Amount must be greater than 0."
MSG_BALANCE_UNAVAILABLE = "Unable to check balance. Please try again."
MSG_STATUS_UNKNOWN = "Transfer status unknown. Please check your balance before trying again."
MSG_INVALID_PHONE = "Invalid phone number format. Use international format: +27831234567"

AMOUNT_ERRORS = {
    AMOUNT_NOT_POSITIVE: "Amount must be greater than 0",
    AMOUNT_OVER_MAXIMUM: "Amount exceeds the maximum allowed per transfer",
}


def build_transfer_command(
    from_phone: str,
    to_phone: str,
    amount,
    idempotency_key: str,
    max_amount: Decimal,
) -> Result[TransferCommand]:
    """Validate caller input for the API entry point with the chat flow's rules."""
    if not is_valid_phone(from_phone) or not is_valid_phone(to_phone):
        return Result.failure(MSG_INVALID_PHONE, ErrorCode.VALIDATION_ERROR)
    if from_phone == to_phone:
        return Result.failure(MSG_SELF_TRANSFER, ErrorCode.VALIDATION_ERROR)

    parsed = parse_amount(str(amount), max_amount)
    if not parsed.ok:
        return Result.failure(AMOUNT_ERRORS.get(parsed.error, "Invalid amount"), ErrorCode.VALIDATION_ERROR)

    return Result.success(
        TransferCommand(
            from_phone=from_phone,
            to_phone=to_phone,
            amount_minor=parsed.value,
            idempotency_key=idempotency_key,
        )
    )


class TransferOrchestrator:
    def __init__(self, ledger, notifier, *, currency_symbol: str = "R", max_recorded: int = 10000):
        self.ledger = ledger
        self.notifier = notifier
        self.currency_symbol = currency_symbol
        self.max_recorded = max(1, max_recorded)
        self._outcomes: "OrderedDict[str, TransferOutcome]" = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def recorded_outcome(self, idempotency_key: str) -> Optional[TransferOutcome]:
        return self._outcomes.get(idempotency_key)

    def _record(self, idempotency_key: str, outcome: TransferOutcome) -> None:
        self._outcomes[idempotency_key] = outcome
        self._outcomes.move_to_end(idempotency_key)
        while len(self._outcomes) > self.max_recorded:
            self._outcomes.popitem(last=False)

    async def execute(self, command: TransferCommand, notify: bool = True) -> TransferOutcome:
        log = LoggerAdapter(
            logger,
            {
                "idempotency_key": command.idempotency_key,
                "from": mask_phone(command.from_phone),
                "to": mask_phone(command.to_phone),
                "amount_minor": command.amount_minor,
            },
        )
        async with self._key_lock(command.idempotency_key):
            recorded = self._outcomes.get(command.idempotency_key)
            if recorded is not None:
                log.info("Transfer already executed, returning recorded outcome")
                return recorded

            outcome, definite = await self._run(command, notify, log)
            if definite:
                self._record(command.idempotency_key, outcome)
            return outcome

    async def _run(
        self, command: TransferCommand, notify: bool, log: LoggerAdapter
    ) -> tuple[TransferOutcome, bool]:
        if command.from_phone == command.to_phone:
            log.warning("Self-transfer rejected")
            return await self._fail(command, MSG_SELF_TRANSFER, ErrorCode.VALIDATION_ERROR, notify), True
        if command.amount_minor <= 0:
            return await self._fail(command, MSG_NOT_POSITIVE, ErrorCode.VALIDATION_ERROR, notify), True

        try:
            balance_minor = await self.ledger.get_balance(command.from_phone)
        except UpstreamUnavailableError as exc:
            log.warning("Balance re-check unavailable", context={"error": exc.message})
            return await self._fail(command, MSG_BALANCE_UNAVAILABLE, ErrorCode.LEDGER_UNAVAILABLE, notify), False
        except LedgerRejectedError as exc:
            return await self._fail(command, exc.message, exc.code, notify), True

        if balance_minor < command.amount_minor:
            log.info("Insufficient funds", context={"balance_minor": balance_minor})
            outcome = TransferOutcome(
                success=False,
                message="Insufficient funds",
                error_code=ErrorCode.INSUFFICIENT_FUNDS.value,
            )
            if notify:
                await self._send_safely(
                    messages.insufficient_funds(
                        command.from_phone, balance_minor, command.amount_minor, self.currency_symbol
                    )
                )
            return outcome, False

        try:
            outcome = await self.ledger.transfer(command)
        except UpstreamUnavailableError as exc:
            if exc.ambiguous:
                return await self._resolve_ambiguous(command, notify, log, exc)
            log.warning("Ledger unavailable before transfer was sent", context={"error": exc.message})
            return await self._fail(command, None, ErrorCode.LEDGER_UNAVAILABLE, notify), False
        except LedgerRejectedError as exc:
            log.warning("Ledger rejected transfer", context={"error": exc.message, "status": exc.status_code})
            return await self._fail(command, exc.message, exc.code, notify), True

        return await self._finish(command, outcome, notify, log), True

    async def _resolve_ambiguous(
        self,
        command: TransferCommand,
        notify: bool,
        log: LoggerAdapter,
        exc: UpstreamUnavailableError,
    ) -> tuple[TransferOutcome, bool]:
        log.warning("Transfer write outcome unknown, re-querying by key", context={"error": exc.message})
        try:
            status = await self.ledger.get_transfer_status(command.idempotency_key)
        except WalletError as query_exc:
            log.warning("Transfer status query failed", context={"error": query_exc.message})
            status = None

        if status is not None:
            log.info("Transfer status resolved", context={"success": status.success})
            return await self._finish(command, status, notify, log), True

        await alert_warning(
            "Transfer outcome unknown",
            {
                "idempotency_key": command.idempotency_key,
                "from": mask_phone(command.from_phone),
                "amount_minor": command.amount_minor,
            },
        )
        if notify:
            await self._send_safely(messages.transfer_unconfirmed(command.from_phone))
        outcome = TransferOutcome(
            success=False,
            message=MSG_STATUS_UNKNOWN,
            error_code=ErrorCode.LEDGER_UNAVAILABLE.value,
        )
        return outcome, False

    async def _finish(
        self,
        command: TransferCommand,
        outcome: TransferOutcome,
        notify: bool,
        log: LoggerAdapter,
    ) -> TransferOutcome:
        if not outcome.success:
            log.info("Transfer failed", context={"error_code": outcome.error_code, "reason": outcome.message})
            if notify:
                await self._send_safely(messages.transfer_failed(command.from_phone, outcome.message or None))
            return outcome

        log.info("Transfer completed", context={"transaction_id": outcome.transaction_id})
        if notify:
            await notify_transfer_parties(
                self.ledger,
                self.notifier,
                TransferNotice(
                    sender_phone=command.from_phone,
                    recipient_phone=command.to_phone,
                    amount_minor=command.amount_minor,
                    transaction_id=outcome.transaction_id,
                ),
            )
        return outcome

    async def _fail(
        self,
        command: TransferCommand,
        reason: Optional[str],
        code: ErrorCode,
        notify: bool,
    ) -> TransferOutcome:
        if notify:
            await self._send_safely(messages.transfer_failed(command.from_phone, reason))
        return TransferOutcome(success=False, message=reason or "Transfer failed", error_code=code.value)

    async def _send_safely(self, message) -> None:
        result = await self.notifier.send(message)
        if not result.ok:
            logger.warning(
                "Sender notification not delivered",
                extra={"context": {"to": mask_phone(message.to), "error": result.error}},
            )
