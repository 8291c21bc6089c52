"""Chat pipeline: one accepted inbound event -> classify -> dialogue turn -> reply."""

from typing import Optional

from app.logging_config import LoggerAdapter, get_logger, mask_phone
from app.models import InboundEvent
from app.services import messages
from app.services.alert_service import alert_error
from app.services.conversation_store import ConversationStore
from app.services.dialogue_engine import DialogueEngine, Turn
from app.services.errors import WalletError
from app.services.intent_service import classify_intent

logger = get_logger("chat_service")


class ChatService:
    def __init__(self, store: ConversationStore, ledger, engine: DialogueEngine, notifier):
        self.store = store
        self.ledger = ledger
        self.engine = engine
        self.notifier = notifier

    async def process_event(self, event: InboundEvent) -> Optional[Turn]:
        """Run one event end to end. Never raises; faults are logged and alerted."""
        if not event.is_message:
            return None

        log = LoggerAdapter(logger, {"event_id": event.event_id, "phone": mask_phone(event.sender)})
        try:
            return await self._process(event, log)
        except Exception as exc:
            log.exception("Chat pipeline failed", context={"error": str(exc)})
            await alert_error(
                "Chat pipeline failed",
                {"event_id": event.event_id, "phone": mask_phone(event.sender), "error": str(exc)[:300]},
            )
            await self._apologize(event.sender, log)
            return None

    async def _apologize(self, phone: str, log: LoggerAdapter) -> None:
        """Best-effort reply after a fault so the user is never left unanswered."""
        try:
            result = await self.notifier.send(messages.with_menu(phone, messages.MSG_SERVICE_UNAVAILABLE))
        except Exception as exc:
            log.error("Fault reply raised", context={"error": str(exc)})
            return
        if not result.ok:
            log.warning("Fault reply not delivered", context={"error": result.error})

    async def _process(self, event: InboundEvent, log: LoggerAdapter) -> Optional[Turn]:
        phone = event.sender
        async with self.store.lock(phone):
            session = await self.store.get_or_create(phone)
            if session.last_event_id == event.event_id:
                log.info("Event already applied to session")
                return None

            try:
                intent = await classify_intent(session, event, self.ledger.is_registered)
            except WalletError as exc:
                log.warning("Registration lookup failed", context={"error": exc.message})
                turn = Turn(session, messages.with_menu(phone, messages.MSG_SERVICE_UNAVAILABLE))
            else:
                turn = await self.engine.handle(session, event, intent)

            updated = turn.session.mark_event(event.event_id)
            if not await self.store.compare_and_swap(phone, session, updated):
                log.error("Session write lost to a concurrent update", context={"step": updated.step.value})

            if turn.reply is not None:
                result = await self.notifier.send(turn.reply)
                if not result.ok:
                    log.warning("Reply not delivered", context={"error": result.error})
            return turn
