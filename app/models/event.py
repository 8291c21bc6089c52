from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    TEXT = "text"
    BUTTON_REPLY = "button_reply"
    STATUS_UPDATE = "status_update"


@dataclass(frozen=True)
class InboundEvent:
    """Canonical inbound envelope produced by the webhook receiver."""

    event_id: str
    sender: str
    kind: EventKind
    text: Optional[str] = None
    button_id: Optional[str] = None

    def __post_init__(self):
        if self.kind == EventKind.TEXT and (self.text is None or self.button_id is not None):
            raise ValueError("text events carry text only")
        if self.kind == EventKind.BUTTON_REPLY and (self.button_id is None or self.text is not None):
            raise ValueError("button events carry button_id only")
        if self.kind == EventKind.STATUS_UPDATE and (self.text is not None or self.button_id is not None):
            raise ValueError("status updates carry no content")

    @property
    def is_message(self) -> bool:
        return self.kind != EventKind.STATUS_UPDATE
