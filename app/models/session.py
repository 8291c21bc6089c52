from dataclasses import asdict, dataclass, replace
from typing import Optional

from app.services.state_machine import DialogueStep, transition


@dataclass(frozen=True)
class Session:
    """Dialogue state for one phone number.

    Values are immutable; every change produces a new Session with a bumped
    version so the store can compare-and-swap on it.
    """

    phone: str
    step: DialogueStep = DialogueStep.MAIN
    pending_recipient: Optional[str] = None
    last_event_id: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        if (self.pending_recipient is not None) != (self.step == DialogueStep.AWAIT_AMOUNT):
            raise ValueError(
                f"pending_recipient must be set only in {DialogueStep.AWAIT_AMOUNT.value} "
                f"(step={self.step.value}, pending_recipient={self.pending_recipient!r})"
            )

    def start_transfer(self) -> "Session":
        step = transition(self.step, DialogueStep.AWAIT_RECIPIENT)
        return replace(self, step=step, pending_recipient=None, version=self.version + 1)

    def await_amount(self, recipient: str) -> "Session":
        step = transition(self.step, DialogueStep.AWAIT_AMOUNT)
        return replace(self, step=step, pending_recipient=recipient, version=self.version + 1)

    def reset(self) -> "Session":
        step = self.step if self.step == DialogueStep.MAIN else transition(self.step, DialogueStep.MAIN)
        return replace(self, step=step, pending_recipient=None, version=self.version + 1)

    def mark_event(self, event_id: str) -> "Session":
        return replace(self, last_event_id=event_id, version=self.version + 1)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["step"] = self.step.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            phone=data["phone"],
            step=DialogueStep(data.get("step") or DialogueStep.MAIN.value),
            pending_recipient=data.get("pending_recipient"),
            last_event_id=data.get("last_event_id"),
            version=int(data.get("version") or 0),
        )
