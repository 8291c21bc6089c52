from enum import Enum


class DialogueStep(str, Enum):
    MAIN = "main"
    AWAIT_RECIPIENT = "await_recipient"
    AWAIT_AMOUNT = "await_amount"


# Main is terminal for every flow; send_money restarts the flow from any step.
VALID_TRANSITIONS = {
    DialogueStep.MAIN: [DialogueStep.AWAIT_RECIPIENT],
    DialogueStep.AWAIT_RECIPIENT: [
        DialogueStep.AWAIT_AMOUNT,
        DialogueStep.AWAIT_RECIPIENT,
        DialogueStep.MAIN,
    ],
    DialogueStep.AWAIT_AMOUNT: [DialogueStep.AWAIT_RECIPIENT, DialogueStep.MAIN],
}

IN_FLOW_STEPS = {DialogueStep.AWAIT_RECIPIENT, DialogueStep.AWAIT_AMOUNT}


class InvalidTransitionError(Exception):
    def __init__(self, from_step: DialogueStep, to_step: DialogueStep):
        self.from_step = from_step
        self.to_step = to_step
        super().__init__(f"Invalid transition: {from_step.value} -> {to_step.value}")


def can_transition(from_step: DialogueStep, to_step: DialogueStep) -> bool:
    """Check if transition is valid."""
    return to_step in VALID_TRANSITIONS.get(from_step, [])


def transition(from_step: DialogueStep, to_step: DialogueStep) -> DialogueStep:
    """Perform step transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_step, to_step):
        raise InvalidTransitionError(from_step, to_step)
    return to_step


def is_in_flow(step: DialogueStep) -> bool:
    return step in IN_FLOW_STEPS
