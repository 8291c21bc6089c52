from app.services.state_machine import (
    DialogueStep,
    InvalidTransitionError,
    can_transition,
    is_in_flow,
    transition,
)
