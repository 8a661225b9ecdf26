"""Wizard navigator: a linear state machine over the registration steps.

Moving forward is gated by the validator of the step being left. Moving back
always works down to the first step. Jumping is allowed to any step already
reached, never beyond it.
"""

from enum import IntEnum

from protean.exceptions import InvalidOperationError, ValidationError

from registration.domain import logger
from registration.wizard.validators import (
    validate_attendee_details,
    validate_order_review,
    validate_payment,
    validate_registration_type,
    validate_ticket_selection,
)


class Step(IntEnum):
    REGISTRATION_TYPE = 1
    ATTENDEE_DETAILS = 2
    TICKET_SELECTION = 3
    ORDER_REVIEW = 4
    PAYMENT = 5
    CONFIRMATION = 6


FIRST_STEP = Step.REGISTRATION_TYPE
LAST_STEP = Step.CONFIRMATION

DEFAULT_VALIDATORS = {
    Step.REGISTRATION_TYPE: validate_registration_type,
    Step.ATTENDEE_DETAILS: validate_attendee_details,
    Step.TICKET_SELECTION: validate_ticket_selection,
    Step.ORDER_REVIEW: validate_order_review,
    Step.PAYMENT: validate_payment,
}


class WizardNavigator:
    def __init__(self, validators=None, current_step=FIRST_STEP, highest_step=None):
        self.validators = dict(DEFAULT_VALIDATORS if validators is None else validators)
        self.current_step = Step(current_step)
        self.highest_step = Step(max(highest_step or current_step, current_step))

    @property
    def is_terminal(self):
        return self.current_step == LAST_STEP

    def validate(self, registration):
        validator = self.validators.get(self.current_step)
        return validator(registration) if validator is not None else {}

    def next(self, registration):
        """Advance one step if the current step's validator reports nothing.

        Raises ``ValidationError`` carrying every message otherwise.
        """
        if self.is_terminal:
            raise InvalidOperationError("The registration is already on its final step")

        errors = self.validate(registration)
        if errors:
            logger.info("wizard_step_blocked", step=self.current_step.name, error_count=len(errors))
            raise ValidationError(errors)

        self.current_step = Step(self.current_step + 1)
        self.highest_step = max(self.highest_step, self.current_step)
        return self.current_step

    def prev(self):
        if self.current_step > FIRST_STEP:
            self.current_step = Step(self.current_step - 1)
        return self.current_step

    def jump_to(self, step):
        if step not in {s.value for s in Step}:
            raise ValidationError({"step": [f"Step must be between {FIRST_STEP.value} and {LAST_STEP.value}"]})
        if step > self.highest_step:
            raise InvalidOperationError(f"Step {step} has not been reached yet")
        self.current_step = Step(step)
        return self.current_step

    def reset(self):
        self.current_step = FIRST_STEP
        self.highest_step = FIRST_STEP
