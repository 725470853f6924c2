class IntakeError(Exception):
    """Base for per-request workflow failures; never fatal to the process."""


class StaleSubmission(IntakeError):
    """Version or submissionCount mismatch; caller must re-read and retry."""


class StaleReview(IntakeError):
    """Admin acted on a superseded AdminCheck snapshot; caller must re-pull."""


class InvalidTransition(IntakeError):
    """Transition not allowed from the entity's current state."""


class IncompleteSpec(IntakeError):
    """Draft dashboard lacks fields required for publishing."""


class DuplicateEvent(IntakeError):
    """Counter event already applied. Callers treat it as success."""


class NotFound(IntakeError): ...
