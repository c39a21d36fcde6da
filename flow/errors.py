"""Error taxonomy for the stepped workflow engine.

Only StepGraphError and unknown-field KeyErrors escape to callers; everything
else is caught at the session boundary and turned into a flag, a banner or a
fallback value.
"""


class WorkflowError(Exception):
    """Base class for every error raised by the workflow engine."""


class ValidationError(WorkflowError):
    """A required value is missing before an action (e.g. empty title on save)."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NotFoundError(WorkflowError):
    """The requested module record does not exist for this user."""


class AuthRequiredError(WorkflowError):
    """An action that writes user data was attempted without a signed-in user."""


class PersistenceError(WorkflowError):
    """Load or save against the remote store failed."""


class SchemaVersionError(PersistenceError):
    """A stored record carries a schema version this code cannot migrate."""


class GenerationError(WorkflowError):
    """The content-generation collaborator failed to produce a value."""


class StepGraphError(WorkflowError):
    """The step graph is malformed (unknown or forward prerequisite, cycle, duplicate id)."""


class ReentrantMutationError(WorkflowError):
    """A state mutation was attempted while predicates were being evaluated."""
