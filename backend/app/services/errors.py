"""Workflow-level errors; app.main maps them to HTTP status codes."""

class WorkflowError(Exception):
    """Base for draft / publish / rollback failures."""

class NotFoundError(WorkflowError):
    """Draft, backup or stored version missing (404)."""

class PartialWriteError(WorkflowError):
    """Some metafield writes failed (strict mode or backup capture) (502)."""

    def __init__(self, message: str, failed_keys: dict | None = None):
        self.failed_keys = dict(failed_keys or {})
        super().__init__(message)

class ResourceBusyError(WorkflowError):
    """Another request holds the per-resource lock (409)."""

class UsageLimitError(WorkflowError):
    """Monthly optimization quota used up (403)."""

    def __init__(self, message: str, usage: dict | None = None):
        self.usage = dict(usage or {})
        super().__init__(message)
