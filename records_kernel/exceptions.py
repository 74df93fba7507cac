"""
Typed exception hierarchy for the records kernel.

Every error carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes, so callers catch by type and read
structured data instead of parsing messages.

    RecordsKernelError (base)
    |
    +-- RegistryError
    |   +-- DuplicateStageError
    |   +-- InvalidStageDependencyError
    |   +-- UnknownStageError
    |
    +-- ApprovalError
        +-- MetricsNotFoundError
        +-- InvalidApprovalFieldError
        +-- ApprovalRejectedError
        |   +-- SessionExpiredError
        +-- ApprovalTransportError

Category    | Code                        | When raised
------------|-----------------------------|-----------------------------------------
Registry    | DUPLICATE_STAGE             | Two stages share a key or a role
            | INVALID_STAGE_DEPENDENCY    | Dependency unknown or not upstream
            | UNKNOWN_STAGE               | Stage key not in the registry
------------|-----------------------------|-----------------------------------------
Approval    | METRICS_NOT_FOUND           | Metrics record id does not exist
            | INVALID_APPROVAL_FIELD      | Update names a field no stage owns
            | APPROVAL_REJECTED           | Server refused the mutation
            | SESSION_EXPIRED             | Server answered 401
            | APPROVAL_TRANSPORT_FAILED   | Network failure / unstructured error

Validation failures (empty note, read-only mode, incomplete profile,
missing authority) are NOT exceptions. They are returned as values by the
engines (``TransitionResult``, ``GateDecision``) and by the workflow
service (``ActionResult``).
"""


class RecordsKernelError(Exception):
    """
    Base exception for all records kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "RECORDS_KERNEL_ERROR"


# Registry exceptions


class RegistryError(RecordsKernelError):
    """Base exception for officer hierarchy registry errors."""

    code: str = "REGISTRY_ERROR"


class DuplicateStageError(RegistryError):
    """Two stages declare the same key or the same role."""

    code: str = "DUPLICATE_STAGE"

    def __init__(self, attribute: str, value: str):
        self.attribute = attribute
        self.value = value
        super().__init__(f"Duplicate stage {attribute}: {value}")


class InvalidStageDependencyError(RegistryError):
    """A stage depends on an unknown stage or on one that is not upstream."""

    code: str = "INVALID_STAGE_DEPENDENCY"

    def __init__(self, stage_key: str, dependency: str):
        self.stage_key = stage_key
        self.dependency = dependency
        super().__init__(
            f"Stage {stage_key} declares dependency {dependency}, "
            f"which is not an earlier stage"
        )


class UnknownStageError(RegistryError):
    """Stage key is not part of the registry."""

    code: str = "UNKNOWN_STAGE"

    def __init__(self, stage_key: str):
        self.stage_key = stage_key
        super().__init__(f"Unknown approval stage: {stage_key}")


# Approval exceptions


class ApprovalError(RecordsKernelError):
    """Base exception for approval mutation errors."""

    code: str = "APPROVAL_ERROR"


class MetricsNotFoundError(ApprovalError):
    """Metrics record with given id was not found."""

    code: str = "METRICS_NOT_FOUND"

    def __init__(self, metrics_id: str):
        self.metrics_id = metrics_id
        super().__init__(f"Academic metrics not found: {metrics_id}")


class InvalidApprovalFieldError(ApprovalError):
    """An update names fields that no registry stage owns."""

    code: str = "INVALID_APPROVAL_FIELD"

    def __init__(self, metrics_id: str, fields: tuple[str, ...]):
        self.metrics_id = metrics_id
        self.fields = fields
        super().__init__(
            f"Unknown approval fields for {metrics_id}: {', '.join(fields)}"
        )


class ApprovalRejectedError(ApprovalError):
    """
    The data service refused the mutation.

    ``server_message`` is the message reported by the server, when it sent
    one; callers surface it verbatim.
    """

    code: str = "APPROVAL_REJECTED"

    def __init__(
        self,
        metrics_id: str | None,
        status_code: int | None,
        server_message: str | None = None,
    ):
        self.metrics_id = metrics_id
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(
            server_message
            or f"Approval update rejected (status {status_code})"
        )


class SessionExpiredError(ApprovalRejectedError):
    """The data service answered 401; the session must be discarded."""

    code: str = "SESSION_EXPIRED"


class ApprovalTransportError(ApprovalError):
    """Network failure, or a non-2xx answer without a structured message."""

    code: str = "APPROVAL_TRANSPORT_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")
