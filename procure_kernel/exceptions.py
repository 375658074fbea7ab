"""
Typed Exception Hierarchy for the Procurement Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the API layer, batch jobs, tests) must react to workflow failures
precisely.  Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Carries a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (document type, id, roles, ...)

Example - RIGHT way to handle a denial:

    try:
        engine.apply(DocumentType.PURCHASE_ORDER, 42, "approve", actor)
    except CommentRequiredError as e:
        api_response(code=e.code, document_id=e.document_id)
    except WorkflowError as e:
        api_response(code=e.code, message=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcureKernelError (base)
    |
    +-- WorkflowError
    |   +-- DocumentNotFoundError
    |   +-- CrossTenantAccessError
    |   +-- InvalidTransitionError
    |   +-- UnauthorizedTransitionError
    |   +-- CommentRequiredError
    |   +-- ConcurrentModificationError
    |
    +-- ThresholdError
    |   +-- ThresholdNotConfiguredError
    |   +-- ThresholdConfigNotFoundError
    |   +-- InvalidThresholdError
    |   +-- ThresholdManagementDeniedError
    |
    +-- ChainError
    |   +-- AlreadyChainedError
    |   +-- NoChainRegisteredError
    |
    +-- DocumentCreationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PersistenceError
        +-- PersistenceUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|---------------------------------------
Workflow     | DOCUMENT_NOT_FOUND        | No document with that (type, id)
             | CROSS_TENANT_ACCESS       | Actor organization != document's
             | INVALID_TRANSITION        | Transition not defined from status
             | UNAUTHORIZED              | Role or ownership check failed
             | COMMENT_REQUIRED          | Rejection without a comment
             | CONCURRENT_MODIFICATION   | Optimistic version check failed
-------------|---------------------------|---------------------------------------
Threshold    | THRESHOLD_NOT_CONFIGURED  | No active threshold for organization
             | THRESHOLD_NOT_FOUND       | Threshold config id does not exist
             | INVALID_THRESHOLD         | Non-positive amount, already active...
             | THRESHOLD_MANAGEMENT_DENIED | Actor may not manage thresholds
-------------|---------------------------|---------------------------------------
Chain        | ALREADY_CHAINED           | Source already produced a successor
             | NO_CHAIN_REGISTERED       | No successor defined for the type
-------------|---------------------------|---------------------------------------
Creation     | DOCUMENT_CREATION_DENIED  | Actor role may not create the type
-------------|---------------------------|---------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Mutating an audit record, chain link
             |                           | or a document's creator
-------------|---------------------------|---------------------------------------
Persistence  | PERSISTENCE_UNAVAILABLE   | Database timeout / operational error
"""


class ProcureKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCURE_KERNEL_ERROR"


# Workflow-related exceptions


class WorkflowError(ProcureKernelError):
    """Base exception for denials raised while applying a transition."""

    code: str = "WORKFLOW_ERROR"


class DocumentNotFoundError(WorkflowError):
    """No document of the given type carries the given id."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: int):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"Document not found: {document_type}:{document_id}")


class CrossTenantAccessError(WorkflowError):
    """The actor's organization does not own the document."""

    code: str = "CROSS_TENANT_ACCESS"

    def __init__(
        self,
        document_type: str,
        document_id: int,
        actor_organization_id: int,
        document_organization_id: int,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.actor_organization_id = actor_organization_id
        self.document_organization_id = document_organization_id
        super().__init__(
            f"Actor of organization {actor_organization_id} cannot access "
            f"{document_type}:{document_id} owned by organization "
            f"{document_organization_id}"
        )


class InvalidTransitionError(WorkflowError):
    """
    The requested transition is not defined from the document's status.

    Covers terminal REJECTED documents, already-applied transitions and
    the loser of a concurrent race that re-reads the new status.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_type: str,
        document_id: int,
        current_status: str,
        transition: str,
        reason: str | None = None,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.current_status = current_status
        self.transition = transition
        self.reason = reason
        message = (
            f"Transition '{transition}' is not allowed for "
            f"{document_type}:{document_id} in status {current_status}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnauthorizedTransitionError(WorkflowError):
    """The actor lacks the role, or the ownership, the transition requires."""

    code: str = "UNAUTHORIZED"

    def __init__(
        self,
        actor_id: int,
        actor_role: str,
        document_type: str,
        transition: str,
        reason: str,
        required_roles: tuple[str, ...] = (),
    ):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.document_type = document_type
        self.transition = transition
        self.reason = reason
        self.required_roles = required_roles
        super().__init__(
            f"Actor {actor_id} ({actor_role}) may not apply '{transition}' "
            f"to {document_type}: {reason}"
        )


class CommentRequiredError(WorkflowError):
    """A rejection was attempted without a non-empty comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, document_type: str, document_id: int):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(
            f"A comment is required to reject {document_type}:{document_id}"
        )


class ConcurrentModificationError(WorkflowError):
    """Another transaction changed the document since it was loaded."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, document_type: str, document_id: int):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(
            f"Concurrent modification on {document_type}:{document_id}: "
            "document was modified by another transaction"
        )


# Threshold-related exceptions


class ThresholdError(ProcureKernelError):
    """Base exception for threshold configuration errors."""

    code: str = "THRESHOLD_ERROR"


class ThresholdNotConfiguredError(ThresholdError):
    """
    The organization has no active threshold.

    Threshold-gated transitions never default: absence of configuration
    is an explicit error, not an implicit allow.
    """

    code: str = "THRESHOLD_NOT_CONFIGURED"

    def __init__(self, organization_id: int, document_type: str | None = None):
        self.organization_id = organization_id
        self.document_type = document_type
        suffix = f" (required by {document_type})" if document_type else ""
        super().__init__(
            f"No active validation threshold configured for organization "
            f"{organization_id}{suffix}"
        )


class ThresholdConfigNotFoundError(ThresholdError):
    """Threshold configuration id does not exist."""

    code: str = "THRESHOLD_NOT_FOUND"

    def __init__(self, config_id: int):
        self.config_id = config_id
        super().__init__(f"Threshold configuration not found: {config_id}")


class InvalidThresholdError(ThresholdError):
    """Threshold value or state change is invalid."""

    code: str = "INVALID_THRESHOLD"

    def __init__(self, reason: str, config_id: int | None = None):
        self.reason = reason
        self.config_id = config_id
        super().__init__(f"Invalid threshold operation: {reason}")


class ThresholdManagementDeniedError(ThresholdError):
    """Actor is not allowed to create, activate or deactivate thresholds."""

    code: str = "THRESHOLD_MANAGEMENT_DENIED"

    def __init__(self, actor_id: int, actor_role: str, organization_id: int):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.organization_id = organization_id
        super().__init__(
            f"Actor {actor_id} ({actor_role}) may not manage thresholds of "
            f"organization {organization_id}"
        )


# Chain-related exceptions


class ChainError(ProcureKernelError):
    """Base exception for cross-document chaining errors."""

    code: str = "CHAIN_ERROR"


class AlreadyChainedError(ChainError):
    """The source document already produced its successor."""

    code: str = "ALREADY_CHAINED"

    def __init__(
        self,
        source_type: str,
        source_id: int,
        existing_target_type: str | None = None,
        existing_target_id: int | None = None,
    ):
        self.source_type = source_type
        self.source_id = source_id
        self.existing_target_type = existing_target_type
        self.existing_target_id = existing_target_id
        existing = ""
        if existing_target_type is not None:
            existing = f" -> {existing_target_type}:{existing_target_id}"
        super().__init__(
            f"{source_type}:{source_id} has already been chained{existing}"
        )


class NoChainRegisteredError(ChainError):
    """No successor builder is registered for the document type."""

    code: str = "NO_CHAIN_REGISTERED"

    def __init__(self, source_type: str):
        self.source_type = source_type
        super().__init__(f"No chained successor registered for {source_type}")


# Creation-related exceptions


class DocumentCreationError(ProcureKernelError):
    """The actor's role may not originate documents of this type."""

    code: str = "DOCUMENT_CREATION_DENIED"

    def __init__(self, document_type: str, actor_role: str, reason: str):
        self.document_type = document_type
        self.actor_role = actor_role
        self.reason = reason
        super().__init__(
            f"Role {actor_role} cannot create {document_type}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(ProcureKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    AuditRecord and ChainLink rows are append-only; a document's
    created_by_id never changes after creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Persistence-related exceptions


class PersistenceError(ProcureKernelError):
    """Base exception for persistence collaborator failures."""

    code: str = "PERSISTENCE_ERROR"


class PersistenceUnavailableError(PersistenceError):
    """The database did not answer within its bounded timeout."""

    code: str = "PERSISTENCE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence unavailable during {operation}: {detail}")
