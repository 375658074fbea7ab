"""
procure_services -- Package init and public API.

Responsibility:
    Coordinators that own units of work over the procurement kernel:
    the workflow engine and the transition authorizer it delegates to.

Architecture position:
    Services -- orchestration over kernel services and models.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        procure_services/ -> procure_kernel/   (allowed)
        procure_kernel/   -> procure_services/ (FORBIDDEN)
"""

from procure_services.transition_authorizer import TransitionAuthorizer
from procure_services.workflow_engine import PostCommitHook, WorkflowEngine

__all__ = [
    "PostCommitHook",
    "TransitionAuthorizer",
    "WorkflowEngine",
]
