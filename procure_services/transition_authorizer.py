"""
procure_services.transition_authorizer -- role and ownership gate for transitions.

Responsibility:
    Decide whether an actor may apply a transition to a document in its
    current status.  Required-role sets come from the static transition
    table; there is no per-instance override.

Architecture position:
    Services layer.  Consumes ``procure_kernel.domain.workflow``.  Called by
    WorkflowEngine after the transition has been found legal for the
    document's current status.

Invariants:
    - Ownership is checked independently of role: the actor's organization
      must own the document.  A SUPER_ADMIN is never an owner, so it can
      read across tenants but never transition.
    - An actor whose role is not in the required set is denied even when
      the transition would be legal.
    - Checks are side-effect free; the engine audits the outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from procure_kernel.domain.values import Actor
from procure_kernel.domain.workflow import (
    DocumentStatus,
    DocumentType,
    TransitionName,
    TransitionRule,
    find_rule,
)
from procure_kernel.exceptions import UnauthorizedTransitionError

if TYPE_CHECKING:
    from procure_kernel.models.documents import DocumentBase


def required_roles_for(
    doc_type: DocumentType,
    transition: TransitionName,
    status: DocumentStatus,
) -> frozenset:
    """Roles allowed to apply ``transition`` from ``status``; empty if not legal."""
    rule = find_rule(doc_type, status, transition)
    return rule.required_roles if rule is not None else frozenset()


class TransitionAuthorizer:
    """Role/ownership check for one (actor, document, transition)."""

    def is_authorized(
        self,
        actor: Actor,
        doc_type: DocumentType,
        transition: TransitionName,
        document: DocumentBase,
    ) -> tuple[bool, str]:
        """Check whether the actor may apply the transition.

        Returns:
            (allowed, reason). allowed is True iff the actor may apply the
            transition; reason is empty when allowed, or a short message
            when denied.
        """
        if document.organization_id != actor.organization_id:
            return (
                False,
                f"actor organization {actor.organization_id} does not own the "
                f"document (organization {document.organization_id})",
            )

        rule = find_rule(doc_type, document.status_enum, transition)
        if rule is None:
            return (False, f"no '{transition.value}' from status {document.status}")

        if actor.role not in rule.required_roles:
            return (
                False,
                f"role {actor.role.value} not in required roles "
                f"{_role_list(rule)}",
            )
        return (True, "")

    def check(
        self,
        actor: Actor,
        doc_type: DocumentType,
        transition: TransitionName,
        document: DocumentBase,
    ) -> None:
        """Raise UnauthorizedTransitionError unless ``is_authorized`` allows it."""
        doc_type, transition = DocumentType(doc_type), TransitionName(transition)
        allowed, reason = self.is_authorized(actor, doc_type, transition, document)
        if not allowed:
            raise UnauthorizedTransitionError(
                actor_id=actor.id,
                actor_role=actor.role.value,
                document_type=doc_type.value,
                transition=transition.value,
                reason=reason,
                required_roles=tuple(
                    sorted(
                        r.value
                        for r in required_roles_for(
                            doc_type, transition, document.status_enum,
                        )
                    )
                ),
            )


def _role_list(rule: TransitionRule) -> str:
    return "/".join(sorted(r.value for r in rule.required_roles))
