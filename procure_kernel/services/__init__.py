"""Kernel services: flush-only collaborators of the workflow engine."""

from procure_kernel.services.audit_trail import AuditTrail
from procure_kernel.services.chain_generator import ChainGenerator
from procure_kernel.services.document_service import DocumentService
from procure_kernel.services.threshold_policy import ThresholdPolicy

__all__ = [
    "AuditTrail",
    "ChainGenerator",
    "DocumentService",
    "ThresholdPolicy",
]
