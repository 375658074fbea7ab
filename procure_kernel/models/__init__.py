"""Domain models for the procurement kernel."""

from procure_kernel.models.audit_record import AuditRecord
from procure_kernel.models.chain_link import ChainLink
from procure_kernel.models.documents import (
    DOCUMENT_MODELS,
    Budget,
    CreditLine,
    DocumentBase,
    NeedSheet,
    PaymentOrder,
    PurchaseOrder,
    PurchaseRequest,
    ServiceAttestation,
    WithdrawalDecision,
    model_for,
)
from procure_kernel.models.threshold import ThresholdConfig

__all__ = [
    "AuditRecord",
    "Budget",
    "ChainLink",
    "CreditLine",
    "DOCUMENT_MODELS",
    "DocumentBase",
    "NeedSheet",
    "PaymentOrder",
    "PurchaseOrder",
    "PurchaseRequest",
    "ServiceAttestation",
    "ThresholdConfig",
    "WithdrawalDecision",
    "model_for",
]
