"""
Procurement Kernel

Document workflow core for procurement and treasury documents:
- Declarative, role-gated transition table
- Threshold-based escalation per organization
- Cross-document chaining
- Append-only audit trail of every transition attempt
"""

__version__ = "0.1.0"
