"""Operator authorization auditor.

Reconciles point-in-time authorization reads at the start of a reward
interval with sortition pool deauthorizations recorded during it.
Eligibility policy is left to the reward calculation.
"""

from .authorization import AuditReport, AuthorizationAuditor
from .deauthorization import DeauthorizationScanner, compute_deauthorized_set

__all__ = [
    "AuditReport",
    "AuthorizationAuditor",
    "DeauthorizationScanner",
    "compute_deauthorized_set",
]
