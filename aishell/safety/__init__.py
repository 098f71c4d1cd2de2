"""
Danger classification and operator confirmation for shell commands.
"""

from .confirmation import AutoAllow, AutoDeny, Confirmer, ConsoleConfirmation
from .danger import DangerousCommandSet, leading_verb, risk_notes

__all__ = [
    "AutoAllow",
    "AutoDeny",
    "Confirmer",
    "ConsoleConfirmation",
    "DangerousCommandSet",
    "leading_verb",
    "risk_notes",
]
