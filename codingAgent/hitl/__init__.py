"""Human-in-the-loop approval policy."""

from .approval_checker import ApprovalChecker, ApprovalDecision

__all__ = ["ApprovalChecker", "ApprovalDecision"]
