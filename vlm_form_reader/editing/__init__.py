"""Human verification of extracted data."""

from .verification import VerificationEditor, TemplateState

__all__ = ["VerificationEditor", "TemplateState"]
