"""Batch validation package."""

from finsync.validation.validator import (
    CandidateValidationError,
    CandidateValidator,
    issues_from_pydantic,
)

__all__ = ["CandidateValidationError", "CandidateValidator", "issues_from_pydantic"]
