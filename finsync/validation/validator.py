"""
Two-Stage Batch Validation

DESIGN DECISION: A sync batch is validated in two distinct stages
before any candidate is merged:

STAGE 1 - STRUCTURAL VALIDATION (no storage):
- Wire shape (pydantic): types, required fields, decimal amounts
- Batch size limit
- Ids unique within each candidate set

STAGE 2 - REFERENCE VALIDATION (inside the unit of work):
- Every referenced category exists and is visible to the caller

WHY TWO STAGES:
1. Stage 1 rejects garbage without opening a transaction
2. Stage 2 must see the same snapshot the merge will write against

IMPORTANT: Validation NEVER repairs a batch. Duplicate ids are not
de-duplicated and unknown categories are not dropped; the whole batch
is refused and nothing is written.
"""

from collections import Counter
from typing import Any, Iterable, Optional
from uuid import UUID

import pydantic

from finsync.config import SyncSettings, get_settings
from finsync.models.entities import EntityKind
from finsync.models.sync import SyncRequest, ValidationIssue
from finsync.services.storage import StoreSession


class CandidateValidationError(Exception):
    """A malformed candidate or batch. Aborts the whole call."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(issue.message for issue in issues[:5])
        if len(issues) > 5:
            summary += f"; and {len(issues) - 5} more"
        super().__init__(f"Invalid sync batch: {summary}")

    def issue_dicts(self) -> list[dict]:
        return [issue.model_dump(mode="json") for issue in self.issues]


def issues_from_pydantic(error: pydantic.ValidationError) -> list[ValidationIssue]:
    """Flatten pydantic's error list into ValidationIssues."""
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        issues.append(ValidationIssue(
            field=location or "request",
            issue_type=err["type"],
            message=f"{location}: {err['msg']}" if location else err["msg"],
        ))
    return issues


class CandidateValidator:
    """
    Validates sync batches and single-entity writes.

    Stage 1: parse_request / validate_structure (no storage)
    Stage 2: validate_references (needs an open StoreSession)
    """

    def __init__(self, settings: Optional[SyncSettings] = None):
        self._settings = settings or get_settings().sync

    def parse_request(self, raw: SyncRequest | dict[str, Any]) -> SyncRequest:
        """Accept a model or its wire dict; raise on malformed input."""
        if isinstance(raw, SyncRequest):
            return raw
        try:
            return SyncRequest.model_validate(raw)
        except pydantic.ValidationError as e:
            raise CandidateValidationError(issues_from_pydantic(e)) from e

    @staticmethod
    def _duplicate_ids(
        kind: EntityKind,
        ids: Iterable[UUID],
    ) -> list[ValidationIssue]:
        counts = Counter(ids)
        return [
            ValidationIssue(
                kind=kind,
                entity_id=entity_id,
                field="id",
                issue_type="duplicate_id",
                message=f"{kind.value} {entity_id} appears {count} times in one batch",
            )
            for entity_id, count in counts.items()
            if count > 1
        ]

    def validate_structure(self, request: SyncRequest) -> list[ValidationIssue]:
        """Stage 1: checks that need nothing but the request."""
        issues = []
        limit = self._settings.max_batch_size

        for kind, candidates in (
            (EntityKind.TRANSACTION, request.transactions),
            (EntityKind.BUDGET, request.budgets),
        ):
            if len(candidates) > limit:
                issues.append(ValidationIssue(
                    kind=kind,
                    field=f"{kind.value}s",
                    issue_type="batch_too_large",
                    message=(
                        f"{len(candidates)} {kind.value} candidates exceed "
                        f"the limit of {limit} per call"
                    ),
                ))
            issues.extend(self._duplicate_ids(kind, (c.id for c in candidates)))

        return issues

    async def validate_references(
        self,
        session: StoreSession,
        owner_id: UUID,
        request: SyncRequest,
    ) -> list[ValidationIssue]:
        """Stage 2: every referenced category must be visible to the owner."""
        referenced: dict[UUID, list[tuple[EntityKind, UUID]]] = {}
        for candidate in request.transactions:
            referenced.setdefault(candidate.category_id, []).append(
                (EntityKind.TRANSACTION, candidate.id)
            )
        for candidate in request.budgets:
            referenced.setdefault(candidate.category_id, []).append(
                (EntityKind.BUDGET, candidate.id)
            )

        visible = await session.visible_category_ids(owner_id, set(referenced))

        issues = []
        for category_id, users in referenced.items():
            if category_id in visible:
                continue
            for kind, entity_id in users:
                issues.append(ValidationIssue(
                    kind=kind,
                    entity_id=entity_id,
                    field="category_id",
                    issue_type="unknown_category",
                    message=f"Category not found: {category_id}",
                ))
        return issues

    async def validate_category(
        self,
        session: StoreSession,
        owner_id: UUID,
        kind: EntityKind,
        entity_id: UUID,
        category_id: UUID,
    ) -> None:
        """Single-entity variant of stage 2 for explicit mutations."""
        visible = await session.visible_category_ids(owner_id, {category_id})
        if category_id not in visible:
            raise CandidateValidationError([ValidationIssue(
                kind=kind,
                entity_id=entity_id,
                field="category_id",
                issue_type="unknown_category",
                message=f"Category not found: {category_id}",
            )])

    @staticmethod
    def ensure_valid(issues: list[ValidationIssue]) -> None:
        if issues:
            raise CandidateValidationError(issues)
