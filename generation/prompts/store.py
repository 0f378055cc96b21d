"""Versioned prompt templates, one active version per use-case.

Saves use optimistic concurrency: a caller that passes ``expected_version``
fails with ``ConflictError`` when someone else saved first, and must re-read
and reapply.  Rollback never rewrites history; it creates a new version that
copies an older snapshot.
"""
import re
from typing import List, Optional

from pydantic import BaseModel, Field

from generation.models import UseCase
from generation.prompts.repository import (
    PromptAuditEntry,
    PromptRecord,
    PromptRepository,
    PromptVersionSnapshot,
)
from showcase.audit import audit_prompt_change
from showcase.cache import TTL, Cache
from showcase.errors import ConflictError, InvalidPromptError, NotFoundError
from showcase.events import ConfigChangedPayload, EventBus
from showcase.logging import logger

MIN_PROMPT_LENGTH = 20
MAX_PROMPT_LENGTH = 16000
_PLACEHOLDER = re.compile(r"\{\{(.*?)\}\}")
_PLACEHOLDER_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class PromptHistory(BaseModel):
    active: Optional[PromptRecord] = None
    versions: List[PromptVersionSnapshot] = Field(default_factory=list)


def validate_prompt_content(content: str) -> None:
    """Reject prompts that are too short, too long or carry malformed placeholders."""
    if len(content) < MIN_PROMPT_LENGTH:
        raise InvalidPromptError(f"Prompt too short (min {MIN_PROMPT_LENGTH} chars)")
    if len(content) > MAX_PROMPT_LENGTH:
        raise InvalidPromptError(f"Prompt too long (max {MAX_PROMPT_LENGTH} chars)")
    if any(not _PLACEHOLDER_NAME.match(name.strip()) for name in _PLACEHOLDER.findall(content)):
        raise InvalidPromptError("Invalid placeholder format")


class PromptVersionStore:
    def __init__(self, repository: PromptRepository, cache: Cache, events: Optional[EventBus] = None):
        self.repository = repository
        self.cache = cache
        self.events = events or EventBus()

    @staticmethod
    def cache_key(use_case: UseCase) -> str:
        return f"prompt:active:{UseCase(use_case).value}"

    # Reads ---------------------------------------------------------------
    async def load_active_prompt(self, use_case: UseCase) -> Optional[str]:
        record = await self.repository.find_latest(UseCase(use_case))
        return record.content if record and record.active else None

    async def get_active_prompt(self, use_case: UseCase) -> Optional[str]:
        """Active template content, or ``None`` when the use-case has no prompt yet."""
        use_case = UseCase(use_case)
        return await self.cache.get_or_set(
            self.cache_key(use_case), lambda: self.load_active_prompt(use_case), TTL.SETTINGS
        )

    async def list_versions(self, use_case: UseCase, limit: int = 20) -> PromptHistory:
        use_case = UseCase(use_case)
        active = await self.repository.find_latest(use_case)
        if active is None:
            return PromptHistory()
        versions = await self.repository.list_snapshots(use_case, limit)
        return PromptHistory(active=active, versions=versions)

    async def get_version(self, use_case: UseCase, version: int) -> Optional[PromptVersionSnapshot]:
        return await self.repository.find_snapshot(UseCase(use_case), version)

    async def list_audit(self, use_case: UseCase) -> List[PromptAuditEntry]:
        return await self.repository.list_audit(UseCase(use_case))

    # Writes --------------------------------------------------------------
    async def ensure_prompt(self, use_case: UseCase, content: str, editor: Optional[str] = None) -> PromptRecord:
        """Create version 1 when the use-case has no prompt; otherwise return the current one."""
        use_case = UseCase(use_case)
        async with self.repository.transaction():
            current = await self.repository.find_latest(use_case)
            if current is not None:
                return current
            record = await self._write_version(use_case, content, 1, editor, None, None)
            await self._audit("update", use_case, 0, 1, editor)
        await self._changed(use_case, f"created {use_case.value}")
        return record

    async def save(
        self,
        use_case: UseCase,
        content: str,
        expected_version: Optional[int] = None,
        editor: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> PromptRecord:
        """Store ``content`` as the next active version."""
        use_case = UseCase(use_case)
        validate_prompt_content(content)

        async with self.repository.transaction():
            current = await self.repository.find_latest(use_case)
            current_version = current.version if current else 0
            if expected_version is not None and expected_version != current_version:
                raise ConflictError(current=current_version, expected=expected_version)

            record = await self._write_version(
                use_case,
                content,
                current_version + 1,
                editor,
                provider or (current.provider if current else None),
                model or (current.model if current else None),
                created_by=current.created_by if current else editor,
            )
            await self._audit("update", use_case, current_version, record.version, editor)

        logger.info(f"[Prompts] Saved {use_case.value} v{record.version}")
        await self._changed(use_case, f"updated {use_case.value}")
        return record

    async def rollback(self, use_case: UseCase, target_version: int, editor: Optional[str] = None) -> PromptRecord:
        """Create a new version whose content copies ``target_version``."""
        use_case = UseCase(use_case)
        async with self.repository.transaction():
            current = await self.repository.find_latest(use_case)
            if current is None:
                raise NotFoundError(f"No prompt found for {use_case.value}")
            target = await self.repository.find_snapshot(use_case, target_version)
            if target is None:
                raise NotFoundError(f"Version {target_version} of {use_case.value} not found")

            record = await self._write_version(
                use_case,
                target.content,
                current.version + 1,
                editor,
                target.provider or current.provider,
                target.model or current.model,
                created_by=current.created_by,
            )
            await self._audit("rollback", use_case, current.version, record.version, editor)

        logger.info(f"[Prompts] Rolled back {use_case.value} to v{target_version} as v{record.version}")
        await self._changed(use_case, f"rollback {use_case.value} to {target_version}")
        return record

    # ------------------------------------------------------------------
    async def _write_version(self, use_case, content, version, editor, provider, model, created_by=None) -> PromptRecord:
        record = await self.repository.create_version(
            PromptRecord(
                use_case=use_case,
                content=content,
                version=version,
                provider=provider,
                model=model,
                created_by=created_by or editor,
                updated_by=editor,
            )
        )
        await self.repository.append_snapshot(
            PromptVersionSnapshot(
                prompt_id=record.id,
                use_case=use_case,
                version=record.version,
                content=record.content,
                provider=record.provider,
                model=record.model,
                editor=editor,
            )
        )
        return record

    async def _audit(self, action, use_case, from_version, to_version, editor) -> None:
        await self.repository.append_audit(
            PromptAuditEntry(
                action=action,
                use_case=use_case,
                editor=editor,
                from_version=from_version,
                to_version=to_version,
            )
        )
        audit_prompt_change(use_case.value, action, from_version, to_version, editor)

    async def _changed(self, use_case: UseCase, note: str) -> None:
        await self.cache.invalidate(self.cache_key(use_case))
        self.events.emit_prompts_changed(ConfigChangedPayload(source="prompt-manager", note=note))
