"""Tests for versioned prompts: CAS saves, rollback, validation and persistence."""
import pytest

from generation.models import UseCase
from generation.prompts.repository import InMemoryPromptRepository, SqlitePromptRepository
from generation.prompts.store import MAX_PROMPT_LENGTH, PromptVersionStore, validate_prompt_content
from showcase.errors import ConflictError, InvalidPromptError, NotFoundError, ValidationError

V1 = "Write {{quantity}} {{type}} pieces about {{theme}} in a {{tone}} tone."
V2 = "Compose {{quantity}} short {{type}} pieces for the {{category}} collection."
V3 = "Create {{quantity}} {{type}} works; keep the {{tone}} tone throughout."


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path, cache, events):
    if request.param == "memory":
        repository = InMemoryPromptRepository()
    else:
        repository = SqlitePromptRepository(tmp_path / "prompts.db")
    return PromptVersionStore(repository, cache, events)


class TestSave:

    @pytest.mark.asyncio
    async def test_first_save_creates_version_one(self, store):
        record = await store.save(UseCase.GENERATE, V1, expected_version=0, editor="admin@example.com")

        assert record.version == 1
        assert record.active
        assert await store.get_active_prompt(UseCase.GENERATE) == V1

    @pytest.mark.asyncio
    async def test_cas_save_increments_by_exactly_one(self, store):
        await store.save(UseCase.GENERATE, V1)
        record = await store.save(UseCase.GENERATE, V2, expected_version=1, editor="editor")

        assert record.version == 2
        history = await store.list_versions(UseCase.GENERATE)
        assert history.active.version == 2
        assert [v.version for v in history.versions] == [2, 1]

    @pytest.mark.asyncio
    async def test_stale_expected_version_conflicts_and_leaves_store_unchanged(self, store):
        await store.save(UseCase.GENERATE, V1)
        await store.save(UseCase.GENERATE, V2, expected_version=1)

        with pytest.raises(ConflictError) as excinfo:
            await store.save(UseCase.GENERATE, V3, expected_version=1)

        assert excinfo.value.current == 2
        assert excinfo.value.expected == 1
        history = await store.list_versions(UseCase.GENERATE)
        assert history.active.version == 2
        assert history.active.content == V2
        assert len(history.versions) == 2
        assert await store.get_active_prompt(UseCase.GENERATE) == V2

    @pytest.mark.asyncio
    async def test_save_invalidates_cached_prompt(self, store, cache):
        await store.save(UseCase.EXPLAIN, V1)
        assert await store.get_active_prompt(UseCase.EXPLAIN) == V1
        assert await cache.get("prompt:active:explain") == V1

        await store.save(UseCase.EXPLAIN, V2)

        assert await cache.get("prompt:active:explain") is None
        assert await store.get_active_prompt(UseCase.EXPLAIN) == V2

    @pytest.mark.asyncio
    async def test_save_emits_prompts_changed(self, store, events):
        notifications = []
        events.on_prompts_changed(notifications.append)

        await store.save(UseCase.ANALYZE, V1)

        assert len(notifications) == 1
        assert notifications[0].source == "prompt-manager"

    @pytest.mark.asyncio
    async def test_use_cases_are_versioned_independently(self, store):
        await store.save(UseCase.GENERATE, V1)
        await store.save(UseCase.GENERATE, V2)
        record = await store.save(UseCase.FIND_SOURCE, V3)

        assert record.version == 1
        assert await store.get_active_prompt(UseCase.GENERATE) == V2

    @pytest.mark.asyncio
    async def test_audit_trail_records_updates(self, store):
        await store.save(UseCase.GENERATE, V1, editor="a")
        await store.save(UseCase.GENERATE, V2, editor="b")

        audit = await store.list_audit(UseCase.GENERATE)

        assert [(e.action, e.from_version, e.to_version, e.editor) for e in audit] == [
            ("update", 0, 1, "a"),
            ("update", 1, 2, "b"),
        ]


class TestRollback:

    @pytest.mark.asyncio
    async def test_rollback_creates_new_version_with_old_content(self, store):
        await store.save(UseCase.GENERATE, V1)
        await store.save(UseCase.GENERATE, V2)

        record = await store.rollback(UseCase.GENERATE, 1, editor="admin")

        assert record.version == 3
        assert record.content == V1
        assert await store.get_active_prompt(UseCase.GENERATE) == V1
        original = await store.get_version(UseCase.GENERATE, 1)
        assert original is not None and original.content == V1
        audit = await store.list_audit(UseCase.GENERATE)
        assert (audit[-1].action, audit[-1].from_version, audit[-1].to_version) == ("rollback", 2, 3)

    @pytest.mark.asyncio
    async def test_rollback_without_prompt_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.rollback(UseCase.EXPLAIN, 1)

    @pytest.mark.asyncio
    async def test_rollback_to_missing_version_raises(self, store):
        await store.save(UseCase.GENERATE, V1)
        with pytest.raises(NotFoundError):
            await store.rollback(UseCase.GENERATE, 7)
        assert (await store.list_versions(UseCase.GENERATE)).active.version == 1


class TestEnsurePrompt:

    @pytest.mark.asyncio
    async def test_creates_only_when_absent(self, store):
        first = await store.ensure_prompt(UseCase.GENERATE, V1)
        second = await store.ensure_prompt(UseCase.GENERATE, V2)

        assert first.version == second.version == 1
        assert await store.get_active_prompt(UseCase.GENERATE) == V1

    @pytest.mark.asyncio
    async def test_missing_prompt_reads_as_none(self, store):
        assert await store.get_active_prompt(UseCase.ANALYZE) is None
        history = await store.list_versions(UseCase.ANALYZE)
        assert history.active is None and history.versions == []


class TestValidation:

    def test_too_short(self):
        with pytest.raises(InvalidPromptError):
            validate_prompt_content("too short")

    def test_too_long(self):
        with pytest.raises(InvalidPromptError):
            validate_prompt_content("x" * (MAX_PROMPT_LENGTH + 1))

    def test_malformed_placeholder(self):
        with pytest.raises(InvalidPromptError):
            validate_prompt_content("A perfectly long prompt with {{}} inside it")

    def test_invalid_prompt_is_a_validation_error(self):
        assert issubclass(InvalidPromptError, ValidationError)

    @pytest.mark.asyncio
    async def test_rejected_save_writes_nothing(self, store):
        with pytest.raises(InvalidPromptError):
            await store.save(UseCase.GENERATE, "short")
        assert await store.get_active_prompt(UseCase.GENERATE) is None


@pytest.mark.asyncio
async def test_sqlite_history_survives_reopen(tmp_path, cache):
    path = tmp_path / "prompts.db"
    await PromptVersionStore(SqlitePromptRepository(path), cache).save(UseCase.GENERATE, V1)

    reopened = PromptVersionStore(SqlitePromptRepository(path), cache)
    history = await reopened.list_versions(UseCase.GENERATE)

    assert history.active.content == V1
    assert history.versions[0].prompt_id == history.active.id
