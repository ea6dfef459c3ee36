"""
Tests for CommitStateResolver
"""
from uuid import uuid4

import pytest

from promptvc.services.commit_hash import PromptSnapshot, compute_commit_hash
from promptvc.services.commit_state_service import (CommitState,
                                                    CommitStateResolver)


@pytest.fixture
def resolver(fake_storage):
    return CommitStateResolver(fake_storage)


@pytest.fixture
def prompt(fake_storage, fake_project, fake_default_model):
    return fake_storage.create_prompt(
        fake_project.id, "greeting", "Hello", fake_default_model.id, {"temperature": 1}
    )


def commit(storage, prompt):
    generation = storage.get_commit_count(prompt.id) + 1
    snapshot = PromptSnapshot.of(prompt)
    return storage.create_commit(
        prompt.id, generation, compute_commit_hash(snapshot, generation), "msg", None,
        snapshot.value, snapshot.language_model_id, dict(snapshot.config),
    )


class TestCommitStateResolver:
    """Test cases for CommitStateResolver"""

    def test_prompt_without_commits_is_dirty(self, resolver, fake_storage, prompt):
        assert resolver.resolve(prompt) == CommitState.DIRTY
        # Flag already false, nothing written
        assert fake_storage.flag_writes == 0

    def test_committed_after_commit(self, resolver, fake_storage, prompt):
        commit(fake_storage, prompt)

        assert resolver.resolve(prompt) == CommitState.COMMITTED
        assert prompt.commited is True
        assert fake_storage.flag_writes == 1

    def test_flag_written_only_on_change(self, resolver, fake_storage, prompt):
        commit(fake_storage, prompt)
        resolver.resolve(prompt)
        resolver.resolve(prompt)
        resolver.resolve(prompt)

        assert fake_storage.flag_writes == 1

    @pytest.mark.parametrize("edit", [
        {"value": "Hello!"},
        {"language_model_config": {"temperature": 0.5}},
        {"language_model_id": uuid4()},
    ])
    def test_dirty_after_edit(self, resolver, fake_storage, prompt, edit):
        commit(fake_storage, prompt)
        resolver.resolve(prompt)

        fake_storage.update_prompt(prompt.id, **edit)

        assert resolver.resolve(prompt) == CommitState.DIRTY
        assert prompt.commited is False

    def test_reverting_content_is_committed_again(self, resolver, fake_storage, prompt):
        commit(fake_storage, prompt)
        fake_storage.update_prompt(prompt.id, value="Changed")
        assert resolver.resolve(prompt) == CommitState.DIRTY

        fake_storage.update_prompt(prompt.id, value="Hello")

        assert resolver.resolve(prompt) == CommitState.COMMITTED

    def test_only_latest_commit_counts(self, resolver, fake_storage, prompt):
        commit(fake_storage, prompt)
        fake_storage.update_prompt(prompt.id, value="Second")
        commit(fake_storage, prompt)

        fake_storage.update_prompt(prompt.id, value="Hello")
        assert resolver.resolve(prompt) == CommitState.DIRTY

        fake_storage.update_prompt(prompt.id, value="Second")
        assert resolver.resolve(prompt) == CommitState.COMMITTED

    def test_stale_flag_is_corrected(self, resolver, fake_storage, prompt):
        prompt.commited = True

        assert resolver.resolve(prompt) == CommitState.DIRTY
        assert fake_storage.get_prompt(prompt.id).commited is False

    def test_compute_does_not_write(self, resolver, fake_storage, prompt):
        commit(fake_storage, prompt)

        assert resolver.compute(prompt) == CommitState.COMMITTED
        assert fake_storage.flag_writes == 0
        assert prompt.commited is False
