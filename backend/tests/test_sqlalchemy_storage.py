"""
Integration tests for SqlAlchemyPromptStorage on SQLite
"""
from uuid import uuid4

import pytest

from promptvc.core.exceptions import ApiKeyNotFoundError, PromptNotFoundError
from promptvc.models import (AiVendor, Branch, LanguageModel, PromptVersion,
                             ProviderApiKey)

CUSTOM = AiVendor.CUSTOM_OPENAI_COMPATIBLE.value


@pytest.fixture
def prompt(storage, project, default_model):
    return storage.create_prompt(project.id, "greeting", "Hello", default_model.id, {"temperature": 1})


def add_commit(storage, prompt, generation, model_id=None):
    return storage.create_commit(
        prompt.id, generation, f"{generation:064x}", f"v{generation}", "alice",
        f"value {generation}", model_id or prompt.language_model_id, {"temperature": 1},
    )


@pytest.fixture
def custom_model(storage, organization_id):
    key = storage.upsert_custom_provider(organization_id, "http://vllm.local/v1", key="sk-abcdef123456")
    return storage.create_language_model(name="llama3", vendor=CUSTOM, api_key_id=key.id)


class TestPrompts:
    """Prompt and commit persistence"""

    def test_create_prompt_creates_master_branch(self, storage, db, prompt):
        branches = db.query(Branch).filter(Branch.prompt_id == prompt.id).all()

        assert [b.name for b in branches] == ["master"]
        assert storage.get_commit_count(prompt.id) == 0
        assert storage.get_productive_commit(prompt.id) is None
        assert prompt.commited is False

    def test_update_prompt_partial(self, storage, prompt, default_model):
        updated = storage.update_prompt(prompt.id, value="Hi")

        assert updated.value == "Hi"
        assert updated.language_model_id == default_model.id
        assert updated.language_model_config == {"temperature": 1}

    def test_update_missing_prompt(self, storage):
        with pytest.raises(PromptNotFoundError):
            storage.update_prompt(uuid4(), value="x")

    def test_productive_commit_is_latest_generation(self, storage, prompt):
        for generation in (1, 2, 3):
            add_commit(storage, prompt, generation)

        assert storage.get_commit_count(prompt.id) == 3
        assert storage.get_productive_commit(prompt.id).generation == 3
        assert [c.generation for c in storage.list_commits(prompt.id)] == [3, 2, 1]
        assert [c.generation for c in storage.list_commits(prompt.id, limit=1)] == [3]

    def test_get_commit_is_scoped_to_prompt(self, storage, project, default_model, prompt):
        commit = add_commit(storage, prompt, 1)
        other = storage.create_prompt(project.id, "other", "x", default_model.id, {})

        assert storage.get_commit(prompt.id, commit.id).id == commit.id
        assert storage.get_commit(other.id, commit.id) is None

    def test_set_commit_flag(self, storage, prompt):
        storage.set_commit_flag(prompt.id, True)

        assert storage.get_prompt(prompt.id).commited is True

    def test_prompts_by_model_are_scoped_to_organization(self, storage, project, default_model, prompt):
        other_project = storage.create_project(uuid4(), "Other")
        storage.create_prompt(other_project.id, "foreign", "x", default_model.id, {})

        found = storage.get_prompts_by_model(project.organization_id, default_model.id)

        assert [p.id for p in found] == [prompt.id]

    def test_delete_prompt_cascades(self, storage, db, prompt):
        add_commit(storage, prompt, 1)

        assert storage.delete_prompt(prompt.id) is True
        assert storage.get_prompt(prompt.id) is None
        assert db.query(PromptVersion).count() == 0
        assert db.query(Branch).count() == 0
        assert storage.delete_prompt(prompt.id) is False

    def test_prompt_organization(self, storage, project, prompt):
        assert storage.get_prompt_organization_id(prompt.id) == project.organization_id
        assert storage.get_prompt_organization_id(uuid4()) is None
        assert storage.get_project_organization_id(project.id) == project.organization_id
        assert storage.get_project_organization_id(uuid4()) is None


class TestUsageCounts:
    """Live and committed usage of models"""

    def test_counts(self, storage, project, organization_id, default_model, custom_model):
        live = storage.create_prompt(project.id, "live", "x", custom_model.id, {})
        committed = storage.create_prompt(project.id, "committed", "x", default_model.id, {})
        add_commit(storage, committed, 1, custom_model.id)
        stale = storage.create_prompt(project.id, "stale", "x", default_model.id, {})
        # Older commit on the custom model, productive one on the default model
        add_commit(storage, stale, 1, custom_model.id)
        add_commit(storage, stale, 2, default_model.id)

        ids = [custom_model.id]
        assert storage.count_live_prompts_using_models(organization_id, ids) == 1
        assert storage.count_committed_using_models(organization_id, ids) == 1
        assert live.id is not None

    def test_other_branches_are_ignored(self, storage, db, project, organization_id, default_model, custom_model):
        prompt = storage.create_prompt(project.id, "p", "x", default_model.id, {})
        feature = Branch(prompt_id=prompt.id, name="feature")
        db.add(feature)
        db.flush()
        db.add(PromptVersion(
            branch_id=feature.id, generation=1, commit_hash="f" * 64, value="x",
            language_model_id=custom_model.id, language_model_config={},
        ))
        db.commit()

        assert storage.count_committed_using_models(organization_id, [custom_model.id]) == 0

    def test_other_organizations_are_ignored(self, storage, default_model, custom_model, organization_id):
        other_project = storage.create_project(uuid4(), "Other")
        storage.create_prompt(other_project.id, "p", "x", custom_model.id, {})

        assert storage.count_live_prompts_using_models(organization_id, [custom_model.id]) == 0

    def test_prompt_ids_using_models(self, storage, project, default_model, custom_model):
        live = storage.create_prompt(project.id, "live", "x", custom_model.id, {})
        stale = storage.create_prompt(project.id, "stale", "x", default_model.id, {})
        add_commit(storage, stale, 1, custom_model.id)
        add_commit(storage, stale, 2, custom_model.id)
        storage.create_prompt(project.id, "unrelated", "x", default_model.id, {})
        other_project = storage.create_project(uuid4(), "Other")
        foreign = storage.create_prompt(other_project.id, "foreign", "x", custom_model.id, {})

        ids = storage.list_prompt_ids_using_models([custom_model.id])

        assert sorted(ids, key=str) == sorted([live.id, stale.id, foreign.id], key=str)

    def test_empty_model_list(self, storage, organization_id):
        assert storage.count_live_prompts_using_models(organization_id, []) == 0
        assert storage.count_committed_using_models(organization_id, []) == 0
        assert storage.list_prompt_ids_using_models([]) == []


class TestModelsAndProviders:
    """Language models and provider keys"""

    def test_models_visible_to_organization(self, storage, organization_id, default_model, custom_model):
        other_key = storage.upsert_custom_provider(uuid4(), "http://other/v1")
        storage.create_language_model(name="secret", vendor=CUSTOM, api_key_id=other_key.id)

        names = [m.name for m in storage.list_models_for_organization(organization_id)]

        assert sorted(names) == ["gpt-4o", "llama3"]

    def test_get_custom_model(self, storage, organization_id, default_model, custom_model):
        assert storage.get_custom_model(organization_id, custom_model.id).id == custom_model.id
        assert storage.get_custom_model(organization_id, default_model.id) is None
        assert storage.get_custom_model(uuid4(), custom_model.id) is None

    def test_default_model_must_be_builtin(self, storage, organization_id, default_model):
        key = storage.upsert_custom_provider(organization_id, "http://vllm.local/v1")
        storage.create_language_model(name="gpt-4o", vendor="OPENAI", api_key_id=key.id)

        assert storage.get_default_model("OPENAI", "gpt-4o").id == default_model.id

    def test_update_language_model(self, storage, custom_model):
        updated = storage.update_language_model(custom_model.id, display_name="Llama 3", parameters_config={"temperature": {"min": 0, "max": 1}})

        assert updated.display_name == "Llama 3"
        assert updated.parameters_config == {"temperature": {"min": 0, "max": 1}}
        with pytest.raises(ValueError):
            storage.update_language_model(custom_model.id, api_key_id=None)

    def test_upsert_custom_provider_keeps_one_per_organization(self, storage, db, organization_id):
        first = storage.upsert_custom_provider(organization_id, "http://a/v1", key="sk-abcdef123456", name="A")
        second = storage.upsert_custom_provider(organization_id, "http://b/v1")

        assert first.id == second.id
        assert second.base_url == "http://b/v1"
        assert second.public_key == "(no key)"
        assert db.query(ProviderApiKey).count() == 1

    def test_get_api_key_is_scoped(self, storage, organization_id):
        key = storage.upsert_custom_provider(organization_id, "http://a/v1")

        assert storage.get_api_key(organization_id, key.id).id == key.id
        assert storage.get_api_key(uuid4(), key.id) is None


class TestAtomicBatch:
    """Bulk operations and run_atomic_batch"""

    def test_batch_commits_together(self, storage, db, project, organization_id, default_model, custom_model):
        prompt = storage.create_prompt(project.id, "p", "x", custom_model.id, {"a": 1})
        key_id = custom_model.api_key_id

        results = storage.run_atomic_batch([
            lambda: storage.reset_prompts_to_model([custom_model.id], default_model.id, {"temperature": 1}),
            lambda: storage.delete_models_by_api_key(key_id),
            lambda: storage.delete_api_key(key_id),
        ])

        assert results == [1, 1, 1]
        refreshed = storage.get_prompt(prompt.id)
        assert refreshed.language_model_id == default_model.id
        assert refreshed.language_model_config == {"temperature": 1}
        assert db.query(LanguageModel).filter(LanguageModel.api_key_id == key_id).count() == 0

    def test_batch_rolls_back_on_failure(self, storage, db, project, default_model, custom_model):
        prompt = storage.create_prompt(project.id, "p", "x", custom_model.id, {"a": 1})
        key_id = custom_model.api_key_id

        with pytest.raises(ApiKeyNotFoundError):
            storage.run_atomic_batch([
                lambda: storage.reset_prompts_to_model([custom_model.id], default_model.id, {}),
                lambda: storage.delete_models_by_api_key(key_id),
                lambda: storage.delete_api_key(uuid4()),
            ])

        refreshed = storage.get_prompt(prompt.id)
        assert refreshed.language_model_id == custom_model.id
        assert refreshed.language_model_config == {"a": 1}
        assert storage.get_model(custom_model.id) is not None
