"""
In-memory PromptStorage used by unit tests
"""
import copy
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List
from uuid import UUID, uuid4

from promptvc.core.exceptions import (ApiKeyNotFoundError, ModelNotFoundError,
                                      PromptNotFoundError)
from promptvc.models import AiVendor, mask_key
from promptvc.storage.base import PromptStorage


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPromptStorage(PromptStorage):
    """Dict-backed storage; run_atomic_batch restores a snapshot on failure"""

    def __init__(self):
        self.projects: Dict[UUID, SimpleNamespace] = {}
        self.prompts: Dict[UUID, SimpleNamespace] = {}
        self.commits: Dict[UUID, List[SimpleNamespace]] = {}
        self.models: Dict[UUID, SimpleNamespace] = {}
        self.api_keys: Dict[UUID, SimpleNamespace] = {}
        self.flag_writes = 0
        self.in_batch = False

    # Projects and prompts

    def create_project(self, organization_id, name):
        project = SimpleNamespace(id=uuid4(), organization_id=organization_id, name=name, created_at=_now())
        self.projects[project.id] = project
        return project

    def get_prompt(self, prompt_id):
        return self.prompts.get(prompt_id)

    def get_project_organization_id(self, project_id):
        project = self.projects.get(project_id)
        return project.organization_id if project else None

    def get_prompt_organization_id(self, prompt_id):
        prompt = self.prompts.get(prompt_id)
        if not prompt:
            return None
        return self.projects[prompt.project_id].organization_id

    def create_prompt(self, project_id, name, value, language_model_id, language_model_config):
        prompt = SimpleNamespace(
            id=uuid4(),
            project_id=project_id,
            name=name,
            value=value,
            language_model_id=language_model_id,
            language_model_config=copy.deepcopy(language_model_config),
            commited=False,
            created_at=_now(),
            updated_at=_now(),
        )
        self.prompts[prompt.id] = prompt
        self.commits[prompt.id] = []
        return prompt

    def update_prompt(self, prompt_id, value=None, language_model_id=None, language_model_config=None):
        prompt = self.prompts.get(prompt_id)
        if not prompt:
            raise PromptNotFoundError(prompt_id)
        if value is not None:
            prompt.value = value
        if language_model_id is not None:
            prompt.language_model_id = language_model_id
        if language_model_config is not None:
            prompt.language_model_config = copy.deepcopy(language_model_config)
        prompt.updated_at = _now()
        return prompt

    def update_prompt_config(self, prompt_id, config):
        return self.update_prompt(prompt_id, language_model_config=config)

    def set_commit_flag(self, prompt_id, committed):
        prompt = self.prompts.get(prompt_id)
        if not prompt:
            raise PromptNotFoundError(prompt_id)
        prompt.commited = committed
        self.flag_writes += 1
        return prompt

    def _organization_prompts(self, organization_id):
        return [
            prompt for prompt in self.prompts.values()
            if self.projects[prompt.project_id].organization_id == organization_id
        ]

    def get_prompts_by_model(self, organization_id, model_id):
        return [p for p in self._organization_prompts(organization_id) if p.language_model_id == model_id]

    def delete_prompt(self, prompt_id):
        if prompt_id not in self.prompts:
            return False
        del self.prompts[prompt_id]
        self.commits.pop(prompt_id, None)
        return True

    # Commits

    def get_productive_commit(self, prompt_id):
        history = self.commits.get(prompt_id) or []
        return history[-1] if history else None

    def get_commit_count(self, prompt_id):
        return len(self.commits.get(prompt_id) or [])

    def create_commit(self, prompt_id, generation, commit_hash, message, author, value,
                      language_model_id, language_model_config):
        commit = SimpleNamespace(
            id=uuid4(),
            generation=generation,
            commit_hash=commit_hash,
            commit_msg=message,
            author=author,
            value=value,
            language_model_id=language_model_id,
            language_model_config=copy.deepcopy(language_model_config),
            created_at=_now(),
        )
        self.commits.setdefault(prompt_id, []).append(commit)
        return commit

    def get_commit(self, prompt_id, commit_id):
        for commit in self.commits.get(prompt_id) or []:
            if commit.id == commit_id:
                return commit
        return None

    def list_commits(self, prompt_id, limit=None):
        history = list(reversed(self.commits.get(prompt_id) or []))
        return history[:limit] if limit is not None else history

    # Usage counts

    def count_live_prompts_using_models(self, organization_id, model_ids):
        ids = set(model_ids)
        return sum(1 for p in self._organization_prompts(organization_id) if p.language_model_id in ids)

    def count_committed_using_models(self, organization_id, model_ids):
        ids = set(model_ids)
        count = 0
        for prompt in self._organization_prompts(organization_id):
            productive = self.get_productive_commit(prompt.id)
            if productive is not None and productive.language_model_id in ids:
                count += 1
        return count

    # Language models

    def get_model(self, model_id):
        return self.models.get(model_id)

    def get_default_model(self, vendor, name):
        for model in self.models.values():
            if model.vendor == vendor and model.name == name and model.api_key_id is None:
                return model
        return None

    def list_models_for_organization(self, organization_id):
        visible = [
            m for m in self.models.values()
            if m.api_key_id is None or self.api_keys[m.api_key_id].organization_id == organization_id
        ]
        return sorted(visible, key=lambda m: (m.vendor, m.name))

    def get_custom_model(self, organization_id, model_id):
        model = self.models.get(model_id)
        if model is None or model.api_key_id is None:
            return None
        if self.api_keys[model.api_key_id].organization_id != organization_id:
            return None
        return model

    def create_language_model(self, **fields):
        data = {
            "display_name": None,
            "parameters_config": None,
            "prompt_price": 0,
            "completion_price": 0,
            "context_tokens_max": 0,
            "completion_tokens_max": 0,
            "description": None,
            "api_key_id": None,
        }
        data.update(fields)
        model = SimpleNamespace(id=uuid4(), created_at=_now(), **data)
        self.models[model.id] = model
        return model

    def update_language_model(self, model_id, **fields):
        model = self.models.get(model_id)
        if not model:
            raise ModelNotFoundError(model_id)
        for name, value in fields.items():
            if value is not None or name == "parameters_config":
                setattr(model, name, copy.deepcopy(value))
        return model

    # Providers

    def get_custom_provider(self, organization_id):
        for key in self.api_keys.values():
            if key.organization_id == organization_id and key.vendor == AiVendor.CUSTOM_OPENAI_COMPATIBLE.value:
                return key
        return None

    def upsert_custom_provider(self, organization_id, base_url, key="", name=None):
        provider = self.get_custom_provider(organization_id)
        if provider is None:
            provider = SimpleNamespace(
                id=uuid4(),
                organization_id=organization_id,
                vendor=AiVendor.CUSTOM_OPENAI_COMPATIBLE.value,
            )
            self.api_keys[provider.id] = provider
        provider.key = key or ""
        provider.public_key = mask_key(key)
        provider.name = name
        provider.base_url = base_url
        return provider

    def get_api_key(self, organization_id, api_key_id):
        key = self.api_keys.get(api_key_id)
        if key is None or key.organization_id != organization_id:
            return None
        return key

    def list_provider_models(self, api_key_id):
        return sorted((m for m in self.models.values() if m.api_key_id == api_key_id), key=lambda m: m.name)

    # Bulk operations

    def list_prompt_ids_using_models(self, model_ids):
        ids = set(model_ids)
        return [
            prompt_id for prompt_id, prompt in self.prompts.items()
            if prompt.language_model_id in ids
            or any(commit.language_model_id in ids for commit in self.commits.get(prompt_id) or [])
        ]

    def reset_prompts_to_model(self, model_ids, model_id, config):
        ids = set(model_ids)
        touched = 0
        for prompt in self.prompts.values():
            if prompt.language_model_id in ids:
                prompt.language_model_id = model_id
                prompt.language_model_config = copy.deepcopy(config)
                touched += 1
        return touched

    def reset_commits_to_model(self, model_ids, model_id, config):
        ids = set(model_ids)
        touched = 0
        for history in self.commits.values():
            for commit in history:
                if commit.language_model_id in ids:
                    commit.language_model_id = model_id
                    commit.language_model_config = copy.deepcopy(config)
                    touched += 1
        return touched

    def delete_models_by_api_key(self, api_key_id):
        doomed = [model_id for model_id, m in self.models.items() if m.api_key_id == api_key_id]
        for model_id in doomed:
            del self.models[model_id]
        return len(doomed)

    def delete_api_key(self, api_key_id):
        if api_key_id not in self.api_keys:
            raise ApiKeyNotFoundError(api_key_id)
        del self.api_keys[api_key_id]
        return 1

    def _state(self):
        return (self.projects, self.prompts, self.commits, self.models, self.api_keys)

    def run_atomic_batch(self, operations):
        snapshot = copy.deepcopy(self._state())
        self.in_batch = True
        try:
            return [operation() for operation in operations]
        except Exception:
            # Records are replaced by their saved copies; re-read them after a rollback
            for live, saved in zip(self._state(), snapshot):
                live.clear()
                live.update(saved)
            raise
        finally:
            self.in_batch = False
