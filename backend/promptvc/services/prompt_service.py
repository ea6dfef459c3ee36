"""
Prompt editing and version control
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from promptvc.core.config import get_settings
from promptvc.core.exceptions import (CommitNotFoundError,
                                      DefaultModelNotFoundError,
                                      ModelNotFoundError, PromptNotFoundError)
from promptvc.core.logging_config import LoggingConfig
from promptvc.core.metrics import prompt_commits_total
from promptvc.services.commit_hash import PromptSnapshot, compute_commit_hash
from promptvc.services.commit_state_service import (CommitState,
                                                    CommitStateResolver)
from promptvc.services.model_config_reconciler import ModelConfigReconciler
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)


class CommitView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    generation: int
    commit_hash: str
    commit_msg: Optional[str] = None
    author: Optional[str] = None
    value: str
    language_model_id: UUID
    language_model_config: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class PromptView(BaseModel):
    """Prompt as edited, with the commit currently served"""
    prompt_id: UUID
    name: str
    value: str
    language_model_id: UUID
    language_model_config: Dict[str, Any] = Field(default_factory=dict)
    commit_state: CommitState
    productive_commit: Optional[CommitView] = None


class PromptService:
    """Edit and commit operations on prompts"""

    def __init__(self, storage: PromptStorage, reconciler: Optional[ModelConfigReconciler] = None):
        self.storage = storage
        self.reconciler = reconciler or ModelConfigReconciler()
        self.state_resolver = CommitStateResolver(storage)

    def _get_prompt(self, prompt_id: UUID) -> Any:
        prompt = self.storage.get_prompt(prompt_id)
        if not prompt:
            raise PromptNotFoundError(prompt_id)
        return prompt

    def _get_model(self, model_id: UUID) -> Any:
        model = self.storage.get_model(model_id)
        if not model:
            raise ModelNotFoundError(model_id)
        return model

    def _check_visible(self, organization_id: Optional[UUID], model: Any) -> None:
        """Custom models of other organizations are invisible"""
        if model.api_key_id is None:
            return
        if organization_id is None or not self.storage.get_custom_model(organization_id, model.id):
            raise ModelNotFoundError(model.id)

    def _default_model(self) -> Any:
        settings = get_settings()
        model = self.storage.get_default_model(settings.default_model_vendor, settings.default_model_name)
        if not model:
            raise DefaultModelNotFoundError(settings.default_model_vendor, settings.default_model_name)
        return model

    def create_prompt(
        self,
        project_id: UUID,
        name: str,
        value: str = "",
        language_model_id: Optional[UUID] = None,
        language_model_config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Create an uncommitted prompt; without a model the default model is used"""
        if language_model_id:
            model = self._get_model(language_model_id)
            self._check_visible(self.storage.get_project_organization_id(project_id), model)
        else:
            model = self._default_model()

        if language_model_config is None:
            config = self.reconciler.default_config(model.name, model.vendor, model.parameters_config)
        else:
            config = self.reconciler.sanitize_edit(model.name, model.vendor, language_model_config, model.parameters_config)

        prompt = self.storage.create_prompt(project_id, name, value, model.id, config)
        logger.info(
            f"Created prompt {prompt.id}",
            extra={"prompt_id": str(prompt.id), "project_id": str(project_id), "model_name": model.name}
        )
        return prompt

    def update_prompt(self, prompt_id: UUID, value: str) -> Any:
        self._get_prompt(prompt_id)
        prompt = self.storage.update_prompt(prompt_id, value=value)
        self.state_resolver.resolve(prompt)
        return prompt

    def save_model_config(self, prompt_id: UUID, config: Optional[Dict[str, Any]]) -> Any:
        """Sanitize and store the configuration a user edited"""
        prompt = self._get_prompt(prompt_id)
        model = self._get_model(prompt.language_model_id)

        sanitized = self.reconciler.sanitize_edit(model.name, model.vendor, config, model.parameters_config)
        prompt = self.storage.update_prompt_config(prompt_id, sanitized)
        self.state_resolver.resolve(prompt)
        return prompt

    def change_prompt_model(self, prompt_id: UUID, language_model_id: UUID) -> Any:
        """Switch a prompt to another model, carrying over the settings it understands"""
        prompt = self._get_prompt(prompt_id)
        model = self._get_model(language_model_id)

        self._check_visible(self.storage.get_prompt_organization_id(prompt_id), model)

        config = self.reconciler.carry_over_config(
            prompt.language_model_config, model.name, model.vendor, model.parameters_config
        )
        prompt = self.storage.update_prompt(prompt_id, language_model_id=model.id, language_model_config=config)
        self.state_resolver.resolve(prompt)

        logger.info(
            f"Prompt {prompt_id} switched to model {model.name}",
            extra={"prompt_id": str(prompt_id), "model_id": str(model.id)}
        )
        return prompt

    def _create_commit(self, prompt: Any, message: str, author: Optional[str], kind: str) -> Any:
        generation = self.storage.get_commit_count(prompt.id) + 1
        snapshot = PromptSnapshot.of(prompt)
        commit = self.storage.create_commit(
            prompt_id=prompt.id,
            generation=generation,
            commit_hash=compute_commit_hash(snapshot, generation),
            message=message,
            author=author,
            value=snapshot.value,
            language_model_id=snapshot.language_model_id,
            language_model_config=dict(snapshot.config),
        )
        self.state_resolver.resolve(prompt)
        prompt_commits_total.labels(kind=kind).inc()

        logger.info(
            f"Committed prompt {prompt.id} as generation {generation}",
            extra={"prompt_id": str(prompt.id), "commit_hash": commit.commit_hash, "kind": kind}
        )
        return commit

    def commit(self, prompt_id: UUID, message: str, author: Optional[str] = None) -> Any:
        """Store the prompt's current content as the new productive commit"""
        prompt = self._get_prompt(prompt_id)
        return self._create_commit(prompt, message, author, kind="commit")

    def rollback(self, prompt_id: UUID, commit_id: UUID, author: Optional[str] = None) -> Any:
        """Restore a previous commit's content and commit it on top of the history"""
        self._get_prompt(prompt_id)
        target = self.storage.get_commit(prompt_id, commit_id)
        if not target:
            raise CommitNotFoundError(prompt_id, commit_id)

        prompt = self.storage.update_prompt(
            prompt_id,
            value=target.value,
            language_model_id=target.language_model_id,
            language_model_config=dict(target.language_model_config or {}),
        )
        return self._create_commit(prompt, f"Rollback to {target.commit_hash[:8]}", author, kind="rollback")

    def get_state(self, prompt_id: UUID) -> CommitState:
        return self.state_resolver.resolve(self._get_prompt(prompt_id))

    def get_prompt_with_productive_commit(self, prompt_id: UUID) -> PromptView:
        prompt = self._get_prompt(prompt_id)
        productive = self.storage.get_productive_commit(prompt_id)
        return PromptView(
            prompt_id=prompt.id,
            name=prompt.name,
            value=prompt.value or "",
            language_model_id=prompt.language_model_id,
            language_model_config=prompt.language_model_config or {},
            commit_state=self.state_resolver.resolve(prompt),
            productive_commit=CommitView.model_validate(productive) if productive else None,
        )

    def list_history(self, prompt_id: UUID, limit: Optional[int] = None) -> List[CommitView]:
        self._get_prompt(prompt_id)
        return [CommitView.model_validate(commit) for commit in self.storage.list_commits(prompt_id, limit)]

    def delete_prompt(self, prompt_id: UUID) -> None:
        if not self.storage.delete_prompt(prompt_id):
            raise PromptNotFoundError(prompt_id)
        logger.info(f"Deleted prompt {prompt_id}", extra={"prompt_id": str(prompt_id)})
