"""
SQLAlchemy implementation of the storage port
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from promptvc.core.exceptions import (ApiKeyNotFoundError, ModelNotFoundError,
                                      PromptNotFoundError)
from promptvc.core.logging_config import LoggingConfig
from promptvc.models import (MASTER_BRANCH, AiVendor, Branch, LanguageModel,
                             Project, Prompt, PromptVersion, ProviderApiKey,
                             mask_key)
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)

_UPDATABLE_MODEL_FIELDS = {
    "display_name",
    "prompt_price",
    "completion_price",
    "context_tokens_max",
    "completion_tokens_max",
    "description",
    "parameters_config",
}


class SqlAlchemyPromptStorage(PromptStorage):
    """Storage backed by a request-scoped SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, instance: Any = None, action: str = "write") -> Any:
        try:
            self.db.commit()
            if instance is not None:
                self.db.refresh(instance)
            return instance
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error during {action}: {e}", exc_info=True)
            raise

    def _master_branch(self, prompt_id: UUID) -> Optional[Branch]:
        return self.db.query(Branch).filter(
            and_(Branch.prompt_id == prompt_id, Branch.name == MASTER_BRANCH)
        ).first()

    def _master_versions(self, prompt_id: UUID):
        return self.db.query(PromptVersion).join(
            Branch, PromptVersion.branch_id == Branch.id
        ).filter(
            and_(Branch.prompt_id == prompt_id, Branch.name == MASTER_BRANCH)
        )

    # ------------------------------------------------------------------
    # Projects and prompts
    # ------------------------------------------------------------------

    def create_project(self, organization_id: UUID, name: str) -> Project:
        project = Project(organization_id=organization_id, name=name)
        self.db.add(project)
        return self._commit(project, "create project")

    def get_prompt(self, prompt_id: UUID) -> Optional[Prompt]:
        return self.db.query(Prompt).filter(Prompt.id == prompt_id).first()

    def get_project_organization_id(self, project_id: UUID) -> Optional[UUID]:
        row = self.db.query(Project.organization_id).filter(Project.id == project_id).first()
        return row[0] if row else None

    def get_prompt_organization_id(self, prompt_id: UUID) -> Optional[UUID]:
        row = self.db.query(Project.organization_id).select_from(Project).join(
            Prompt, Prompt.project_id == Project.id
        ).filter(Prompt.id == prompt_id).first()
        return row[0] if row else None

    def create_prompt(
        self,
        project_id: UUID,
        name: str,
        value: str,
        language_model_id: UUID,
        language_model_config: Dict[str, Any],
    ) -> Prompt:
        prompt = Prompt(
            project_id=project_id,
            name=name,
            value=value,
            language_model_id=language_model_id,
            language_model_config=language_model_config,
            commited=False,
        )
        prompt.branches.append(Branch(name=MASTER_BRANCH))
        self.db.add(prompt)
        return self._commit(prompt, "create prompt")

    def update_prompt(
        self,
        prompt_id: UUID,
        value: Optional[str] = None,
        language_model_id: Optional[UUID] = None,
        language_model_config: Optional[Dict[str, Any]] = None,
    ) -> Prompt:
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            raise PromptNotFoundError(prompt_id)

        if value is not None:
            prompt.value = value
        if language_model_id is not None:
            prompt.language_model_id = language_model_id
        if language_model_config is not None:
            prompt.language_model_config = language_model_config

        return self._commit(prompt, "update prompt")

    def update_prompt_config(self, prompt_id: UUID, config: Dict[str, Any]) -> Prompt:
        return self.update_prompt(prompt_id, language_model_config=config)

    def set_commit_flag(self, prompt_id: UUID, committed: bool) -> Prompt:
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            raise PromptNotFoundError(prompt_id)
        prompt.commited = committed
        return self._commit(prompt, "set commit flag")

    def get_prompts_by_model(self, organization_id: UUID, model_id: UUID) -> List[Prompt]:
        return self.db.query(Prompt).join(
            Project, Prompt.project_id == Project.id
        ).filter(
            and_(
                Prompt.language_model_id == model_id,
                Project.organization_id == organization_id,
            )
        ).order_by(Prompt.created_at).all()

    def delete_prompt(self, prompt_id: UUID) -> bool:
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            return False
        self.db.delete(prompt)
        self._commit(action="delete prompt")
        return True

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def get_productive_commit(self, prompt_id: UUID) -> Optional[PromptVersion]:
        return self._master_versions(prompt_id).order_by(PromptVersion.generation.desc()).first()

    def get_commit_count(self, prompt_id: UUID) -> int:
        return self._master_versions(prompt_id).count()

    def create_commit(
        self,
        prompt_id: UUID,
        generation: int,
        commit_hash: str,
        message: str,
        author: Optional[str],
        value: str,
        language_model_id: UUID,
        language_model_config: Dict[str, Any],
    ) -> PromptVersion:
        branch = self._master_branch(prompt_id)
        if branch is None:
            # Prompts created outside this adapter may lack a branch
            branch = Branch(prompt_id=prompt_id, name=MASTER_BRANCH)
            self.db.add(branch)
            self.db.flush()

        version = PromptVersion(
            branch_id=branch.id,
            generation=generation,
            commit_hash=commit_hash,
            commit_msg=message,
            author=author,
            value=value,
            language_model_id=language_model_id,
            language_model_config=language_model_config,
        )
        self.db.add(version)
        return self._commit(version, "create commit")

    def get_commit(self, prompt_id: UUID, commit_id: UUID) -> Optional[PromptVersion]:
        return self.db.query(PromptVersion).join(
            Branch, PromptVersion.branch_id == Branch.id
        ).filter(
            and_(PromptVersion.id == commit_id, Branch.prompt_id == prompt_id)
        ).first()

    def list_commits(self, prompt_id: UUID, limit: Optional[int] = None) -> List[PromptVersion]:
        query = self._master_versions(prompt_id).order_by(PromptVersion.generation.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    # ------------------------------------------------------------------
    # Usage counts
    # ------------------------------------------------------------------

    def count_live_prompts_using_models(self, organization_id: UUID, model_ids: Sequence[UUID]) -> int:
        if not model_ids:
            return 0
        return self.db.query(func.count(Prompt.id)).select_from(Prompt).join(
            Project, Prompt.project_id == Project.id
        ).filter(
            and_(
                Prompt.language_model_id.in_(list(model_ids)),
                Project.organization_id == organization_id,
            )
        ).scalar() or 0

    def count_committed_using_models(self, organization_id: UUID, model_ids: Sequence[UUID]) -> int:
        if not model_ids:
            return 0

        latest = self.db.query(
            PromptVersion.branch_id.label("branch_id"),
            func.max(PromptVersion.generation).label("generation"),
        ).select_from(PromptVersion).join(
            Branch, PromptVersion.branch_id == Branch.id
        ).join(
            Prompt, Branch.prompt_id == Prompt.id
        ).join(
            Project, Prompt.project_id == Project.id
        ).filter(
            and_(Branch.name == MASTER_BRANCH, Project.organization_id == organization_id)
        ).group_by(PromptVersion.branch_id).subquery()

        return self.db.query(func.count(PromptVersion.id)).select_from(PromptVersion).join(
            latest,
            and_(
                PromptVersion.branch_id == latest.c.branch_id,
                PromptVersion.generation == latest.c.generation,
            )
        ).filter(PromptVersion.language_model_id.in_(list(model_ids))).scalar() or 0

    # ------------------------------------------------------------------
    # Language models
    # ------------------------------------------------------------------

    def get_model(self, model_id: UUID) -> Optional[LanguageModel]:
        return self.db.query(LanguageModel).filter(LanguageModel.id == model_id).first()

    def get_default_model(self, vendor: str, name: str) -> Optional[LanguageModel]:
        return self.db.query(LanguageModel).filter(
            and_(
                LanguageModel.vendor == vendor,
                LanguageModel.name == name,
                LanguageModel.api_key_id.is_(None),
            )
        ).first()

    def list_models_for_organization(self, organization_id: UUID) -> List[LanguageModel]:
        return self.db.query(LanguageModel).outerjoin(
            ProviderApiKey, LanguageModel.api_key_id == ProviderApiKey.id
        ).filter(
            or_(
                LanguageModel.api_key_id.is_(None),
                ProviderApiKey.organization_id == organization_id,
            )
        ).order_by(LanguageModel.vendor, LanguageModel.name).all()

    def get_custom_model(self, organization_id: UUID, model_id: UUID) -> Optional[LanguageModel]:
        return self.db.query(LanguageModel).join(
            ProviderApiKey, LanguageModel.api_key_id == ProviderApiKey.id
        ).filter(
            and_(
                LanguageModel.id == model_id,
                ProviderApiKey.organization_id == organization_id,
            )
        ).first()

    def create_language_model(self, **fields: Any) -> LanguageModel:
        model = LanguageModel(**fields)
        self.db.add(model)
        return self._commit(model, "create language model")

    def update_language_model(self, model_id: UUID, **fields: Any) -> LanguageModel:
        model = self.get_model(model_id)
        if not model:
            raise ModelNotFoundError(model_id)

        for name, value in fields.items():
            if name not in _UPDATABLE_MODEL_FIELDS:
                raise ValueError(f"Field '{name}' of a language model cannot be updated")
            # An explicit None clears the schema; other fields keep their value
            if value is not None or name == "parameters_config":
                setattr(model, name, value)

        return self._commit(model, "update language model")

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def get_custom_provider(self, organization_id: UUID) -> Optional[ProviderApiKey]:
        return self.db.query(ProviderApiKey).filter(
            and_(
                ProviderApiKey.organization_id == organization_id,
                ProviderApiKey.vendor == AiVendor.CUSTOM_OPENAI_COMPATIBLE.value,
            )
        ).first()

    def upsert_custom_provider(
        self,
        organization_id: UUID,
        base_url: str,
        key: str = "",
        name: Optional[str] = None,
    ) -> ProviderApiKey:
        provider = self.get_custom_provider(organization_id)
        if provider is None:
            provider = ProviderApiKey(
                organization_id=organization_id,
                vendor=AiVendor.CUSTOM_OPENAI_COMPATIBLE.value,
            )
            self.db.add(provider)

        provider.key = key or ""
        provider.public_key = mask_key(key)
        provider.name = name
        provider.base_url = base_url

        return self._commit(provider, "upsert custom provider")

    def get_api_key(self, organization_id: UUID, api_key_id: UUID) -> Optional[ProviderApiKey]:
        return self.db.query(ProviderApiKey).filter(
            and_(
                ProviderApiKey.id == api_key_id,
                ProviderApiKey.organization_id == organization_id,
            )
        ).first()

    def list_provider_models(self, api_key_id: UUID) -> List[LanguageModel]:
        return self.db.query(LanguageModel).filter(
            LanguageModel.api_key_id == api_key_id
        ).order_by(LanguageModel.name).all()

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def list_prompt_ids_using_models(self, model_ids: Sequence[UUID]) -> List[UUID]:
        if not model_ids:
            return []
        ids = list(model_ids)
        live = self.db.query(Prompt.id).filter(Prompt.language_model_id.in_(ids))
        committed = self.db.query(Branch.prompt_id).join(
            PromptVersion, PromptVersion.branch_id == Branch.id
        ).filter(PromptVersion.language_model_id.in_(ids))
        return [row[0] for row in live.union(committed).all()]

    def reset_prompts_to_model(self, model_ids: Sequence[UUID], model_id: UUID, config: Dict[str, Any]) -> int:
        if not model_ids:
            return 0
        return self.db.query(Prompt).filter(
            Prompt.language_model_id.in_(list(model_ids))
        ).update(
            {Prompt.language_model_id: model_id, Prompt.language_model_config: config},
            synchronize_session=False,
        )

    def reset_commits_to_model(self, model_ids: Sequence[UUID], model_id: UUID, config: Dict[str, Any]) -> int:
        if not model_ids:
            return 0
        return self.db.query(PromptVersion).filter(
            PromptVersion.language_model_id.in_(list(model_ids))
        ).update(
            {PromptVersion.language_model_id: model_id, PromptVersion.language_model_config: config},
            synchronize_session=False,
        )

    def delete_models_by_api_key(self, api_key_id: UUID) -> int:
        return self.db.query(LanguageModel).filter(
            LanguageModel.api_key_id == api_key_id
        ).delete(synchronize_session=False)

    def delete_api_key(self, api_key_id: UUID) -> int:
        deleted = self.db.query(ProviderApiKey).filter(
            ProviderApiKey.id == api_key_id
        ).delete(synchronize_session=False)
        if not deleted:
            raise ApiKeyNotFoundError(api_key_id)
        return deleted

    def run_atomic_batch(self, operations: Iterable[Callable[[], Any]]) -> List[Any]:
        try:
            results = [operation() for operation in operations]
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Atomic batch rolled back: {e}", exc_info=True)
            raise
        # Bulk statements bypass the identity map
        self.db.expire_all()
        return results
