"""
Guarded removal of an organization's custom provider
"""
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from promptvc.core.config import get_settings
from promptvc.core.exceptions import (DefaultModelNotFoundError,
                                      ProviderDeletionBlockedError,
                                      ProviderNotConfiguredError)
from promptvc.core.logging_config import LoggingConfig
from promptvc.core.metrics import provider_deletions_total
from promptvc.services.commit_state_service import CommitStateResolver
from promptvc.services.model_config_reconciler import ModelConfigReconciler
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)


class DeletionPlan(BaseModel):
    provider_id: UUID
    model_ids: List[UUID] = Field(default_factory=list)
    can_delete: bool
    live_usage: int = 0
    committed_usage: int = 0


class DeletionResult(BaseModel):
    provider_id: UUID
    deleted_model_ids: List[UUID] = Field(default_factory=list)
    reset_prompts: int = 0
    reset_commits: int = 0


class ProviderDeletionService:
    """
    Deletes a custom provider and its models once nothing serves them.

    Prompts and older commits still pointing at the provider's models are
    moved to the fallback default model in the same transaction that removes
    the models and the key. The commit state of every moved prompt is
    resolved again once the transaction is committed.
    """

    def __init__(
        self,
        storage: PromptStorage,
        reconciler: Optional[ModelConfigReconciler] = None,
        recheck: Optional[bool] = None,
    ):
        self.storage = storage
        self.reconciler = reconciler or ModelConfigReconciler()
        self.state_resolver = CommitStateResolver(storage)
        self.recheck = get_settings().provider_deletion_recheck if recheck is None else recheck

    def plan_deletion(self, organization_id: UUID) -> Optional[DeletionPlan]:
        """Usage of the provider's models; None when the organization has no custom provider"""
        provider = self.storage.get_custom_provider(organization_id)
        if not provider:
            return None

        model_ids = [model.id for model in self.storage.list_provider_models(provider.id)]
        live_usage = self.storage.count_live_prompts_using_models(organization_id, model_ids)
        committed_usage = self.storage.count_committed_using_models(organization_id, model_ids)

        return DeletionPlan(
            provider_id=provider.id,
            model_ids=model_ids,
            can_delete=live_usage == 0 and committed_usage == 0,
            live_usage=live_usage,
            committed_usage=committed_usage,
        )

    def resolve_fallback_model(self) -> Any:
        """Built-in model prompts fall back to"""
        settings = get_settings()
        model = self.storage.get_default_model(settings.default_model_vendor, settings.default_model_name)
        if not model:
            raise DefaultModelNotFoundError(settings.default_model_vendor, settings.default_model_name)
        return model

    def _ensure_unused(self, organization_id: UUID, model_ids: List[UUID]) -> None:
        live_usage = self.storage.count_live_prompts_using_models(organization_id, model_ids)
        committed_usage = self.storage.count_committed_using_models(organization_id, model_ids)
        if live_usage or committed_usage:
            logger.warning(
                f"Provider models came into use during deletion of organization {organization_id}'s provider",
                extra={"live_usage": live_usage, "committed_usage": committed_usage}
            )
            raise ProviderDeletionBlockedError(live_usage, committed_usage)

    def _resolve_states(self, prompt_ids: List[UUID]) -> None:
        # The hash covers the model, so a moved prompt may no longer match its productive commit
        for prompt_id in prompt_ids:
            prompt = self.storage.get_prompt(prompt_id)
            if prompt is not None:
                self.state_resolver.resolve(prompt)

    def execute_deletion(self, organization_id: UUID) -> DeletionResult:
        """
        Delete the organization's custom provider.

        Raises:
            ProviderNotConfiguredError: no custom provider
            ProviderDeletionBlockedError: a prompt or productive commit still uses one of its models
            DefaultModelNotFoundError: the fallback model is missing
        """
        plan = self.plan_deletion(organization_id)
        if plan is None:
            raise ProviderNotConfiguredError(organization_id)
        if not plan.can_delete:
            provider_deletions_total.labels(outcome="blocked").inc()
            logger.info(
                f"Deletion of provider {plan.provider_id} blocked",
                extra={
                    "organization_id": str(organization_id),
                    "live_usage": plan.live_usage,
                    "committed_usage": plan.committed_usage,
                }
            )
            raise ProviderDeletionBlockedError(plan.live_usage, plan.committed_usage)

        fallback = self.resolve_fallback_model()
        fallback_config = self.reconciler.default_config(fallback.name, fallback.vendor, fallback.parameters_config)
        model_ids = plan.model_ids

        operations = []
        if self.recheck:
            operations.append(lambda: self._ensure_unused(organization_id, model_ids))
        operations.extend([
            lambda: self.storage.list_prompt_ids_using_models(model_ids),
            lambda: self.storage.reset_prompts_to_model(model_ids, fallback.id, dict(fallback_config)),
            lambda: self.storage.reset_commits_to_model(model_ids, fallback.id, dict(fallback_config)),
            lambda: self.storage.delete_models_by_api_key(plan.provider_id),
            lambda: self.storage.delete_api_key(plan.provider_id),
        ])

        try:
            results = self.storage.run_atomic_batch(operations)
        except ProviderDeletionBlockedError:
            provider_deletions_total.labels(outcome="blocked").inc()
            raise

        affected_ids, reset_prompts, reset_commits = results[-5:-2]
        self._resolve_states(affected_ids)

        provider_deletions_total.labels(outcome="deleted").inc()
        logger.info(
            f"Deleted provider {plan.provider_id} and {len(model_ids)} models",
            extra={
                "organization_id": str(organization_id),
                "reset_prompts": reset_prompts,
                "reset_commits": reset_commits,
            }
        )
        return DeletionResult(
            provider_id=plan.provider_id,
            deleted_model_ids=model_ids,
            reset_prompts=reset_prompts,
            reset_commits=reset_commits,
        )

