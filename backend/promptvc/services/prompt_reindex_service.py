"""
Batch reconciliation of every prompt bound to a language model
"""
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel

from promptvc.core.config import get_settings
from promptvc.core.logging_config import LoggingConfig
from promptvc.core.metrics import prompt_reindex_total
from promptvc.services.commit_state_service import CommitStateResolver
from promptvc.services.model_config_reconciler import (ModelConfigReconciler,
                                                       configs_equal)
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)


class ReindexResult(BaseModel):
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class PromptReindexService:
    """Re-applies reconciliation after a model's parameter schema changed"""

    def __init__(
        self,
        storage: PromptStorage,
        reconciler: Optional[ModelConfigReconciler] = None,
        abort_on_error: Optional[bool] = None,
    ):
        self.storage = storage
        self.reconciler = reconciler or ModelConfigReconciler()
        self.state_resolver = CommitStateResolver(storage)
        if abort_on_error is None:
            abort_on_error = get_settings().reindex_abort_on_error
        self.abort_on_error = abort_on_error

    def reindex_prompts_for_model(
        self,
        organization_id: UUID,
        model_id: UUID,
        model_name: str,
        vendor: Any,
        schema: Optional[Mapping[str, Any]] = None,
    ) -> ReindexResult:
        """
        Reconcile the configuration of every prompt of the organization using the model.

        Prompts whose configuration is already valid are skipped. Each update
        commits on its own; a failing prompt is logged and counted unless
        abort-on-error is enabled, in which case the error propagates.
        """
        result = ReindexResult()
        prompts = self.storage.get_prompts_by_model(organization_id, model_id)

        logger.info(
            f"Reindexing {len(prompts)} prompts for model {model_name}",
            extra={"organization_id": str(organization_id), "model_id": str(model_id)}
        )

        for prompt in prompts:
            current = prompt.language_model_config if isinstance(prompt.language_model_config, dict) else {}
            try:
                updated_config = self.reconciler.reconcile(model_name, vendor, current, schema)
                if configs_equal(updated_config, current):
                    result.skipped += 1
                    prompt_reindex_total.labels(outcome="skipped").inc()
                    continue

                updated_prompt = self.storage.update_prompt_config(prompt.id, updated_config)
                self.state_resolver.resolve(updated_prompt)
                result.updated += 1
                prompt_reindex_total.labels(outcome="updated").inc()
            except Exception as e:
                if self.abort_on_error:
                    logger.error(f"Reindex aborted at prompt {prompt.id}: {e}", exc_info=True)
                    raise
                result.failed += 1
                prompt_reindex_total.labels(outcome="failed").inc()
                logger.error(
                    f"Failed to reindex prompt {prompt.id}: {e}",
                    exc_info=True,
                    extra={"prompt_id": str(prompt.id), "model_id": str(model_id)}
                )

        logger.info(
            f"Reindex finished for model {model_name}: "
            f"{result.updated} updated, {result.skipped} skipped, {result.failed} failed",
            extra={"model_id": str(model_id), **result.model_dump()}
        )
        return result
