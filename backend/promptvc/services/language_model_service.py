"""
Language model catalog operations
"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from promptvc.core.exceptions import ModelNotFoundError
from promptvc.core.logging_config import LoggingConfig
from promptvc.services.model_config_reconciler import ModelConfigReconciler
from promptvc.services.parameter_schema_registry import \
    parse_parameters_config
from promptvc.services.prompt_reindex_service import (PromptReindexService,
                                                      ReindexResult)
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)


class LanguageModelService:
    """Service for listing models and editing custom ones"""

    def __init__(self, storage: PromptStorage, reconciler: Optional[ModelConfigReconciler] = None):
        self.storage = storage
        self.reconciler = reconciler or ModelConfigReconciler()
        self.reindex_service = PromptReindexService(storage, self.reconciler)

    def list_models(self, organization_id: UUID) -> List[Any]:
        """Built-in models plus the organization's custom ones"""
        return self.storage.list_models_for_organization(organization_id)

    def get_custom_params_template(self) -> Dict[str, Dict[str, Any]]:
        return self.reconciler.registry.custom_params_template()

    def update_custom_model(
        self,
        organization_id: UUID,
        model_id: UUID,
        **fields: Any,
    ) -> Tuple[Any, Optional[ReindexResult]]:
        """
        Update a custom model of the organization.

        A new ``parameters_config`` is validated first and then re-applied to
        every prompt using the model. Passing ``parameters_config=None`` clears
        the schema and resets those prompts to the vendor defaults.

        Returns:
            Tuple of (model, ReindexResult or None when the schema was not touched)
        """
        model = self.storage.get_custom_model(organization_id, model_id)
        if not model:
            raise ModelNotFoundError(model_id)

        schema_changed = "parameters_config" in fields
        if schema_changed and fields["parameters_config"] is not None:
            # Raises InvalidParameterSchemaError before anything is written
            parse_parameters_config(fields["parameters_config"])

        model = self.storage.update_language_model(model_id, **fields)
        logger.info(
            f"Updated custom model {model.name}",
            extra={"organization_id": str(organization_id), "model_id": str(model_id), "fields": sorted(fields)}
        )

        if not schema_changed:
            return model, None

        result = self.reindex_service.reindex_prompts_for_model(
            organization_id, model.id, model.name, model.vendor, model.parameters_config
        )
        return model, result
