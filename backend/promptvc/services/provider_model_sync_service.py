"""
Synchronization of custom provider models with the model catalog
"""
from typing import Any, Iterable, List, Mapping, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from promptvc.core.exceptions import (ApiKeyNotFoundError,
                                      ProviderMissingBaseUrlError,
                                      ProviderNotConfiguredError)
from promptvc.core.logging_config import LoggingConfig
from promptvc.core.metrics import provider_models_synced_total
from promptvc.core.provider_client import FetchedModel, ProviderClient
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)

DEFAULT_PROVIDER_LABEL = "custom provider"


class SyncResult(BaseModel):
    created: int = 0
    existing: int = 0


def _as_fetched(model: Union[FetchedModel, Mapping[str, Any], str]) -> FetchedModel:
    if isinstance(model, FetchedModel):
        return model
    if isinstance(model, str):
        return FetchedModel(name=model)
    return FetchedModel(
        name=model["name"],
        display_name=model.get("display_name") or model.get("displayName"),
    )


class ProviderModelSyncService:
    """Creates catalog entries for models a provider lists; never deletes"""

    def __init__(self, storage: PromptStorage, client_factory=ProviderClient):
        self.storage = storage
        self.client_factory = client_factory

    def sync_models(
        self,
        organization_id: UUID,
        api_key_id: UUID,
        fetched_models: Iterable[Union[FetchedModel, Mapping[str, Any], str]],
    ) -> SyncResult:
        """
        Create the fetched models the provider does not own yet.

        Existing models are left untouched and stale ones are kept. Running
        the same listing twice creates nothing the second time.
        """
        api_key = self.storage.get_api_key(organization_id, api_key_id)
        if not api_key:
            raise ApiKeyNotFoundError(api_key_id)

        known_names = {model.name for model in self.storage.list_provider_models(api_key.id)}
        provider_label = api_key.name or DEFAULT_PROVIDER_LABEL
        result = SyncResult()

        for fetched in (_as_fetched(m) for m in fetched_models):
            if fetched.name in known_names:
                result.existing += 1
                provider_models_synced_total.labels(outcome="existing").inc()
                continue

            self.storage.create_language_model(
                name=fetched.name,
                display_name=fetched.display_name or fetched.name,
                vendor=api_key.vendor,
                api_key_id=api_key.id,
                prompt_price=0,
                completion_price=0,
                context_tokens_max=0,
                completion_tokens_max=0,
                description=f"Model from {provider_label}",
            )
            known_names.add(fetched.name)
            result.created += 1
            provider_models_synced_total.labels(outcome="created").inc()

        logger.info(
            f"Synced provider {api_key.id}: {result.created} created, {result.existing} existing",
            extra={"organization_id": str(organization_id), "api_key_id": str(api_key.id)}
        )
        return result

    def get_validated_custom_provider(self, organization_id: UUID) -> Any:
        """The organization's custom provider, which must have a base URL"""
        provider = self.storage.get_custom_provider(organization_id)
        if not provider:
            raise ProviderNotConfiguredError(organization_id)
        if not provider.base_url:
            raise ProviderMissingBaseUrlError(provider.id)
        return provider

    def fetch_models(self, provider: Any) -> List[FetchedModel]:
        client = self.client_factory(provider.base_url, api_key=provider.key or None)
        return client.list_models()

    def sync_from_provider(self, organization_id: UUID) -> SyncResult:
        """Fetch the provider's listing and sync it"""
        provider = self.get_validated_custom_provider(organization_id)
        return self.sync_models(organization_id, provider.id, self.fetch_models(provider))

    def upsert_custom_provider(
        self,
        organization_id: UUID,
        base_url: str,
        key: str = "",
        name: Optional[str] = None,
        fetched_models: Optional[Iterable[Union[FetchedModel, Mapping[str, Any], str]]] = None,
    ):
        """
        Store the organization's custom provider and sync its models.

        When no listing is given it is fetched from the provider.

        Returns:
            Tuple of (provider, SyncResult)
        """
        provider = self.storage.upsert_custom_provider(organization_id, base_url, key=key, name=name)
        logger.info(
            f"Custom provider saved for organization {organization_id}",
            extra={"organization_id": str(organization_id), "public_key": provider.public_key}
        )

        if fetched_models is None:
            fetched_models = self.fetch_models(provider)
        return provider, self.sync_models(organization_id, provider.id, fetched_models)
