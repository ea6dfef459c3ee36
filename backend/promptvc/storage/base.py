"""
Storage port used by the engine services
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID


class PromptStorage(ABC):
    """Persistence operations the engine depends on.

    Mutating methods commit on their own, except the bulk reset/delete
    operations, which only take effect when run through run_atomic_batch().
    Returned rows expose the column names of promptvc.models.
    """

    # ------------------------------------------------------------------
    # Projects and prompts
    # ------------------------------------------------------------------

    @abstractmethod
    def create_project(self, organization_id: UUID, name: str) -> Any:
        ...

    @abstractmethod
    def get_prompt(self, prompt_id: UUID) -> Optional[Any]:
        ...

    @abstractmethod
    def get_project_organization_id(self, project_id: UUID) -> Optional[UUID]:
        ...

    @abstractmethod
    def get_prompt_organization_id(self, prompt_id: UUID) -> Optional[UUID]:
        ...

    @abstractmethod
    def create_prompt(
        self,
        project_id: UUID,
        name: str,
        value: str,
        language_model_id: UUID,
        language_model_config: Dict[str, Any],
    ) -> Any:
        """Create a prompt together with its master branch"""

    @abstractmethod
    def update_prompt(
        self,
        prompt_id: UUID,
        value: Optional[str] = None,
        language_model_id: Optional[UUID] = None,
        language_model_config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Update the given fields in place; None leaves a field unchanged"""

    @abstractmethod
    def update_prompt_config(self, prompt_id: UUID, config: Dict[str, Any]) -> Any:
        ...

    @abstractmethod
    def set_commit_flag(self, prompt_id: UUID, committed: bool) -> Any:
        ...

    @abstractmethod
    def get_prompts_by_model(self, organization_id: UUID, model_id: UUID) -> List[Any]:
        ...

    @abstractmethod
    def delete_prompt(self, prompt_id: UUID) -> bool:
        ...

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    @abstractmethod
    def get_productive_commit(self, prompt_id: UUID) -> Optional[Any]:
        """Highest-generation commit on the master branch"""

    @abstractmethod
    def get_commit_count(self, prompt_id: UUID) -> int:
        """Number of commits on the master branch (the generation counter)"""

    @abstractmethod
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
    ) -> Any:
        ...

    @abstractmethod
    def get_commit(self, prompt_id: UUID, commit_id: UUID) -> Optional[Any]:
        ...

    @abstractmethod
    def list_commits(self, prompt_id: UUID, limit: Optional[int] = None) -> List[Any]:
        """Master branch commits, newest first"""

    # ------------------------------------------------------------------
    # Usage counts
    # ------------------------------------------------------------------

    @abstractmethod
    def count_live_prompts_using_models(self, organization_id: UUID, model_ids: Sequence[UUID]) -> int:
        ...

    @abstractmethod
    def count_committed_using_models(self, organization_id: UUID, model_ids: Sequence[UUID]) -> int:
        """Productive commits of the organization pointing at one of the models"""

    # ------------------------------------------------------------------
    # Language models
    # ------------------------------------------------------------------

    @abstractmethod
    def get_model(self, model_id: UUID) -> Optional[Any]:
        ...

    @abstractmethod
    def get_default_model(self, vendor: str, name: str) -> Optional[Any]:
        """Built-in (provider-less) model by vendor and name"""

    @abstractmethod
    def list_models_for_organization(self, organization_id: UUID) -> List[Any]:
        ...

    @abstractmethod
    def get_custom_model(self, organization_id: UUID, model_id: UUID) -> Optional[Any]:
        """Model owned by one of the organization's provider keys"""

    @abstractmethod
    def create_language_model(self, **fields: Any) -> Any:
        ...

    @abstractmethod
    def update_language_model(self, model_id: UUID, **fields: Any) -> Any:
        ...

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    @abstractmethod
    def get_custom_provider(self, organization_id: UUID) -> Optional[Any]:
        ...

    @abstractmethod
    def upsert_custom_provider(
        self,
        organization_id: UUID,
        base_url: str,
        key: str = "",
        name: Optional[str] = None,
    ) -> Any:
        ...

    @abstractmethod
    def get_api_key(self, organization_id: UUID, api_key_id: UUID) -> Optional[Any]:
        ...

    @abstractmethod
    def list_provider_models(self, api_key_id: UUID) -> List[Any]:
        ...

    # ------------------------------------------------------------------
    # Bulk operations (effective only inside run_atomic_batch)
    # ------------------------------------------------------------------

    @abstractmethod
    def list_prompt_ids_using_models(self, model_ids: Sequence[UUID]) -> List[UUID]:
        """Prompts of any organization whose live state or a commit points at one of the models"""

    @abstractmethod
    def reset_prompts_to_model(self, model_ids: Sequence[UUID], model_id: UUID, config: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    def reset_commits_to_model(self, model_ids: Sequence[UUID], model_id: UUID, config: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    def delete_models_by_api_key(self, api_key_id: UUID) -> int:
        ...

    @abstractmethod
    def delete_api_key(self, api_key_id: UUID) -> int:
        ...

    @abstractmethod
    def run_atomic_batch(self, operations: Iterable[Callable[[], Any]]) -> List[Any]:
        """Run operations in one transaction; all take effect or none do"""
