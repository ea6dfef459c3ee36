"""
Committed / dirty state of prompts
"""
from enum import Enum
from typing import Any

from promptvc.core.logging_config import LoggingConfig
from promptvc.core.metrics import commit_state_transitions_total
from promptvc.services.commit_hash import PromptSnapshot, compute_commit_hash
from promptvc.storage.base import PromptStorage

logger = LoggingConfig.get_logger(__name__)


class CommitState(str, Enum):
    COMMITTED = "COMMITTED"
    DIRTY = "DIRTY"


class CommitStateResolver:
    """Derives a prompt's commit state from its productive commit"""

    def __init__(self, storage: PromptStorage):
        self.storage = storage

    def compute(self, prompt: Any) -> CommitState:
        """State of a prompt without touching the stored flag"""
        productive = self.storage.get_productive_commit(prompt.id)
        if productive is None:
            return CommitState.DIRTY

        generation = self.storage.get_commit_count(prompt.id)
        current_hash = compute_commit_hash(PromptSnapshot.of(prompt), generation)
        if current_hash == productive.commit_hash:
            return CommitState.COMMITTED
        return CommitState.DIRTY

    def resolve(self, prompt: Any) -> CommitState:
        """
        Recompute the state and persist the ``commited`` flag if it changed.

        Args:
            prompt: Prompt row (id, value, language_model_id, language_model_config, commited)

        Returns:
            The resolved CommitState
        """
        state = self.compute(prompt)
        committed = state == CommitState.COMMITTED

        if bool(prompt.commited) != committed:
            self.storage.set_commit_flag(prompt.id, committed)
            prompt.commited = committed
            commit_state_transitions_total.labels(state=state.value).inc()
            logger.debug(
                f"Prompt {prompt.id} is now {state.value}",
                extra={"prompt_id": str(prompt.id), "commit_state": state.value}
            )

        return state
