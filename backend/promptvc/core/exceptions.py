"""
Typed errors raised by the engine
"""
from typing import Any, Optional


class PromptEngineError(Exception):
    """Base class for business-rule violations surfaced to callers"""

    def to_dict(self) -> dict:
        """Serializable payload for the calling layer"""
        return {"error": type(self).__name__, "message": str(self)}


class ProviderNotConfiguredError(PromptEngineError):
    def __init__(self, organization_id: Optional[Any] = None):
        super().__init__("Custom provider not configured")
        self.organization_id = organization_id


class ProviderMissingBaseUrlError(PromptEngineError):
    def __init__(self, provider_id: Optional[Any] = None):
        super().__init__("Provider has no base URL configured")
        self.provider_id = provider_id


class ProviderDeletionBlockedError(PromptEngineError):
    """Provider models are still referenced by prompts or productive commits"""

    def __init__(self, live_usage: int, committed_usage: int):
        super().__init__("Custom provider cannot be deleted while it is in use")
        self.live_usage = live_usage
        self.committed_usage = committed_usage

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({
            "live_usage": self.live_usage,
            "committed_usage": self.committed_usage,
        })
        return payload


class ModelNotFoundError(PromptEngineError):
    def __init__(self, model_id: Optional[Any] = None, message: Optional[str] = None):
        super().__init__(message or f"Language model {model_id} not found")
        self.model_id = model_id


class DefaultModelNotFoundError(ModelNotFoundError):
    def __init__(self, vendor: str, name: str):
        super().__init__(message=f"Default language model {vendor}/{name} not found in database")
        self.vendor = vendor
        self.name = name


class ApiKeyNotFoundError(PromptEngineError):
    def __init__(self, api_key_id: Optional[Any] = None):
        super().__init__(f"API key {api_key_id} not found")
        self.api_key_id = api_key_id


class PromptNotFoundError(PromptEngineError):
    def __init__(self, prompt_id: Any):
        super().__init__(f"Prompt {prompt_id} not found")
        self.prompt_id = prompt_id


class CommitNotFoundError(PromptEngineError):
    def __init__(self, prompt_id: Any, commit_id: Any):
        super().__init__(f"Commit {commit_id} not found for prompt {prompt_id}")
        self.prompt_id = prompt_id
        self.commit_id = commit_id


class InvalidParameterSchemaError(PromptEngineError):
    def __init__(self, parameter: str, reason: str):
        super().__init__(f"Invalid schema for parameter '{parameter}': {reason}")
        self.parameter = parameter
        self.reason = reason


class ProviderClientError(PromptEngineError):
    """Custom provider could not be reached or answered with garbage"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
