"""
SQLAlchemy models
"""
from promptvc.core.database import Base
# Import all models here so Alembic can detect them
from promptvc.models.language_model import AiVendor, LanguageModel  # noqa: F401
from promptvc.models.project import Project  # noqa: F401
from promptvc.models.prompt import (MASTER_BRANCH, Branch, Prompt,  # noqa: F401
                                    PromptVersion)
from promptvc.models.provider_api_key import ProviderApiKey, mask_key  # noqa: F401

__all__ = [
    "Base",
    # Projects
    "Project",
    # Prompts
    "Prompt",
    "Branch",
    "PromptVersion",
    "MASTER_BRANCH",
    # Models
    "LanguageModel",
    "AiVendor",
    # Providers
    "ProviderApiKey",
    "mask_key",
]
