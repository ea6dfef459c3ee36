"""
Storage port and adapters
"""
from promptvc.storage.base import PromptStorage  # noqa: F401
from promptvc.storage.sqlalchemy_storage import SqlAlchemyPromptStorage  # noqa: F401

__all__ = ["PromptStorage", "SqlAlchemyPromptStorage"]
