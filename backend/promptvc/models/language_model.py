"""
Language model catalog entry (built-in or owned by a custom provider)
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (JSON, Column, DateTime, Float, ForeignKey, Integer,
                        String, Text, Uuid)
from sqlalchemy.orm import relationship

from promptvc.core.database import Base


class AiVendor(str, Enum):
    """Model vendor enumeration"""
    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    GOOGLE = "GOOGLE"
    CUSTOM_OPENAI_COMPATIBLE = "CUSTOM_OPENAI_COMPATIBLE"


class LanguageModel(Base):
    """Language model with its parameter schema"""
    __tablename__ = "language_models"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)  # Exact model id from the vendor API
    display_name = Column(String(255), nullable=True)
    vendor = Column(String(50), nullable=False)  # Use String instead of Enum to match DB

    # Loosely-typed parameter schema: {"temperature": {"enabled": true, "min": 0, ...}}
    parameters_config = Column(JSON, nullable=True)

    prompt_price = Column(Float, nullable=False, default=0)
    completion_price = Column(Float, nullable=False, default=0)
    context_tokens_max = Column(Integer, nullable=False, default=0)
    completion_tokens_max = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)

    # NULL for built-in models
    api_key_id = Column(Uuid(as_uuid=True), ForeignKey("provider_api_keys.id", ondelete="CASCADE"), nullable=True, index=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    api_key = relationship("ProviderApiKey", back_populates="language_models")

    @property
    def is_custom(self) -> bool:
        return self.api_key_id is not None

    def __repr__(self):
        return f"<LanguageModel(id={self.id}, name='{self.name}', vendor={self.vendor})>"
