"""
Database model for organization provider credentials
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from promptvc.core.database import Base


def mask_key(key: str) -> str:
    """Public representation of a key: first 3 and last 4 characters"""
    if not key:
        return "(no key)"
    return f"{key[:3]}...{key[-4:]}"


class ProviderApiKey(Base):
    """Provider credentials; custom providers own their synced models"""
    __tablename__ = "provider_api_keys"
    __table_args__ = (UniqueConstraint("organization_id", "vendor", name="uq_provider_api_keys_org_vendor"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    vendor = Column(String(50), nullable=False)

    key = Column(Text, nullable=False, default="")
    public_key = Column(String(32), nullable=True)
    name = Column(String(255), nullable=True)  # Display name
    base_url = Column(String(512), nullable=True)  # OpenAI-compatible API root, e.g. http://host:8000/v1

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    language_models = relationship("LanguageModel", back_populates="api_key", order_by="LanguageModel.name")

    def __repr__(self):
        return f"<ProviderApiKey(id={self.id}, vendor={self.vendor}, base_url='{self.base_url}')>"
