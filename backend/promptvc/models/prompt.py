"""
Prompt, branch and commit (prompt version) models
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (JSON, Boolean, Column, DateTime, ForeignKey, Integer,
                        String, Text, UniqueConstraint, Uuid)
from sqlalchemy.orm import relationship

from promptvc.core.database import Base

# Branch whose latest commit is served
MASTER_BRANCH = "master"


class Prompt(Base):
    """Editable prompt: current text, model and model configuration"""
    __tablename__ = "prompts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(Text, nullable=False, default="")

    language_model_id = Column(Uuid(as_uuid=True), ForeignKey("language_models.id"), nullable=False, index=True)
    language_model_config = Column(JSON, nullable=True)

    # Cached result of the commit state resolver
    commited = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    project = relationship("Project", back_populates="prompts")
    language_model = relationship("LanguageModel")
    branches = relationship("Branch", back_populates="prompt", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Prompt(id={self.id}, name={self.name}, commited={self.commited})>"


class Branch(Base):
    """Ordered line of commits of a prompt"""
    __tablename__ = "branches"
    __table_args__ = (UniqueConstraint("prompt_id", "name", name="uq_branches_prompt_name"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    prompt_id = Column(Uuid(as_uuid=True), ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False, default=MASTER_BRANCH)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    prompt = relationship("Prompt", back_populates="branches")
    versions = relationship(
        "PromptVersion",
        back_populates="branch",
        cascade="all, delete-orphan",
        order_by="PromptVersion.generation",
    )

    def __repr__(self):
        return f"<Branch(id={self.id}, prompt_id={self.prompt_id}, name={self.name})>"


class PromptVersion(Base):
    """Immutable commit of a prompt snapshot"""
    __tablename__ = "prompt_versions"
    __table_args__ = (UniqueConstraint("branch_id", "generation", name="uq_prompt_versions_branch_generation"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    generation = Column(Integer, nullable=False)  # 1-based position on the branch
    commit_hash = Column(String(64), nullable=False)
    commit_msg = Column(Text, nullable=True)

    value = Column(Text, nullable=False, default="")
    language_model_id = Column(Uuid(as_uuid=True), ForeignKey("language_models.id"), nullable=False, index=True)
    language_model_config = Column(JSON, nullable=True)

    author = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    branch = relationship("Branch", back_populates="versions")

    def __repr__(self):
        return f"<PromptVersion(id={self.id}, generation={self.generation}, hash={self.commit_hash[:8] if self.commit_hash else None})>"
