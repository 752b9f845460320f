import uuid
from sqlalchemy import (
    BigInteger,
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)

    organizations = relationship("OrganizationMember", back_populates="user")


class Organization(Base):
    __tablename__ = "organizations"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    # permission type granted to plain members on every organization project
    base_permission = Column(String, default="VIEW", nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)

    members = relationship("OrganizationMember", back_populates="organization")
    projects = relationship("Project", back_populates="organization")


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True)
    role = Column(String, default="MEMBER", nullable=False)

    user = relationship("User", back_populates="organizations")
    organization = relationship("Organization", back_populates="members")


class Project(Base):
    __tablename__ = "projects"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(String)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True)
    # languages reference projects, so this side stays a plain column
    base_language_id = Column(UUID(as_uuid=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)

    organization = relationship("Organization", back_populates="projects")
    languages = relationship("Language", back_populates="project")
    keys = relationship("Key", back_populates="project")


class ProjectPermission(Base):
    __tablename__ = "project_permissions"
    __table_args__ = (UniqueConstraint("project_id", "user_id"),)
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    type = Column(String, default="VIEW", nullable=False)
    # language id lists as strings; empty means every project language
    view_language_ids = Column(JSON, default=list)
    translate_language_ids = Column(JSON, default=list)
    state_change_language_ids = Column(JSON, default=list)


class ApiKey(Base):
    __tablename__ = "api_keys"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    key_hash = Column(String, unique=True, nullable=False)
    description = Column(String)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    scopes = Column(JSON, default=list)
    created_at = Column(DateTime, default=_utcnow)

    user = relationship("User")
    project = relationship("Project")


class Language(Base):
    __tablename__ = "languages"
    __table_args__ = (UniqueConstraint("project_id", "tag"),)
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    tag = Column(String, nullable=False)
    name = Column(String, nullable=False)
    original_name = Column(String)

    project = relationship("Project", back_populates="languages")


class Key(Base):
    __tablename__ = "keys"
    __table_args__ = (UniqueConstraint("project_id", "name", "namespace"),)
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    name = Column(String, nullable=False)
    namespace = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    project = relationship("Project", back_populates="keys")
    translations = relationship("Translation", back_populates="key")


class Translation(Base):
    __tablename__ = "translations"
    __table_args__ = (UniqueConstraint("key_id", "language_id"),)
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    key_id = Column(UUID(as_uuid=True), ForeignKey("keys.id"), nullable=False)
    language_id = Column(UUID(as_uuid=True), ForeignKey("languages.id"), nullable=False)
    text = Column(Text, nullable=True)
    state = Column(String, default="UNTRANSLATED", nullable=False)
    outdated = Column(Boolean, default=False, nullable=False)
    auto_translated = Column(Boolean, default=False, nullable=False)
    mt_provider = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    key = relationship("Key", back_populates="translations")
    language = relationship("Language")
    comments = relationship("TranslationComment", back_populates="translation")


class TranslationComment(Base):
    __tablename__ = "translation_comments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    translation_id = Column(UUID(as_uuid=True), ForeignKey("translations.id"), nullable=False)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    state = Column(String, default="RESOLUTION_NOT_NEEDED", nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    translation = relationship("Translation", back_populates="comments")
    author = relationship("User")


class TranslationHistory(Base):
    __tablename__ = "translation_history"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    translation_id = Column(UUID(as_uuid=True), ForeignKey("translations.id"), nullable=False)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    activity = Column(String, nullable=False)
    text = Column(Text, nullable=True)
    state = Column(String, nullable=False)
    outdated = Column(Boolean, default=False, nullable=False)
    auto_translated = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, default=_utcnow, nullable=False)

    translation = relationship("Translation")


class ProjectFreshness(Base):
    __tablename__ = "project_freshness"
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), primary_key=True)
    # epoch milliseconds
    last_modified = Column(BigInteger, nullable=False, default=0)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    api_key_id = Column(UUID(as_uuid=True), ForeignKey("api_keys.id"), nullable=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=True)
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
