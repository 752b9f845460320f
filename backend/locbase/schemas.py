from datetime import datetime
from enum import Enum
from typing import Optional, Any, Dict, Generic, List, Literal, TypeVar
from pydantic import BaseModel, EmailStr, ConfigDict, Field, model_validator
from uuid import UUID


class TranslationState(str, Enum):
    UNTRANSLATED = "UNTRANSLATED"
    TRANSLATED = "TRANSLATED"
    REVIEWED = "REVIEWED"
    # internal only, never assignable through the API
    DISABLED = "DISABLED"


class AssignableTranslationState(str, Enum):
    UNTRANSLATED = "UNTRANSLATED"
    TRANSLATED = "TRANSLATED"
    REVIEWED = "REVIEWED"

    @property
    def translation_state(self) -> TranslationState:
        return TranslationState(self.value)


class CommentState(str, Enum):
    RESOLUTION_NOT_NEEDED = "RESOLUTION_NOT_NEEDED"
    NEEDS_RESOLUTION = "NEEDS_RESOLUTION"
    RESOLVED = "RESOLVED"


PermissionType = Literal["NONE", "VIEW", "TRANSLATE", "REVIEW", "EDIT", "MANAGE"]

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    page: int
    size: int
    total: int


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: Optional[str] = None


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1)
    base_permission: PermissionType = "VIEW"


class OrganizationOut(OrganizationCreate):
    id: UUID
    created_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrganizationMemberIn(BaseModel):
    user_id: UUID
    role: Literal["OWNER", "MEMBER"] = "MEMBER"


class OrganizationRoleSet(BaseModel):
    role: Literal["OWNER", "MEMBER"]


class OrganizationMemberOut(BaseModel):
    user_id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    role: Literal["OWNER", "MEMBER"]


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    organization_id: Optional[UUID] = None


class ProjectOut(ProjectCreate):
    id: UUID
    base_language_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class LanguageCreate(BaseModel):
    tag: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1)
    original_name: Optional[str] = None
    base: bool = False


class LanguageOut(BaseModel):
    id: UUID
    project_id: UUID
    tag: str
    name: str
    original_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class PermissionSet(BaseModel):
    user_id: UUID
    type: PermissionType = "VIEW"
    view_language_ids: List[UUID] = []
    translate_language_ids: List[UUID] = []
    state_change_language_ids: List[UUID] = []


class PermissionOut(BaseModel):
    id: UUID
    project_id: UUID
    user_id: UUID
    type: str
    view_language_ids: List[UUID] = []
    translate_language_ids: List[UUID] = []
    state_change_language_ids: List[UUID] = []
    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreate(BaseModel):
    scopes: List[str] = Field(min_length=1)
    description: Optional[str] = None


class ApiKeyOut(BaseModel):
    id: UUID
    project_id: UUID
    scopes: List[str]
    description: Optional[str] = None
    key: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class KeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=2000)
    namespace: Optional[str] = None


class KeyOut(BaseModel):
    id: UUID
    name: str
    namespace: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class TranslationOut(BaseModel):
    id: UUID
    key_id: UUID
    language_id: UUID
    text: Optional[str] = None
    state: TranslationState
    outdated: bool = False
    auto_translated: bool = False
    mt_provider: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class SetTranslationsWithKey(BaseModel):
    key: str = Field(min_length=1, max_length=2000)
    namespace: Optional[str] = None
    translations: Dict[str, Optional[str]]
    languages_to_return: Optional[List[str]] = None

    @model_validator(mode="after")
    def _blank_namespace_is_default(self):
        if self.namespace is not None and not self.namespace.strip():
            self.namespace = None
        return self


class SetTranslationsResponse(BaseModel):
    key_id: UUID
    key_name: str
    key_namespace: Optional[str] = None
    translations: Dict[str, TranslationOut]


class KeyWithTranslationsOut(SetTranslationsResponse):
    pass


class KeysWithTranslationsPage(Page[KeyWithTranslationsOut]):
    selected_languages: List[LanguageOut]
    next_cursor: Optional[str] = None


class SelectAllResponse(BaseModel):
    ids: List[UUID]


class AuthorOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=10000)
    state: CommentState = CommentState.RESOLUTION_NOT_NEEDED


class CommentWithLangKeyCreate(CommentCreate):
    key_id: UUID
    language_id: UUID


class CommentUpdate(BaseModel):
    text: str = Field(min_length=1, max_length=10000)


class CommentOut(BaseModel):
    id: UUID
    translation_id: UUID
    text: str
    state: CommentState
    author: AuthorOut
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TranslationWithComment(BaseModel):
    translation: TranslationOut
    comment: CommentOut


class TranslationHistoryOut(BaseModel):
    id: UUID
    activity: str
    author_id: Optional[UUID] = None
    text: Optional[str] = None
    state: str
    outdated: bool
    auto_translated: bool
    timestamp: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditLogOut(BaseModel):
    id: UUID
    user_id: UUID
    api_key_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    action: str
    target_type: str | None = None
    target_id: UUID | None = None
    details: Dict[str, Any] = {}
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditReportItem(BaseModel):
    action: str
    count: int
