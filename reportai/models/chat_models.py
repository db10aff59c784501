# --- API Models ---
import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Auth ---
class RegisterRequest(CamelModel):
    name: str
    email: str
    password: str

class LoginRequest(CamelModel):
    email: str
    password: str

class UserOut(CamelModel):
    id: str
    name: str
    email: str
    created_at: Optional[datetime.datetime] = None
    last_login: Optional[datetime.datetime] = None

class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserOut


# --- Analysis ---
class AnalysisResult(CamelModel):
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    confidence: float

class ComparisonResult(CamelModel):
    summary: str = ""
    key_differences: List[str] = Field(default_factory=list)
    confidence: float

class AnalyzeResponse(CamelModel):
    analysis: AnalysisResult
    document_text: str

class CompareResponse(CamelModel):
    comparison: ComparisonResult
    left_text: str
    right_text: str
    differences_text: str


# --- Chat ---
class ChatRequest(CamelModel):
    question: Optional[str] = None
    document_text: Optional[str] = None
    conversation_id: Optional[str] = None

class ChatCompareRequest(CamelModel):
    question: Optional[str] = None
    left_text: Optional[str] = None
    right_text: Optional[str] = None
    differences_text: Optional[str] = None
    conversation_id: Optional[str] = None

class ChatResponse(CamelModel):
    answer: str


# --- Conversations ---
class ConversationContext(CamelModel):
    document_text: Optional[str] = None
    left_text: Optional[str] = None
    right_text: Optional[str] = None
    differences_text: Optional[str] = None

class MessageIn(CamelModel):
    role: Literal["user", "bot", "system"]
    content: str

class MessageOut(CamelModel):
    role: str
    content: str
    created_at: Optional[datetime.datetime] = None

class ConversationCreate(CamelModel):
    title: Optional[str] = None
    type: Literal["single", "compare"] = "single"
    context: Optional[ConversationContext] = None
    initial_messages: List[MessageIn] = Field(default_factory=list)

class AppendMessagesRequest(CamelModel):
    role: Optional[Literal["user", "bot", "system"]] = None
    content: Optional[str] = None
    paired: Optional[List[MessageIn]] = None

class RenameRequest(CamelModel):
    title: Optional[str] = None

class ConversationSummary(CamelModel):
    id: str
    title: str
    type: str
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

class ConversationDetail(ConversationSummary):
    context: ConversationContext
    messages: List[MessageOut]

class CreatedResponse(CamelModel):
    id: str

class OkResponse(CamelModel):
    ok: bool = True

class RenameResponse(CamelModel):
    id: str
    title: str

class HealthResponse(CamelModel):
    message: str
    timestamp: datetime.datetime
