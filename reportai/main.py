import asyncio
import datetime
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from reportai import database as db
from reportai.auth import (
    create_token, get_current_user, get_optional_user, hash_password, verify_password
)
from reportai.config import Settings, configure_logging, get_settings
from reportai.errors import (
    AuthError, InvalidInput, LLMNotConfigured, NotFound, PayloadTooLarge,
    ReportAIError, UpstreamUnavailable
)
from reportai.functions.parsing import ANALYSIS_FIELDS, COMPARISON_FIELDS, reconcile
from reportai.functions.prompts import (
    build_analyze_prompt, build_chat_compare_prompt, build_chat_prompt,
    build_compare_prompt, truncate
)
from reportai.functions.util import (
    build_llm, get_llm_response, get_text_from_pdf, render_differences_text
)
from reportai.models.chat_models import (
    AnalysisResult, AnalyzeResponse, AppendMessagesRequest, AuthResponse,
    ChatCompareRequest, ChatRequest, ChatResponse, CompareResponse,
    ComparisonResult, ConversationCreate, ConversationDetail,
    ConversationSummary, CreatedResponse, HealthResponse, LoginRequest,
    OkResponse, RegisterRequest, RenameRequest, RenameResponse, UserOut
)

logger = logging.getLogger(__name__)

NO_ANSWER = "Sorry, I could not generate an answer."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: configure logging, bind the database and build the chat model."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Creating database tables...")
    db.init_db(settings.database_url)
    if getattr(app.state, "llm", None) is None and settings.llm_model:
        app.state.llm = build_llm(settings)
    yield
    logger.info("Application shutdown complete.")


app = FastAPI(
    title="ReportAI API",
    description="Summarize, compare and chat about PDF reports.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handling ---
@app.exception_handler(ReportAIError)
async def reportai_error_handler(request: Request, exc: ReportAIError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = "Invalid request"
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{loc}: {first.get('msg')}" if loc else first.get("msg", detail)
    return JSONResponse(status_code=400, content={"message": detail})


# --- Dependencies & helpers ---
def get_llm(request: Request):
    return getattr(request.app.state, "llm", None)


async def ask_llm(llm, prompt: str) -> str:
    """Run the blocking model call off the event loop."""
    if llm is None:
        raise LLMNotConfigured()
    logger.info("Hitting LLM (%d prompt chars)...", len(prompt))
    return await run_in_threadpool(get_llm_response, llm, prompt)


async def read_upload(file: UploadFile, settings: Settings) -> bytes:
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise PayloadTooLarge()
    return data


async def extract_texts(*documents: Tuple[str, bytes]) -> List[str]:
    """Extract text from several PDFs concurrently.

    Every extraction runs to completion; if any failed, one error naming
    all failed inputs is raised afterwards.
    """
    results = await asyncio.gather(
        *(run_in_threadpool(get_text_from_pdf, data) for _, data in documents),
        return_exceptions=True,
    )
    failed = []
    for (name, _), result in zip(documents, results):
        if isinstance(result, BaseException):
            logger.error("Text extraction failed for %s: %s", name, result)
            failed.append(name)
    if failed:
        raise UpstreamUnavailable(f"Failed to extract text from: {', '.join(failed)}")
    return list(results)


def check_conversation(conversation_id: Optional[str], user: Optional[Dict[str, Any]]):
    """Validate the conversation to append to before any model call."""
    if not conversation_id:
        return
    if user is None:
        raise AuthError()
    db.get_conversation(conversation_id, user["userId"])


def append_exchange(conversation_id: Optional[str], user: Optional[Dict[str, Any]], question: str, answer: str):
    if conversation_id:
        db.append_messages(conversation_id, user["userId"], [
            {"role": "user", "content": question},
            {"role": "bot", "content": answer},
        ])


# --- API Endpoints ---
@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(message="Server is running", timestamp=datetime.datetime.now())


@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, settings: Settings = Depends(get_settings)):
    """Create an account and return a bearer token."""
    if not (body.name.strip() and body.email.strip() and body.password):
        raise InvalidInput("name, email and password are required")
    if db.get_user_by_email(body.email):
        raise InvalidInput("User with this email already exists")

    password_hash = await run_in_threadpool(hash_password, body.password)
    user = db.create_user(body.name, body.email, password_hash)
    logger.info("Registered user %s", user["id"])
    return AuthResponse(
        message="User registered successfully",
        token=create_token(user, settings),
        user=UserOut(**user),
    )


@app.post("/api/auth/login", response_model=AuthResponse)
async def login(body: LoginRequest, settings: Settings = Depends(get_settings)):
    user = db.get_user_by_email(body.email)
    if not user or not await run_in_threadpool(verify_password, body.password, user["password"]):
        raise AuthError("Invalid email or password")
    db.update_last_login(user["id"])
    return AuthResponse(
        message="Login successful",
        token=create_token(user, settings),
        user=UserOut(**db.get_user(user["id"])),
    )


@app.get("/api/auth/profile", response_model=UserOut)
async def profile(current: Dict[str, Any] = Depends(get_current_user)):
    user = db.get_user(current["userId"])
    if user is None:
        raise NotFound("User not found")
    return UserOut(**user)


@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    llm=Depends(get_llm),
):
    """Summarize one PDF report and return the text kept for chat."""
    if file is None:
        raise InvalidInput("No file uploaded")
    data = await read_upload(file, settings)

    (text,) = await extract_texts(("file", data))
    document_text = truncate(text, settings.analyze_input_chars)
    model_text = await ask_llm(llm, build_analyze_prompt(document_text, settings.analyze_input_chars))
    analysis = reconcile(model_text, ANALYSIS_FIELDS)

    return AnalyzeResponse(
        analysis=AnalysisResult(
            summary=analysis.get("summary", ""),
            key_points=analysis["keyPoints"],
            confidence=analysis["confidence"],
        ),
        document_text=truncate(document_text, settings.chat_context_chars),
    )


@app.post("/api/analyze-compare", response_model=CompareResponse)
async def analyze_compare(
    fileA: Optional[UploadFile] = File(None),
    fileB: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    llm=Depends(get_llm),
):
    """Compare two PDF reports and return their key differences."""
    if fileA is None or fileB is None:
        raise InvalidInput("Two PDF files (fileA, fileB) are required")
    data_a = await read_upload(fileA, settings)
    data_b = await read_upload(fileB, settings)

    text_a, text_b = await extract_texts(("fileA", data_a), ("fileB", data_b))
    left_text = truncate(text_a, settings.compare_input_chars)
    right_text = truncate(text_b, settings.compare_input_chars)
    model_text = await ask_llm(
        llm, build_compare_prompt(left_text, right_text, settings.compare_input_chars)
    )
    comparison = reconcile(model_text, COMPARISON_FIELDS)
    differences_text = render_differences_text(
        comparison.get("summary", ""), comparison["keyDifferences"]
    )

    return CompareResponse(
        comparison=ComparisonResult(
            summary=comparison.get("summary", ""),
            key_differences=comparison["keyDifferences"],
            confidence=comparison["confidence"],
        ),
        left_text=left_text,
        right_text=right_text,
        differences_text=differences_text,
    )


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    settings: Settings = Depends(get_settings),
    llm=Depends(get_llm),
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
):
    """Answer a question about one document; optionally record the exchange."""
    if not request.question or not request.document_text:
        raise InvalidInput("question and documentText are required")
    check_conversation(request.conversation_id, user)

    prompt = build_chat_prompt(request.question, request.document_text, settings.chat_context_chars)
    answer = await ask_llm(llm, prompt)
    if not answer.strip():
        answer = NO_ANSWER

    append_exchange(request.conversation_id, user, request.question, answer)
    return ChatResponse(answer=answer)


@app.post("/api/chat-compare", response_model=ChatResponse)
async def chat_compare(
    request: ChatCompareRequest,
    settings: Settings = Depends(get_settings),
    llm=Depends(get_llm),
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
):
    """Answer a question about two compared reports."""
    if not request.question or not request.left_text or not request.right_text:
        raise InvalidInput("question, leftText, and rightText are required")
    check_conversation(request.conversation_id, user)

    prompt = build_chat_compare_prompt(
        request.question,
        request.left_text,
        request.right_text,
        request.differences_text or "",
        side_limit=settings.chat_compare_side_chars,
        diff_limit=settings.chat_compare_diff_chars,
    )
    answer = await ask_llm(llm, prompt)
    if not answer.strip():
        answer = NO_ANSWER

    append_exchange(request.conversation_id, user, request.question, answer)
    return ChatResponse(answer=answer)


@app.post("/api/conversations", response_model=CreatedResponse, status_code=201)
async def create_conversation(body: ConversationCreate, user: Dict[str, Any] = Depends(get_current_user)):
    context = body.context.model_dump() if body.context else {}
    conversation_id = db.create_conversation(
        user["userId"],
        body.title,
        body.type,
        context,
        [m.model_dump() for m in body.initial_messages],
    )
    return CreatedResponse(id=conversation_id)


@app.get("/api/conversations", response_model=List[ConversationSummary])
async def list_conversations(user: Dict[str, Any] = Depends(get_current_user)):
    """Most recently updated conversations of the caller (at most 100)."""
    return [ConversationSummary(**c) for c in db.list_conversations(user["userId"])]


@app.get("/api/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(conversation_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return ConversationDetail(**db.get_conversation(conversation_id, user["userId"]))


@app.post("/api/conversations/{conversation_id}/messages", response_model=OkResponse)
async def append_messages(
    conversation_id: str,
    body: AppendMessagesRequest,
    user: Dict[str, Any] = Depends(get_current_user),
):
    """Append one message, or a list of paired messages in order."""
    if body.paired is not None:
        messages = [m.model_dump() for m in body.paired]
    elif body.role and body.content:
        messages = [{"role": body.role, "content": body.content}]
    else:
        raise InvalidInput("role/content or paired messages required")
    db.append_messages(conversation_id, user["userId"], messages)
    return OkResponse()


@app.patch("/api/conversations/{conversation_id}", response_model=RenameResponse)
async def rename_conversation(
    conversation_id: str,
    body: RenameRequest,
    user: Dict[str, Any] = Depends(get_current_user),
):
    return RenameResponse(**db.rename_conversation(conversation_id, user["userId"], body.title))
