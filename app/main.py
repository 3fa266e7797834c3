import os
import logging
from typing import List, Optional
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, UploadFile, File, Form
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.requests import Request
from pydantic import BaseModel, Field

from app.database import SessionStore
from app.clients import AI_MODEL, OPENAI_MODEL, DEFAULT_CAPTION_LANGUAGE, NUTRITION_DEBOUNCE_SECONDS
from app.chat_service import (
    handle_turn,
    is_busy,
    select_suggestion,
    nutrition_scheduler,
    SessionBusyError,
    SuggestionNotFoundError,
)
from app.image_handler import (
    build_attached_file,
    release_files,
    AttachmentValidationError,
    ALLOWED_EXTENSIONS,
    MAX_FILE_SIZE,
    UPLOAD_DIR,
)
from app.session_state import RecipeSession, InvalidStageTransition
from baratie.captions import FALLBACK_LANGUAGES
from baratie.models import AttachedFile, Stage

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

store = SessionStore()
store.cleanup_expired()

app = FastAPI(title="Baratie Recipe Assistant")

origins = [
    "http://localhost:3000",  # web client dev
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request payload",
                "details": exc.errors(),
            }
        },
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        409: "CONFLICT",
    }
    error_code = code_map.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": error_code,
                "message": exc.detail,
            }
        },
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )

# Mount uploads directory for serving attachment previews
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

class ChatRequest(BaseModel):
    message: str

class StageRequest(BaseModel):
    stage: Stage

class SelectSuggestionRequest(BaseModel):
    messageId: str
    index: int = Field(ge=0)

class ServingsRequest(BaseModel):
    servings: int = Field(ge=1)

class HealthResponse(BaseModel):
    ok: bool

class ModelsConfig(BaseModel):
    generation: str
    intent: str

class CaptionsConfig(BaseModel):
    default_language: str
    fallback_languages: List[str]

class FeaturesConfig(BaseModel):
    vision_enabled: bool
    youtube_enabled: bool
    nutrition_enabled: bool

class UploadsConfig(BaseModel):
    allowed_extensions: List[str]
    max_file_size: int

class ConfigResponse(BaseModel):
    models: ModelsConfig
    captions: CaptionsConfig
    uploads: UploadsConfig
    nutrition_debounce_seconds: float
    features: FeaturesConfig


def _load_session(session_id: str) -> RecipeSession:
    state = store.load(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return RecipeSession(state, store=store)


def _session_payload(session: RecipeSession) -> dict:
    return session.state.model_dump(mode="json")


async def _run_turn(session: RecipeSession, message: str, files: Optional[List[AttachedFile]] = None) -> dict:
    try:
        added = await handle_turn(session, message, files=files, scheduler=nutrition_scheduler)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "session": _session_payload(session),
        "messages": [m.model_dump(mode="json") for m in added],
    }


async def _read_upload(upload: UploadFile) -> AttachedFile:
    content = await upload.read()
    try:
        return build_attached_file(content, upload.filename or "attachment", upload.content_type)
    except AttachmentValidationError as e:
        raise HTTPException(status_code=400, detail=f"{upload.filename}: {e}")

@app.get("/health", response_model=HealthResponse)
@app.get("/api/v1/health", response_model=HealthResponse)
def health():
    return {"ok": True}

@app.get("/config", response_model=ConfigResponse)
@app.get("/api/v1/config", response_model=ConfigResponse)
def get_config():
    return ConfigResponse(
        models=ModelsConfig(generation=AI_MODEL, intent=OPENAI_MODEL),
        captions=CaptionsConfig(
            default_language=DEFAULT_CAPTION_LANGUAGE,
            fallback_languages=FALLBACK_LANGUAGES,
        ),
        uploads=UploadsConfig(
            allowed_extensions=sorted(ALLOWED_EXTENSIONS),
            max_file_size=MAX_FILE_SIZE,
        ),
        nutrition_debounce_seconds=NUTRITION_DEBOUNCE_SECONDS,
        features=FeaturesConfig(
            vision_enabled=True,
            youtube_enabled=True,
            nutrition_enabled=True,
        ),
    )

@app.post("/sessions")
@app.post("/api/v1/sessions")
def create_session():
    state = store.create()
    return state.model_dump(mode="json")

@app.get("/sessions/{session_id}")
@app.get("/api/v1/sessions/{session_id}")
def get_session(session_id: str):
    return _session_payload(_load_session(session_id))

@app.delete("/sessions/{session_id}")
@app.delete("/api/v1/sessions/{session_id}")
def clear_session(session_id: str):
    """
    Reset-on-clear: recipe, messages, pending files and stage are cleared,
    attachment previews deleted, and any pending nutrition estimate cancelled.
    """
    session = _load_session(session_id)
    if is_busy(session.id):
        raise HTTPException(status_code=409, detail="Cannot clear the session while a message is being processed")
    nutrition_scheduler.cancel(session.id)
    released = release_files(session.reset())
    logger.info(f"[SESSION] {session.id}: cleared, {released} previews deleted")
    return _session_payload(session)

@app.post("/sessions/{session_id}/chat")
@app.post("/api/v1/sessions/{session_id}/chat")
async def chat(session_id: str, request: ChatRequest):
    """
    Run one chat turn.

    Returns the updated session and the messages appended during the turn.
    Agent failures surface as system messages, not HTTP errors.
    """
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    session = _load_session(session_id)
    return await _run_turn(session, message)

@app.post("/sessions/{session_id}/chat/files")
@app.post("/api/v1/sessions/{session_id}/chat/files")
async def chat_with_files(
    session_id: str,
    message: str = Form(""),
    files: List[UploadFile] = File(default=[]),
):
    """
    Chat turn with attachments (multipart/form-data).

    - message: User message (may be empty when files are attached)
    - files: images (JPG, PNG, GIF, WebP) or PDF, up to MAX_FILE_SIZE each
    """
    message = message.strip()
    if not message and not files:
        raise HTTPException(status_code=400, detail="Message or files required")
    session = _load_session(session_id)

    attached = []
    try:
        for upload in files:
            attached.append(await _read_upload(upload))
    except HTTPException:
        release_files(attached)
        raise

    try:
        return await _run_turn(session, message, files=attached)
    except HTTPException:
        release_files(attached)
        raise

@app.post("/sessions/{session_id}/files")
@app.post("/api/v1/sessions/{session_id}/files")
async def add_file(session_id: str, file: UploadFile = File(...)):
    """Attach a pending file; it is sent with the next chat turn."""
    session = _load_session(session_id)
    attached = await _read_upload(file)
    session.add_file(attached)
    return _session_payload(session)

@app.delete("/sessions/{session_id}/files/{name}")
@app.delete("/api/v1/sessions/{session_id}/files/{name}")
def remove_file(session_id: str, name: str):
    session = _load_session(session_id)
    removed = session.remove_file(name)
    if removed is None:
        raise HTTPException(status_code=404, detail=f"No pending file named {name}")
    release_files([removed])
    return _session_payload(session)

@app.post("/sessions/{session_id}/stage")
@app.post("/api/v1/sessions/{session_id}/stage")
def change_stage(session_id: str, request: StageRequest):
    session = _load_session(session_id)
    try:
        session.transition(request.stage)
    except InvalidStageTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_payload(session)

@app.post("/sessions/{session_id}/suggestions/select")
@app.post("/api/v1/sessions/{session_id}/suggestions/select")
async def choose_suggestion(session_id: str, request: SelectSuggestionRequest):
    """Activate a suggestion. Lite suggestions are generated into a full recipe first."""
    session = _load_session(session_id)
    start = len(session.messages)
    try:
        await select_suggestion(session, request.messageId, request.index, scheduler=nutrition_scheduler)
    except SuggestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "session": _session_payload(session),
        "messages": [m.model_dump(mode="json") for m in session.messages[start:]],
    }

@app.post("/sessions/{session_id}/recipe/servings")
@app.post("/api/v1/sessions/{session_id}/recipe/servings")
def set_servings(session_id: str, request: ServingsRequest):
    session = _load_session(session_id)
    if session.recipe is None:
        raise HTTPException(status_code=409, detail="No active recipe")
    session.set_servings(request.servings)
    return _session_payload(session)
