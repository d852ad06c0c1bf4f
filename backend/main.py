from contextlib import asynccontextmanager
from typing import Optional
import logging
import uuid

from fastapi import FastAPI, HTTPException, Header, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from models import (
    TaskCreate,
    TaskUpdate,
    TaskStatus,
    AssistantState,
    AssistantMessageRequest,
    AssistantResponse,
    AIAssistantRequest,
    UserSettings,
    ApiKeyValidationRequest,
    PushTokenCreate,
)
from database import (
    StoreError,
    init_db,
    get_tasks,
    get_task,
    create_task_db,
    update_task_db,
    delete_task_db,
    get_recommendations,
    get_settings,
    save_settings,
    save_push_token,
)
from assistant import AssistantFlow, UserProfile
from llm import ModelError, gateway_for, render_bold, validate_api_key
from prompts import ASSISTANT_PROMPTS, GENERIC_ERROR_MESSAGE, STORE_ERROR_MESSAGE
from recommendations import regenerate_recommendations

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(_request: Request, exc: StoreError):
    logger.error("Store error: %s", exc)
    return JSONResponse(status_code=503, content={"detail": STORE_ERROR_MESSAGE})


@app.exception_handler(ModelError)
async def model_error_handler(_request: Request, exc: ModelError):
    logger.error("Model error: %s", exc)
    return JSONResponse(status_code=502, content={"detail": GENERIC_ERROR_MESSAGE})


def current_owner(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Owner of every query, taken from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def _gateway(owner: str):
    return gateway_for(get_settings(owner).api_key)


# Tasks
@app.get("/tasks")
def list_tasks(
    archived: bool = False,
    status: Optional[TaskStatus] = None,
    q: Optional[str] = None,
    owner: str = Depends(current_owner)
) -> list[dict]:
    return [task.model_dump() for task in get_tasks(owner, archived, status, q)]


@app.post("/tasks", status_code=201)
def create_task(task_data: TaskCreate, owner: str = Depends(current_owner)) -> dict:
    task = create_task_db(
        str(uuid.uuid4()),
        owner,
        task_data.title,
        task_data.description,
        task_data.due_date,
        task_data.due_date_type,
        task_data.status,
        task_data.is_recurring,
        task_data.recurrence_pattern
    )
    return task.model_dump()


@app.get("/tasks/{task_id}")
def read_task(task_id: str, owner: str = Depends(current_owner)) -> dict:
    task = get_task(task_id, owner)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task.model_dump()


def _update_or_404(task_id: str, owner: str, **updates) -> dict:
    result = update_task_db(task_id, owner, **updates)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result.model_dump()


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate, owner: str = Depends(current_owner)) -> dict:
    return _update_or_404(task_id, owner, **task_data.model_dump(exclude_unset=True))


@app.post("/tasks/{task_id}/complete")
def complete_task(task_id: str, owner: str = Depends(current_owner)) -> dict:
    return _update_or_404(task_id, owner, status=TaskStatus.COMPLETED)


@app.post("/tasks/{task_id}/archive")
def archive_task(task_id: str, owner: str = Depends(current_owner)) -> dict:
    return _update_or_404(task_id, owner, is_archived=True)


@app.post("/tasks/{task_id}/restore")
def restore_task(task_id: str, owner: str = Depends(current_owner)) -> dict:
    return _update_or_404(task_id, owner, is_archived=False)


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, owner: str = Depends(current_owner)) -> dict:
    if not delete_task_db(task_id, owner):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


# Recommendations
@app.get("/recommendations")
def list_recommendations(owner: str = Depends(current_owner)) -> list[dict]:
    return [rec.model_dump() for rec in get_recommendations(owner)]


@app.post("/recommendations/generate")
async def generate_recommendations(use_model: bool = False, owner: str = Depends(current_owner)) -> dict:
    """Replace the owner's recommendations with a freshly generated set."""
    gateway = _gateway(owner) if use_model else None
    records = await regenerate_recommendations(owner, gateway, use_model)
    return {"recommendations": [rec.model_dump() for rec in records]}


# Assistant
def _assistant_response(flow: AssistantFlow, reply: Optional[str]) -> dict:
    return AssistantResponse(
        state=flow.state,
        reply=reply,
        html=render_bold(reply) if reply else None,
    ).model_dump()


@app.post("/assistant/open")
async def open_assistant(state: AssistantState, owner: str = Depends(current_owner)) -> dict:
    """Start a chat session. The client keeps the returned state and sends it back."""
    flow = AssistantFlow(_gateway(owner), UserProfile(name=state.user_name), state)
    reply = await flow.open()
    return _assistant_response(flow, reply)


@app.post("/assistant/message")
async def assistant_message(request: AssistantMessageRequest, owner: str = Depends(current_owner)) -> dict:
    if not request.content.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")

    flow = AssistantFlow(_gateway(owner), UserProfile(name=request.state.user_name), request.state)
    tasks = get_tasks(owner, archived=False)
    reply = await flow.send(request.content, tasks)
    return _assistant_response(flow, reply)


@app.post("/ai-assistant")
async def ai_assistant(request: AIAssistantRequest, owner: str = Depends(current_owner)) -> dict:
    """Free-form prompt answered with the persona matching its type."""
    system_prompt = ASSISTANT_PROMPTS.get(request.type, ASSISTANT_PROMPTS["general"])
    response = await _gateway(owner).complete(system_prompt, request.prompt, tasks=request.task_data)
    return {"response": response, "html": render_bold(response)}


# Settings
@app.get("/settings")
def read_settings(owner: str = Depends(current_owner)) -> dict:
    settings = get_settings(owner)
    data = settings.model_dump(exclude={"api_key"})
    data["has_api_key"] = bool(settings.api_key)
    return data


@app.put("/settings")
def update_settings(settings: UserSettings, owner: str = Depends(current_owner)) -> dict:
    # The stored key is only replaced when the client sends one explicitly
    if "api_key" not in settings.model_fields_set:
        settings = settings.model_copy(update={"api_key": get_settings(owner).api_key})
    saved = save_settings(owner, settings)
    data = saved.model_dump(exclude={"api_key"})
    data["has_api_key"] = bool(saved.api_key)
    return data


@app.post("/settings/validate-key")
async def validate_key(request: ApiKeyValidationRequest, owner: str = Depends(current_owner)) -> dict:
    if not request.api_key:
        raise HTTPException(status_code=400, detail="API key is required")
    return {"is_valid": await validate_api_key(request.api_key)}


# Push notifications
@app.post("/push-tokens", status_code=201)
def register_push_token(request: PushTokenCreate, owner: str = Depends(current_owner)) -> dict:
    save_push_token(owner, request.token)
    return {"status": "registered"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
