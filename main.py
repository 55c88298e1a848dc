from __future__ import annotations

import logging
import os
from collections import OrderedDict
from typing import Callable, Dict, Optional
from uuid import uuid4

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from errors import StudioError, ValidationError
from image_utils import load_image_upload
from prompt_schema import (
    EXAMPLE_PROMPT,
    FIELD_LABELS,
    PROMPT_FIELDS,
    STRICT_IDENTITY_CLAUSE,
    PromptSection,
    format_plain_prompt,
    keyword_presets_payload,
    resolve_field,
)
from prompt_service import SUPPORTED_SERVICES, PromptService, build_prompt_service
from session import (
    AddKeyword,
    ClearReferenceImage,
    CloseContribute,
    CloseTemplate,
    EditDraftField,
    EditDraftRawPrompt,
    EditDraftTitle,
    EditField,
    OpenContribute,
    ReplaceForm,
    ResetBuilder,
    SetAnalyzerImage,
    SetDraftImage,
    SetReferenceImage,
    SetStrictIdentity,
    SetView,
    state_payload,
)
from settings import (
    BASE_DIR,
    load_env_file,
    max_sessions,
    model_overrides,
    resolve_service_key,
    seed_example_templates,
    selected_service,
    service_key_name,
    update_env_file,
)
from studio import Studio
from template_store import TemplateStore

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"
SESSION_COOKIE = "prompt_studio_session"
SESSION_PAGES = ("/", "/library", "/analyzer")

PAGES = {
    "generator": ("builder.html", "프롬프트 빌더(Prompt Builder)", "시네마틱 BTS 제작(Cinematic BTS)"),
    "library": ("library.html", "템플릿 라이브러리(Template Library)", "프롬프트 템플릿(Prompt Templates)"),
    "analyzer": ("analyzer.html", "이미지 분석(Image to Prompt)", "비전 분석(Vision Analysis)"),
}


class FieldEdit(BaseModel):
    field: str
    value: str = ""


class KeywordRequest(BaseModel):
    field: str
    keyword: str


class StrictIdentityRequest(BaseModel):
    enabled: bool


class FormSnapshot(BaseModel):
    form: Dict[str, str]


class ViewRequest(BaseModel):
    view: str


class DraftUpdate(BaseModel):
    title: Optional[str] = None
    rawPrompt: Optional[str] = None
    field: Optional[str] = None
    value: Optional[str] = None


class CopyRequest(BaseModel):
    source: str
    templateId: Optional[str] = None


def service_from_env() -> PromptService:
    env_values, _ = load_env_file()
    service = selected_service(env_values)
    api_key = resolve_service_key(service, env_values)
    return build_prompt_service(service, api_key, model_overrides(env_values))


def uses_session(path: str) -> bool:
    return path in SESSION_PAGES or path.startswith("/api/")


def create_app(
    service_factory: Callable[[], PromptService] = service_from_env,
    seed_examples: Optional[bool] = None,
    session_limit: Optional[int] = None,
) -> FastAPI:
    if seed_examples is None:
        seed_examples = seed_example_templates()
    if session_limit is None:
        session_limit = max_sessions()

    app = FastAPI(title="Cinematic Prompt Studio")
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    # Least recently used first.
    sessions: OrderedDict[str, Studio] = OrderedDict()
    app.state.sessions = sessions

    def new_studio() -> Studio:
        store = TemplateStore.with_examples() if seed_examples else TemplateStore()
        return Studio(service_factory, store=store)

    @app.middleware("http")
    async def attach_session(request: Request, call_next):
        if not uses_session(request.url.path):
            return await call_next(request)

        session_id = request.cookies.get(SESSION_COOKIE)
        if session_id in sessions:
            sessions.move_to_end(session_id)
        else:
            session_id = uuid4().hex
            sessions[session_id] = new_studio()
            logger.info("Started session %s", session_id)
            while len(sessions) > session_limit:
                evicted, _ = sessions.popitem(last=False)
                logger.info("Evicted least recently used session %s", evicted)
        request.state.studio = sessions[session_id]
        response = await call_next(request)
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
        return response

    @app.exception_handler(StudioError)
    async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    def studio_for(request: Request) -> Studio:
        return request.state.studio

    def snapshot(studio: Studio, **extra) -> JSONResponse:
        return JSONResponse({"state": state_payload(studio.state), **extra})

    def render_page(request: Request, view: str) -> HTMLResponse:
        studio = studio_for(request)
        studio.dispatch(SetView(view))
        template_name, title, heading = PAGES[view]
        env_values, _ = load_env_file()
        service = selected_service(env_values)
        return templates.TemplateResponse(
            request,
            template_name,
            {
                "view": view,
                "page_title": title,
                "page_heading": heading,
                "state": state_payload(studio.state, include_images=True),
                "client_state": state_payload(studio.state),
                "templates_list": [template.to_payload() for template in studio.store.list()],
                "fields": PROMPT_FIELDS,
                "field_labels": FIELD_LABELS,
                "wire_labels": {wire: FIELD_LABELS[attr] for attr, wire in PROMPT_FIELDS},
                "example_prompt": EXAMPLE_PROMPT.to_payload(),
                "keyword_presets": keyword_presets_payload(),
                "strict_identity_clause": STRICT_IDENTITY_CLAUSE,
                "services": SUPPORTED_SERVICES,
                "selected_service": service,
                "service_configured": bool(resolve_service_key(service, env_values)),
            },
        )

    # Pages

    @app.get("/", response_class=HTMLResponse)
    async def builder_page(request: Request) -> HTMLResponse:
        return render_page(request, "generator")

    @app.get("/library", response_class=HTMLResponse)
    async def library_page(request: Request) -> HTMLResponse:
        return render_page(request, "library")

    @app.get("/analyzer", response_class=HTMLResponse)
    async def analyzer_page(request: Request) -> HTMLResponse:
        return render_page(request, "analyzer")

    @app.post("/settings")
    async def update_settings(request: Request) -> JSONResponse:
        form = await request.form()
        service = (form.get("service") or "gemini").strip().lower()
        api_key = (form.get("api_key") or "").strip()
        if service not in SUPPORTED_SERVICES:
            raise ValidationError(f"Unknown service: {service!r}")

        updates = {"PROMPT_SERVICE": service}
        if api_key:
            updates[service_key_name(service)] = api_key
        update_env_file(updates)
        for key, value in updates.items():
            if value:
                os.environ[key] = value
        logger.info("Updated settings for %s", service)
        return JSONResponse({"status": "ok", "service": service})

    # Session

    @app.get("/api/state")
    async def get_state(request: Request) -> JSONResponse:
        return snapshot(studio_for(request))

    @app.post("/api/view")
    async def set_view(request: Request, body: ViewRequest) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(SetView(body.view))
        return snapshot(studio)

    # Builder

    @app.post("/api/builder/field")
    async def edit_builder_field(request: Request, body: FieldEdit) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(EditField(body.field, body.value))
        return snapshot(studio)

    @app.post("/api/builder/keyword")
    async def add_builder_keyword(request: Request, body: KeywordRequest) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(AddKeyword(body.field, body.keyword))
        return snapshot(studio)

    @app.post("/api/builder/strict")
    async def set_strict_identity(request: Request, body: StrictIdentityRequest) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(SetStrictIdentity(body.enabled))
        return snapshot(studio)

    @app.post("/api/builder/reference")
    async def upload_reference(request: Request, image: UploadFile = File(...)) -> JSONResponse:
        studio = studio_for(request)
        payload = await image.read()
        studio.dispatch(SetReferenceImage(load_image_upload(payload, image.filename, image.content_type)))
        return snapshot(studio)

    @app.delete("/api/builder/reference")
    async def remove_reference(request: Request) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(ClearReferenceImage())
        return snapshot(studio)

    def apply_form(studio: Studio, body: Optional[FormSnapshot]) -> None:
        if body is not None:
            studio.dispatch(ReplaceForm(PromptSection.from_payload(body.form)))

    @app.post("/api/builder/generate")
    async def generate_prompt(request: Request, body: Optional[FormSnapshot] = None) -> JSONResponse:
        studio = studio_for(request)
        apply_form(studio, body)
        full_prompt = studio.generate()
        return snapshot(studio, fullPrompt=full_prompt)

    @app.post("/api/builder/optimize")
    async def optimize_prompt(request: Request, body: Optional[FormSnapshot] = None) -> JSONResponse:
        studio = studio_for(request)
        apply_form(studio, body)
        await studio.optimize()
        return snapshot(studio, fullPrompt=studio.state.builder.final_prompt)

    @app.post("/api/builder/reset")
    async def reset_builder(request: Request) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(ResetBuilder())
        return snapshot(studio)

    # Library

    @app.get("/api/library")
    async def list_templates(request: Request) -> JSONResponse:
        studio = studio_for(request)
        return JSONResponse({"templates": [template.to_payload() for template in studio.store.list()]})

    @app.get("/api/library/{template_id}")
    async def template_detail(request: Request, template_id: str) -> JSONResponse:
        studio = studio_for(request)
        template = studio.select_template(template_id)
        return JSONResponse(
            {"template": template.to_payload(), "formatted": format_plain_prompt(template.prompt)}
        )

    @app.post("/api/library/close")
    async def close_template(request: Request) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(CloseTemplate())
        return snapshot(studio)

    @app.post("/api/library/contribute/open")
    async def open_contribute(request: Request) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(OpenContribute())
        return snapshot(studio)

    @app.post("/api/library/contribute/close")
    async def close_contribute(request: Request) -> JSONResponse:
        studio = studio_for(request)
        studio.dispatch(CloseContribute())
        return snapshot(studio)

    @app.post("/api/library/draft")
    async def update_draft(request: Request, body: DraftUpdate) -> JSONResponse:
        studio = studio_for(request)
        if body.field is not None:
            # Reject unknown fields before applying any part of the update.
            resolve_field(body.field)
        if body.title is not None:
            studio.dispatch(EditDraftTitle(body.title))
        if body.rawPrompt is not None:
            studio.dispatch(EditDraftRawPrompt(body.rawPrompt))
        if body.field is not None:
            studio.dispatch(EditDraftField(body.field, body.value or ""))
        return snapshot(studio)

    @app.post("/api/library/draft/image")
    async def upload_draft_image(request: Request, image: UploadFile = File(...)) -> JSONResponse:
        studio = studio_for(request)
        payload = await image.read()
        studio.dispatch(SetDraftImage(load_image_upload(payload, image.filename, image.content_type)))
        return snapshot(studio)

    @app.post("/api/library/parse")
    async def parse_draft(request: Request, raw_prompt: Optional[str] = Form(None)) -> JSONResponse:
        studio = studio_for(request)
        if raw_prompt is not None:
            studio.dispatch(EditDraftRawPrompt(raw_prompt))
        await studio.parse_draft()
        return snapshot(studio)

    @app.post("/api/library/save")
    async def save_template(request: Request) -> JSONResponse:
        studio = studio_for(request)
        template = studio.save_template()
        return snapshot(studio, template=template.to_payload())

    # Analyzer

    @app.post("/api/analyzer/image")
    async def upload_analyzer_image(request: Request, image: UploadFile = File(...)) -> JSONResponse:
        studio = studio_for(request)
        payload = await image.read()
        studio.dispatch(SetAnalyzerImage(load_image_upload(payload, image.filename, image.content_type)))
        return snapshot(studio)

    @app.post("/api/analyzer/analyze")
    async def analyze_image(request: Request) -> JSONResponse:
        studio = studio_for(request)
        await studio.analyze()
        result = studio.state.analyzer.result
        return snapshot(studio, formatted=format_plain_prompt(result) if result else "")

    # Clipboard

    @app.post("/api/copy")
    async def copy_text(request: Request, body: CopyRequest) -> JSONResponse:
        studio = studio_for(request)
        return JSONResponse({"text": studio.copy_text(body.source, body.templateId)})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8000")))
