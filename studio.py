"""Per-session coordinator for the builder, library and analyzer screens."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool

from errors import ExternalServiceError, OperationInProgressError, ValidationError
from prompt_schema import format_plain_prompt
from prompt_service import PromptService
from session import (
    ANALYZE,
    OPTIMIZE,
    PARSE,
    ApplyAnalysis,
    ApplyOptimizedPrompt,
    ApplyParsedDraft,
    FinishOperation,
    GeneratePrompt,
    ResetDraft,
    SelectTemplate,
    SessionState,
    StartOperation,
    reduce,
)
from template_store import Template, TemplateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Studio:
    def __init__(
        self,
        service_factory: Callable[[], PromptService],
        store: Optional[TemplateStore] = None,
        state: Optional[SessionState] = None,
    ) -> None:
        self.state = state or SessionState()
        self.store = store if store is not None else TemplateStore()
        self._service_factory = service_factory

    def dispatch(self, action: Any) -> SessionState:
        self.state = reduce(self.state, action)
        return self.state

    async def _call_service(self, operation: str, call: Callable[[PromptService], T]) -> T:
        """Run one blocking service call off the event loop.

        Only one call per operation may be pending; the in-flight marker is
        cleared whatever the outcome.
        """

        if self.state.is_busy(operation):
            raise OperationInProgressError(f"The {operation} request is already running.")
        service = self._service_factory()

        self.dispatch(StartOperation(operation))
        try:
            logger.info("Calling prompt service: %s", operation)
            return await run_in_threadpool(call, service)
        except ExternalServiceError as exc:
            logger.warning("Prompt service %s failed: %s", operation, exc)
            raise
        finally:
            self.dispatch(FinishOperation(operation))

    # Builder

    def generate(self) -> str:
        return self.dispatch(GeneratePrompt()).builder.final_prompt

    async def optimize(self) -> SessionState:
        form = self.state.builder.form
        optimized = await self._call_service(OPTIMIZE, lambda service: service.optimize(form))
        if self.state.builder.form != form:
            # The form was edited or reset while the request was pending.
            logger.info("Discarding optimized prompt for a changed form")
            return self.state
        return self.dispatch(ApplyOptimizedPrompt(optimized))

    # Library

    async def parse_draft(self) -> SessionState:
        raw_prompt = self.state.library.draft.raw_prompt
        if not raw_prompt.strip():
            raise ValidationError("Please enter the full prompt to analyze.")
        prompt, title = await self._call_service(
            PARSE, lambda service: service.parse_free_text(raw_prompt)
        )
        if self.state.library.draft.raw_prompt != raw_prompt:
            # Saved, reset or retyped while the request was pending.
            logger.info("Discarding parse result for a changed draft")
            return self.state
        return self.dispatch(ApplyParsedDraft(prompt=prompt, title=title))

    def save_template(self) -> Template:
        draft = self.state.library.draft
        image_url = draft.image.data_url if draft.image else None
        template = self.store.create(draft.title, image_url, draft.prompt)
        self.dispatch(ResetDraft())
        return template

    def select_template(self, template_id: str) -> Template:
        template = self.store.get(template_id)
        self.dispatch(SelectTemplate(template.id))
        return template

    # Analyzer

    async def analyze(self) -> SessionState:
        image = self.state.analyzer.image
        if image is None:
            raise ValidationError("Please select an image to analyze first.")
        result = await self._call_service(ANALYZE, lambda service: service.analyze_image(image))
        if self.state.analyzer.image is not image:
            # A different image was picked while the request was pending.
            logger.info("Discarding analysis for a replaced image")
            return self.state
        return self.dispatch(ApplyAnalysis(result))

    # Clipboard

    def copy_text(self, source: str, template_id: Optional[str] = None) -> str:
        if source == "builder":
            if not self.state.builder.final_prompt:
                raise ValidationError("Generate the prompt first!")
            return self.state.builder.final_prompt
        if source == "analyzer":
            if self.state.analyzer.result is None:
                raise ValidationError("Analyze an image first.")
            return format_plain_prompt(self.state.analyzer.result)
        if source == "library":
            if not template_id:
                raise ValidationError("A template id is required.")
            return format_plain_prompt(self.store.get(template_id).prompt)
        raise ValidationError(f"Unknown copy source: {source!r}")
