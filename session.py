"""Explicit per-session UI state.

``SessionState`` is immutable. Every change goes through ``reduce`` with one
of the named actions below, so a failed operation simply never produces a new
state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Optional, Type

from errors import ValidationError
from image_utils import ImagePayload
from prompt_schema import (
    EMPTY_PROMPT,
    PromptSection,
    append_keyword,
    format_full_prompt,
)

VIEWS = ("generator", "library", "analyzer")

OPTIMIZE = "optimize"
PARSE = "parse"
ANALYZE = "analyze"


@dataclass(frozen=True)
class BuilderState:
    form: PromptSection = EMPTY_PROMPT
    final_prompt: str = ""
    reference_image: Optional[ImagePayload] = None
    strict_identity: bool = False


@dataclass(frozen=True)
class ContributeDraft:
    title: str = ""
    image: Optional[ImagePayload] = None
    raw_prompt: str = ""
    prompt: PromptSection = EMPTY_PROMPT


@dataclass(frozen=True)
class LibraryState:
    selected_template_id: Optional[str] = None
    contribute_open: bool = False
    draft: ContributeDraft = field(default_factory=ContributeDraft)


@dataclass(frozen=True)
class AnalyzerState:
    image: Optional[ImagePayload] = None
    result: Optional[PromptSection] = None


@dataclass(frozen=True)
class SessionState:
    view: str = "generator"
    builder: BuilderState = field(default_factory=BuilderState)
    library: LibraryState = field(default_factory=LibraryState)
    analyzer: AnalyzerState = field(default_factory=AnalyzerState)
    in_flight: FrozenSet[str] = frozenset()

    def is_busy(self, operation: str) -> bool:
        return operation in self.in_flight


# Actions


@dataclass(frozen=True)
class SetView:
    view: str


@dataclass(frozen=True)
class EditField:
    field: str
    value: str


@dataclass(frozen=True)
class ReplaceForm:
    form: PromptSection


@dataclass(frozen=True)
class AddKeyword:
    field: str
    keyword: str


@dataclass(frozen=True)
class SetStrictIdentity:
    enabled: bool


@dataclass(frozen=True)
class SetReferenceImage:
    image: ImagePayload


@dataclass(frozen=True)
class ClearReferenceImage:
    pass


@dataclass(frozen=True)
class GeneratePrompt:
    pass


@dataclass(frozen=True)
class ApplyOptimizedPrompt:
    prompt: PromptSection


@dataclass(frozen=True)
class ResetBuilder:
    pass


@dataclass(frozen=True)
class SelectTemplate:
    template_id: str


@dataclass(frozen=True)
class CloseTemplate:
    pass


@dataclass(frozen=True)
class OpenContribute:
    pass


@dataclass(frozen=True)
class CloseContribute:
    pass


@dataclass(frozen=True)
class EditDraftTitle:
    title: str


@dataclass(frozen=True)
class SetDraftImage:
    image: ImagePayload


@dataclass(frozen=True)
class EditDraftRawPrompt:
    raw_prompt: str


@dataclass(frozen=True)
class EditDraftField:
    field: str
    value: str


@dataclass(frozen=True)
class ApplyParsedDraft:
    prompt: PromptSection
    title: str


@dataclass(frozen=True)
class ResetDraft:
    pass


@dataclass(frozen=True)
class SetAnalyzerImage:
    image: ImagePayload


@dataclass(frozen=True)
class ApplyAnalysis:
    prompt: PromptSection


@dataclass(frozen=True)
class StartOperation:
    operation: str


@dataclass(frozen=True)
class FinishOperation:
    operation: str


_REDUCERS: Dict[Type[Any], Callable[[SessionState, Any], SessionState]] = {}


def _handles(action_type: Type[Any]):
    def register(func: Callable[[SessionState, Any], SessionState]):
        _REDUCERS[action_type] = func
        return func

    return register


def reduce(state: SessionState, action: Any) -> SessionState:
    handler = _REDUCERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown action: {action!r}")
    return handler(state, action)


def _builder(state: SessionState, **changes: Any) -> SessionState:
    return replace(state, builder=replace(state.builder, **changes))


def _library(state: SessionState, **changes: Any) -> SessionState:
    return replace(state, library=replace(state.library, **changes))


def _draft(state: SessionState, **changes: Any) -> SessionState:
    return _library(state, draft=replace(state.library.draft, **changes))


@_handles(SetView)
def _set_view(state: SessionState, action: SetView) -> SessionState:
    if action.view not in VIEWS:
        raise ValidationError(f"Unknown view: {action.view!r}")
    return replace(state, view=action.view)


@_handles(EditField)
def _edit_field(state: SessionState, action: EditField) -> SessionState:
    return _builder(state, form=state.builder.form.with_field(action.field, action.value))


@_handles(ReplaceForm)
def _replace_form(state: SessionState, action: ReplaceForm) -> SessionState:
    return _builder(state, form=action.form)


@_handles(AddKeyword)
def _add_keyword(state: SessionState, action: AddKeyword) -> SessionState:
    form = state.builder.form
    current = form.value_of(action.field)
    updated = append_keyword(current, action.keyword)
    if updated == current:
        return state
    return _builder(state, form=form.with_field(action.field, updated))


@_handles(SetStrictIdentity)
def _set_strict_identity(state: SessionState, action: SetStrictIdentity) -> SessionState:
    return _builder(state, strict_identity=bool(action.enabled))


@_handles(SetReferenceImage)
def _set_reference_image(state: SessionState, action: SetReferenceImage) -> SessionState:
    return _builder(state, reference_image=action.image)


@_handles(ClearReferenceImage)
def _clear_reference_image(state: SessionState, action: ClearReferenceImage) -> SessionState:
    return _builder(state, reference_image=None)


@_handles(GeneratePrompt)
def _generate_prompt(state: SessionState, action: GeneratePrompt) -> SessionState:
    builder = state.builder
    return _builder(state, final_prompt=format_full_prompt(builder.form, builder.strict_identity))


@_handles(ApplyOptimizedPrompt)
def _apply_optimized_prompt(state: SessionState, action: ApplyOptimizedPrompt) -> SessionState:
    return _builder(
        state,
        form=action.prompt,
        final_prompt=format_full_prompt(action.prompt, state.builder.strict_identity),
    )


@_handles(ResetBuilder)
def _reset_builder(state: SessionState, action: ResetBuilder) -> SessionState:
    return replace(state, builder=BuilderState())


@_handles(SelectTemplate)
def _select_template(state: SessionState, action: SelectTemplate) -> SessionState:
    return _library(state, selected_template_id=action.template_id)


@_handles(CloseTemplate)
def _close_template(state: SessionState, action: CloseTemplate) -> SessionState:
    return _library(state, selected_template_id=None)


@_handles(OpenContribute)
def _open_contribute(state: SessionState, action: OpenContribute) -> SessionState:
    return _library(state, contribute_open=True)


@_handles(CloseContribute)
def _close_contribute(state: SessionState, action: CloseContribute) -> SessionState:
    return _library(state, contribute_open=False)


@_handles(EditDraftTitle)
def _edit_draft_title(state: SessionState, action: EditDraftTitle) -> SessionState:
    return _draft(state, title=action.title)


@_handles(SetDraftImage)
def _set_draft_image(state: SessionState, action: SetDraftImage) -> SessionState:
    return _draft(state, image=action.image)


@_handles(EditDraftRawPrompt)
def _edit_draft_raw_prompt(state: SessionState, action: EditDraftRawPrompt) -> SessionState:
    return _draft(state, raw_prompt=action.raw_prompt)


@_handles(EditDraftField)
def _edit_draft_field(state: SessionState, action: EditDraftField) -> SessionState:
    draft = state.library.draft
    return _draft(state, prompt=draft.prompt.with_field(action.field, action.value))


@_handles(ApplyParsedDraft)
def _apply_parsed_draft(state: SessionState, action: ApplyParsedDraft) -> SessionState:
    draft = state.library.draft
    # A short title is treated as a placeholder and replaced by the suggestion.
    title = draft.title if len(draft.title) >= 3 else action.title
    return _draft(state, prompt=action.prompt, title=title)


@_handles(ResetDraft)
def _reset_draft(state: SessionState, action: ResetDraft) -> SessionState:
    return _library(state, draft=ContributeDraft(), contribute_open=False)


@_handles(SetAnalyzerImage)
def _set_analyzer_image(state: SessionState, action: SetAnalyzerImage) -> SessionState:
    return replace(state, analyzer=AnalyzerState(image=action.image, result=None))


@_handles(ApplyAnalysis)
def _apply_analysis(state: SessionState, action: ApplyAnalysis) -> SessionState:
    return replace(state, analyzer=replace(state.analyzer, result=action.prompt))


@_handles(StartOperation)
def _start_operation(state: SessionState, action: StartOperation) -> SessionState:
    return replace(state, in_flight=state.in_flight | {action.operation})


@_handles(FinishOperation)
def _finish_operation(state: SessionState, action: FinishOperation) -> SessionState:
    return replace(state, in_flight=state.in_flight - {action.operation})


def _image_payload(image: Optional[ImagePayload], include_data: bool) -> Optional[Dict[str, Any]]:
    if image is None:
        return None
    payload: Dict[str, Any] = {"filename": image.filename, "mimeType": image.mime_type, "size": len(image.data)}
    if include_data:
        payload["dataUrl"] = image.data_url
    return payload


def state_payload(state: SessionState, include_images: bool = False) -> Dict[str, Any]:
    """Serialize the session for the browser.

    Image bytes are only encoded when ``include_images`` is set, which the page
    render does; API snapshots carry the image metadata alone.
    """

    builder = state.builder
    library = state.library
    analyzer = state.analyzer
    return {
        "view": state.view,
        "inFlight": sorted(state.in_flight),
        "builder": {
            "form": builder.form.to_payload(),
            "finalPrompt": builder.final_prompt,
            "referenceImage": _image_payload(builder.reference_image, include_images),
            "strictIdentity": builder.strict_identity,
        },
        "library": {
            "selectedTemplateId": library.selected_template_id,
            "contributeOpen": library.contribute_open,
            "draft": {
                "title": library.draft.title,
                "image": _image_payload(library.draft.image, include_images),
                "rawPrompt": library.draft.raw_prompt,
                "prompt": library.draft.prompt.to_payload(),
            },
        },
        "analyzer": {
            "image": _image_payload(analyzer.image, include_images),
            "result": analyzer.result.to_payload() if analyzer.result else None,
        },
    }

