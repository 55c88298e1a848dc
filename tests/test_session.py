import pytest

from errors import ValidationError
from prompt_schema import STRICT_IDENTITY_CLAUSE, PromptSection, format_full_prompt
from session import (
    AddKeyword,
    ApplyAnalysis,
    ApplyOptimizedPrompt,
    ApplyParsedDraft,
    CloseContribute,
    EditDraftField,
    EditDraftTitle,
    EditField,
    FinishOperation,
    GeneratePrompt,
    OpenContribute,
    ReplaceForm,
    ResetBuilder,
    ResetDraft,
    SessionState,
    SetAnalyzerImage,
    SetStrictIdentity,
    SetView,
    StartOperation,
    reduce,
    state_payload,
)


def test_edit_field_accepts_wire_and_attribute_names():
    state = reduce(SessionState(), EditField("targetCharacter", "Batman"))
    state = reduce(state, EditField("lighting", "Rain-soaked"))

    assert state.builder.form.target_character == "Batman"
    assert state.builder.form.lighting == "Rain-soaked"


def test_add_keyword_twice_is_a_no_op():
    state = reduce(SessionState(), AddKeyword("lighting", "Golden hour"))
    again = reduce(state, AddKeyword("lighting", "golden hour"))

    assert state.builder.form.lighting == "Golden hour"
    assert again is state


def test_generate_uses_strict_identity_flag():
    state = reduce(SessionState(), EditField("purpose", "Test shot"))
    state = reduce(state, SetStrictIdentity(True))
    state = reduce(state, GeneratePrompt())

    assert state.builder.final_prompt == format_full_prompt(PromptSection(purpose="Test shot"), True)
    assert STRICT_IDENTITY_CLAUSE in state.builder.final_prompt


def test_optimized_prompt_replaces_the_form():
    state = reduce(SessionState(), EditField("purpose", "old"))
    state = reduce(state, EditField("style", "old style"))
    optimized = PromptSection(purpose="new")

    state = reduce(state, ApplyOptimizedPrompt(optimized))

    assert state.builder.form == optimized
    assert state.builder.final_prompt == format_full_prompt(optimized)


def test_reset_builder_returns_to_empty_form():
    state = reduce(SessionState(), EditField("purpose", "X"))
    state = reduce(state, ResetBuilder())

    assert state.builder == SessionState().builder


def test_unknown_view_is_rejected():
    with pytest.raises(ValidationError):
        reduce(SessionState(), SetView("settings"))
    assert reduce(SessionState(), SetView("analyzer")).view == "analyzer"


def test_unknown_action_is_rejected():
    with pytest.raises(TypeError):
        reduce(SessionState(), object())


def test_parsed_draft_keeps_a_real_title():
    state = reduce(SessionState(), EditDraftTitle("My Title"))
    state = reduce(state, ApplyParsedDraft(PromptSection(purpose="Parsed"), "Suggested"))

    assert state.library.draft.title == "My Title"
    assert state.library.draft.prompt.purpose == "Parsed"


@pytest.mark.parametrize("title", ["", "ab"])
def test_parsed_draft_replaces_placeholder_title(title):
    state = reduce(SessionState(), EditDraftTitle(title))
    state = reduce(state, ApplyParsedDraft(PromptSection(purpose="Parsed"), "Suggested"))

    assert state.library.draft.title == "Suggested"


def test_reset_draft_clears_and_closes_contribute_form():
    state = reduce(SessionState(), OpenContribute())
    state = reduce(state, EditDraftField("purpose", "X"))
    state = reduce(state, ResetDraft())

    assert state.library.draft.prompt.purpose == ""
    assert state.library.contribute_open is False


def test_closing_contribute_form_keeps_the_draft():
    state = reduce(SessionState(), OpenContribute())
    state = reduce(state, EditDraftTitle("Keep me"))
    state = reduce(state, CloseContribute())

    assert state.library.draft.title == "Keep me"


def test_new_analyzer_image_clears_previous_result(png_image):
    state = reduce(SessionState(), SetAnalyzerImage(png_image))
    state = reduce(state, ApplyAnalysis(PromptSection(purpose="Found")))
    state = reduce(state, SetAnalyzerImage(png_image))

    assert state.analyzer.result is None


def test_in_flight_markers():
    state = reduce(SessionState(), StartOperation("optimize"))

    assert state.is_busy("optimize")
    assert not state.is_busy("analyze")
    assert not reduce(state, FinishOperation("optimize")).is_busy("optimize")


def test_state_payload_sends_image_metadata_only(png_image):
    state = reduce(SessionState(), SetAnalyzerImage(png_image))
    payload = state_payload(state)

    assert payload["analyzer"]["image"] == {
        "filename": "ref.png",
        "mimeType": "image/png",
        "size": len(png_image.data),
    }
    assert payload["builder"]["form"]["userPerson"] == ""
    assert payload["inFlight"] == []


def test_state_payload_can_include_image_data(png_image):
    state = reduce(SessionState(), SetAnalyzerImage(png_image))

    image = state_payload(state, include_images=True)["analyzer"]["image"]

    assert image["dataUrl"] == png_image.data_url


def test_replace_form_keeps_generated_prompt():
    state = reduce(SessionState(), GeneratePrompt())
    final_prompt = state.builder.final_prompt

    state = reduce(state, ReplaceForm(PromptSection(purpose="Whole form")))

    assert state.builder.form == PromptSection(purpose="Whole form")
    assert state.builder.final_prompt == final_prompt
