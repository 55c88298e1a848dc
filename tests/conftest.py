import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from errors import AnalysisError, ExternalServiceError  # noqa: E402
from image_utils import ImagePayload  # noqa: E402
from prompt_schema import EXAMPLE_PROMPT, PromptSection  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FakePromptService:
    """Records calls and returns canned sections, or raises when told to."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = []
        # Called before the result is returned, to change the session mid-request.
        self.during_call = None
        self.analysis = EXAMPLE_PROMPT
        self.parsed = (PromptSection(purpose="Neon noir alley shot", style="Cinematic"), "Neon Noir Alleyway")
        self.optimized = PromptSection(
            purpose="Optimized purpose",
            user_person="Optimized subject A",
            target_character="Optimized subject B",
            interaction="Optimized interaction",
            environment="Optimized environment",
            lighting="Optimized lighting",
            style="Optimized style",
            negative="Optimized negative",
        )

    def _pending(self):
        if self.during_call is not None:
            self.during_call()

    def analyze_image(self, image):
        self.calls.append(("analyze_image", image))
        self._pending()
        if self.fail:
            raise AnalysisError("vision service unavailable")
        return self.analysis

    def parse_free_text(self, raw_text):
        self.calls.append(("parse_free_text", raw_text))
        self._pending()
        if self.fail:
            raise ExternalServiceError("parse failed")
        return self.parsed

    def optimize(self, section):
        self.calls.append(("optimize", section))
        self._pending()
        if self.fail:
            raise ExternalServiceError("optimize failed")
        return self.optimized


@pytest.fixture
def fake_service():
    return FakePromptService()


@pytest.fixture
def failing_service():
    return FakePromptService(fail=True)


@pytest.fixture
def png_image():
    return ImagePayload(data=PNG_BYTES, mime_type="image/png", filename="ref.png")
