"""In-memory template library.

Templates are write-once: the store only ever prepends and reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from errors import TemplateNotFoundError, ValidationError
from prompt_schema import EXAMPLE_PROMPT, PromptSection, format_plain_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Template:
    id: str
    title: str
    image_url: Optional[str]
    prompt: PromptSection
    full_prompt: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "imageUrl": self.image_url,
            "prompt": self.prompt.to_payload(),
            "fullPrompt": self.full_prompt,
        }


def validate_template(template: Template) -> None:
    if not template.title or not template.title.strip():
        raise ValidationError("A template title is required.")
    if not template.image_url:
        raise ValidationError("A cover image is required.")
    if not template.prompt.purpose.strip():
        raise ValidationError("The analyzed prompt needs at least a purpose.")


class TemplateStore:
    def __init__(self, templates: Optional[Iterable[Template]] = None) -> None:
        self._templates: List[Template] = list(templates or [])

    def __len__(self) -> int:
        return len(self._templates)

    def add(self, template: Template) -> None:
        validate_template(template)
        self._templates.insert(0, template)
        logger.info("Saved template %s (%s)", template.id, template.title)

    def list(self) -> List[Template]:
        return list(self._templates)

    def get(self, template_id: str) -> Template:
        for template in self._templates:
            if template.id == template_id:
                return template
        raise TemplateNotFoundError(f"Template {template_id!r} does not exist.")

    def create(self, title: str, image_url: Optional[str], prompt: PromptSection) -> Template:
        """Build a template with a fresh id and its formatted text, then add it."""

        template = Template(
            id=uuid4().hex,
            title=title.strip() if title else "",
            image_url=image_url,
            prompt=prompt,
            full_prompt=format_plain_prompt(prompt),
        )
        self.add(template)
        return template

    @classmethod
    def with_examples(cls) -> "TemplateStore":
        return cls(example_templates())


def example_templates() -> List[Template]:
    return [
        Template(
            id="1",
            title="스카페이스(Scarface) BTS",
            image_url=(
                "https://images.unsplash.com/photo-1598449356475-b9f71db7d847"
                "?q=80&w=800&auto=format&fit=crop"
            ),
            prompt=EXAMPLE_PROMPT,
            full_prompt="A photorealistic, candid, behind-the-scenes (BTS) long shot selfie...",
        ),
        Template(
            id="2",
            title="다크 나이트(Dark Knight) BTS",
            image_url=(
                "https://images.unsplash.com/photo-1478720568477-152d9b164e26"
                "?q=80&w=800&auto=format&fit=crop"
            ),
            prompt=replace(
                EXAMPLE_PROMPT,
                target_character="[Christian Bale] as [Batman], breaking character slightly with a grin.",
                environment="A dark, wet alleyway in Gotham.",
            ),
            full_prompt="A gritty, cinematic BTS shot of Batman in Gotham...",
        ),
    ]
