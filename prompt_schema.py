"""The 8-part cinematic prompt schema and the text it is rendered into.

Fields are always walked through ``PROMPT_FIELDS`` so the order of the
sections never depends on dict or dataclass reflection.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Tuple

from errors import ValidationError

# (attribute name, wire name) in canonical order
PROMPT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("purpose", "purpose"),
    ("user_person", "userPerson"),
    ("target_character", "targetCharacter"),
    ("interaction", "interaction"),
    ("environment", "environment"),
    ("lighting", "lighting"),
    ("style", "style"),
    ("negative", "negative"),
)

FIELD_NAMES: Tuple[str, ...] = tuple(attr for attr, _ in PROMPT_FIELDS)
WIRE_NAMES: Tuple[str, ...] = tuple(wire for _, wire in PROMPT_FIELDS)
_ATTR_BY_WIRE = {wire: attr for attr, wire in PROMPT_FIELDS}

IDENTITY_FALLBACK = "Maintain identity from reference image"

STRICT_IDENTITY_CLAUSE = (
    "[CRITICAL CONSTRAINT: Maintain absolute pixel-perfect identity of Subject A "
    "from the reference image. NO facial modification, NO skin smoothing, "
    "NO age changes, and NO AI distortion of their unique features.] "
)


@dataclass(frozen=True)
class PromptSection:
    purpose: str = ""
    user_person: str = ""
    target_character: str = ""
    interaction: str = ""
    environment: str = ""
    lighting: str = ""
    style: str = ""
    negative: str = ""

    def with_field(self, field_name: str, value: str) -> "PromptSection":
        return replace(self, **{resolve_field(field_name): value})

    def value_of(self, field_name: str) -> str:
        return getattr(self, resolve_field(field_name))

    def to_payload(self) -> Dict[str, str]:
        """Serialize using the camelCase wire names, in canonical order."""

        return {wire: getattr(self, attr) for attr, wire in PROMPT_FIELDS}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PromptSection":
        """Build a section from a wire payload, tolerating missing keys.

        Used for the whole-form snapshot the builder sends with generate and
        optimize. Service responses go through ``section_from_response``,
        which is strict.
        """

        values: Dict[str, str] = {}
        for attr, wire in PROMPT_FIELDS:
            raw = payload.get(wire, payload.get(attr, ""))
            values[attr] = "" if raw is None else str(raw)
        return cls(**values)


def resolve_field(field_name: str) -> str:
    """Map either naming of a field onto its attribute name."""

    if field_name in FIELD_NAMES:
        return field_name
    attr = _ATTR_BY_WIRE.get(field_name)
    if attr is None:
        raise ValidationError(f"Unknown prompt field: {field_name!r}")
    return attr


EMPTY_PROMPT = PromptSection()

EXAMPLE_PROMPT = PromptSection(
    purpose="A photorealistic, candid, behind-the-scenes (BTS) long shot selfie, taken on a film set.",
    user_person=(
        "The person from the Character Reference Image, maintaining their real face, "
        "body, hairstyle, and proportions."
    ),
    target_character=(
        "[Al Pacino] as [Tony Montana], depicted as a young man in his late 30s, "
        "wearing his iconic signature suit."
    ),
    interaction="Both are posing naturally and casually for the selfie, standing directly next to each other.",
    environment="The background reflects the iconic set from [Tony Montana's Mansion].",
    lighting="Natural, slightly hot lighting, with cinematic softness.",
    style="Photorealistic, high-detail, genuine behind-the-scenes photo.",
    negative="Not stylized, not painted, not concept art, no fantasy elements, no text overlays.",
)

KEYWORD_PRESETS: Dict[str, Tuple[str, ...]] = {
    "purpose": (
        "Wide-angle selfie", "POV shot", "Close-up selfie", "Mirror selfie", "Arm-length shot",
        "Fisheye selfie", "Group selfie", "Rule of thirds", "Centered", "Dutch angle", "Eye-level",
        "Low-angle", "High-angle", "Candid shot", "Spontaneous moment", "Handheld camera shake",
        "Grainy film", "Raw photo", "Behind-the-scenes footage", "Film set photography",
        "Production still", "Making-of", "Unposed",
    ),
    "user_person": (
        "Strict identity preservation", "Zero facial modification", "Exact pixel-perfect match",
        "Unaltered skin texture", "Maintaining facial proportions", "No beauty filters",
        "Zero AI distortion", "True-to-life representation", "Original hair color",
        "Authentic height", "Individual moles/freckles", "Natural body shape",
    ),
    "target_character": (
        "In their prime", "Young version", "Aged version", "Wearing prosthetic makeup",
        "Iconic outfit", "Battle-scarred", "Covered in dust", "Formal tuxedo", "Period costume",
        "Tattered clothes", "High-fashion armor", "Smirking", "Intense gaze", "Winking",
        "Laughing out loud", "Stern expression", "Charismatic", "Villainous grin", "Heroic look",
    ),
    "interaction": (
        "Arm around shoulder", "Hand on shoulder", "Back-to-back", "Shaking hands", "High-fiving",
        "Hugging", "Fist bump", "Leaning against a wall", "Holding a coffee cup",
        "Checking the phone", "Pointing at something", "Peace sign (V)", "Thumbs up", "Toasting",
        "Professional chemistry", "Friendly bond", "Rivalry vibe", "Mentor and protégé",
        "Comedic duo",
    ),
    "environment": (
        "Soundstage", "Movie lot", "Location scouting", "Green screen", "Scaffolding", "Backstage",
        "Industrial warehouse", "Luxury penthouse", "Futuristic cockpit", "Medieval dungeon",
        "Ancient temple", "Deep forest", "Neon-lit city", "Camera rig", "Tripod",
        "Lighting stands", "Boom microphone", "Clapperboard", "Director's chair",
    ),
    "lighting": (
        "Natural sunlight", "Harsh desert sun", "Soft diffused daylight", "Golden hour",
        "Blue hour", "Rim lighting", "Backlit", "Cinematic lighting", "Volumetric lighting",
        "Neon glow", "High-key lighting", "Low-key lighting", "Chiaroscuro", "Hazy", "Foggy",
        "Dusty atmosphere", "Rain-soaked", "Lens flare", "Soft bokeh",
    ),
    "style": (
        "Photorealistic", "Hyper-realistic", "8k UHD", "Shot on 35mm film",
        "Shot on iPhone 15 Pro", "Detailed pores", "Sharp focus",
    ),
    "negative": (
        "CGI", "3D render", "Cartoon", "Anime", "Oil painting", "Concept art", "Illustration",
        "Digital art", "Sketch", "Watermark", "Logo", "Text", "Signature", "Deformed hands",
        "Extra fingers", "Blurred face", "Plastic skin", "Oversaturated", "Bad anatomy",
        "Double heads", "Low resolution",
    ),
}

# Labels shown next to each field in the builder and library forms.
FIELD_LABELS: Dict[str, str] = {
    "purpose": "1. Purpose & Shot Type",
    "user_person": "2.1 User Control (Subject A)",
    "target_character": "2.2 Target Character (Subject B)",
    "interaction": "2.3 Interaction",
    "environment": "3. Environment & Setting",
    "lighting": "4. Lighting & Atmosphere",
    "style": "5. Style & Quality",
    "negative": "6. Negative Constraints",
}


def _or_example(section: PromptSection, field_name: str) -> str:
    value = getattr(section, field_name)
    if not value.strip():
        return getattr(EXAMPLE_PROMPT, field_name)
    return value


def format_full_prompt(section: PromptSection, strict_identity: bool = False) -> str:
    """Render the builder's six-block prompt.

    Blank fields fall back to ``EXAMPLE_PROMPT``, except Subject A which falls
    back to ``IDENTITY_FALLBACK``. With ``strict_identity`` the Subject A line
    starts with ``STRICT_IDENTITY_CLAUSE``.
    """

    identity_constraint = STRICT_IDENTITY_CLAUSE if strict_identity else ""
    user_person = section.user_person if section.user_person.strip() else IDENTITY_FALLBACK

    return (
        f"[1. Purpose & Shot Type] {_or_example(section, 'purpose')}\n\n"
        "[2. Characters]\n"
        f"2.1 User Control (Subject A): {identity_constraint}{user_person}\n"
        f"2.2 Target Character (Subject B): {_or_example(section, 'target_character')}\n"
        f"2.3 Interaction: {_or_example(section, 'interaction')}\n\n"
        f"[3. Environment & Setting] {_or_example(section, 'environment')}\n\n"
        f"[4. Lighting & Atmosphere] {_or_example(section, 'lighting')}\n\n"
        f"[5. Style & Quality] {_or_example(section, 'style')}\n\n"
        f"[6. Negative Constraints] {_or_example(section, 'negative')}"
    )


def format_plain_prompt(section: PromptSection) -> str:
    """Render the library/analyzer six-block prompt, values verbatim."""

    return (
        f"[1. Purpose] {section.purpose}\n\n"
        "[2. Characters]\n"
        f"2.1 User: {section.user_person}\n"
        f"2.2 Target: {section.target_character}\n"
        f"2.3 Interaction: {section.interaction}\n\n"
        f"[3. Environment] {section.environment}\n\n"
        f"[4. Lighting] {section.lighting}\n\n"
        f"[5. Style] {section.style}\n\n"
        f"[6. Negative] {section.negative}"
    )


def append_keyword(current: str, keyword: str) -> str:
    trimmed = current.strip()
    if not trimmed:
        return keyword
    if keyword.lower() in trimmed.lower():
        return current
    return f"{trimmed}, {keyword}"


def keyword_presets_payload() -> Dict[str, list[str]]:
    return {wire: list(KEYWORD_PRESETS[attr]) for attr, wire in PROMPT_FIELDS}
