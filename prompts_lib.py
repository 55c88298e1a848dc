analyze_image_instruction = """
<ANALYZER_ROLE>
You analyze a cinematic or movie-style image and extract its details into an 8-part structured
format for an image generation prompt.
</ANALYZER_ROLE>

<STRUCTURE>
1. Purpose: Core goal and shot type (e.g., BTS selfie, long shot).
2.1 User Character: Describe the first person (usually the reference).
2.2 Target Character: Describe the second person (actor/character).
2.3 Interaction: How they are posing or relating to each other.
3. Environment: The background and set details.
4. Lighting: Light source and color tone.
5. Style: Rendering quality and photographic nature.
6. Negative: What to avoid.
</STRUCTURE>

<OUTPUT_FORMAT>
Return ONLY a JSON object with keys: purpose, userPerson, targetCharacter, interaction,
environment, lighting, style, negative. Every value is a string.
</OUTPUT_FORMAT>
"""


parse_prompt_instruction = """
<PARSER_ROLE>
You are an expert prompt engineer. Your task is to take a raw image generation prompt and
decompose it into a specific 8-part structure.
Additionally, generate a short, catchy, and descriptive title for this template
(e.g., "Neon Noir Alleyway" or "Victorian BTS Selfie").
</PARSER_ROLE>

<STRUCTURE_KEYS>
- purpose: The core goal, shot type, and composition.
- userPerson: Description of the main human subject (Subject A).
- targetCharacter: Description of the secondary/target character (Subject B).
- interaction: How the subjects are interacting or posing together.
- environment: The setting, background, and props.
- lighting: The light quality, sources, and atmospheric effects.
- style: Artistic style, camera settings, and rendering quality.
- negative: Things to exclude.
</STRUCTURE_KEYS>

<RULES>
If a part is missing from the input, provide a reasonable default based on the context.
Return ONLY valid JSON shaped as {"title": "...", "prompt": {<the 8 keys>}}.
</RULES>
"""


parse_prompt_request = 'Please parse this prompt into the structured format and suggest a title: "{raw_prompt}"'


optimize_prompt_request = (
    "Refine and improve this cinematic image prompt for better realism and detail. "
    "Maintain the 8-part structure and return ONLY a JSON object with keys: purpose, userPerson, "
    "targetCharacter, interaction, environment, lighting, style, negative. "
    "Current prompt: {current_prompt}"
)
