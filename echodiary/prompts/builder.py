"""
Prompt construction for diary illustrations.

Turns a child's diary text plus style, mood and age settings into an
image-generation prompt using one of the built-in templates.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .templates import (
    ASPECT_RATIO_DESCRIPTIONS,
    DEFAULT_TEMPLATE,
    DETAIL_DESCRIPTIONS,
    MOOD_DESCRIPTIONS,
    STYLE_DESCRIPTIONS,
    ArtStyle,
    AspectRatio,
    DetailLevel,
    Mood,
    PromptTemplate,
    age_expression,
    get_template,
)

MIN_AGE = 1
MAX_AGE = 18


@dataclass
class DiaryPromptOptions:
    """Request for a diary prompt. Unset fields fall back to template defaults."""
    user_input: str
    style: Optional[Union[ArtStyle, str]] = None
    mood: Optional[Union[Mood, str]] = None
    age: Optional[int] = None
    detail_level: Optional[Union[DetailLevel, str]] = None
    aspect_ratio: Optional[Union[AspectRatio, str]] = None


@dataclass(frozen=True)
class ResolvedPromptOptions:
    user_input: str
    style: ArtStyle
    mood: Mood
    age: int
    detail_level: DetailLevel
    aspect_ratio: AspectRatio


FALLBACK_DEFAULTS = {
    "style": ArtStyle.WATERCOLOR,
    "mood": Mood.HAPPY,
    "age": 5,
    "detail_level": DetailLevel.NORMAL,
    "aspect_ratio": AspectRatio.STANDARD,
}


def validate_prompt_options(options: DiaryPromptOptions) -> bool:
    """Return False if the input is blank or the age is outside 1-18."""
    if not options.user_input or not options.user_input.strip():
        return False
    if options.age is not None and not (MIN_AGE <= options.age <= MAX_AGE):
        return False
    return True


class PromptBuilder:
    """
    Builds prompts for one set of options.

    Args:
        options: Prompt request
        template: Template whose default parameters fill unset options

    Raises:
        ValueError: If a style, mood, detail level or aspect ratio is not
            one of the known values.
    """

    def __init__(self, options: DiaryPromptOptions, template: Optional[PromptTemplate] = None):
        self.template = template or get_template(DEFAULT_TEMPLATE)
        self.options = self._resolve(options, self.template)

    @staticmethod
    def _resolve(options: DiaryPromptOptions, template: PromptTemplate) -> ResolvedPromptOptions:
        def pick(name):
            value = getattr(options, name)
            if value is None:
                value = template.default_parameters.get(name)
            if value is None:
                value = FALLBACK_DEFAULTS[name]
            return value

        return ResolvedPromptOptions(
            user_input=options.user_input,
            style=ArtStyle(pick("style")),
            mood=Mood(pick("mood")),
            age=int(pick("age")),
            detail_level=DetailLevel(pick("detail_level")),
            aspect_ratio=AspectRatio(pick("aspect_ratio")),
        )

    def style_description(self) -> str:
        return STYLE_DESCRIPTIONS[self.options.style]

    def mood_description(self) -> str:
        return MOOD_DESCRIPTIONS[self.options.mood]

    def age_instructions(self) -> str:
        detail = DETAIL_DESCRIPTIONS[self.options.detail_level]
        return f"{age_expression(self.options.age)}、{detail}。"

    def aspect_ratio_instruction(self) -> str:
        return ASPECT_RATIO_DESCRIPTIONS[self.options.aspect_ratio]

    def build(self) -> str:
        """Render the template and append the age, detail and framing clause."""
        prompt = self.template.template.format(
            user_input=self.options.user_input,
            style_description=self.style_description(),
            mood_description=self.mood_description(),
        )
        technical = "、".join([self.age_instructions(), self.aspect_ratio_instruction()])
        return f"{prompt} {technical}"


def build_diary_prompt(options: DiaryPromptOptions, template_name: Optional[str] = None) -> str:
    """
    Build a diary illustration prompt.

    Args:
        options: Prompt request
        template_name: Built-in template name (``standard`` if omitted)

    Returns:
        The prompt string.

    Raises:
        ValueError: For an unknown template or option value.
    """
    template = get_template(template_name or DEFAULT_TEMPLATE)
    return PromptBuilder(options, template).build()
