"""
Prompt vocabulary for diary illustrations.

Closed sets of art styles, moods, detail levels and aspect ratios, the
phrases each one maps to, and the built-in prompt templates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ArtStyle(str, Enum):
    WATERCOLOR = "watercolor"
    CRAYON = "crayon"
    PICTURE_BOOK = "picture-book"
    ANIME = "anime"
    PASTEL = "pastel"


class Mood(str, Enum):
    HAPPY = "happy"
    EXCITING = "exciting"
    CALM = "calm"
    NOSTALGIC = "nostalgic"
    WARM = "warm"


class DetailLevel(str, Enum):
    SIMPLE = "simple"
    NORMAL = "normal"
    DETAILED = "detailed"


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    STANDARD = "4:3"
    WIDE = "16:9"


STYLE_DESCRIPTIONS: Dict[ArtStyle, str] = {
    ArtStyle.WATERCOLOR: "水彩画風のやわらかいタッチ",
    ArtStyle.CRAYON: "クレヨンで描いたような無邪気なタッチ",
    ArtStyle.PICTURE_BOOK: "絵本風の温かみのあるイラスト",
    ArtStyle.ANIME: "アニメ風のきらきらした表現",
    ArtStyle.PASTEL: "パステルカラーの柔らかい色使い",
}

MOOD_DESCRIPTIONS: Dict[Mood, str] = {
    Mood.HAPPY: "楽しそうな",
    Mood.EXCITING: "わくわくする",
    Mood.CALM: "穏やかな",
    Mood.NOSTALGIC: "懐かしい",
    Mood.WARM: "温かみのある",
}

DETAIL_DESCRIPTIONS: Dict[DetailLevel, str] = {
    DetailLevel.SIMPLE: "シンプルで分かりやすい構図",
    DetailLevel.NORMAL: "バランスの取れた構図",
    DetailLevel.DETAILED: "繊細なディテールまで表現",
}

ASPECT_RATIO_DESCRIPTIONS: Dict[AspectRatio, str] = {
    AspectRatio.SQUARE: "正方形の構図",
    AspectRatio.STANDARD: "4:3の横長の構図",
    AspectRatio.WIDE: "16:9のワイドスクリーン構図",
}


def age_expression(age: int) -> str:
    """Phrase describing the target age band."""
    if age <= 3:
        return "幼児向けのシンプルで分かりやすい表現"
    if age <= 6:
        return "未就学児向けの親しみやすい表現"
    if age <= 9:
        return "小学生向けの楽しい表現"
    return "年齢に応じた適切な表現"


@dataclass(frozen=True)
class PromptTemplate:
    """
    A named prompt pattern.

    ``template`` is a ``str.format`` pattern with the placeholders
    ``{user_input}``, ``{style_description}`` and ``{mood_description}``;
    a template may use any subset of them.
    """
    name: str
    description: str
    template: str
    default_parameters: Dict[str, Any] = field(default_factory=dict)


DEFAULT_TEMPLATE = "standard"

PROMPT_TEMPLATES: Dict[str, PromptTemplate] = {
    # Younger children, 3-5
    "simple": PromptTemplate(
        name="simple",
        description="Simple illustration for young children",
        template="子供の絵日記のイラスト：{user_input}。明るくて親しみやすいスタイルで。",
        default_parameters={
            "age": 4,
            "detail_level": DetailLevel.SIMPLE,
            "style": ArtStyle.CRAYON,
            "mood": Mood.HAPPY,
        },
    ),
    # Elementary school, 6-8
    "standard": PromptTemplate(
        name="standard",
        description="Standard illustration for elementary school children",
        template="絵日記風のイラスト：{user_input}。{style_description}で{mood_description}雰囲気を表現。",
        default_parameters={
            "age": 7,
            "detail_level": DetailLevel.NORMAL,
            "style": ArtStyle.WATERCOLOR,
            "mood": Mood.HAPPY,
        },
    ),
    # Older children, 9-12
    "detailed": PromptTemplate(
        name="detailed",
        description="Detailed illustration with artistic expression",
        template=(
            "芸術的な絵日記イラスト：{user_input}。{style_description}の画風で、"
            "{mood_description}雰囲気を繊細に表現。子供の心象を大切にした温かみのある表現。"
        ),
        default_parameters={
            "age": 10,
            "detail_level": DetailLevel.DETAILED,
            "style": ArtStyle.WATERCOLOR,
            "mood": Mood.WARM,
        },
    ),
    "picture-book": PromptTemplate(
        name="picture-book",
        description="Picture book style illustration",
        template=(
            "絵本のイラスト：{user_input}。{style_description}で描かれた、"
            "子供が見ても楽しくなるような表現。{mood_description}。"
        ),
        default_parameters={
            "age": 6,
            "detail_level": DetailLevel.NORMAL,
            "style": ArtStyle.PICTURE_BOOK,
            "mood": Mood.EXCITING,
        },
    ),
}


def get_template(name: str) -> PromptTemplate:
    """
    Look up a built-in template.

    Raises:
        ValueError: If no template has that name.
    """
    try:
        return PROMPT_TEMPLATES[name]
    except KeyError:
        available = ", ".join(PROMPT_TEMPLATES)
        raise ValueError(f"Unknown template '{name}' (available: {available})") from None


def available_templates() -> Dict[str, PromptTemplate]:
    return dict(PROMPT_TEMPLATES)
