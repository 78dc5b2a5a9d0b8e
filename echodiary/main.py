"""
Command-line interface for echoDiary.

Wires voice recording, transcription, prompt building, image generation
and diary storage together behind a click command group.
"""

import asyncio
import logging
import sys
from datetime import date
from typing import Optional

import click

from . import __version__
from .audio.recorder import MIN_AUDIO_BYTES, AudioRecorder, AudioRecorderError, save_recording
from .audio.transcriber import TranscriptionError, WhisperTranscriber
from .config import Settings, configure_logging, load_settings
from .imaging.client import GenerateImageResult, ImageClientConfig, generate_image
from .imaging.errors import ApiError
from .prompts.builder import MAX_AGE, MIN_AGE, DiaryPromptOptions, PromptBuilder, validate_prompt_options
from .prompts.experiment import ExperimentConfig, PromptExperiment
from .prompts.templates import (
    DEFAULT_TEMPLATE,
    PROMPT_TEMPLATES,
    ArtStyle,
    Mood,
    available_templates,
    get_template,
)
from .storage.models import SORT_FIELDS, SORT_ORDERS, DiaryEntry, DiaryFilter, DiarySort, NewEntry
from .storage.store import DATE_PATTERN, DiaryStore, StorageError
from .ui.terminal import TerminalUI

logger = logging.getLogger(__name__)

STYLE_CHOICES = [style.value for style in ArtStyle]
MOOD_CHOICES = [mood.value for mood in Mood]
INVALID_OPTIONS_MESSAGE = "Invalid prompt options: text must not be empty and age must be between 1 and 18"


class DiaryApp:
    """
    Coordinates the components behind each CLI command.

    Args:
        settings: Resolved settings (read from the environment if None)
        ui: Terminal renderer
        verbose: Log every API attempt
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ui: Optional[TerminalUI] = None,
        verbose: bool = False
    ):
        self.settings = settings or load_settings()
        self.ui = ui or TerminalUI()
        self.verbose = verbose
        self.store = DiaryStore(self.settings.storage_path)
        self.recorder = AudioRecorder()
        self.transcriber = WhisperTranscriber(
            api_key=self.settings.openai_api_key,
            model=self.settings.transcription_model,
            language=self.settings.language,
        )

    def image_config(self) -> ImageClientConfig:
        return ImageClientConfig(
            api_key=self.settings.gemini_api_key or "",
            model=self.settings.image_model,
            enable_logging=self.verbose,
        )

    def fail(self, message: str) -> None:
        """Report an error and exit with status 1."""
        self.ui.show_error(message)
        sys.exit(1)

    async def illustrate(self, builder: PromptBuilder) -> GenerateImageResult:
        """Generate and save the illustration for a built prompt."""
        prompt = builder.build()
        logger.debug(f"Prompt: {prompt}")
        return await generate_image(
            prompt,
            self.image_config(),
            self.settings.image_dir,
            aspect_ratio=builder.options.aspect_ratio.value,
        )

    def save_entry(self, text: str, builder: PromptBuilder, result: GenerateImageResult) -> DiaryEntry:
        return self.store.save(NewEntry(
            date=date.today().isoformat(),
            audio_text=text,
            image_path=str(result.image_path),
            prompt=result.prompt,
            style=builder.options.style.value,
            mood=builder.options.mood.value,
        ))

    async def run_record_session(
        self,
        duration: int,
        options: DiaryPromptOptions,
        template_name: str,
        save: bool
    ) -> bool:
        """
        Record, transcribe, let the user edit, then illustrate and save.

        Returns:
            True on success, False if any step failed (already reported).
        """
        self.ui.show_banner("音声日記録音")

        try:
            self.ui.show_recording_start(duration)
            audio_data = await self.recorder.record(duration)
        except AudioRecorderError as e:
            self.ui.show_error(f"Recording failed: {e}")
            return False

        if len(audio_data) <= MIN_AUDIO_BYTES:
            self.ui.show_error("No audio was recorded.")
            return False

        audio_path = save_recording(audio_data, self.settings.audio_dir)

        try:
            with self.ui.progress("🤖 Transcribing with Whisper..."):
                transcription = await self.transcriber.transcribe(audio_data)
        except TranscriptionError as e:
            self.ui.show_error(str(e))
            return False

        if not transcription.text:
            self.ui.show_error("No speech detected in recording.")
            return False

        self.ui.show_transcription(transcription.text)
        final_text = self.ui.prompt_edit_text(transcription.text)

        self.ui.show_success("Diary text ready")
        self.ui.show_info(f"Text: {final_text}")
        self.ui.show_info(f"Audio file: {audio_path}")

        if not save:
            return True

        if not self.settings.gemini_api_key:
            self.ui.show_warning("GEMINI_API_KEY is not set; the entry was not illustrated or saved.")
            return True

        options.user_input = final_text
        if not validate_prompt_options(options):
            self.ui.show_error(INVALID_OPTIONS_MESSAGE)
            return False

        builder = PromptBuilder(options, get_template(template_name))
        try:
            with self.ui.progress("🎨 Drawing your picture..."):
                result = await self.illustrate(builder)
        except ApiError as e:
            self.ui.show_api_error(e)
            return False
        except OSError as e:
            self.ui.show_error(f"Could not save the picture: {e}")
            return False

        self.ui.show_generation_result(result)
        try:
            entry = self.save_entry(final_text, builder, result)
        except StorageError as e:
            self.ui.show_error(str(e))
            return False
        self.ui.show_success(f"Diary entry saved: {entry.id}")
        return True


def _style_option(func):
    return click.option("--style", "-s", type=click.Choice(STYLE_CHOICES), help="Art style")(func)


def _mood_option(func):
    return click.option("--mood", "-m", type=click.Choice(MOOD_CHOICES), help="Mood of the picture")(func)


def _age_option(func):
    return click.option("--age", "-a", type=click.IntRange(MIN_AGE, MAX_AGE), help="Age of the child (1-18)")(func)


def _validate_date(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[str]:
    if value is not None and not DATE_PATTERN.fullmatch(value):
        raise click.BadParameter(f"{value!r} is not a YYYY-MM-DD date")
    return value


def _template_option(func):
    return click.option(
        "--template", "-t",
        type=click.Choice(list(PROMPT_TEMPLATES)),
        default=DEFAULT_TEMPLATE,
        show_default=True,
        help="Prompt template",
    )(func)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    echoDiary - a voice picture diary for children.

    Speak about your day, and echoDiary writes it down and draws a picture.
    """
    configure_logging(verbose)
    ctx.obj = DiaryApp(verbose=verbose)


@cli.command()
@click.option("--duration", "-d", type=click.IntRange(min=1), default=10, show_default=True,
              help="Recording duration in seconds")
@_style_option
@_mood_option
@_age_option
@_template_option
@click.option("--save/--no-save", default=True, show_default=True,
              help="Illustrate and save the entry after recording")
@click.pass_obj
def record(app: DiaryApp, duration: int, style: Optional[str], mood: Optional[str],
           age: Optional[int], template: str, save: bool) -> None:
    """Record a new diary entry by voice."""
    if not app.settings.openai_api_key:
        app.ui.show_error("OPENAI_API_KEY is not set")
        app.ui.show_info("Set it in config/.env or export OPENAI_API_KEY=...")
        sys.exit(1)

    options = DiaryPromptOptions(user_input="", style=style, mood=mood, age=age)
    ok = asyncio.run(app.run_record_session(duration, options, template, save))
    if not ok:
        sys.exit(1)


@cli.command("list")
@click.option("--search", "search_text", help="Search text in the diary text and prompt")
@click.option("--date", "on_date", callback=_validate_date, help="Only entries of this day (YYYY-MM-DD)")
@click.option("--from", "start_date", callback=_validate_date, help="Earliest date (YYYY-MM-DD)")
@click.option("--to", "end_date", callback=_validate_date, help="Latest date (YYYY-MM-DD)")
@_style_option
@_mood_option
@click.option("--sort", "sort_field", type=click.Choice(SORT_FIELDS), default="date", show_default=True)
@click.option("--order", type=click.Choice(SORT_ORDERS), default="desc", show_default=True)
@click.option("--limit", type=click.IntRange(min=1), help="Maximum number of entries")
@click.pass_obj
def list_entries(app: DiaryApp, search_text: Optional[str], on_date: Optional[str],
                 start_date: Optional[str], end_date: Optional[str], style: Optional[str],
                 mood: Optional[str], sort_field: str, order: str, limit: Optional[int]) -> None:
    """List diary entries."""
    if on_date:
        start_date = end_date = on_date

    diary_filter = DiaryFilter(
        start_date=start_date,
        end_date=end_date,
        search_text=search_text,
        style=style,
        mood=mood,
    )

    try:
        entries = app.store.list(diary_filter, DiarySort(field=sort_field, order=order), limit)
        stats = app.store.stats()
    except StorageError as e:
        app.fail(str(e))

    if entries:
        app.ui.show_entries(entries)
    else:
        app.ui.show_warning("No diary entries found.")
    app.ui.show_stats(stats)


@cli.command()
@click.argument("entry_id")
@click.pass_obj
def show(app: DiaryApp, entry_id: str) -> None:
    """Show one diary entry."""
    try:
        entry = app.store.get(entry_id)
    except StorageError as e:
        app.fail(str(e))

    if entry is None:
        app.fail(f"Diary entry not found: {entry_id}")
    app.ui.show_entry(entry)


@cli.command()
@click.argument("entry_id")
@click.option("--text", "audio_text", help="New diary text")
@click.option("--date", "entry_date", help="New date (YYYY-MM-DD)")
@_style_option
@_mood_option
@click.pass_obj
def edit(app: DiaryApp, entry_id: str, audio_text: Optional[str], entry_date: Optional[str],
         style: Optional[str], mood: Optional[str]) -> None:
    """Change fields of a diary entry."""
    changes = {
        name: value
        for name, value in (("audio_text", audio_text), ("date", entry_date), ("style", style), ("mood", mood))
        if value is not None
    }
    if not changes:
        app.fail("Nothing to change. Use --text, --date, --style or --mood.")

    try:
        entry = app.store.update(entry_id, **changes)
    except StorageError as e:
        app.fail(str(e))

    if entry is None:
        app.fail(f"Diary entry not found: {entry_id}")
    app.ui.show_success(f"Updated diary entry {entry_id}")
    app.ui.show_entry(entry)


@cli.command()
@click.argument("entry_id")
@click.confirmation_option(prompt="Delete this diary entry?")
@click.pass_obj
def delete(app: DiaryApp, entry_id: str) -> None:
    """Delete a diary entry."""
    try:
        removed = app.store.delete(entry_id)
    except StorageError as e:
        app.fail(str(e))

    if not removed:
        app.fail(f"Diary entry not found: {entry_id}")
    app.ui.show_success(f"Deleted diary entry {entry_id}")


@cli.command()
@click.confirmation_option(prompt="Sort all entries by date?")
@click.pass_obj
def reindex(app: DiaryApp) -> None:
    """Sort the stored entries by date."""
    try:
        count = app.store.rebuild_index()
    except StorageError as e:
        app.fail(str(e))
    app.ui.show_success(f"Rebuilt index for {count} entries")


@cli.command()
@click.argument("text")
@_style_option
@_mood_option
@_age_option
@_template_option
@click.option("--save", is_flag=True, help="Also save the text and picture as a diary entry")
@click.pass_obj
def generate(app: DiaryApp, text: str, style: Optional[str], mood: Optional[str],
             age: Optional[int], template: str, save: bool) -> None:
    """Generate a picture from TEXT."""
    if not app.settings.gemini_api_key:
        app.ui.show_error("GEMINI_API_KEY is not set")
        app.ui.show_info("Set it in config/.env or export GEMINI_API_KEY=...")
        sys.exit(1)

    options = DiaryPromptOptions(user_input=text, style=style, mood=mood, age=age)
    if not validate_prompt_options(options):
        app.fail(INVALID_OPTIONS_MESSAGE)

    builder = PromptBuilder(options, get_template(template))
    app.ui.show_info(f"🎨 Generating image for: {text}")

    try:
        with app.ui.progress("Drawing..."):
            result = asyncio.run(app.illustrate(builder))
    except ApiError as e:
        app.ui.show_api_error(e)
        sys.exit(1)
    except OSError as e:
        app.fail(f"Could not save the picture: {e}")

    app.ui.show_generation_result(result)

    if save:
        try:
            entry = app.save_entry(text, builder, result)
        except StorageError as e:
            app.fail(str(e))
        app.ui.show_success(f"Diary entry saved: {entry.id}")


@cli.command("prompts:test")
@click.argument("text")
@_template_option
@_style_option
@_mood_option
@_age_option
@click.option("--ab", is_flag=True, help="Generate A/B variations across art styles")
@click.option("--max-variations", type=click.IntRange(min=0), default=3, show_default=True,
              help="Maximum number of variations with --ab")
@click.pass_obj
def prompts_test(app: DiaryApp, text: str, template: str, style: Optional[str],
                 mood: Optional[str], age: Optional[int], ab: bool, max_variations: int) -> None:
    """Build the prompt for TEXT without calling the image API."""
    options = DiaryPromptOptions(user_input=text, style=style, mood=mood, age=age)
    if not validate_prompt_options(options):
        app.fail(INVALID_OPTIONS_MESSAGE)

    prompt_template = get_template(template)
    builder = PromptBuilder(options, prompt_template)

    if not ab:
        app.ui.show_prompt(builder.build(), prompt_template)
        return

    base_style = builder.options.style
    experiment = PromptExperiment(ExperimentConfig(
        base=options,
        variations=[{"style": s} for s in ArtStyle if s != base_style],
        max_variations=max_variations,
        template_name=template,
    ))
    app.ui.show_experiment(experiment.generate_variations())


@cli.command()
@click.pass_obj
def templates(app: DiaryApp) -> None:
    """List the built-in prompt templates."""
    app.ui.show_templates(available_templates())


def main() -> None:
    cli(prog_name="echodiary")


if __name__ == "__main__":
    main()
