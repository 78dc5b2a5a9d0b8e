"""
Rich-based terminal output for echoDiary.

All user-facing rendering lives here so the CLI commands stay thin.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from ..imaging.client import GenerateImageResult
from ..imaging.errors import ApiError
from ..prompts.experiment import ExperimentResult
from ..prompts.templates import PromptTemplate
from ..storage.models import DiaryEntry, DiaryStats


class TerminalUI:
    """Renders diary entries, prompts and API results to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def show_banner(self, subtitle: str) -> None:
        title = Text("🎤 echoDiary", style="bold magenta")
        title.append(f"\n{subtitle}", style="white")
        self.console.print(Panel(title, border_style="cyan", padding=(0, 2)))

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]❌ {escape(message)}[/red]")

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠️  {escape(message)}[/yellow]")

    def show_success(self, message: str) -> None:
        self.console.print(f"[green]✅ {escape(message)}[/green]")

    def show_info(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    @contextmanager
    def progress(self, message: str) -> Iterator[Progress]:
        """Spinner with elapsed time while a slow operation runs."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        ) as progress:
            progress.add_task(message, total=None)
            yield progress

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def show_recording_start(self, duration: float) -> None:
        self.console.print(Panel(
            Text("🔴 RECORDING", style="bold red")
            + Text(f"\n\nSpeak now... ({duration:g} seconds)", style="white"),
            title="Recording Audio",
            border_style="red",
            padding=(1, 2),
        ))

    def show_transcription(self, text: str) -> None:
        self.console.print(Panel(
            escape(text),
            title="📝 Transcription",
            border_style="blue",
            padding=(1, 2),
        ))

    def prompt_edit_text(self, text: str) -> str:
        """
        Let the user replace the transcribed text.

        Returns:
            The new text, or the original when the input is left empty.
        """
        edited = Prompt.ask(
            "Edit the text (press Enter to keep it)",
            console=self.console,
            default="",
            show_default=False,
        )
        edited = edited.strip()
        return edited if edited else text

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def show_entries(self, entries: List[DiaryEntry]) -> None:
        table = Table(title=f"📖 Diary entries ({len(entries)})", box=box.ROUNDED, show_lines=True)
        table.add_column("Date", style="cyan", no_wrap=True)
        table.add_column("Text", style="white")
        table.add_column("Style", style="magenta")
        table.add_column("Mood", style="yellow")
        table.add_column("ID", style="dim", overflow="fold")

        for entry in entries:
            table.add_row(
                entry.date,
                escape(entry.audio_text),
                entry.style or "-",
                entry.mood or "-",
                entry.id,
            )

        self.console.print(table)

    def show_entry(self, entry: DiaryEntry) -> None:
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Field", style="bold cyan")
        table.add_column("Value", overflow="fold")

        table.add_row("ID", entry.id)
        table.add_row("Date", entry.date)
        table.add_row("Text", escape(entry.audio_text))
        table.add_row("Image", escape(entry.image_path))
        table.add_row("Prompt", escape(entry.prompt))
        table.add_row("Style", entry.style or "-")
        table.add_row("Mood", entry.mood or "-")
        table.add_row("Created", entry.created_at)
        table.add_row("Updated", entry.updated_at or "-")

        self.console.print(Panel(table, title="📔 Diary entry", border_style="cyan"))

    def show_stats(self, stats: DiaryStats) -> None:
        lines = [f"Total entries: {stats.total_entries}"]
        if stats.date_range:
            lines.append(f"Date range: {stats.date_range.earliest} → {stats.date_range.latest}")
        if stats.style_counts:
            styles = ", ".join(f"{style}: {count}" for style, count in sorted(stats.style_counts.items()))
            lines.append(f"Styles: {styles}")
        self.console.print(Panel("\n".join(lines), title="📊 Stats", border_style="green"))

    # ------------------------------------------------------------------
    # Images and prompts
    # ------------------------------------------------------------------

    def show_generation_result(self, result: GenerateImageResult) -> None:
        self.console.print("🎨 [bold green]Image generated[/bold green]")
        self.console.print(f"   Path: {escape(str(result.image_path))}")
        self.console.print(f"   Model: {escape(result.model_used)}")
        self.console.print(f"   Time: {result.generation_time_ms}ms")

    def show_api_error(self, error: ApiError) -> None:
        self.console.print(f"[red]❌ Image generation failed: {escape(error.message)}[/red]")
        self.console.print(f"   Code: {error.code}")
        self.console.print(f"   Retryable: {'yes' if error.retryable else 'no'}")

    def show_prompt(self, prompt: str, template: PromptTemplate) -> None:
        self.console.print(f"[bold]Template:[/bold] {template.name} - {escape(template.description)}")
        self.console.print(Panel(escape(prompt), title="🖌️  Prompt", border_style="magenta"))

    def show_experiment(self, result: ExperimentResult) -> None:
        self.console.print(f"[bold]Experiment:[/bold] {result.experiment_id}")
        self.console.print(f"[bold]Timestamp:[/bold] {result.timestamp.isoformat(timespec='seconds')}")
        for variation in result.variations:
            params = variation.parameters
            label = ", ".join(
                f"{name}={_plain(getattr(params, name))}"
                for name in ("style", "mood", "age", "detail_level", "aspect_ratio")
                if getattr(params, name) is not None
            )
            self.console.print(Panel(
                escape(variation.prompt),
                title=escape(f"[{variation.version}] {label}".strip()),
                border_style="blue",
            ))

    def show_templates(self, templates: Dict[str, PromptTemplate]) -> None:
        table = Table(title="Prompt templates", box=box.ROUNDED)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Description")
        table.add_column("Defaults", style="dim")

        for name, template in templates.items():
            defaults = ", ".join(f"{k}={_plain(v)}" for k, v in template.default_parameters.items())
            table.add_row(name, escape(template.description), defaults)

        self.console.print(table)


def _plain(value) -> str:
    return str(getattr(value, "value", value))
