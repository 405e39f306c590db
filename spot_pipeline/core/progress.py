"""
Progress bar for spot-pipeline using the Rich library.

Usage:
    from spot_pipeline.core.progress import TrackProgressBar

    with TrackProgressBar(total=len(tracks)) as progress:
        for track in tracks:
            progress.set_current(f"{track.artist} - {track.name}")
            ...
            progress.update(success=True)
"""

from typing import Optional

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class SizedTextColumn(ProgressColumn):
    """
    Text column truncated with an ellipsis past a fixed width.
    """

    def __init__(
        self,
        text_format: str,
        style: StyleType = "none",
        justify: JustifyMethod = "left",
        markup: bool = True,
        overflow: Optional[OverflowMethod] = None,
        width: int = 20,
    ) -> None:
        self.text_format = text_format
        self.justify: JustifyMethod = justify
        self.style = style
        self.markup = markup
        self.overflow: Optional[OverflowMethod] = overflow
        self.width = width
        super().__init__()

    def render(self, task: Task) -> Text:
        """Render the column."""
        _text = self.text_format.format(task=task)
        if self.markup:
            text = Text.from_markup(_text, style=self.style, justify=self.justify)
        else:
            text = Text(_text, style=self.style, justify=self.justify)

        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class TrackProgressBar:
    """
    Progress bar for processing the tracks of one playlist.

    Displays:
    - Description (e.g., "Downloading")
    - Status: ✓ completed, ✗ failed
    - The track currently being processed
    - Progress bar and percentage

    Example:
        Downloading     ✓ 12  ✗ 1    Queen - Bohemian Rh…  ━━━━━━━━━━━  52%
    """

    def __init__(self, total: int, description: str = "Downloading", status_width: int = 20):
        self.total = total
        self.description = description
        self.completed = 0
        self.succeeded = 0
        self.failed = 0
        self.current = ""

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            SizedTextColumn(
                "[white]{task.description}",
                overflow="ellipsis",
                width=15,
            ),
            SizedTextColumn(
                "{task.fields[status]}",
                width=status_width,
                style="white",
            ),
            SizedTextColumn(
                "{task.fields[current]}",
                overflow="ellipsis",
                width=30,
                markup=False,
            ),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "TrackProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
                current=self.current,
            )
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def set_current(self, label: str) -> None:
        """Show which track is being processed."""
        self.current = label
        self._update_progress()

    def update(self, success: bool) -> None:
        """Count one finished track."""
        self.completed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        self._update_progress()

    def _get_status_text(self) -> str:
        return f"[green]✓ {self.succeeded}[/green]  [red]✗ {self.failed}[/red]"

    def _update_progress(self) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
                current=self.current,
            )
