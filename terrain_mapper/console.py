#!/usr/bin/env python3
"""
Console Output Utilities

Provides consistent, colorful console output formatting across the terrain pipeline.
Uses the rich library for terminal output with colors, progress spinners, and tables.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.progress import Progress
from rich import box
from typing import Dict, Optional, Any, Sequence
from contextlib import contextmanager

# Create global console instance
console = Console()

# Color scheme
COLORS = {
    "primary": "cyan",
    "secondary": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "white",
    "accent": "magenta",
    "muted": "dim white"
}


class ConsoleOutput:
    """Centralized console output manager with consistent styling."""

    def __init__(self, rich_console: Optional[Console] = None):
        self.console = rich_console or console

    def header(self, title: str, subtitle: Optional[str] = None) -> None:
        """Print a styled header section."""
        content = f"[bold {COLORS['primary']}]{title}[/bold {COLORS['primary']}]"
        if subtitle:
            content += f"\n[{COLORS['muted']}]{subtitle}[/{COLORS['muted']}]"

        panel = Panel(
            content,
            border_style=COLORS['primary'],
            box=box.DOUBLE,
            padding=(1, 2)
        )
        self.console.print(panel)

    def subheader(self, title: str) -> None:
        """Print a styled subheader."""
        self.console.print(f"\n[bold {COLORS['secondary']}]▶ {title}[/bold {COLORS['secondary']}]")

    def success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[{COLORS['success']}]✓[/{COLORS['success']}] {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[{COLORS['warning']}]⚠[/{COLORS['warning']}] {message}")

    def error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[{COLORS['error']}]✗[/{COLORS['error']}] {message}")

    def info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[{COLORS['info']}]ℹ[/{COLORS['info']}] {message}")

    def progress_info(self, message: str) -> None:
        """Print a progress-related info message."""
        self.console.print(f"[{COLORS['accent']}]⟳[/{COLORS['accent']}] {message}")

    def stats_table(self, title: str, data: Dict[str, Any]) -> None:
        """Display statistics in a formatted table."""
        table = Table(title=f"[bold {COLORS['primary']}]{title}[/bold {COLORS['primary']}]",
                      show_header=True, header_style=f"bold {COLORS['secondary']}")
        table.add_column("Metric", style=COLORS['info'])
        table.add_column("Value", style=f"bold {COLORS['success']}")

        for key, value in data.items():
            if isinstance(value, bool):
                formatted_value = "yes" if value else "no"
            elif isinstance(value, float):
                if abs(value) >= 1000:
                    formatted_value = f"{value:,.1f}"
                elif value != 0 and abs(value) < 0.01:
                    formatted_value = f"{value:.6f}"
                else:
                    formatted_value = f"{value:.2f}"
            elif isinstance(value, int):
                formatted_value = f"{value:,}"
            else:
                formatted_value = str(value)
            table.add_row(key, formatted_value)

        self.console.print(table)

    def tile_plan(self, bbox, zoom: int, tiles: Sequence[Any]) -> None:
        """Display the zoom level and tile range chosen for a bounding box."""
        min_lon, min_lat, max_lon, max_lat = bbox
        xs = sorted({tile.x for tile in tiles})
        ys = sorted({tile.y for tile in tiles})

        plan = {
            "Longitude Range": f"{min_lon:.4f}° to {max_lon:.4f}°",
            "Latitude Range": f"{min_lat:.4f}° to {max_lat:.4f}°",
            "Zoom": zoom,
            "Tile Columns": f"{xs[0]}-{xs[-1]} ({len(xs)})" if xs else "-",
            "Tile Rows": f"{ys[0]}-{ys[-1]} ({len(ys)})" if ys else "-",
            "Total Tiles": len(tiles),
        }
        self.stats_table("Tile Plan", plan)

    def elevation_stats(self, shape, min_elevation: float, max_elevation: float,
                        extra: Optional[Dict[str, Any]] = None) -> None:
        """Display elevation range information for a decoded height field."""
        stats = {
            "Grid Size": f"{shape[1]} × {shape[0]}",
            "Total Data Points": f"{shape[0] * shape[1]:,}",
            "Min Elevation": f"{min_elevation:.1f}m",
            "Max Elevation": f"{max_elevation:.1f}m",
            "Elevation Range": f"{max_elevation - min_elevation:.1f}m",
        }
        if extra:
            stats.update(extra)

        self.stats_table("Elevation", stats)

    @contextmanager
    def progress_context(self, description: str):
        """Context manager for progress operations."""
        with Progress(console=self.console, transient=True) as progress:
            task = progress.add_task(f"[{COLORS['accent']}]{description}[/{COLORS['accent']}]", total=None)
            yield progress, task
            progress.update(task, completed=100)

    def print_section_divider(self) -> None:
        """Print a visual section divider."""
        self.console.print(f"\n[{COLORS['muted']}]{'─' * 60}[/{COLORS['muted']}]\n")


# Global console output instance
output = ConsoleOutput()
