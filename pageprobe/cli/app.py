"""Typer application entry point for pageprobe CLI."""

import typer

from pageprobe.cli.commands import analyze as analyze_command

app = typer.Typer(no_args_is_help=True, name="pageprobe")

# Registered as a direct command (not a sub-typer) so the URL parses as an argument
app.command(name="analyze", help="Fetch a page, analyze it and report broken links")(
    analyze_command.analyze_command
)


@app.callback()
def main() -> None:
    """Single-page crawl and analysis."""


if __name__ == "__main__":
    app()
