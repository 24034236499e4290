from __future__ import annotations

from typing import Optional

import typer

from .config import load_config
from .errors import AssetPipeError
from .logging import get_logger
from .registry import TaskName, build_registry, run_task


app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Static asset build: styles, scripts, images, fonts, watch and serve.",
)
log = get_logger("cli")


def _execute(name: TaskName, config_path: Optional[str], production: bool) -> None:
    try:
        config = load_config(config_path, production=production)
        run_task(name, config)
    except AssetPipeError as e:
        log.error("%s", e)
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    production: bool = typer.Option(False, "--production", help="Minify and skip source maps"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
):
    """Run the default build when no task is given."""
    ctx.obj = {"production": production, "config": config}
    if ctx.invoked_subcommand is None:
        _execute(TaskName.DEFAULT, config, production)


@app.command("list")
def list_tasks():
    """List registered tasks."""
    typer.echo("Registered tasks:")
    for name, spec in build_registry().items():
        typer.echo(f"- {name.value}: {spec.description}")


def _make_command(name: TaskName):
    def command(
        ctx: typer.Context,
        production: bool = typer.Option(False, "--production", help="Minify and skip source maps"),
        config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    ):
        opts = ctx.obj or {}
        _execute(
            name,
            config or opts.get("config"),
            production or bool(opts.get("production")),
        )

    command.__doc__ = build_registry()[name].description
    return command


for _name in TaskName:
    app.command(_name.value)(_make_command(_name))


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
