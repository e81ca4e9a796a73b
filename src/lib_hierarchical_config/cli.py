"""CLI adapter for ``lib_hierarchical_config`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators inspect configuration files the way applications see them:
combined, addressed with dotted keys, and with ``${...}`` variables expanded.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata.
* :func:`cli_get` / :func:`cli_list` – scalar and list access to one key.
* :func:`cli_interpolate` – expands variables in free text.
* :func:`cli_dump` / :func:`cli_keys` – whole-configuration views.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. It only calls the composition root
(:func:`lib_hierarchical_config.core.read_config`) and the public methods of
:class:`~lib_hierarchical_config.core.HierarchicalConfiguration`.
``lib_cli_exit_tools`` centralises the exit code strategy.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .core import COMBINERS, HierarchicalConfiguration, read_config
from .domain.errors import MissingKeyError

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
_DIST_NAME: Final[str] = "lib_hierarchical_config"


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when metadata is missing."""

    try:
        return metadata.version(_DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _source_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the ``--file``/``--set``/``--combiner`` options shared by the data commands."""

    command = click.option(
        "--combiner",
        type=click.Choice(sorted(COMBINERS), case_sensitive=False),
        default="override",
        show_default=True,
        help="How several files are combined",
    )(command)
    command = click.option(
        "--set",
        "assignments",
        multiple=True,
        metavar="KEY=VALUE",
        help="Set a property after loading (repeatable)",
    )(command)
    command = click.option(
        "--file",
        "files",
        multiple=True,
        type=click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=False, readable=True),
        help="TOML/JSON/YAML file to load; later files take precedence (repeatable)",
    )(command)
    return command


def _load(files: Sequence[Path], assignments: Sequence[str], combiner: str) -> HierarchicalConfiguration:
    """Build the configuration described by the shared source options."""

    config = read_config(*(str(path) for path in files), combiner=combiner.lower())
    for assignment in assignments:
        key, separator, value = assignment.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got {assignment!r}", param_hint="--set")
        config.set_property(key.strip(), value)
    return config


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


@click.group(
    help="Hierarchical configuration with variable interpolation",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=_DIST_NAME,
    message="lib_hierarchical_config version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata(_DIST_NAME)
    except metadata.PackageNotFoundError:
        click.echo(f"{_DIST_NAME} (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', _DIST_NAME)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.11')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")
    for entry in meta.get_all("Project-URL") or []:
        click.echo(f"  {entry}")


@cli.command("get", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("key")
@click.option("--default", "default", default=None, help="Value printed when KEY is missing")
@_source_options
def cli_get(key: str, default: Optional[str], files: Sequence[Path], assignments: Sequence[str], combiner: str) -> None:
    """Print the interpolated value of KEY (the first one for lists).

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> result = CliRunner().invoke(cli, ["get", "greeting", "--set", "name=World", "--set", "greeting=Hello ${name}"])
    >>> result.output.strip()
    'Hello World'
    """

    config = _load(files, assignments, combiner)
    value = config.get_string(key, default)
    if value is None:
        raise MissingKeyError(key)
    click.echo(value)


@cli.command("list", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("key")
@click.option("--json/--lines", "as_json", default=False, help="Print a JSON array instead of one value per line")
@_source_options
def cli_list(key: str, as_json: bool, files: Sequence[Path], assignments: Sequence[str], combiner: str) -> None:
    """Print every value stored under KEY, each interpolated on its own."""

    values = _load(files, assignments, combiner).get_list(key)
    if as_json:
        click.echo(json.dumps(values, ensure_ascii=False, default=str))
        return
    for value in values:
        click.echo(_render(value))


@cli.command("interpolate", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("text")
@_source_options
def cli_interpolate(text: str, files: Sequence[Path], assignments: Sequence[str], combiner: str) -> None:
    """Expand the variables in TEXT against the loaded configuration and built-in lookups."""

    click.echo(_render(_load(files, assignments, combiner).interpolate(text)))


@cli.command("dump", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--indent", type=int, default=None, help="Pretty-print JSON output with the provided indent size")
@click.option("--raw/--interpolated", default=False, help="Skip variable expansion")
@_source_options
def cli_dump(
    indent: Optional[int], raw: bool, files: Sequence[Path], assignments: Sequence[str], combiner: str
) -> None:
    """Print the combined configuration as JSON."""

    config = _load(files, assignments, combiner)
    if not raw:
        config = config.interpolated_configuration()
    click.echo(config.to_json(indent=indent))


@cli.command("keys", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("prefix", required=False)
@_source_options
def cli_keys(prefix: Optional[str], files: Sequence[Path], assignments: Sequence[str], combiner: str) -> None:
    """List the keys that carry values, optionally restricted to PREFIX."""

    for key in _load(files, assignments, combiner).keys(prefix):
        click.echo(key)


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=_DIST_NAME,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
