from __future__ import annotations

import dataclasses
import json

import typer
from rich import print


def config_show_cmd(*, load_config, get_config_path, get_env_overrides) -> None:
    """Print the effective configuration and where it came from."""

    config = load_config()
    print(f"[bold]Config file[/bold]: {get_config_path()}")
    for key, value in dataclasses.asdict(config).items():
        print(f"- {key}: {value}")
    overrides = get_env_overrides()
    if overrides:
        print(f"[yellow]Environment overrides: {', '.join(sorted(overrides))}[/yellow]")


def config_set_cmd(
    *,
    read_config_or_exit,
    write_config_or_exit,
    load_config,
    key: str,
    value: str,
) -> None:
    """Persist one setting in the config file."""

    known = {field.name for field in dataclasses.fields(load_config())}
    if key not in known:
        print(f"[red]Unknown setting {key}; expected one of {', '.join(sorted(known))}[/red]")
        raise typer.Exit(code=1)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    config_data = read_config_or_exit()
    config_data[key] = parsed
    write_config_or_exit(config_data)
    print(f"Set {key} = {getattr(load_config(), key)}")
