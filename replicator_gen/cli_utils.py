"""
CLI utilities for command line reconstruction and introspection.
"""

from pathlib import Path

import click

PROGRAM_NAME = "replicator_gen"


def _format_value(value) -> str:
    # File paths are shortened to their names for a stable generation comment
    if isinstance(value, (str, Path)):
        path_obj = Path(str(value))
        return path_obj.name if path_obj.exists() else str(value)
    return str(value)


def reconstruct_command_line(click_command: click.Command) -> str:
    """
    Reconstruct command line from current Click context using introspection.

    Args:
        click_command: Click command (a subcommand of the group) for introspection

    Returns:
        Reconstructed command line string
    """
    try:
        ctx = click.get_current_context()
        cli_args = ctx.params
    except RuntimeError:
        return PROGRAM_NAME

    cmd_parts = [PROGRAM_NAME]
    if click_command.name and click_command.name != PROGRAM_NAME:
        cmd_parts.append(click_command.name)

    arguments = []
    options = []

    for param in click_command.params:
        param_name = param.name
        if param_name not in cli_args:
            continue

        value = cli_args[param_name]
        if not value:
            continue

        values = value if isinstance(value, (list, tuple)) else [value]

        if isinstance(param, click.Argument):
            arguments.extend(_format_value(v) for v in values)

        elif isinstance(param, click.Option):
            if hasattr(param, "default") and value == param.default:
                continue
            flag = param.opts[0] if param.opts else f"--{param_name}"
            if param.is_flag:
                options.append(flag)
                continue
            for v in values:
                options.extend([flag, _format_value(v)])

    cmd_parts.extend(arguments)
    cmd_parts.extend(options)

    return " ".join(cmd_parts)
