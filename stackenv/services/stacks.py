"""Locate stack directories and their .env files."""

import re
from pathlib import Path

# Directory name only: no separators, no leading dot
STACK_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")


def validate_stack_name(name: str) -> str | None:
    """Return an error message if the stack name is invalid, else None."""
    if not name:
        return "Stack name is required."
    if len(name) > 255:
        return "Stack name is too long."
    if not STACK_NAME_PATTERN.fullmatch(name):
        return f'Invalid stack name "{name}".'
    return None


def resolve_stack_dir(stacks_dir: Path, stack_name: str) -> Path:
    return stacks_dir / stack_name


def resolve_env_file_path(stack_dir: Path, env_file_name: str = ".env") -> Path:
    return stack_dir / env_file_name
