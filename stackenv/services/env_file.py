"""Read, merge and write a stack's .env file."""

import logging
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path

from stackenv.models import Variable

logger = logging.getLogger(__name__)

_QUOTES = ('"', "'")


def _sanitize_value(value: str) -> str:
    """Strip newlines and carriage returns to prevent .env injection."""
    return value.replace("\n", "").replace("\r", "")


def _split_assignment(trimmed: str) -> tuple[str, str] | None:
    """Split a trimmed line on its first '='. None if it is not an assignment."""
    eq = trimmed.find("=")
    if eq <= 0:
        return None
    return trimmed[:eq].strip(), trimmed[eq + 1:]


def _unquote(value: str) -> str:
    # A lone quote character is not a pair: `A="` parses to `"`, not an empty string
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def parse_env(content: str) -> dict[str, str]:
    """Parse .env content into a dict.

    Blank lines, comments and lines without a usable '=' are ignored. One
    layer of matching single or double quotes is stripped from values.
    A repeated key keeps its last value.
    """
    result: dict[str, str] = {}
    for line in content.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        assignment = _split_assignment(trimmed)
        if assignment is None:
            continue
        key, value = assignment
        result[key] = _unquote(value)
    return result


def _lines(content: str) -> list[str]:
    """Split content into lines; a final newline ends the last line."""
    if not content:
        return []
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _desired_pairs(desired) -> list[tuple[str, str]]:
    if isinstance(desired, Mapping):
        return list(desired.items())
    pairs = []
    for item in desired:
        if isinstance(item, Variable):
            pairs.append((item.key, item.value))
        else:
            key, value = item
            pairs.append((key, value))
    return pairs


def merge_env(
    existing: str,
    desired: Iterable[Variable] | Iterable[tuple[str, str]] | Mapping[str, str],
    deleted: Iterable[str] | None = None,
) -> str:
    """Merge a desired variable set into existing .env content.

    Comments, blank lines and unrecognized lines are kept in place. Lines
    for desired keys are rewritten as bare ``key=value``; desired keys not
    yet in the file are appended in order.

    With ``deleted=None`` any variable line whose key is missing from
    ``desired`` is dropped, so callers must pass the *complete* set. Pass an
    explicit ``deleted`` collection to drop only those keys and keep every
    other line.
    """
    wanted = dict(_desired_pairs(desired))
    to_delete = set(deleted) if deleted is not None else None
    handled: set[str] = set()
    out: list[str] = []

    for line in _lines(existing):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            out.append(line)
            continue

        assignment = _split_assignment(trimmed)
        if assignment is None:
            # Not a variable line, keep as-is
            out.append(line)
            continue

        key = assignment[0]
        if key in wanted:
            out.append(f"{key}={_sanitize_value(wanted[key])}")
            handled.add(key)
        elif to_delete is not None and key not in to_delete:
            out.append(line)

    for key, value in wanted.items():
        if key not in handled:
            out.append(f"{key}={_sanitize_value(value)}")

    content = "\n".join(out)
    if not content.endswith("\n"):
        content += "\n"
    return content


def read_env_text(path: Path) -> str | None:
    """Return raw file content, or None if the file is missing or unreadable."""
    try:
        return path.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def read_env(path: Path) -> dict[str, str]:
    """Parse a .env file into a dict. Missing or unreadable files give {}."""
    content = read_env_text(path)
    if content is None:
        return {}
    return parse_env(content)


def write_env_text(path: Path, content: str) -> None:
    """Overwrite a .env file.

    Writes a temp file in the same directory, then renames it over ``path``.
    """
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".env.", suffix=".tmp")
    try:
        with open(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        tmp = Path(tmp_path)
        tmp.chmod(0o600)
        tmp.replace(path)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise
