"""Read and write a stack's environment variables across the store and its .env file."""

import logging
from pathlib import Path

from stackenv.models import KEY_PATTERN, Variable, WriteResult
from stackenv.services.env_file import merge_env, read_env, read_env_text, write_env_text
from stackenv.services.reconcile import build_view, has_masked_secrets, resolve_masked_secrets
from stackenv.services.stacks import resolve_env_file_path, resolve_stack_dir
from stackenv.services.store import VariableStore

logger = logging.getLogger(__name__)


def validate_variables(raw) -> tuple[list[Variable] | None, str | None]:
    """Validate a request's variables array.

    Returns (variables, None) on success or (None, error message).
    """
    if not isinstance(raw, list):
        return None, "Invalid request body: variables array required"
    variables = []
    for item in raw:
        if not isinstance(item, dict):
            return None, "Invalid variable: each entry must be an object"
        key = item.get("key")
        if not key or not isinstance(key, str):
            return None, "Invalid variable: key is required and must be a string"
        if not isinstance(item.get("value"), str):
            return None, f'Invalid variable "{key}": value must be a string'
        if not KEY_PATTERN.fullmatch(key):
            return None, (
                f'Invalid variable name "{key}": must start with a letter or underscore '
                "and contain only alphanumeric characters and underscores"
            )
        variables.append(Variable.from_dict(item))
    return variables, None


def validate_deleted_keys(raw) -> tuple[list[str] | None, str | None]:
    if raw is None:
        return [], None
    if not isinstance(raw, list) or not all(isinstance(k, str) and KEY_PATTERN.fullmatch(k) for k in raw):
        return None, "Invalid request body: deleted must be an array of variable names"
    return raw, None


class StackEnvService:
    def __init__(self, store: VariableStore, stacks_dir: Path, env_file_name: str = ".env"):
        self.store = store
        self.stacks_dir = Path(stacks_dir)
        self.env_file_name = env_file_name

    def env_file_path(self, stack_name: str) -> Path:
        return resolve_env_file_path(resolve_stack_dir(self.stacks_dir, stack_name), self.env_file_name)

    def get_variables(self, stack_name: str, env_id: int | None) -> list[Variable]:
        """Build the reconciled, secret-masked view for a stack."""
        stored = self.store.read(stack_name, env_id, mask_secrets=True)
        file_vars = read_env(self.env_file_path(stack_name))
        return build_view(stored, file_vars)

    def set_variables(self, stack_name: str, env_id: int | None, variables: list[Variable]) -> WriteResult:
        """Replace the full variable set. Keys missing from ``variables`` are deleted.

        Store failures propagate. The .env mirror is best effort.
        """
        if has_masked_secrets(variables):
            existing = self._unmasked(stack_name, env_id)
            variables = resolve_masked_secrets(variables, existing)

        self.store.replace(stack_name, env_id, variables)
        written, path = self._sync_file(stack_name, variables, deleted=None)
        return WriteResult(count=len(variables), file_written=written, file_path=path)

    def patch_variables(
        self,
        stack_name: str,
        env_id: int | None,
        variables: list[Variable],
        deleted: list[str],
    ) -> WriteResult:
        """Upsert ``variables`` and remove ``deleted``, leaving every other key untouched."""
        existing = self._unmasked(stack_name, env_id)
        variables = resolve_masked_secrets(variables, existing)

        merged = dict(existing)
        for key in deleted:
            merged.pop(key, None)
        for var in variables:
            merged[var.key] = var
        full_set = list(merged.values())

        self.store.replace(stack_name, env_id, full_set)
        written, path = self._sync_file(stack_name, variables, deleted=deleted)
        return WriteResult(count=len(full_set), file_written=written, file_path=path)

    def _unmasked(self, stack_name: str, env_id: int | None) -> dict[str, Variable]:
        return {v.key: v for v in self.store.read(stack_name, env_id, mask_secrets=False)}

    def _sync_file(
        self, stack_name: str, variables: list[Variable], deleted: list[str] | None
    ) -> tuple[bool, Path | None]:
        """Mirror variables into the stack's .env file. Returns (written, path)."""
        stack_dir = resolve_stack_dir(self.stacks_dir, stack_name)
        try:
            has_dir = stack_dir.is_dir()
        except OSError as e:
            logger.warning("Could not access %s, skipping .env write: %s", stack_dir, e)
            return False, None
        if not has_dir:
            logger.info("Stack directory %s does not exist, skipping .env write", stack_dir)
            return False, None

        path = resolve_env_file_path(stack_dir, self.env_file_name)
        existing = read_env_text(path) or ""
        content = merge_env(existing, variables, deleted=deleted)
        try:
            write_env_text(path, content)
        except (OSError, UnicodeError):
            logger.exception("Failed to write %s", path)
            return False, path
        logger.info("Wrote %s for stack %s", path, stack_name)
        return True, path
