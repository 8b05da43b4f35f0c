import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from stackenv.auth_utils import can
from stackenv.services.stack_env import (
    StackEnvService,
    validate_deleted_keys,
    validate_variables,
)
from stackenv.services.stacks import validate_stack_name

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _parse_env_id(raw: str | None) -> tuple[int | None, str | None]:
    """Parse the ``env`` query parameter. Returns (env_id, error)."""
    if not raw:
        return None, None
    try:
        env_id = int(raw)
    except ValueError:
        return None, f'Invalid environment id "{raw}"'
    if env_id < 1:
        return None, f'Invalid environment id "{raw}"'
    return env_id, None


def _service(request: Request) -> StackEnvService:
    return request.app.state.stack_env_service


async def _read_body(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _check_request(request: Request, name: str, action: str) -> tuple[int | None, JSONResponse | None]:
    """Shared stack name, environment id and permission checks."""
    env_id, env_error = _parse_env_id(request.query_params.get("env"))
    if env_error:
        return None, _error(env_error, 400)

    if not can(request, "stacks", action, env_id):
        return None, _error("Permission denied", 403)

    name_error = validate_stack_name(name)
    if name_error:
        return None, _error(name_error, 400)
    return env_id, None


@router.get("/api/ping")
async def ping():
    return {"status": "ok"}


@router.get("/api/stacks/{name}/env")
async def get_stack_env(request: Request, name: str):
    """Variables from the store merged with the stack's .env file. Secrets are masked."""
    env_id, denied = _check_request(request, name, "view")
    if denied:
        return denied

    try:
        variables = _service(request).get_variables(name, env_id)
    except Exception:
        logger.exception("Error getting env vars for stack %s", name)
        return _error("Failed to get environment variables", 500)

    return {"variables": [v.to_dict() for v in variables]}


@router.put("/api/stacks/{name}/env")
async def put_stack_env(request: Request, name: str):
    """Replace all variables for a stack.

    Body: ``{"variables": [{"key", "value", "isSecret"?}]}``. Any key left out
    is deleted from the store and the .env file. A secret sent with the value
    ``***`` keeps its stored value.
    """
    env_id, denied = _check_request(request, name, "edit")
    if denied:
        return denied

    body = await _read_body(request)
    if body is None:
        return _error("Invalid request body: variables array required", 400)
    variables, error = validate_variables(body.get("variables"))
    if error:
        return _error(error, 400)

    try:
        result = _service(request).set_variables(name, env_id, variables)
    except Exception:
        logger.exception("Error setting env vars for stack %s", name)
        return _error("Failed to set environment variables", 500)

    return result.to_dict()


@router.patch("/api/stacks/{name}/env")
async def patch_stack_env(request: Request, name: str):
    """Upsert some variables and delete the ones listed in ``deleted``.

    Body: ``{"variables": [...], "deleted": ["KEY", ...]}``. Keys in neither
    list are left alone.
    """
    env_id, denied = _check_request(request, name, "edit")
    if denied:
        return denied

    body = await _read_body(request)
    if body is None:
        return _error("Invalid request body: variables array required", 400)
    variables, error = validate_variables(body.get("variables", []))
    if error:
        return _error(error, 400)
    deleted, error = validate_deleted_keys(body.get("deleted"))
    if error:
        return _error(error, 400)

    try:
        result = _service(request).patch_variables(name, env_id, variables, deleted)
    except Exception:
        logger.exception("Error patching env vars for stack %s", name)
        return _error("Failed to set environment variables", 500)

    return result.to_dict()
