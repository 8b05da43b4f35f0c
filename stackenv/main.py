import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stackenv.auth_utils import AllowAllAuthorizer
from stackenv.config import Settings, get_settings
from stackenv.middleware import BasicAuthMiddleware
from stackenv.routers import env
from stackenv.services.stack_env import StackEnvService
from stackenv.services.store import SqliteVariableStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, store=None, authorizer=None) -> FastAPI:
    """Build the application. ``store`` and ``authorizer`` override the defaults."""
    if settings is None:
        settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_store:
            app.state.store.close()

    owns_store = store is None
    if store is None:
        store = SqliteVariableStore(settings.db_path)

    app = FastAPI(title="stackenv", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.authorizer = authorizer or AllowAllAuthorizer()
    app.state.stack_env_service = StackEnvService(
        store, settings.stacks_dir, settings.env_file_name
    )
    app.add_middleware(BasicAuthMiddleware, get_settings_fn=lambda: settings)
    app.include_router(env.router)

    logger.info("Serving stacks from %s (database %s)", settings.stacks_dir, settings.db_path)
    return app
