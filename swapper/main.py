import logging
from typing import Callable, Optional

from fastapi import FastAPI

from .adapters.base import SwapperSession
from .adapters.swapper import open_session
from .config import get_settings
from .domain.tokens import AliasTokens
from .routes import swap
from .services.history import HistoryStore, JsonFileKeyValueStore
from .services.utils import BoundedRegistry


def _setup_logging():
    """
    Configure basic logging from LOG_LEVEL.
    """
    logging.basicConfig(
        level=get_settings().LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    session_factory: Optional[Callable[[str], SwapperSession]] = None,
    history: Optional[HistoryStore] = None,
    aliases: Optional[AliasTokens] = None,
) -> FastAPI:
    _setup_logging()
    app = FastAPI(title="APLO Swapper API", version="0.1.0")

    app.state.session_factory = session_factory or open_session
    app.state.history = history or HistoryStore(JsonFileKeyValueStore())
    app.state.history.load()
    app.state.aliases = aliases or AliasTokens.from_settings()
    size = get_settings().REGISTRY_SIZE
    app.state.sessions = BoundedRegistry(size)
    app.state.orchestrators = BoundedRegistry(size)
    app.state.swap_sessions = BoundedRegistry(size)

    app.include_router(swap.router, prefix="/api")

    @app.get("/healthz")
    def healthz():
        """
        Liveness probe endpoint.
        """
        return {"status": "ok"}

    logging.getLogger(__name__).info("swapper api ready (env=%s)", get_settings().ENV)
    return app


app = create_app()
