from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request

from src.common.config import EngineConfig

from .engine import ROUTES, AdmissionEngine

# Non-POST submissions are answered with a denial rather than a 405.
_OTHER_METHODS = ["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"]


def create_app(engine: Optional[AdmissionEngine] = None) -> FastAPI:
    """Build the webhook app; without ``engine`` one is built from the environment on first use."""

    app = FastAPI(
        title="K8s Admission Filter",
        description="Filters admission and authorization reviews and hardens PodSecurityPolicies.",
        version="0.1.0",
    )
    app.state.engine = engine

    for route in ROUTES:
        _register_route(app, route)

    @app.get("/healthz")
    def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    return app


def _register_route(app: FastAPI, route: str) -> None:
    async def review(request: Request, engine: AdmissionEngine = Depends(get_engine)) -> Dict[str, Any]:
        body = await request.body()
        return engine.handle(route, body, method=request.method)

    app.add_api_route(f"/{route}", review, methods=["POST", *_OTHER_METHODS], name=f"review-{route}")


def get_engine(request: Request) -> AdmissionEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = _default_engine()
    return engine


@lru_cache()
def _default_engine() -> AdmissionEngine:
    return AdmissionEngine(EngineConfig.from_env())


app = create_app()


__all__ = ["app", "create_app", "get_engine"]
