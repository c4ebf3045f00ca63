"""
FastAPI application entry point for the LearnVerse admin service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from admin_api import auth_routes, site
from admin_api.config import get_settings
from admin_api.errors import ContentError
from admin_api.middleware import API_PREFIX, setup_cors, setup_role_gate
from admin_api.routes import content_error_handler, router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="LearnVerse Admin", version="0.1.0")
    # Outermost middleware is registered last.
    setup_role_gate(app)
    setup_cors(app)
    app.add_exception_handler(ContentError, content_error_handler)
    app.include_router(router, prefix=API_PREFIX)
    app.include_router(auth_routes.router, prefix=f"{settings.api_prefix}/auth")
    app.include_router(site.router)
    return app


app = create_app()
