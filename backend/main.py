import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import auth
import cart
import conversations
import orders
import products
import users
from config import Settings
from database import connect, ensure_indexes, get_db
from errors import request_logging_middleware, setup_error_handlers
from log import logger, setup_logging
from security import require_admin
from seed import seed_database


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    """Build the API around an explicit settings object and database handle."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is None:
            app.state.db = connect(settings)
        ensure_indexes(app.state.db)
        if settings.seed_on_startup:
            seed_database(app.state.db)
        logger.info("%s %s started", settings.api_title, settings.api_version)
        yield

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-auth-token", "X-Request-ID"],
    )
    app.middleware("http")(request_logging_middleware)
    setup_error_handlers(app)

    app.include_router(auth.router)
    # Cart routes must precede /api/users/{user_id}
    app.include_router(cart.router)
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(orders.router)
    app.include_router(conversations.router)

    @app.get("/")
    def root():
        return {"status": "ok", "service": settings.api_title}

    @app.get("/test")
    def test_database(db: Database = Depends(get_db)):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Connected",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": settings.database_name,
            "collections": [],
        }
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        return response

    @app.post("/api/seed")
    def seed(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        return {"seeded": seed_database(db)}

    return app


# Served as `uvicorn main:app`; the database connects on startup
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port, log_config=None)
