import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from arena.database import engine, init_db
from arena.db_schema_patch import ensure_battle_columns, ensure_tournament_columns
from arena.routes import battles, broadcasting, tournaments

logger = logging.getLogger(__name__)

app = FastAPI(title="Quiz Arena Tournament API")


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except Exception:
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(battles.router, prefix="/api", tags=["battles"])

# Presence channels (websocket, no /api prefix)
app.include_router(broadcasting.router, tags=["broadcasting"])


@app.on_event("startup")
def on_startup():
    init_db()  # imports models and creates tables
    ensure_tournament_columns(engine)
    ensure_battle_columns(engine)

    route_count = sum(1 for r in app.routes if getattr(r, "path", None))
    logger.info(f"Quiz Arena API started: {route_count} routes, build {BUILD_HASH}")


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "Quiz Arena Tournament API", "build_hash": BUILD_HASH, "status": "healthy"}
