import logging
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .logging_config import configure_logging
from .profile_routes import router as profile_router

configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Quiz Progress Sync", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(profile_router)

settings_snapshot = get_settings()
logger.info("Backend starting with %s remote backend", settings_snapshot.remote_backend)
logger.info("Local profile cache at %s", settings_snapshot.cache_path)


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok", "remote_backend": get_settings().remote_backend}
