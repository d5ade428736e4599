import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import configure_logging, settings
from api.info import router as info_router
from api.logs import router as logs_router
from api.names import router as names_router
from api.settings import router as settings_router

configure_logging()
settings.validate_configuration()

logger = logging.getLogger("api")

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        logger.debug(
            "%s %s -> %d in %.1f ms",
            request.method,
            request.url.path,
            status_code,
            (time.perf_counter() - started) * 1000.0,
        )

# Routers
app.include_router(logs_router, prefix="/api")
app.include_router(info_router, prefix="/api")
app.include_router(settings_router, prefix="/api")
app.include_router(names_router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "source": settings.USE_SOURCE}
