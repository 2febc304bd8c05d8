# casereview/main.py
import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from casereview.config import get_settings
from casereview.api.routes import get_controller, router as api_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Case Review Reasoning API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # for dev; tighten in prod
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

_background_tasks: set = set()


@app.on_event("startup")
async def on_startup() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    controller = app.dependency_overrides.get(get_controller, get_controller)()
    task = asyncio.create_task(controller.run_cache_sweeper())
    _background_tasks.add(task)
    logger.info(
        "Cache sweeper started (every %ss)", settings.cache_sweep_interval_seconds
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    for task in _background_tasks:
        task.cancel()
    _background_tasks.clear()


@app.get("/")
def root():
    return {"message": "Case Review Reasoning API is running"}


app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
