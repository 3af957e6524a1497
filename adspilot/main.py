import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from adspilot.api.router import router
from adspilot.config import settings
from adspilot.core.logging import setup_logging
from adspilot.dependencies import get_rule_evaluation_worker

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Démarrage de l'application...")

    try:
        worker = get_rule_evaluation_worker()
        worker_task = asyncio.create_task(worker.start())
        worker._task = worker_task
        app.state.worker = worker
        app.state.worker_task = worker_task
        logger.info("✅ Worker des règles démarré en arrière-plan")

    except Exception as e:
        logger.error(f"❌ Erreur au démarrage du worker: {e}")
        app.state.worker = None
        app.state.worker_task = None

    yield

    logger.info("🔄 Arrêt de l'application...")

    if getattr(app.state, "worker", None):
        app.state.worker.stop()

        if getattr(app.state, "worker_task", None):
            app.state.worker_task.cancel()
            try:
                await asyncio.wait_for(app.state.worker_task, timeout=10.0)
                logger.info("✅ Worker arrêté proprement")
            except (asyncio.CancelledError, asyncio.TimeoutError):
                logger.warning("⚠️ Worker forcé à s'arrêter (timeout ou annulation)")

    logger.info("✅ Application arrêtée proprement")


app = FastAPI(
    title="AdsPilot Automation API",
    description="Moteur de règles d'automatisation des annonces Shopee",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router)


if __name__ == "__main__":
    uvicorn.run("adspilot.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
