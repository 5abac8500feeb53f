import logging
from typing import Optional, TYPE_CHECKING
from fastapi import FastAPI, HTTPException
import uvicorn
from threading import Thread

if TYPE_CHECKING:
    from .service import WorkerService

logger = logging.getLogger("clone_worker")


class HealthServer:
    def __init__(self, worker: 'WorkerService', port: int = 8000):
        self.worker = worker
        self.port = port
        self.app = create_app(worker)
        self.server_thread = None
        self.running = False

    def start(self):
        """Start the HTTP server in a background thread"""
        if self.running:
            return

        def run_server():
            try:
                uvicorn.run(
                    self.app,
                    host="0.0.0.0",
                    port=self.port,
                    log_level="warning",  # Reduce uvicorn logging
                    access_log=False
                )
            except Exception as e:
                logger.error(f"HTTP server error: {str(e)}")

        self.server_thread = Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.running = True

        logger.info(f"Health server started on port {self.port}")

    def stop(self):
        """Stop the HTTP server"""
        self.running = False
        logger.info("Health server stopped")


def create_app(worker: 'WorkerService') -> FastAPI:
    """Read-only status API over the worker's AgentContext and queue"""
    app = FastAPI(title="Clone Worker Status API")

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint"""
        report = worker.context.health_check(
            worker.config.directories(),
            ffmpeg_path=worker.config.FFMPEG_PATH,
        )
        if report['status'] == 'error':
            raise HTTPException(status_code=503, detail=report)
        return {"ok": True, **report}

    @app.get("/state")
    async def get_state():
        """Full process-wide status record"""
        return worker.context.get_full_state().model_dump(mode='json', by_alias=True)

    @app.get("/videos/{name}/status")
    async def get_video_status(name: str):
        """Status of one video by file name"""
        return worker.context.get_video_status(name).model_dump()

    @app.get("/queue")
    async def get_queue():
        """Pending files and queue statistics (dev only)"""
        queue_manager = worker.queue_manager
        if queue_manager is None:
            raise HTTPException(status_code=503, detail="Queue manager not initialized")
        return {
            "pending": queue_manager.get_queue(),
            "ready": worker.context.is_ready(),
            "stats": queue_manager.get_stats(),
        }

    return app


def start_health_server(worker: 'WorkerService') -> Optional[HealthServer]:
    """Start the health server if enabled"""
    if worker.config.ENABLE_HTTP_SERVER:
        server = HealthServer(worker, worker.config.HTTP_PORT)
        server.start()
        return server
    return None
