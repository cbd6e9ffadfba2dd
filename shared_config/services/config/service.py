"""
Config Service - Background Context Host

Runs in the context that owns persistence:
- Seeds the store from the file backend (defaults if nothing persisted)
- Follows backend change notifications (event-driven sync)
- Serves the snapshot endpoint for contexts without backend access
  (GET/PUT /config) and a health endpoint (GET /health)
"""

import asyncio
import signal
from datetime import datetime, timezone

from aiohttp import web

from ...common.exceptions import BackendError
from ...common.logging_setup import configure_logging, get_service_logger
from ...common.settings import StoreSettings, load_settings
from ...storage.file_backend import FileBackend
from .store import ConfigStore
from .validator import SnapshotValidator

logger = get_service_logger("config.service")


class ConfigService:
    """
    Background context for a shared config store.

    Other processes reach the configuration through the HTTP endpoint and
    keep their own ConfigStore in step with polled sync.
    """

    def __init__(self, settings: StoreSettings | None = None):
        self.settings = settings or load_settings()
        configure_logging(self.settings.log_level, self.settings.log_format)

        self.backend = FileBackend(
            self.settings.state_dir,
            entry=self.settings.entry,
            watch_interval_s=self.settings.watch_interval_s,
        )
        self.store = ConfigStore(
            backend=self.backend,
            defaults=self.settings.defaults,
            poll_interval_s=self.settings.poll_interval_s,
            name=self.settings.entry,
        )
        self.validator = SnapshotValidator()

        self._start_time = datetime.now(timezone.utc)

        # HTTP server
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the service and block until shutdown is requested"""
        await self.setup()

        # Setup signal handlers
        self._setup_signal_handlers()

        # Wait for shutdown
        await self._shutdown_event.wait()

    async def setup(self) -> None:
        """Seed the store, start sync and the HTTP server"""
        logger.info("Starting Config Service")
        self._running = True

        await self.store.load_from_storage()
        self.store.start_event_driven_sync()

        await self._start_server()

        logger.info(
            f"Config Service started (entry: {self.settings.entry}, state_dir: {self.settings.state_dir})",
            extra={"entry": self.settings.entry, "state_dir": str(self.settings.state_dir)},
        )

    async def stop(self) -> None:
        """Stop the config service"""
        logger.info("Stopping Config Service")

        self._running = False
        self.store.stop_sync()
        await self.store.flush()

        await self._stop_server()
        await self.backend.close()

        logger.info("Config Service stopped")

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    def get_config(self) -> dict:
        """Get current configuration"""
        return self.store.snapshot()

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/config", self._get_config_handler)
        app.router.add_put("/config", self._put_config_handler)
        return app

    async def _start_server(self) -> None:
        """Start the snapshot/health HTTP server"""
        self._app = self.create_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.settings.host, self.settings.port)
        await site.start()

        logger.info(f"Snapshot server started on {self.settings.host}:{self.settings.port}")

    async def _stop_server(self) -> None:
        """Stop the HTTP server"""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle health check requests"""
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        state_age = self.backend.get_age()

        return web.json_response({
            "status": "healthy" if self._running and self.store.ready else "unhealthy",
            "service": "config",
            "uptime": int(uptime),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store_state": self.store.state.value,
            "key_count": len(self.store),
            "state_age_s": round(state_age, 1) if state_age is not None else None,
            "listeners": self.store.listener_counts(),
        })

    async def _get_config_handler(self, request: web.Request) -> web.Response:
        """Serve the full current snapshot"""
        return web.json_response(self.store.snapshot())

    async def _put_config_handler(self, request: web.Request) -> web.Response:
        """
        Replace the persisted snapshot.

        The write goes through the backend; this context's store picks it up
        through event-driven sync like any other write.
        """
        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"success": False, "errors": ["Body is not valid JSON"]}, status=400)

        is_valid, errors = self.validator.validate(body)
        if not is_valid:
            return web.json_response({"success": False, "errors": errors}, status=400)

        try:
            await self.backend.put_snapshot(body)
        except BackendError as e:
            logger.error(f"Failed to persist pushed config: {e}")
            return web.json_response({"success": False, "errors": [str(e)]}, status=503)

        logger.info("Accepted pushed config", extra={"key_count": len(body)})
        return web.json_response({"success": True, "key_count": len(body)})


async def main() -> None:
    """Main entry point"""
    service = ConfigService()

    try:
        await service.start()
    finally:
        await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
