"""
ServerApp - Composition Root

This module contains the ServerApp class, which is responsible for:
- Loading configuration
- Creating the shared slot table once and handing it to the accept loop
  and the compositor before either starts
- Driver connection and panel initialisation
- Running and supervising the long-lived tasks
- Application lifecycle management (startup/shutdown)
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import uvicorn

from .api import create_status_app
from .board import frame_test, init_board, show
from .compositor import Compositor
from .config import BoardConfig, load_from_toml, default_config
from .display import MatrixDriver, blank_matrix, create_driver
from .server import BoardServer
from .slot_table import SlotTable


logger = logging.getLogger(__name__)


class ServerApp:
    """
    Application composition root for the matrix board server.

    Args:
        config: Ready-made configuration (skips file loading)
        config_path: TOML file to load when no config is given
        driver: Driver to use instead of creating one from the config
    """

    def __init__(
        self,
        config: Optional[BoardConfig] = None,
        config_path: Optional[Path] = None,
        driver: Optional[MatrixDriver] = None,
    ):
        self.config_path = config_path or Path("config.toml")
        self.config: Optional[BoardConfig] = config

        # Core components - initialized during startup
        self.driver: Optional[MatrixDriver] = driver
        self.slot_table: Optional[SlotTable] = None
        self.compositor: Optional[Compositor] = None
        self.board_server: Optional[BoardServer] = None
        self._status_server: Optional[uvicorn.Server] = None

        self._tasks: List[asyncio.Task] = []
        self._hardware_ready = False
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def startup(self) -> None:
        """Initialize all components; the panel is initialised before clients are accepted."""
        logger.info("Starting up matrix board server...")

        try:
            await self._prepare_hardware()

            self.slot_table = SlotTable()
            self.compositor = Compositor(
                self.slot_table, self.driver, self.config.refresh.period
            )
            self.board_server = BoardServer(
                self.slot_table, self.config.server.host, self.config.server.port
            )
            await self.board_server.start()

            if self.config.status.enabled:
                self._create_status_server()

            self._started = True
            logger.info("Matrix board server startup completed successfully")

        except Exception as e:
            logger.error(f"Matrix board server startup failed: {e}")
            await self.shutdown()
            raise

    async def run(self) -> None:
        """
        Run the accept loop and compositor until one of them ends.

        Neither task ends under normal operation, so either one finishing is
        treated as a failure: everything is shut down and the error re-raised.
        """
        if not self._started:
            await self.startup()

        self._tasks = [
            asyncio.create_task(self.board_server.serve_forever(), name="accept-loop"),
            asyncio.create_task(self.compositor.run(), name="refresh-loop"),
        ]
        if self._status_server is not None:
            self._tasks.append(
                asyncio.create_task(self._status_server.serve(), name="status-api")
            )

        try:
            await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            failure = self._collect_failure()
        finally:
            await self.shutdown()

        if failure is not None:
            raise failure

    def _collect_failure(self) -> Optional[BaseException]:
        failure: Optional[BaseException] = None
        for task in self._tasks:
            if not task.done() or task.cancelled():
                continue
            error = task.exception()
            if error is None and task.get_name() == "status-api":
                # uvicorn exits on SIGINT/SIGTERM
                logger.info("Status API requested shutdown")
                continue
            logger.error(f"Task failure: {task.get_name()}")
            if failure is None:
                failure = error or RuntimeError(
                    f"{task.get_name()} stopped unexpectedly"
                )
        return failure

    async def run_frame_test(self) -> float:
        """Initialise the panel, run the frame test and disconnect."""
        try:
            await self._prepare_hardware()
            return await frame_test(self.driver)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Cleanup all application components."""
        logger.info("Shutting down matrix board server...")

        if self._status_server is not None:
            self._status_server.should_exit = True

        if self.compositor:
            self.compositor.stop()

        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self.board_server:
            await self.board_server.stop()

        if self.driver and self.driver.is_connected():
            try:
                await show(self.driver, blank_matrix(0))
            except Exception as e:
                logger.error(f"Failed to blank LED matrix: {e}")
            try:
                await self.driver.disconnect()
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")

        self._hardware_ready = False
        self._started = False
        logger.info("Matrix board server shutdown completed")

    # Private initialization methods

    async def _prepare_hardware(self) -> None:
        if self._hardware_ready:
            return
        self._load_configuration()
        if self.driver is None:
            self.driver = create_driver(self.config.serial)
        await self.driver.connect()
        await init_board(self.driver)
        self._hardware_ready = True

    def _load_configuration(self) -> None:
        """Load configuration from file or use defaults."""
        if self.config is not None:
            return
        if self.config_path.exists():
            logger.info(f"Loading configuration from {self.config_path}")
            self.config = load_from_toml(self.config_path)
        else:
            logger.warning(
                f"Config file {self.config_path} not found, using default configuration"
            )
            self.config = default_config()

    def _create_status_server(self) -> None:
        app = create_status_app(self)
        config = uvicorn.Config(
            app=app,
            host=self.config.status.host,
            port=self.config.status.port,
            log_level="info",
        )
        self._status_server = uvicorn.Server(config)
        logger.info(
            f"Status API enabled on {self.config.status.host}:{self.config.status.port}"
        )
