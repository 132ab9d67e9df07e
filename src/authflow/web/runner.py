"""Uvicorn server runner with custom configuration."""

from typing import Any

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from authflow.app import App
from authflow.config import Config
from authflow.web.server import create_fastapi_app


def _log_config(debug: bool) -> dict[str, Any]:
    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    log_config["loggers"]["uvicorn.access"]["level"] = "INFO" if debug else "WARNING"
    return log_config


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server; the app sits behind a TLS terminating proxy (Secure cookies)."""
    fastapi_app = create_fastapi_app(app, config)
    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=_log_config(config.debug),
        access_log=True,
        proxy_headers=True,
        server_header=False,
    )
