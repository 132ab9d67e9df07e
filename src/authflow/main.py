"""Application entry point for the authflow server."""

from authflow.app import App
from authflow.config import Config
from authflow.logging import setup_logging
from authflow.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
