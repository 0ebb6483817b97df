"""Application entry point for the SwiftQueue backend server."""

from swiftqueue.app import App
from swiftqueue.config import Config
from swiftqueue.logging import setup_logging
from swiftqueue.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
