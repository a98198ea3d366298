import logging
import sys
from typing import Optional

import typer

from kubeinfra.commands import copy, infra
from kubeinfra.config import Config
from kubeinfra.logging import setup_logging

app = typer.Typer()

# Global debug flag
debug_mode = False

# Add all command groups
app.add_typer(infra.app, name="infra")
app.add_typer(copy.app, name="copy")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """kubeinfra - cluster infrastructure and artifact distribution CLI."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug, log_file)
    Config.validate()
    if debug:
        logging.debug("Debug mode enabled")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
):
    """Serve the HTTP API."""
    import uvicorn

    uvicorn.run("kubeinfra.api.main:app", host=host, port=port, log_level="debug" if debug_mode else "info")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
