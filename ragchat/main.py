"""Process entry point.

Runs the FastAPI app with the NiceGUI chat page mounted on it, or both as
separate servers. Environment variables are loaded from the .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

UI_PORT = 8080


def _host() -> str:
    return os.getenv("HOST", "0.0.0.0")


def _port() -> int:
    return int(os.getenv("PORT", "8000"))


def log_configuration() -> None:
    """Report missing settings at startup instead of on the first request."""
    from ragchat.agent.config import get_agent_config
    from ragchat.errors import ConfigurationError
    from ragchat.ingestion.embedder import get_embedding_config
    from ragchat.retrieval.vector_index import get_vector_store_config

    for name, loader in (
        ("LLM", get_agent_config),
        ("embedding", get_embedding_config),
        ("vector store", get_vector_store_config),
    ):
        try:
            loader()
        except ConfigurationError as e:
            logger.warning(f"{name} not configured: {e}")


def run_integrated() -> None:
    """Serve the API and the chat page from one uvicorn server."""
    import uvicorn
    from nicegui import ui

    from ragchat.api.app import create_app
    from ragchat.ui.chat_page import chat_page  # noqa: F401 - Registers the page

    app = create_app()

    # Mount NiceGUI onto FastAPI
    ui.run_with(
        app,
        title="Document Assistant",
        favicon="📄",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "ragchat-secret"),
    )

    logger.info(f"Serving API and chat page on http://localhost:{_port()}")

    uvicorn.run(
        app,
        host=_host(),
        port=_port(),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_separate() -> None:
    """Run the API and the chat page as two processes.

    The page reaches the API through API_BASE_URL.
    """
    import subprocess

    logger.info(f"Starting API on http://localhost:{_port()}")
    logger.info(f"Starting chat page on http://localhost:{UI_PORT}")

    processes = [
        subprocess.Popen([
            sys.executable, "-m", "uvicorn", "ragchat.api.app:app",
            "--host", _host(), "--port", str(_port()),
        ]),
        subprocess.Popen(
            [sys.executable, "-c", "from ragchat.ui.chat_page import main; main()"]
        ),
    ]

    try:
        # Stop both as soon as either exits
        while all(p.poll() is None for p in processes):
            try:
                processes[0].wait(timeout=1)
            except subprocess.TimeoutExpired:
                continue
    except KeyboardInterrupt:
        logger.info("Shutting down servers...")
    finally:
        for p in processes:
            p.terminate()
        for p in processes:
            p.wait()


def main() -> None:
    """Application entry point.

    Set RUN_MODE=separate to run the API and the chat page on different ports.
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()

    logger.info(f"Starting ragchat in {mode} mode")
    log_configuration()

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
