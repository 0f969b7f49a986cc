"""Main application entry point.

Integrated mode (default) serves the API and the NiceGUI chat page from one
uvicorn server. Separate mode starts the API and the page as two processes.
Environment variables are loaded from .env file.
"""

import logging
import os
import subprocess
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

HOST = os.getenv("HOST", "0.0.0.0")
API_PORT = int(os.getenv("PORT", "8000"))
UI_PORT = int(os.getenv("UI_PORT", "8080"))


def run_integrated() -> None:
    """Serve /api, /health, /previews and the chat page on API_PORT."""
    import uvicorn
    from nicegui import ui

    # The page streams replies over HTTP, so point it back at this server
    os.environ.setdefault("API_BASE_URL", f"http://127.0.0.1:{API_PORT}")

    from diagram_chat.api.app import create_app
    from diagram_chat.ui.chat_page import chat_page  # noqa: F401 - Registers the page

    app = create_app()
    ui.run_with(
        app,
        title="Diagram Chat",
        favicon="🧭",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "diagram-chat-secret"),
    )

    logger.info(f"Chat UI and API on http://localhost:{API_PORT}/")
    uvicorn.run(app, host=HOST, port=API_PORT, log_level=os.getenv("LOG_LEVEL", "info").lower())


def run_separate() -> None:
    """Run the API and the chat page as two child processes.

    Stops both as soon as either exits.
    """
    env = {**os.environ, "API_BASE_URL": os.getenv("API_BASE_URL", f"http://127.0.0.1:{API_PORT}")}
    commands = {
        "api": [
            sys.executable, "-m", "uvicorn", "diagram_chat.api.app:app",
            "--host", HOST, "--port", str(API_PORT),
        ],
        "ui": [sys.executable, "-c", "from diagram_chat.ui.chat_page import main; main()"],
    }

    logger.info(f"Starting API on http://localhost:{API_PORT}, chat UI on http://localhost:{UI_PORT}")
    procs = {name: subprocess.Popen(cmd, env=env) for name, cmd in commands.items()}

    try:
        while all(proc.poll() is None for proc in procs.values()):
            try:
                procs["api"].wait(timeout=1)
            except subprocess.TimeoutExpired:
                continue
    except KeyboardInterrupt:
        logger.info("Shutting down servers...")
    finally:
        for name, proc in procs.items():
            if proc.poll() is not None:
                logger.info(f"{name} process exited with code {proc.returncode}")
            proc.terminate()
            proc.wait()


def main() -> None:
    """Application entry point. RUN_MODE selects integrated or separate."""
    mode = os.getenv("RUN_MODE", "integrated").lower()
    logger.info(f"Starting Diagram Chat in {mode} mode")

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
