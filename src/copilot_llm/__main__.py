"""Entry point for running copilot-llm as a module.

Usage:
    python -m copilot_llm login
    python -m copilot_llm --help
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before any other imports that read env vars

from copilot_llm.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
