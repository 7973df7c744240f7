#!/usr/bin/env python3
"""
Run the Research Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    ANTHROPIC_API_KEY=sk-ant-...    # Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY=sk-...           # Fallback: OpenAI API key (if no Anthropic)
    SEARCHAPI_API_KEY=...           # Optional: live web_search (fallback links if not set)
    TAVILY_API_KEY=tvly-...         # Optional: search for simple mode
    LLM_MODEL=claude-sonnet-4-20250514         # Optional: Model to use

Quick Start:
    1. Create a .env file with your API keys
    2. Install: pip install -e .
    3. Run the server: python run.py
    4. Open http://localhost:8000/docs in your browser
"""

import argparse
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before config is imported
env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)

from config import config  # noqa: E402
from core.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the Research Orchestrator API")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    setup_logging(level=config.log_level, json_logs=config.log_json)

    if not config.validate():
        logger.warning(
            "No LLM API key found, research endpoints will return 503",
            hint="Set ANTHROPIC_API_KEY (recommended) or OPENAI_API_KEY",
        )
    else:
        logger.info("LLM provider configured", provider=config.llm_provider, model=config.llm_model)

    if not config.searchapi_api_key:
        logger.info("SEARCHAPI_API_KEY not set, web_search will return fallback links")

    logger.info("Starting server", host=args.host, port=args.port, docs=f"http://localhost:{args.port}/docs")

    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
