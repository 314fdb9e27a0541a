"""Entry point for running the FastAPI application."""

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    # Defaults to 3000 to match the admin viewer's proxy config.
    # Can be overridden: PORT=8000 python main.py
    port = int(os.getenv("PORT", "3000"))

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("UVICORN_RELOAD", "false").lower() in {"1", "true", "yes"},
    )
