#!/usr/bin/env python3
"""
REST API server for the genetic marker analysis dashboard
"""
import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env before settings are read
load_dotenv()

from genedash.core.config import settings  # noqa: E402
from genedash.core.logging import setup_logging  # noqa: E402
from genedash.main import create_app  # noqa: E402

setup_logging()
app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
