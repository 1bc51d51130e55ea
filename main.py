"""
FilmFusion API server

Run from project root: python main.py
(or: uvicorn main:app --host 0.0.0.0 --port 10000)
"""

import os

from filmfusion.app import create_app
from filmfusion.config import Settings, configure_logging

settings = Settings.from_env()
configure_logging(settings.log_level)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "10000")),
        reload=False,  # Set True for development
        log_level=settings.log_level.lower(),
    )
