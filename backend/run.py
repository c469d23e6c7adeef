"""Serve the campaign set sync API with uvicorn."""

import uvicorn

from adsync.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    # Jobs and their SSE subscribers share one in-process queue, so a single worker
    uvicorn.run(
        "adsync.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
        workers=1,
    )
