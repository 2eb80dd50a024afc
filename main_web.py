import uvicorn

from core.config import settings
from core.logs import setup_logging
from web.api import app

if __name__ == "__main__":
    setup_logging()
    uvicorn.run(
        "web.api:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.environment == "dev",
        log_config=None,
    )
