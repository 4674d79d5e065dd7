import uvicorn

from .config import settings
from .entrypoints.fastapi_app import create_app
from .logging_config import setup_logging

setup_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
