# Simple local runner. Deployments can start with:
#   uvicorn tubely.main:create_app --factory --host 0.0.0.0 --port 8091
import logging
import os

from tubely.config import Config
from tubely.main import create_app

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    config = Config.from_env()
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port)
