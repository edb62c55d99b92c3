"""Start a single FastAPI uvicorn worker for development."""
import logging

import uvicorn


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "isomatch.server:APP",
        host="0.0.0.0",
        port=6430,
        reload=True,
        reload_dirs=["isomatch"],
    )
