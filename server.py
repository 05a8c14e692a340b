"""
agentmem - per-agent memory store
HTTP server entry point (uvicorn)
"""

import uvicorn

import agentmem.config as config
from app.main import app


if __name__ == "__main__":
    config.logger.info("agentmem starting...")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
