"""
FastAPI application entry point for the content record runtime.

Responsibilities:
- configure logging from settings
- construct the shared ContentRecordAgent (gateway + write mode from settings)
- include the content record routes under /dac
- drain detached writes and close the store connection on shutdown

Usage:
    uvicorn runtime.api.server:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from configs.settings import settings
from runtime.agents.content_record_agent import ContentRecordAgent
from . import record_routes


logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

# One agent per server process; init() binds it to a caller domain.
content_record_agent = ContentRecordAgent.from_settings(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await content_record_agent.close()


# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="Content Record Runtime", lifespan=lifespan)

# Initialize the router module with our shared agent, then include it.
record_routes.init_routes(agent=content_record_agent)
app.include_router(record_routes.router, prefix="/dac")
