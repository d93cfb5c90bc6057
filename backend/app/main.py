"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import messages, ops
from app.api.errors import install_error_handlers
from app.infra.http_backend import HttpMessagingBackend
from app.obs import init as obs_init
from app.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		yield
	finally:
		registry = messages.get_registry()
		backend = registry.backend
		await registry.close()
		if isinstance(backend, HttpMessagingBackend):
			await backend.aclose()


app = FastAPI(title="Campus Messages", lifespan=lifespan)
install_error_handlers(app)

allow_origins = ["http://localhost:3000"] if settings.is_dev() else ["https://app.divan.example"]
app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

app.include_router(messages.router)
app.include_router(ops.router)
