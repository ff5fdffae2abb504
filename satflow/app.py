"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logging_setup import setup_console_logging
from satflow.database import init_db
from satflow.routes import sessions

setup_console_logging()

app = FastAPI(title="SAT Test Delivery API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database on startup."""
    init_db()


app.include_router(sessions.router)
