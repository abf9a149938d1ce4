"""
Panel Sync - Main Entry Point

Run with: uvicorn main:app --port 8000
"""

import sys
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

import uvicorn
from fastapi import FastAPI

from api.app import create_app
from api.dependencies import get_app_state
from core.logger import log_info, log_ok


# Create app instance
app: FastAPI = create_app()


# === Startup/Shutdown Events ===

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    log_ok("Panel Sync API ready at http://localhost:8000")
    log_info("Docs at http://localhost:8000/docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    state = get_app_state()
    if state.is_connected:
        log_info("Disconnecting from controller")
        state.disconnect()


# === Health Check ===

@app.get("/health")
def health_check():
    """Health check endpoint"""
    state = get_app_state()
    return {
        "status": "ok",
        "version": "1.0.0",
        "connected": state.is_connected,
        "polling": state.is_polling,
    }


# === Run directly ===

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
    )
