"""Health check and settings endpoints."""

from fastapi import APIRouter, Request

from stres.config import get_config, update_config

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get engine settings (combat, narrative, llm_connection, stats_sink, player)."""
    return get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update engine settings (partial merge). Applies to sessions created afterwards."""
    return update_config(request.app.state.data_dir, body)
