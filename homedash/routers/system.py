"""Liveness router for the homedash API."""

from fastapi import APIRouter

router = APIRouter(tags=["system"])


@router.get("/health")
def get_health():
    """Reports that the API process is up. Does not touch any upstream."""
    return {"status": "ok"}
