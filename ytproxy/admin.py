"""Admin endpoints for key pool and cache management."""

from typing import Dict, List

from fastapi import APIRouter, Request

admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/keys/status")
async def get_keys_status(request: Request) -> Dict[str, object]:
    """Snapshot of every API key in the pool, flagging the current one."""
    pool = request.app.state.key_pool
    keys: List[Dict[str, object]] = await pool.status()
    return {
        "current_key": {"number": pool.current_index + 1, "total": len(pool)},
        "keys": keys,
        "total_keys": len(keys),
    }


@admin_router.post("/keys/reset/{key_number}")
async def reset_key(request: Request, key_number: int) -> Dict[str, object]:
    """Reactivate a single key. ``key_number`` is 1-based."""
    pool = request.app.state.key_pool
    await pool.reset_credential(key_number - 1)
    return {"success": True, "message": f"API key {key_number} reset successfully"}


@admin_router.post("/keys/reset-all")
async def reset_all_keys(request: Request) -> Dict[str, object]:
    pool = request.app.state.key_pool
    await pool.reset_all()
    return {"success": True, "message": "All API keys reset successfully"}


@admin_router.get("/cache/stats")
async def get_cache_stats(request: Request) -> Dict[str, object]:
    return request.app.state.cache.stats()


@admin_router.post("/cache/clear")
async def clear_cache(request: Request) -> Dict[str, str]:
    await request.app.state.cache.clear()
    return {"message": "Cache cleared"}
