"""
Catalog API endpoints.
"""
from fastapi import APIRouter, HTTPException, Query, Request
from typing import Optional

from tvcatalog.errors import SourceUnavailable, UnsupportedViewType
from tvcatalog.models.views import ViewOptions
from tvcatalog.services.catalog import CatalogService

router = APIRouter(prefix="/api", tags=["catalog"])


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def _options(ttl_seconds: Optional[int], unlimited: Optional[bool]) -> ViewOptions:
    return ViewOptions(ttl_seconds=ttl_seconds, unlimited=unlimited)


@router.get("/views/{view_type}")
async def get_view(
    request: Request,
    view_type: str,
    unlimited: Optional[bool] = Query(None, description="Disable per-group and group-count caps"),
    ttl_seconds: Optional[int] = Query(None, ge=1, description="Cache TTL override"),
):
    """
    Channels grouped by country or by category.

    - **view_type**: `country` or `category`
    """
    catalog = get_catalog(request)
    try:
        view = await catalog.get_view(view_type, _options(ttl_seconds, unlimited))
    except UnsupportedViewType as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    if view is None:
        raise HTTPException(status_code=409, detail="Request superseded by a newer one")
    return view


@router.get("/stats")
async def get_stats(request: Request):
    """
    Aggregate catalog counts.
    """
    catalog = get_catalog(request)
    try:
        stats = await catalog.get_stats()
    except SourceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    if stats is None:
        raise HTTPException(status_code=409, detail="Request superseded by a newer one")
    return stats


@router.get("/search")
async def search(
    request: Request,
    q: str = Query("", description="Search term for channel or group names"),
    view_type: str = Query("category", description="View to search in"),
):
    """
    Search channels by name or group label.
    """
    catalog = get_catalog(request)
    try:
        hits = await catalog.search(q, view_type)
    except UnsupportedViewType as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {"query": q, "total": len(hits), "results": hits}


@router.post("/playlist/parse")
async def parse_playlist(
    request: Request,
    unlimited: Optional[bool] = Query(None, description="Disable playlist caps"),
):
    """
    Parse M3U playlist text (request body) into channels grouped by category.
    """
    catalog = get_catalog(request)
    text = (await request.body()).decode("utf-8", errors="ignore")
    return catalog.parse_playlist(text, _options(None, unlimited))


@router.delete("/cache")
async def clear_cache(
    request: Request,
    x_admin_key: Optional[str] = Query(None, alias="X-Admin-Key"),
):
    """
    Drop every cached view.
    Requires X-Admin-Key query parameter.
    """
    if x_admin_key != request.app.state.settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing admin API key")

    await get_catalog(request).clear_cache()
    return {"status": "cleared"}
