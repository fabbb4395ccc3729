from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.catchment import build_catchment_response, get_service
from api.schemas import ApiCatchmentRequest, ApiCatchmentResponse
from catchment.query import CatchmentQuery
from regions.registry import get_region, list_regions, load_region_areas
from regions.types import RegionConfig
from traveltime.errors import TravelTimeConfigError, TravelTimeUpstreamError

logging.basicConfig(
    level=(os.getenv("CATCHMENT_LOG_LEVEL") or "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TravelTimeConfigError)
async def _config_error(_request: Request, exc: TravelTimeConfigError):
    logger.error("TravelTime is not configured: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.exception_handler(TravelTimeUpstreamError)
async def _upstream_error(_request: Request, exc: TravelTimeUpstreamError):
    return JSONResponse(exc.as_dict(), status_code=502)


@app.get("/regions")
def regions():
    return [r.model_dump() for r in list_regions()]


def _region_query(body: ApiCatchmentRequest) -> tuple[RegionConfig, CatchmentQuery]:
    cfg = get_region(body.regionId)
    return cfg, body.to_query(utc_offset=cfg.timezoneOffset)


@app.post("/isochrone")
async def isochrone(body: ApiCatchmentRequest):
    _cfg, query = _region_query(body)
    data, _hit = await get_service().isochrone(query)
    return data


@app.post("/catchment", response_model=ApiCatchmentResponse)
async def catchment(body: ApiCatchmentRequest):
    cfg, query = _region_query(body)
    # First load parses the region's GeoJSON from disk.
    areas = await run_in_threadpool(load_region_areas, cfg.id)
    data, hit = await get_service().isochrone(query)
    return build_catchment_response(data, areas, body.mode, from_cache=hit)
