"""Route sequencing endpoints."""

from __future__ import annotations

import logging
from typing import Literal, Union

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import ValidationError as ResponseValidationError

from ...schemas.routing import RouteComparisonResponse, RouteOptimizationRequest, RouteOptimizationResponse
from ...services.routing.errors import ValidationError
from ...services.routing.service import (
    compare_delivery_route,
    export_delivery_route_csv,
    optimize_delivery_route,
)

router = APIRouter(prefix="/routes", tags=["routes"])

logger = logging.getLogger(__name__)


def _bad_request(exc: ValueError) -> HTTPException:
    if isinstance(exc, ValidationError):
        detail = exc.to_dict()
    else:
        detail = {"message": str(exc), "stop_id": None, "field": None}
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _server_error(action: str, exc: Exception) -> HTTPException:
    logger.exception("Error %s: %s", action, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed {action}: {exc}",
    )


@router.post("/optimize", response_model=RouteOptimizationResponse, status_code=status.HTTP_200_OK)
def optimize(
    payload: RouteOptimizationRequest,
    output_format: Literal["json", "csv"] = Query(default="json", alias="format"),
) -> Union[RouteOptimizationResponse, Response]:
    """Optimized visiting order; ``?format=csv`` returns one CSV row per stop."""
    try:
        if output_format == "csv":
            return Response(content=export_delivery_route_csv(payload), media_type="text/csv")
        return optimize_delivery_route(payload)
    except ResponseValidationError as exc:
        # Raised while building our own response model, not by the request.
        raise _server_error("optimizing route", exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:
        raise _server_error("optimizing route", exc) from exc


@router.post("/compare", response_model=RouteComparisonResponse, status_code=status.HTTP_200_OK)
def compare(payload: RouteOptimizationRequest) -> RouteComparisonResponse:
    """Original versus optimized visiting order for the same stops."""
    try:
        return compare_delivery_route(payload)
    except ResponseValidationError as exc:
        raise _server_error("comparing routes", exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:
        raise _server_error("comparing routes", exc) from exc
