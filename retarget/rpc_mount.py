"""
retarget.rpc_mount
------------------

HTTP endpoint for the difficulty-adjustment report:

    GET {prefix}/difficulty-adjustment   → DifficultyAdjustmentView
                                           404 while no chain data is cached

Field names follow the established API shape (camelCase). This module is
transport glue only; the estimate comes from the injected service.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from fastapi import APIRouter, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from .types import AdjustmentReport

logger = logging.getLogger(__name__)


class ReportSource(Protocol):
    def compute_adjustment_report(self, now_s: Optional[int] = None) -> Optional[AdjustmentReport]: ...


class DifficultyAdjustmentView(BaseModel):
    """Wire view of an AdjustmentReport."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    progress_percent: float = Field(alias="progressPercent")
    difficulty_change: float = Field(alias="difficultyChange")
    estimated_retarget_date: int = Field(alias="estimatedRetargetDate", description="unix ms")
    remaining_blocks: int = Field(alias="remainingBlocks", ge=0)
    remaining_time: int = Field(alias="remainingTime", description="ms")
    previous_retarget: float = Field(alias="previousRetarget")
    previous_time: int = Field(alias="previousTime", description="unix ms")
    next_retarget_height: int = Field(alias="nextRetargetHeight", ge=0)
    time_avg: int = Field(alias="timeAvg", description="ms")
    time_offset: int = Field(alias="timeOffset", le=0, description="ms; negative when the next block is overdue")
    expected_blocks: int = Field(alias="expectedBlocks", ge=0)

    @classmethod
    def from_report(cls, report: AdjustmentReport) -> "DifficultyAdjustmentView":
        return cls.model_validate(report.to_dict())


def get_router(service: ReportSource) -> APIRouter:
    r = APIRouter(tags=["difficulty"])

    @r.get(
        "/difficulty-adjustment",
        response_model=DifficultyAdjustmentView,
        response_model_by_alias=True,
    )
    def difficulty_adjustment(
        now: Optional[int] = Query(None, ge=0, description="evaluate at this unix time (seconds)"),
    ) -> DifficultyAdjustmentView:
        report = service.compute_adjustment_report(now)
        if report is None:
            raise HTTPException(status_code=404, detail="no chain data yet")
        return DifficultyAdjustmentView.from_report(report)

    return r


def _mounted_prefixes(app: Any) -> set[str]:
    key = "_retarget_rpc_mounted"
    mounted: Optional[set[str]] = getattr(app.state, key, None)
    if mounted is None:
        mounted = set()
        setattr(app.state, key, mounted)
    return mounted


def mount(
    app: FastAPI,
    service: ReportSource,
    prefix: str = "/api/v1",
    *,
    tags: Optional[Iterable[str]] = None,
) -> None:
    """
    Include the difficulty router into `app`. Idempotent per prefix.
    """
    mounted = _mounted_prefixes(app)
    if prefix in mounted:
        logger.debug("retarget router already mounted at prefix %s; skipping", prefix)
        return
    include_kwargs: dict[str, Any] = {}
    if tags is not None:
        include_kwargs["tags"] = list(tags)
    app.include_router(get_router(service), prefix=prefix, **include_kwargs)
    mounted.add(prefix)
    logger.info("Mounted difficulty-adjustment API at prefix %s", prefix)


__all__ = ["DifficultyAdjustmentView", "get_router", "mount"]
