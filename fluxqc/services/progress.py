"""
Per-run progress reporting.

A ProgressReporter is created for each detection/imputation run and passed down
the call chain. Events go to an optional in-process callback and, when
PUBLISH_PROGRESS is on, to the Redis channel ``fluxqc:progress:{result_id}``.
Delivery is best effort: a failing sink is logged and never fails the run.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

import redis

from fluxqc.config import settings

logger = logging.getLogger(__name__)

STAGE_PREPARING = "preparing"
STAGE_DETECTING = "detecting"
STAGE_IMPUTING = "imputing"
STAGE_SAVING = "saving"


@dataclass
class ProgressEvent:
    result_id: int
    stage: str
    progress: float                     # 0..100
    message: str = ""
    current_column: Optional[str] = None
    processed_columns: Optional[int] = None
    total_columns: Optional[int] = None


ProgressCallback = Callable[[ProgressEvent], None]

_publisher: Optional[redis.Redis] = None


def _get_publisher() -> redis.Redis:
    global _publisher
    if _publisher is None:
        _publisher = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _publisher


def channel_for(result_id: int) -> str:
    return f"fluxqc:progress:{result_id}"


class ProgressReporter:
    def __init__(self, result_id: int, callback: Optional[ProgressCallback] = None,
                 publish: Optional[bool] = None):
        self.result_id = result_id
        self.callback = callback
        self.publish = settings.PUBLISH_PROGRESS if publish is None else publish

    def emit(self, stage: str, progress: float, message: str = "", **extra) -> None:
        event = ProgressEvent(
            result_id=self.result_id,
            stage=stage,
            progress=max(0.0, min(100.0, float(progress))),
            message=message,
            **extra,
        )
        if self.callback is not None:
            try:
                self.callback(event)
            except Exception:
                logger.exception("Progress callback failed for result %s", self.result_id)
        if self.publish:
            try:
                _get_publisher().publish(channel_for(self.result_id), json.dumps(asdict(event)))
            except redis.RedisError as e:
                logger.warning("Progress publish failed for result %s: %s", self.result_id, e)
