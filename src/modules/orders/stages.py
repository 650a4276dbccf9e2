"""Stage range checks and display names.

Names are configuration, not code: a ``StageNames`` object is injected into
the services that render stage transitions.
"""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

from django.conf import settings

from modules.orders.constants import STAGE_MAX, STAGE_MIN
from modules.orders.exceptions import InvalidStage


class StageNames(Protocol):
    def name_for(self, stage: int) -> Optional[str]: ...


class MappingStageNames:
    """``StageNames`` backed by a plain ``{stage: name}`` mapping."""

    def __init__(self, names: Mapping[int, str]) -> None:
        self._names = {int(stage): name for stage, name in names.items()}

    def name_for(self, stage: int) -> Optional[str]:
        return self._names.get(stage) or None


def stage_names_from_settings() -> MappingStageNames:
    return MappingStageNames(getattr(settings, "ORDER_STAGE_NAMES", {}))


def validate_stage(stage: object) -> int:
    """Return *stage* as an int, or raise ``InvalidStage``."""
    if isinstance(stage, bool) or not isinstance(stage, int):
        raise InvalidStage(f"Stage must be an integer, got {stage!r}.")
    if not STAGE_MIN <= stage <= STAGE_MAX:
        raise InvalidStage(
            f"Stage {stage} is outside the range {STAGE_MIN}..{STAGE_MAX}."
        )
    return stage


def stage_label(names: StageNames, stage: int) -> str:
    return names.name_for(stage) or f"Stage {stage}"


def render_transition(names: StageNames, previous: int, new: int) -> str:
    return f"{stage_label(names, previous)} → {stage_label(names, new)}"
