"""Progress session configuration models and stage presets."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from bulwark.core.constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROGRESS_TIMEOUT_SECONDS,
)


class StageConfig(BaseModel):
    """A named, timed step within a progress timeline."""

    name: str = Field(min_length=1)
    duration: float = Field(gt=0, description="Seconds before advancing to the next stage")
    progress: float = Field(ge=0, le=100, description="Percent shown while in this stage")
    message: str = ""


# =============================================================================
# Stage presets
# =============================================================================

STAGE_PRESETS: dict[str, tuple[StageConfig, ...]] = {
    "onboarding": (
        StageConfig(
            name="authenticating", duration=2.0, progress=25,
            message="Authenticating your account...",
        ),
        StageConfig(
            name="loading_profile", duration=2.0, progress=50,
            message="Loading your mentor profile...",
        ),
        StageConfig(
            name="preparing", duration=2.0, progress=75,
            message="Preparing your onboarding...",
        ),
        StageConfig(
            name="almost_ready", duration=2.0, progress=90,
            message="Almost ready!",
        ),
    ),
    "cv_analysis": (
        StageConfig(
            name="uploading", duration=1.5, progress=20,
            message="Uploading your CV...",
        ),
        StageConfig(
            name="extracting", duration=3.0, progress=45,
            message="Extracting your experience...",
        ),
        StageConfig(
            name="analyzing", duration=4.0, progress=70,
            message="Analyzing your profile...",
        ),
        StageConfig(
            name="matching", duration=3.0, progress=90,
            message="Finding matching programs...",
        ),
    ),
    "session_refresh": (
        StageConfig(
            name="refreshing", duration=1.0, progress=50,
            message="Refreshing your session...",
        ),
        StageConfig(
            name="restoring", duration=1.0, progress=90,
            message="Restoring your workspace...",
        ),
    ),
}

DEFAULT_PRESET = "onboarding"


class ProgressConfig(BaseModel):
    """Stages and timing for a progress session.

    An empty ``stages`` list means "use the preset named by ``preset``".
    """

    preset: str = DEFAULT_PRESET
    stages: list[StageConfig] = Field(default_factory=list)
    timeout: float = Field(
        default=DEFAULT_PROGRESS_TIMEOUT_SECONDS,
        gt=0,
        description="Overall session timeout in seconds",
    )
    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Interval for re-emitting the current snapshot",
    )

    @field_validator("preset")
    @classmethod
    def _known_preset(cls, preset: str) -> str:
        if preset not in STAGE_PRESETS:
            available = ", ".join(sorted(STAGE_PRESETS))
            raise ValueError(f"Unknown progress preset '{preset}' (available: {available})")
        return preset

    @field_validator("stages")
    @classmethod
    def _unique_stage_names(cls, stages: list[StageConfig]) -> list[StageConfig]:
        names = [s.name for s in stages]
        if len(names) != len(set(names)):
            raise ValueError("stage names must be unique")
        return stages
