"""Milestone detection: streak-length and challenge-progress thresholds.

Thresholds are evaluated highest first and the first one crossed wins, so a
jump across several thresholds reports (and rewards) only the highest.
"""

from __future__ import annotations

from dataclasses import dataclass

# --- Streak milestones (days), highest first ---
STREAK_MILESTONES: tuple[tuple[int, str], ...] = (
    (30, "streak_30"),
    (14, "streak_14"),
    (7, "streak_7"),
)

# --- Progress milestones (percent), highest first ---
PROGRESS_MILESTONES: tuple[tuple[int, str], ...] = (
    (100, "progress_100"),
    (75, "progress_75"),
    (50, "progress_50"),
    (25, "progress_25"),
)

MILESTONE_SHIELDS: dict[str, int] = {
    "streak_7": 1,
    "streak_14": 1,
    "streak_30": 2,
}

MILESTONE_REWARDS: dict[str, str] = {
    "streak_7": "7-day streak! You earned a streak shield.",
    "streak_14": "Two weeks strong! You earned a streak shield.",
    "streak_30": "30-day streak! You earned two streak shields.",
    "progress_25": "25% of the way there!",
    "progress_50": "Halfway there!",
    "progress_75": "75% complete, keep going!",
    "progress_100": "Challenge complete!",
}


@dataclass(frozen=True)
class MilestoneInfo:
    milestone: str
    threshold: int
    shields_granted: int
    reward: str


def _first_crossed(thresholds: tuple[tuple[int, str], ...], new: float, old: float) -> str | None:
    for threshold, slug in thresholds:
        if new >= threshold > old:
            return slug
    return None


def check_streak_milestone(new_streak: int, old_streak: int) -> str | None:
    """Return the highest streak milestone crossed going from old to new."""
    return _first_crossed(STREAK_MILESTONES, new_streak, old_streak)


def check_progress_milestone(new_progress: float, old_progress: float) -> str | None:
    """Return the highest progress milestone crossed going from old to new."""
    return _first_crossed(PROGRESS_MILESTONES, new_progress, old_progress)


def check_milestone(
    new_progress: float,
    old_progress: float,
    new_streak: int = 0,
    old_streak: int = 0,
) -> str | None:
    """Progress milestones take precedence over streak milestones."""
    return check_progress_milestone(new_progress, old_progress) or check_streak_milestone(
        new_streak, old_streak
    )


def get_milestone_info(milestone: str) -> MilestoneInfo | None:
    for threshold, slug in STREAK_MILESTONES + PROGRESS_MILESTONES:
        if slug == milestone:
            return MilestoneInfo(
                milestone=slug,
                threshold=threshold,
                shields_granted=MILESTONE_SHIELDS.get(slug, 0),
                reward=MILESTONE_REWARDS[slug],
            )
    return None
