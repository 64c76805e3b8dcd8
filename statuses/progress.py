"""
statuses/progress.py

Five-stage progress flags for a recruitment status, used by candidate
progress bars and reports.

Stage order: New → Processed → Interview → Offered → Joined
"""

PIPELINE_STAGES = ("New", "Processed", "Interview", "Offered", "Joined")

PROGRESS_KEYS = ("screening", "interview", "offer", "hired", "joined")


def _empty_progress() -> dict[str, bool]:
    return {key: False for key in PROGRESS_KEYS}


def get_progress_for_status(catalog, status_id) -> dict[str, bool]:
    """
    Resolve status_id (main or sub) to its main stage and return which
    milestones the candidate has reached. Unknown ids and stages outside
    PIPELINE_STAGES report no progress.
    """
    status = catalog.get_by_id(status_id)
    if status is None:
        return _empty_progress()

    main = status if status.is_main else catalog.parent_of(status)
    if main is None or main.name not in PIPELINE_STAGES:
        return _empty_progress()

    stage_index = PIPELINE_STAGES.index(main.name)
    return {
        "screening": True,
        "interview": stage_index >= 2,
        "offer": stage_index >= 3,
        # An offer counts as a hire for reporting.
        "hired": stage_index >= 3,
        "joined": stage_index >= 4,
    }
