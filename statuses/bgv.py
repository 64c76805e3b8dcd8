"""
statuses/bgv.py

Background-verification (BGV) overlay: a narrower status catalog that runs in
parallel with the recruitment pipeline on the same candidate record.

Public API:
  is_terminal_bgv_status(sub_status)                → bool
  load_status_tree(organization, pipeline="bgv")    → [MainStatusNode]
  allowed_bgv_targets(tree, current_main, current_sub) → [StatusDefinition]

BGV path:
  Initiated ─▶ In Progress (verification steps, forward only) ◀─▶ On Hold
  In Progress (after Reference Check) ─▶ Completed ─▶ Closed
"""

import logging

from statuses.tree import MainStatusNode, build_status_tree

logger = logging.getLogger(__name__)

# Fixed codes of the BGV sub statuses after which verification is over.
BGV_TERMINAL_STATUS_CODES = frozenset({
    "all_checks_clear",
    "minor_discrepancy",
    "major_discrepancy",
    "verification_not_required",
    "candidate_withdrawn",
})

# ── Main stage names ───────────────────────────────────────────────────────────

INITIATED = "Initiated"
IN_PROGRESS = "In Progress"
ON_HOLD = "On Hold"
COMPLETED = "Completed"
CLOSED = "Closed"

BGV_STAGE_ORDER = (INITIATED, IN_PROGRESS, ON_HOLD, COMPLETED, CLOSED)

# In Progress sub statuses, in the only order they may be walked.
VERIFICATION_STEPS = (
    "Verification Started",
    "Address Verification",
    "Education Verification",
    "Employment Verification",
    "Criminal Record Verification",
    "Reference Check",
)


def is_terminal_bgv_status(sub_status) -> bool:
    """
    Membership test against BGV_TERMINAL_STATUS_CODES.
    Accepts a status code or a StatusDefinition.
    """
    code = getattr(sub_status, "code", sub_status)
    return code in BGV_TERMINAL_STATUS_CODES


def load_status_tree(organization, pipeline: str = "bgv") -> list[MainStatusNode]:
    """Fetch the organization's statuses for one pipeline and group them main → subs."""
    from statuses.models import StatusDefinition

    statuses = StatusDefinition.objects.filter(
        organization=organization,
        pipeline=pipeline,
    )
    return build_status_tree(statuses)


def _steps_from(current_name: str) -> tuple[str, ...]:
    if current_name in VERIFICATION_STEPS:
        return VERIFICATION_STEPS[VERIFICATION_STEPS.index(current_name):]
    return VERIFICATION_STEPS


def _targets_for_stage(node: MainStatusNode, current_main: str, current_sub: str) -> list:
    stage = node.name
    if current_main == INITIATED:
        if stage == INITIATED:
            return list(node.subs)
        if stage == IN_PROGRESS:
            return [s for s in node.subs if s.name == VERIFICATION_STEPS[0]]
    elif current_main == IN_PROGRESS:
        if stage == IN_PROGRESS:
            remaining = _steps_from(current_sub)
            return [s for s in node.subs if s.name in remaining]
        if stage == ON_HOLD:
            return list(node.subs)
        if stage == COMPLETED and current_sub == VERIFICATION_STEPS[-1]:
            return list(node.subs)
    elif current_main == ON_HOLD:
        if stage == IN_PROGRESS:
            return list(node.subs)
    elif current_main == COMPLETED:
        if stage == CLOSED:
            return list(node.subs)
    return []


def allowed_bgv_targets(tree: list[MainStatusNode], current_main=None, current_sub=None) -> list:
    """
    Sub statuses a candidate may move to next on the BGV path, in tree order.

    With no current status only the Initiated subs are offered; from a
    terminal BGV status nothing is.
    """
    if current_main is None or current_sub is None:
        return [s for node in tree if node.name == INITIATED for s in node.subs]

    if is_terminal_bgv_status(current_sub):
        return []

    targets = []
    for node in tree:
        targets.extend(_targets_for_stage(node, current_main.name, current_sub.name))
    return targets
