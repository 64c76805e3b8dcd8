"""
talentflow/constants.py

Central repository for cross-cutting, operationally-tunable constants.

Rules for what belongs here:
  - Pure Python only — no Django model imports (prevents circular import risk).
  - Referenced by more than one module, or genuinely tunable at the ops level.

What intentionally stays elsewhere:
  - TextChoices on models          — Django convention, DB-validated.
  - Classifier category tables     — statuses/classifier.py (single consumer).
  - BGV terminal codes / BGV path  — statuses/bgv.py (single consumer).
"""

# ── Organization setting keys ──────────────────────────────────────────────────

# "true" / "false". When true, moving a candidate out of a terminal status
# requires force=True. Default: settings.PIPELINE_ENFORCE_TERMINAL_STATUSES.
ENFORCE_TERMINAL_STATUSES_KEY = "enforce_terminal_statuses"

# "true" / "false". When true, recruitment moves must match a
# StatusTransitionRule and BGV moves must follow the BGV path.
# Default: settings.PIPELINE_ENFORCE_TRANSITION_RULES.
ENFORCE_TRANSITION_RULES_KEY = "enforce_transition_rules"

# ── Timeline ───────────────────────────────────────────────────────────────────

# created_by_name recorded when a transition has no acting user.
SYSTEM_ACTOR_NAME = "System"

# event_data["action"] on every status_change event.
STATUS_UPDATED_ACTION = "Status updated"

# Maximum length of a free-text note appended to the timeline.
NOTE_MAX_LENGTH = 5000
