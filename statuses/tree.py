"""
statuses/tree.py

Two-level status hierarchy reconstruction from a flat status list.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class MainStatusNode:
    status: object
    subs: list = field(default_factory=list)

    @property
    def id(self):
        return self.status.pk

    @property
    def name(self) -> str:
        return self.status.name


def _display_key(status) -> tuple:
    return (status.display_order, status.name, status.pk)


def build_status_tree(statuses) -> list[MainStatusNode]:
    """
    Group sub statuses under their main parent, both levels ordered by
    display_order. Sub statuses whose parent is not in the list are dropped.
    """
    statuses = list(statuses)
    mains = sorted((s for s in statuses if s.type == "main"), key=_display_key)
    nodes = {main.pk: MainStatusNode(status=main) for main in mains}

    for sub in sorted((s for s in statuses if s.type == "sub"), key=_display_key):
        node = nodes.get(sub.parent_id)
        if node is None:
            logger.warning(
                "Dropping orphan sub status id=%s name=%r (parent_id=%s)",
                sub.pk, sub.name, sub.parent_id,
            )
            continue
        node.subs.append(sub)

    return [nodes[main.pk] for main in mains]
