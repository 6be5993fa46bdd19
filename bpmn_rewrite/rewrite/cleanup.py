"""
bpmn_rewrite/rewrite/cleanup.py — Remove fragments generated by an earlier run.

A group is "generated" if it carries cpl:fragmentId or its id starts with the
reserved fragment prefix (Fragment_ by default). For each one the pass removes
its associations (cascading the now-orphaned annotation), its category value,
its diagram shape and the group itself. Leftovers from partially edited files
(diagram nodes or associations pointing at a missing Fragment_* element) are
swept as well.

Idempotent: a second run finds nothing to remove.

Author: bpmn-rewrite contributors
"""

import logging
from dataclasses import dataclass, field

from bpmn_rewrite.config import DEFAULT_CONFIG, RewriteConfig
from bpmn_rewrite.document import NS, BpmnDocument, q
from bpmn_rewrite.rewrite.cascade import Removal, remove_association, remove_associations_touching

logger = logging.getLogger(__name__)

FRAGMENT_ID_ATTR = q("cpl", "fragmentId")


@dataclass
class CleanupResult:
    groups: list[str] = field(default_factory=list)
    category_values: list[str] = field(default_factory=list)
    removal: Removal = field(default_factory=Removal)
    stale_di: int = 0

    @property
    def is_empty(self) -> bool:
        return not (
            self.groups or self.category_values or self.removal.associations or self.stale_di
        )


def is_generated_group(group, config: RewriteConfig = DEFAULT_CONFIG) -> bool:
    return (
        group.get(FRAGMENT_ID_ATTR) is not None
        or group.get("id", "").startswith(config.fragment_prefix)
    )


def _remove_category_value(doc: BpmnDocument, cv_id: str | None, config: RewriteConfig) -> bool:
    cv = doc.get(cv_id) if cv_id else None
    if cv is None or cv.tag != q("bpmn", "categoryValue"):
        return False
    if not cv_id.startswith(config.fragment_prefix):
        return False
    category = doc.parent(cv)
    doc.remove(cv)
    if (
        category is not None
        and category.get("id") == config.category_id
        and not category.findall("bpmn:categoryValue", NS)
    ):
        doc.remove(category)
    return True


def clear_old_fragments(doc: BpmnDocument, config: RewriteConfig = DEFAULT_CONFIG) -> CleanupResult:
    """
    Remove every generated fragment group and its companions.

    Args:
        doc:    Document to mutate.
        config: Uses fragment_prefix and category_id.

    Returns:
        CleanupResult listing what was removed (empty on a clean document).
    """
    result = CleanupResult()

    groups = [g for g in doc.process.iter(q("bpmn", "group")) if is_generated_group(g, config)]
    for group in groups:
        group_id = group.get("id", "")
        if group_id:
            result.removal.extend(remove_associations_touching(doc, group_id))
            doc.remove_di(group_id)
        if _remove_category_value(doc, group.get("categoryValueRef"), config):
            result.category_values.append(group.get("categoryValueRef"))
        doc.remove(group)
        result.groups.append(group_id)

    # Associations still pointing at a generated id that no longer exists.
    for association in list(doc.iter_tag("bpmn", "association")):
        refs = (association.get("sourceRef") or "", association.get("targetRef") or "")
        if any(r.startswith(config.fragment_prefix) and r not in doc for r in refs):
            result.removal.extend(remove_association(doc, association))

    # Diagram nodes drawing a generated id that no longer exists.
    for tag in ("BPMNShape", "BPMNEdge"):
        for node in list(doc.iter_tag("bpmndi", tag)):
            ref = node.get("bpmnElement") or ""
            if ref.startswith(config.fragment_prefix) and ref not in doc:
                doc.remove(node)
                result.stale_di += 1

    logger.info(
        "Cleanup complete: %d group(s), %d association(s), %d annotation(s), "
        "%d stale diagram node(s) removed.",
        len(result.groups),
        len(result.removal.associations),
        len(result.removal.annotations),
        result.stale_di,
    )
    return result
