"""
bpmn_rewrite/rewrite/cascade.py — Association removal with orphan cascade.

Rule: when an association is deleted, each endpoint that is a
bpmn:textAnnotation and is no longer referenced by any association is deleted
too, together with its diagram shape. No other element type cascades.

Used by masking (flow and activity removal) and by the cleanup pass.

Author: bpmn-rewrite contributors
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from bpmn_rewrite.document import BpmnDocument

logger = logging.getLogger(__name__)


@dataclass
class Removal:
    """Ids deleted by one or more cascading removals."""
    associations: list[str] = field(default_factory=list)
    annotations: list[str] = field(default_factory=list)

    def extend(self, other: "Removal") -> "Removal":
        self.associations.extend(other.associations)
        self.annotations.extend(other.annotations)
        return self


def remove_association(doc: BpmnDocument, association: ET.Element) -> Removal:
    """Delete one association (and its DI edge), then collect orphaned annotations."""
    removal = Removal()
    if not doc.is_attached(association):
        return removal

    assoc_id = association.get("id")
    endpoints = [association.get("sourceRef"), association.get("targetRef")]

    if assoc_id:
        doc.remove_di(assoc_id)
    doc.remove(association)
    removal.associations.append(assoc_id or "")

    for ref in dict.fromkeys(endpoints):
        if not doc.is_text_annotation(ref) or doc.associations_touching(ref):
            continue
        doc.remove(doc.get(ref))
        doc.remove_di(ref)
        removal.annotations.append(ref)
        logger.debug("Removed orphaned text annotation '%s'.", ref)

    return removal


def remove_associations_touching(doc: BpmnDocument, ref: str) -> Removal:
    """Delete every association with `ref` as source or target, cascading orphans."""
    removal = Removal()
    for association in doc.associations_touching(ref):
        removal.extend(remove_association(doc, association))
    return removal
