"""
bpmn_rewrite/rewrite/fragment.py — Fragmentation by coupling.

Each coupling cluster (see graph.disjoint_set) becomes one fragment:

    bpmn:categoryValue   Fragment_<n>_CV    under Category_Fragments
    bpmn:group           Fragment_<n>       cpl:fragmentId/Name/Size, cpl:couplingThreshold
    bpmn:association     Fragment_<n>_A_<member>      group → member, one per member
    bpmn:textAnnotation  Fragment_<n>_TA    "Fragment_<n>\\nsize=<k>"
    bpmn:association     Fragment_<n>_TA_Assoc        annotation → group

plus a BPMNShape for the group and the annotation, and a BPMNEdge for the
annotation association drawn edge-to-edge between the two boxes.

Fragmentation is additive: existing elements are never modified, apart from
the category that receives the new category values.

Author: bpmn-rewrite contributors
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

import networkx as nx

from bpmn_rewrite.config import DEFAULT_CONFIG, RewriteConfig
from bpmn_rewrite.document import NS, BpmnDocument, q
from bpmn_rewrite.graph.disjoint_set import coupling_components
from bpmn_rewrite.graph.extractor import extract_process_graph
from bpmn_rewrite.layout import Box, facing_anchors, union_box

logger = logging.getLogger(__name__)


@dataclass
class Fragment:
    """
    One generated fragment group.

    Fields:
        id:            Group id (Fragment_<n>).
        members:       Member activity ids, in document order.
        box:           Group bounds (padded union of member bounds).
        annotation_id: Id of the descriptive text annotation.
    """
    id: str
    members: list[str]
    box: Box
    annotation_id: str

    @property
    def size(self) -> int:
        return len(self.members)


def ensure_category(doc: BpmnDocument, config: RewriteConfig = DEFAULT_CONFIG) -> ET.Element:
    """The fragments category under definitions, created as its first child if missing."""
    for cat in doc.definitions.findall("bpmn:category", NS):
        if cat.get("id") == config.category_id:
            return cat
    return doc.add(doc.definitions, q("bpmn", "category"), {"id": config.category_id}, index=0)


def fragment_box(doc: BpmnDocument, members: list[str], config: RewriteConfig = DEFAULT_CONFIG) -> Box:
    """Padded union of member bounds; members without a shape use the placeholder box."""
    placeholder = Box(
        config.placeholder_x,
        config.placeholder_y,
        config.placeholder_width,
        config.placeholder_height,
    )
    boxes = []
    for member in members:
        box = doc.bounds(member)
        if box is None:
            logger.warning("Activity '%s' has no shape; using placeholder bounds.", member)
            box = placeholder
        boxes.append(box)
    return union_box(boxes, padding=config.group_padding)


def add_group_annotation(
    doc: BpmnDocument,
    group_id: str,
    group_box: Box,
    label: str,
    config: RewriteConfig = DEFAULT_CONFIG,
) -> str:
    """
    Attach a text annotation just above a group and link it with an association.

    Returns:
        The annotation id (<group_id>_TA).
    """
    annotation_id = f"{group_id}_TA"
    assoc_id = f"{annotation_id}_Assoc"

    annotation = doc.add(doc.process, q("bpmn", "textAnnotation"), {"id": annotation_id})
    doc.add(annotation, q("bpmn", "text"), text=label)
    doc.add(doc.process, q("bpmn", "association"), {
        "id": assoc_id,
        "associationDirection": "None",
        "sourceRef": annotation_id,
        "targetRef": group_id,
    })

    note_box = Box(
        group_box.x,
        group_box.y - config.annotation_offset,
        config.annotation_width,
        config.annotation_height,
    )
    doc.add_shape(annotation_id, note_box)
    doc.add_edge(assoc_id, facing_anchors(group_box, note_box))
    return annotation_id


def fragment_by_coupling(
    doc: BpmnDocument,
    config: RewriteConfig = DEFAULT_CONFIG,
    G: nx.MultiDiGraph | None = None,
) -> list[Fragment]:
    """
    Group the process's activities into coupling fragments.

    Args:
        doc:    Document to mutate.
        config: Uses threshold, include_singletons and the layout/naming fields.
        G:      Pre-extracted process graph (extracted from doc if omitted).

    Returns:
        fragments: One Fragment per retained cluster, in cluster order.

    Notes:
        - Ordinals are 1-based in cluster order. An id already present in the
          document (e.g. from an earlier run without --clear-old) is skipped
          and the next free ordinal is used.
    """
    if G is None:
        G = extract_process_graph(doc)

    clusters = coupling_components(G, config.threshold, config.include_singletons)
    doc.ensure_plane()
    category = ensure_category(doc, config)

    fragments: list[Fragment] = []
    ordinal = 1
    for members in clusters:
        frag_id, ordinal = doc.next_free_id(config.fragment_prefix, ordinal)
        ordinal += 1
        cv_id = f"{frag_id}_CV"

        doc.add(category, q("bpmn", "categoryValue"), {"id": cv_id, "value": frag_id})
        doc.add(doc.process, q("bpmn", "group"), {
            "id": frag_id,
            "categoryValueRef": cv_id,
            q("cpl", "fragmentId"): frag_id,
            q("cpl", "fragmentName"): frag_id,
            q("cpl", "fragmentSize"): str(len(members)),
            q("cpl", "couplingThreshold"): str(config.threshold),
        })

        box = fragment_box(doc, members, config)
        doc.add_shape(frag_id, box)

        for member in members:
            doc.add(doc.process, q("bpmn", "association"), {
                "id": f"{frag_id}_A_{member}",
                "associationDirection": "None",
                "sourceRef": frag_id,
                "targetRef": member,
            })

        label = f"{frag_id}\nsize={len(members)}"
        annotation_id = add_group_annotation(doc, frag_id, box, label, config)
        fragments.append(Fragment(frag_id, list(members), box, annotation_id))

    logger.info(
        "Fragmentation complete: %d group(s) from %d activities (threshold=%s, singletons=%s).",
        len(fragments),
        len(G.graph.get("activities", [])),
        config.threshold,
        config.include_singletons,
    )
    return fragments
