"""
bpmn_rewrite/rewrite/mask.py — Privacy masking with bypass flows.

A masking run goes through four phases, in order:

    Discover    pick the activities whose cpl:privacy crosses the cut-off
    Synthesize  for every masked node, add a bypass flow from each nearest
                unmasked predecessor to each nearest unmasked successor
    Excise      delete the flows touching masked nodes, the associations on
                those flows and nodes, then the nodes themselves along with
                any boundary events attached to them
    (cascade)   orphaned annotations go with their last association

Synthesize runs for the whole masked set before anything is excised: the
boundary search walks masked-to-masked flows that Excise deletes.

Author: bpmn-rewrite contributors
"""

import logging
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field

import networkx as nx

from bpmn_rewrite.config import DEFAULT_CONFIG, RewriteConfig
from bpmn_rewrite.document import BpmnDocument, local_name, q
from bpmn_rewrite.graph.boundary import Boundary, resolve_boundaries
from bpmn_rewrite.graph.extractor import extract_process_graph
from bpmn_rewrite.layout import flow_waypoints
from bpmn_rewrite.rewrite.cascade import Removal, remove_associations_touching

logger = logging.getLogger(__name__)

# Children that precede bpmn:incoming / bpmn:outgoing inside a flow node.
_LEADING_CHILDREN = ("documentation", "extensionElements", "incoming")


@dataclass
class BypassFlow:
    id: str
    source: str
    target: str


@dataclass
class MaskResult:
    """
    Outcome of one masking run.

    Fields:
        masked:         Removed activity ids, in document order.
        bypass_flows:   Synthesized flows, in creation order.
        removed_flows:  Ids of deleted sequence flows.
        removed_events: Boundary events removed with the activity they were
                        attached to.
        removal:        Associations and annotations deleted along the way.
    """
    masked: list[str] = field(default_factory=list)
    bypass_flows: list[BypassFlow] = field(default_factory=list)
    removed_flows: list[str] = field(default_factory=list)
    removed_events: list[str] = field(default_factory=list)
    removal: Removal = field(default_factory=Removal)

    @property
    def count(self) -> int:
        return len(self.masked)


def should_mask(privacy: float | None, threshold: float, direction: str) -> bool:
    """
    Privacy predicate.

    'above': privacy >= threshold. 'below': privacy < threshold.
    Activities without a numeric privacy value are never masked.
    """
    if privacy is None:
        return False
    if direction == "above":
        return privacy >= threshold
    return privacy < threshold


def select_masked(G: nx.MultiDiGraph, config: RewriteConfig = DEFAULT_CONFIG) -> list[str]:
    """Discover phase: activity ids to mask, in document order."""
    return [
        node for node in G.graph.get("activities", [])
        if should_mask(G.nodes[node].get("privacy"), config.privacy, config.privacy_dir)
    ]


def _insert_flow_ref(doc: BpmnDocument, node: ET.Element, kind: str, flow_id: str) -> None:
    # incoming/outgoing keep their schema position: after documentation,
    # extensionElements and (for outgoing) incoming.
    leading = _LEADING_CHILDREN + (("outgoing",) if kind == "outgoing" else ())
    position = 0
    for i, child in enumerate(node):
        if local_name(child.tag) in leading:
            position = i + 1
    doc.add(node, q("bpmn", kind), text=flow_id, index=position)


def add_bypass_flow(doc: BpmnDocument, flow_id: str, source: str, target: str) -> ET.Element:
    """Create a sequence flow source → target, with flow-node refs and DI when possible."""
    flow = doc.add(doc.process, q("bpmn", "sequenceFlow"), {
        "id": flow_id,
        "sourceRef": source,
        "targetRef": target,
    })

    source_el, target_el = doc.get(source), doc.get(target)
    if source_el is not None:
        _insert_flow_ref(doc, source_el, "outgoing", flow_id)
    if target_el is not None:
        _insert_flow_ref(doc, target_el, "incoming", flow_id)

    source_box, target_box = doc.bounds(source), doc.bounds(target)
    if source_box is not None and target_box is not None:
        doc.add_edge(flow_id, flow_waypoints(source_box, target_box))
    return flow


def synthesize_bypass_flows(
    doc: BpmnDocument,
    G: nx.MultiDiGraph,
    boundaries: list[Boundary],
    config: RewriteConfig = DEFAULT_CONFIG,
) -> list[BypassFlow]:
    """
    Synthesize phase: one flow per distinct (pred, succ) pair.

    A pair is skipped when pred == succ, when some flow pred → succ already
    exists in the process, or when it was synthesized earlier in this run.
    Deduplication is on the literal ordered pair only.
    """
    existing: set[tuple[str, str]] = {(u, v) for u, v in G.edges()}
    created: list[BypassFlow] = []
    ordinal = 1

    for boundary in boundaries:
        for source in boundary.preds:
            for target in boundary.succs:
                if source == target:
                    logger.debug("Skipping self-loop bypass on '%s'.", source)
                    continue
                if (source, target) in existing:
                    logger.debug("Flow %s → %s already exists; no bypass needed.", source, target)
                    continue
                existing.add((source, target))

                flow_id, ordinal = doc.next_free_id(config.auto_flow_prefix, ordinal)
                ordinal += 1
                add_bypass_flow(doc, flow_id, source, target)
                created.append(BypassFlow(flow_id, source, target))
                logger.debug(
                    "Bypass flow %s: %s → %s (around '%s').",
                    flow_id, source, target, boundary.node,
                )

    return created


def remove_flow(doc: BpmnDocument, flow: ET.Element) -> Removal:
    """
    Delete a sequence flow with its associations, DI edge and flow-node refs.

    A gateway or activity whose default flow this was loses its `default`.
    """
    flow_id = flow.get("id")
    removal = Removal()
    if flow_id:
        removal = remove_associations_touching(doc, flow_id)
        doc.remove_di(flow_id)
        doc.remove_text_references(flow_id)
        source = doc.get(flow.get("sourceRef", ""))
        if source is not None and source.get("default") == flow_id:
            del source.attrib["default"]
    doc.remove(flow)
    return removal


def attached_boundary_events(doc: BpmnDocument, masked: list[str]) -> list[str]:
    """Ids of boundary events whose attachedToRef is a masked activity."""
    masked_set = set(masked)
    return [
        event.get("id")
        for event in doc.process.iter(q("bpmn", "boundaryEvent"))
        if event.get("id") and event.get("attachedToRef") in masked_set
    ]


def excise_masked(doc: BpmnDocument, masked: list[str], result: MaskResult) -> None:
    """Excise phase: remove masked nodes and everything that references them."""
    touching: dict[str, list[ET.Element]] = defaultdict(list)
    for flow in doc.sequence_flows():
        touching[flow.get("sourceRef")].append(flow)
        touching[flow.get("targetRef")].append(flow)

    for node_id in masked:
        for flow in touching.get(node_id, []):
            if not doc.is_attached(flow):
                continue
            result.removal.extend(remove_flow(doc, flow))
            result.removed_flows.append(flow.get("id", ""))

        result.removal.extend(remove_associations_touching(doc, node_id))

        doc.remove_di(node_id)
        doc.remove_text_references(node_id)
        node = doc.get(node_id)
        if node is not None:
            doc.remove(node)


def mask_by_privacy(
    doc: BpmnDocument,
    config: RewriteConfig = DEFAULT_CONFIG,
    G: nx.MultiDiGraph | None = None,
) -> MaskResult:
    """
    Remove privacy-sensitive activities while keeping the process connected.

    Args:
        doc:    Document to mutate.
        config: Uses privacy, privacy_dir and auto_flow_prefix.
        G:      Pre-extracted process graph (extracted from doc if omitted).

    Returns:
        MaskResult. An empty masked set leaves the document untouched.

    Notes:
        - For unmasked A, B with a path A → B whose interior is entirely
          masked, the result contains a direct flow A → B: either one that
          already existed or exactly one bypass flow, never more.
        - The bypass flows carry no coupling value.
    """
    if G is None:
        G = extract_process_graph(doc)

    result = MaskResult(masked=select_masked(G, config))
    if not result.masked:
        logger.info(
            "No activities to mask (privacy %s %s).", config.privacy_dir, config.privacy
        )
        return result

    # Attached boundary events go with their activity and count as masked interior.
    result.removed_events = attached_boundary_events(doc, result.masked)
    excised = result.masked + result.removed_events

    boundaries = resolve_boundaries(G, excised)
    result.bypass_flows = synthesize_bypass_flows(doc, G, boundaries, config)
    excise_masked(doc, excised, result)

    logger.info(
        "Masking complete: %d task(s) removed, %d bypass flow(s) added, %d flow(s) removed, "
        "%d boundary event(s) removed, %d association(s) and %d annotation(s) cascaded.",
        result.count,
        len(result.bypass_flows),
        len(result.removed_flows),
        len(result.removed_events),
        len(result.removal.associations),
        len(result.removal.annotations),
    )
    return result
