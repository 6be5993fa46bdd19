"""
bpmn_rewrite/graph/extractor.py — Project the BPMN process onto a NetworkX graph.

Pure projection: reads the document, never mutates it. Every node that appears
as a sequence-flow endpoint is a graph node (gateways and events included, so
that masking can find them as unmasked boundary nodes); task-like elements are
flagged with activity=True and carry their privacy value.

Author: bpmn-rewrite contributors
"""

import logging

import networkx as nx

from bpmn_rewrite.document import BpmnDocument, parse_number, q

logger = logging.getLogger(__name__)

COUPLING_ATTR = q("cpl", "coupling")
PRIVACY_ATTR = q("cpl", "privacy")


def extract_process_graph(doc: BpmnDocument) -> nx.MultiDiGraph:
    """
    Build the flow graph of the document's process.

    Args:
        doc: Loaded BpmnDocument.

    Returns:
        G: nx.MultiDiGraph.
           Nodes: every activity (in document order) plus every other flow
                  endpoint. Attributes: activity (bool), privacy (float | None).
           Edges: one per bpmn:sequenceFlow, keyed by flow id, in document
                  order. Attribute: coupling (float | None).
           G.graph['activities']: activity ids in document order.

    Notes:
        - Parallel flows between the same ordered pair are kept as separate
          edges; duplicate-avoidance only asks whether *some* flow exists.
        - Non-numeric cpl:coupling / cpl:privacy values are treated as absent.
        - A flow missing sourceRef or targetRef is skipped with a warning.
    """
    G = nx.MultiDiGraph()

    activity_ids: list[str] = []
    for task in doc.activities():
        task_id = task.get("id")
        if not task_id:
            logger.warning("Skipping activity without an id: <%s>.", task.tag)
            continue
        activity_ids.append(task_id)
        G.add_node(task_id, activity=True, privacy=parse_number(task.get(PRIVACY_ATTR)))

    for flow in doc.sequence_flows():
        flow_id = flow.get("id")
        source = flow.get("sourceRef")
        target = flow.get("targetRef")
        if not source or not target:
            logger.warning("Skipping sequence flow '%s' without sourceRef/targetRef.", flow_id)
            continue
        for endpoint in (source, target):
            if endpoint not in G:
                if endpoint not in doc:
                    logger.warning(
                        "Sequence flow '%s' references unknown node '%s'.", flow_id, endpoint
                    )
                G.add_node(endpoint, activity=False, privacy=None)
        G.add_edge(source, target, key=flow_id, coupling=parse_number(flow.get(COUPLING_ATTR)))

    G.graph["activities"] = activity_ids

    logger.debug(
        "Extracted process graph: %d activities, %d nodes, %d flows.",
        len(activity_ids),
        G.number_of_nodes(),
        G.number_of_edges(),
    )
    return G
