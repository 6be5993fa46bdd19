"""
bpmn_rewrite/tests/test_mask.py — Tests for privacy masking.

Tests verify:
- The privacy predicate in both directions; tasks without privacy are kept.
- A chain of masked nodes is bridged by exactly one bypass flow.
- No bypass duplicates an existing flow or another bypass; no self-loops.
- Flows, DI, flow-node refs, lane refs and associations touching masked
  nodes are removed; orphaned annotations cascade, shared ones survive.
- A gateway default naming a removed flow is cleared; boundary events go
  with the activity they are attached to.
- Reachability through masked-only paths is preserved on random graphs.

Author: bpmn-rewrite contributors
"""

import random
from collections import deque

import networkx as nx
import pytest

from bpmn_rewrite.config import RewriteConfig
from bpmn_rewrite.document import NS, q
from bpmn_rewrite.graph.extractor import extract_process_graph
from bpmn_rewrite.rewrite.mask import mask_by_privacy, should_mask

from .conftest import build_bpmn, flow_pairs, make_doc

ABOVE = RewriteConfig(mode="mask", privacy=0.5, privacy_dir="above")


# ── Predicate ─────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("privacy, direction, expected", [
    (0.9, "above", True),
    (0.5, "above", True),
    (0.49, "above", False),
    (0.49, "below", True),
    (0.5, "below", False),
    (None, "above", False),
    (None, "below", False),
])
def test_should_mask(privacy, direction, expected):
    assert should_mask(privacy, 0.5, direction) is expected


# ── Chain scenario ────────────────────────────────────────────────────────────

def test_chain_is_bridged_by_one_flow(masked_chain_doc):
    result = mask_by_privacy(masked_chain_doc, ABOVE)
    assert result.count == 2
    assert result.masked == ["M1", "M2"]
    assert [(b.id, b.source, b.target) for b in result.bypass_flows] == [("AutoFlow_1", "A", "B")]
    assert flow_pairs(masked_chain_doc) == [("A", "B")]
    assert [t.get("id") for t in masked_chain_doc.activities()] == ["A", "B"]
    assert sorted(result.removed_flows) == ["F1", "F2", "F3"]


def test_existing_direct_flow_suppresses_bypass():
    doc = make_doc(
        [("A", 0.1), ("M1", 0.9), ("M2", 0.9), ("B", 0.1)],
        [("F1", "A", "M1", None), ("F2", "M1", "M2", None),
         ("F3", "M2", "B", None), ("F4", "A", "B", None)],
    )
    result = mask_by_privacy(doc, ABOVE)
    assert result.bypass_flows == []
    assert flow_pairs(doc) == [("A", "B")]
    assert doc.get("F4") is not None


def test_direction_below_is_default():
    doc = make_doc(
        [("A", 0.9), ("M", 0.1), ("B", 0.9)],
        [("F1", "A", "M", None), ("F2", "M", "B", None)],
    )
    result = mask_by_privacy(doc, RewriteConfig(mode="mask"))
    assert result.masked == ["M"]
    assert flow_pairs(doc) == [("A", "B")]


def test_no_masked_nodes_is_noop():
    doc = make_doc(
        [("A", None), ("B", 0.1)],
        [("F1", "A", "B", None)],
    )
    before = doc.to_string()
    result = mask_by_privacy(doc, ABOVE)
    assert result.count == 0
    assert doc.to_string() == before


def test_no_self_loop_bypass():
    doc = make_doc(
        [("A", 0.1), ("M", 0.9)],
        [("F1", "A", "M", None), ("F2", "M", "A", None)],
    )
    result = mask_by_privacy(doc, ABOVE)
    assert result.bypass_flows == []
    assert doc.sequence_flows() == []


def test_every_pred_succ_pair_bridged():
    doc = make_doc(
        [("A", None), ("C", None), ("M", 0.9), ("B", None), ("D", None)],
        [("F1", "A", "M", None), ("F2", "C", "M", None),
         ("F3", "M", "B", None), ("F4", "M", "D", None)],
    )
    result = mask_by_privacy(doc, ABOVE)
    assert [b.id for b in result.bypass_flows] == [
        "AutoFlow_1", "AutoFlow_2", "AutoFlow_3", "AutoFlow_4",
    ]
    assert sorted(flow_pairs(doc)) == [("A", "B"), ("A", "D"), ("C", "B"), ("C", "D")]


def test_pair_shared_by_two_masked_nodes_bridged_once():
    doc = make_doc(
        [("A", None), ("M1", 0.9), ("M2", 0.9), ("B", None)],
        [("F1", "A", "M1", None), ("F2", "M1", "B", None),
         ("F3", "A", "M2", None), ("F4", "M2", "B", None)],
    )
    result = mask_by_privacy(doc, ABOVE)
    assert len(result.bypass_flows) == 1
    assert flow_pairs(doc) == [("A", "B")]


def test_masked_source_gets_no_bypass():
    doc = make_doc([("M", 0.9), ("B", None)], [("F1", "M", "B", None)])
    result = mask_by_privacy(doc, ABOVE)
    assert result.bypass_flows == []
    assert doc.sequence_flows() == []


def test_gateway_is_a_boundary_node():
    doc = make_doc(
        [("M", 0.9), ("B", None)],
        [("F1", "G", "M", None), ("F2", "M", "B", None)],
        extra_process='<bpmn:exclusiveGateway id="G" />',
    )
    mask_by_privacy(doc, ABOVE)
    assert flow_pairs(doc) == [("G", "B")]


def test_bypass_id_skips_existing_ids():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None)],
        [("AutoFlow_1", "A", "M", None), ("F2", "M", "B", None), ("F3", "B", "A", None)],
    )
    result = mask_by_privacy(doc, ABOVE)
    # AutoFlow_1 still exists while bypasses are synthesized.
    assert [b.id for b in result.bypass_flows] == ["AutoFlow_2"]


# ── References and diagram ────────────────────────────────────────────────────

def test_flow_node_refs_updated(masked_chain_doc):
    mask_by_privacy(masked_chain_doc, ABOVE)
    a, b = masked_chain_doc.get("A"), masked_chain_doc.get("B")
    assert [c.text for c in a.findall("bpmn:outgoing", NS)] == ["AutoFlow_1"]
    assert a.findall("bpmn:incoming", NS) == []
    assert [c.text for c in b.findall("bpmn:incoming", NS)] == ["AutoFlow_1"]


def test_bypass_flow_diagram_edge(masked_chain_doc):
    mask_by_privacy(masked_chain_doc, ABOVE)
    (edge,) = masked_chain_doc.di_nodes("AutoFlow_1")
    points = [(float(w.get("x")), float(w.get("y"))) for w in edge.findall("di:waypoint", NS)]
    # A at x=100, B at x=550; both 80 high at y=100.
    assert points == [(200.0, 140.0), (550.0, 140.0)]


def test_no_bypass_edge_without_shapes():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None)],
        [("F1", "A", "M", None), ("F2", "M", "B", None)],
        shapes=False,
    )
    mask_by_privacy(doc, ABOVE)
    assert doc.di_nodes("AutoFlow_1") == []


def test_no_dangling_diagram_nodes(masked_chain_doc):
    mask_by_privacy(masked_chain_doc, ABOVE)
    for tag in ("BPMNShape", "BPMNEdge"):
        for node in masked_chain_doc.iter_tag("bpmndi", tag):
            assert node.get("bpmnElement") in masked_chain_doc


def test_lane_refs_removed():
    lanes = (
        '<bpmn:laneSet id="LS"><bpmn:lane id="L1">'
        "<bpmn:flowNodeRef>A</bpmn:flowNodeRef>"
        "<bpmn:flowNodeRef>M</bpmn:flowNodeRef>"
        "<bpmn:flowNodeRef>B</bpmn:flowNodeRef>"
        "</bpmn:lane></bpmn:laneSet>"
    )
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None)],
        [("F1", "A", "M", None), ("F2", "M", "B", None)],
        extra_process=lanes,
    )
    mask_by_privacy(doc, ABOVE)
    lane = doc.get("L1")
    assert [r.text for r in lane.findall("bpmn:flowNodeRef", NS)] == ["A", "B"]


def test_gateway_default_cleared_with_its_flow():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None), ("C", None)],
        [("F1", "A", "G", None), ("F2", "G", "M", None),
         ("F3", "G", "B", None), ("F4", "M", "C", None)],
        extra_process='<bpmn:exclusiveGateway id="G" default="F2" />',
    )
    mask_by_privacy(doc, ABOVE)
    assert doc.get("F2") is None
    assert "default" not in doc.get("G").attrib
    assert ("G", "C") in flow_pairs(doc)


def test_gateway_default_kept_when_its_flow_survives():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None), ("C", None)],
        [("F1", "A", "G", None), ("F2", "G", "M", None),
         ("F3", "G", "B", None), ("F4", "M", "C", None)],
        extra_process='<bpmn:exclusiveGateway id="G" default="F3" />',
    )
    mask_by_privacy(doc, ABOVE)
    assert doc.get("G").get("default") == "F3"


def test_boundary_event_removed_with_its_activity():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None), ("X", None)],
        [("F1", "A", "M", None), ("F2", "M", "B", None), ("F3", "BE", "X", None)],
        extra_process=(
            '<bpmn:boundaryEvent id="BE" attachedToRef="M">'
            "<bpmn:outgoing>F3</bpmn:outgoing></bpmn:boundaryEvent>"
        ),
        extra_plane=(
            '<bpmndi:BPMNShape id="BE_di" bpmnElement="BE">'
            '<dc:Bounds x="232" y="162" width="36" height="36" /></bpmndi:BPMNShape>'
        ),
    )
    result = mask_by_privacy(doc, ABOVE)

    assert result.count == 1
    assert result.removed_events == ["BE"]
    assert doc.get("BE") is None
    assert doc.di_nodes("BE") == []
    assert "F3" in result.removed_flows
    assert flow_pairs(doc) == [("A", "B")]
    assert doc.get("X").findall("bpmn:incoming", NS) == []
    for event in doc.iter_tag("bpmn", "boundaryEvent"):
        assert event.get("attachedToRef") in doc


def test_boundary_event_on_kept_activity_survives():
    doc = make_doc(
        [("A", None), ("M", 0.9), ("B", None)],
        [("F1", "A", "M", None), ("F2", "M", "B", None)],
        extra_process='<bpmn:boundaryEvent id="BE" attachedToRef="A" />',
    )
    result = mask_by_privacy(doc, ABOVE)
    assert result.removed_events == []
    assert doc.get("BE") is not None


# ── Orphan cascade ────────────────────────────────────────────────────────────

ANNOTATIONS = (
    '<bpmn:textAnnotation id="TA_node"><bpmn:text>about M</bpmn:text></bpmn:textAnnotation>'
    '<bpmn:association id="As_node" sourceRef="TA_node" targetRef="M" />'
    '<bpmn:textAnnotation id="TA_flow"><bpmn:text>coupling note</bpmn:text></bpmn:textAnnotation>'
    '<bpmn:association id="As_flow" sourceRef="TA_flow" targetRef="F1" />'
    '<bpmn:textAnnotation id="TA_shared"><bpmn:text>shared</bpmn:text></bpmn:textAnnotation>'
    '<bpmn:association id="As_shared_M" sourceRef="TA_shared" targetRef="M" />'
    '<bpmn:association id="As_shared_A" sourceRef="TA_shared" targetRef="A" />'
)
ANNOTATION_DI = (
    '<bpmndi:BPMNShape id="TA_node_di" bpmnElement="TA_node">'
    '<dc:Bounds x="0" y="0" width="10" height="10" /></bpmndi:BPMNShape>'
    '<bpmndi:BPMNEdge id="As_node_di" bpmnElement="As_node">'
    '<di:waypoint x="0" y="0" /><di:waypoint x="1" y="1" /></bpmndi:BPMNEdge>'
)


@pytest.fixture
def annotated_doc():
    return make_doc(
        [("A", None), ("M", 0.9), ("B", None)],
        [("F1", "A", "M", None), ("F2", "M", "B", None)],
        extra_process=ANNOTATIONS,
        extra_plane=ANNOTATION_DI,
    )


def test_orphaned_annotations_cascade(annotated_doc):
    result = mask_by_privacy(annotated_doc, ABOVE)
    assert annotated_doc.get("TA_node") is None
    assert annotated_doc.get("TA_flow") is None
    assert sorted(result.removal.annotations) == ["TA_flow", "TA_node"]
    assert annotated_doc.di_nodes("TA_node") == []
    assert annotated_doc.di_nodes("As_node") == []


def test_shared_annotation_survives(annotated_doc):
    mask_by_privacy(annotated_doc, ABOVE)
    assert annotated_doc.get("TA_shared") is not None
    assert [a.get("id") for a in annotated_doc.associations_touching("TA_shared")] == ["As_shared_A"]


def test_every_annotation_keeps_an_association(annotated_doc):
    mask_by_privacy(annotated_doc, ABOVE)
    for ta in annotated_doc.iter_tag("bpmn", "textAnnotation"):
        assert annotated_doc.associations_touching(ta.get("id"))


# ── Property: masked-only reachability is preserved ──────────────────────────

def _masked_only_reach(G: nx.MultiDiGraph, start: str, masked: set[str]) -> set[str]:
    """Unmasked nodes reachable from `start` through one or more masked nodes."""
    reached: set[str] = set()
    seen: set[str] = set()
    queue = deque(n for n in G.successors(start) if n in masked)
    seen.update(queue)
    while queue:
        cur = queue.popleft()
        for n in G.successors(cur):
            if n in masked:
                if n not in seen:
                    seen.add(n)
                    queue.append(n)
            else:
                reached.add(n)
    return reached


@pytest.mark.parametrize("seed", range(12))
def test_random_graphs_preserve_reachability(seed):
    rng = random.Random(seed)
    n = 10
    tasks = [(f"T{i}", 0.9 if rng.random() < 0.4 else 0.1) for i in range(n)]
    flows = [
        (f"F{k}", f"T{rng.randrange(n)}", f"T{rng.randrange(n)}", None)
        for k in range(15)
    ]
    doc = make_doc(tasks, flows)
    before = extract_process_graph(doc)
    masked = {t for t, p in tasks if p == 0.9}
    original_pairs = set(before.edges())

    result = mask_by_privacy(doc, ABOVE)
    pairs = flow_pairs(doc)

    # No flow references a removed node.
    assert not any(s in masked or t in masked for s, t in pairs)
    assert set(result.masked) == masked

    # Masked-only reachability became a direct flow.
    for a in (t for t, _ in tasks if t not in masked):
        for b in _masked_only_reach(before, a, masked):
            if a != b:
                assert (a, b) in pairs

    # At most one bypass per pair, none duplicating an original flow.
    bypass = [(f.source, f.target) for f in result.bypass_flows]
    assert len(bypass) == len(set(bypass))
    assert not set(bypass) & original_pairs
    assert all(s != t for s, t in bypass)


def test_document_survives_serialization_after_mask(masked_chain_doc):
    mask_by_privacy(masked_chain_doc, ABOVE)
    out = masked_chain_doc.to_string()
    assert "M1" not in out
    assert "M2" not in out
    assert 'id="AutoFlow_1"' in out


def test_masked_task_element_removed(masked_chain_doc):
    mask_by_privacy(masked_chain_doc, ABOVE)
    assert masked_chain_doc.get("M1") is None
    assert not [
        e for e in masked_chain_doc.process.iter(q("bpmn", "task")) if e.get("id") == "M2"
    ]


def test_build_helper_emits_privacy():
    assert 'cpl:privacy="0.9"' in build_bpmn([("M", 0.9)], [])
