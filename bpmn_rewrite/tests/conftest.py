"""
bpmn_rewrite/tests/conftest.py — Shared fixtures for the bpmn_rewrite test suite.

Documents are built in memory from compact task/flow tables so every test
states its topology inline.

Fixtures:
    chain_doc       — A → B → C → D, every flow coupling 0.8.
    split_chain_doc — A → B → C → D → E, coupling 0.9 except C → D at 0.5.
    masked_chain_doc — A → M1 → M2 → B with M1, M2 at privacy 0.9.

Author: bpmn-rewrite contributors
"""

import pytest

from bpmn_rewrite.document import BpmnDocument

HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL" '
    'xmlns:bpmndi="http://www.omg.org/spec/BPMN/20100524/DI" '
    'xmlns:dc="http://www.omg.org/spec/DD/20100524/DC" '
    'xmlns:di="http://www.omg.org/spec/DD/20100524/DI" '
    'xmlns:cpl="http://example.com/schema/coupling" '
    'id="Definitions_1" targetNamespace="http://bpmn.io/schema/bpmn">\n'
)

TASK_WIDTH = 100
TASK_HEIGHT = 80


def task_box(index: int) -> tuple[int, int, int, int]:
    """Diagram bounds used for the index-th task: a left-to-right row."""
    return 100 + 150 * index, 100, TASK_WIDTH, TASK_HEIGHT


def build_bpmn(
    tasks: list[tuple[str, float | None]],
    flows: list[tuple[str, str, str, float | None]],
    shapes: bool = True,
    extra_process: str = "",
    extra_plane: str = "",
    task_tag: str = "task",
) -> str:
    """
    Serialize a one-process BPMN document.

    Args:
        tasks:  (id, privacy) pairs; privacy None omits the attribute.
        flows:  (id, source, target, coupling) tuples; coupling None omits it.
        shapes: Emit a BPMNShape per task (see task_box) and a BPMNEdge per flow.
    """
    lines = [HEADER, '  <bpmn:process id="Process_1" isExecutable="false">\n']
    for task_id, privacy in tasks:
        attr = f' cpl:privacy="{privacy}"' if privacy is not None else ""
        lines.append(f'    <bpmn:{task_tag} id="{task_id}"{attr}>\n')
        for flow_id, _src, tgt, _c in flows:
            if tgt == task_id:
                lines.append(f"      <bpmn:incoming>{flow_id}</bpmn:incoming>\n")
        for flow_id, src, _tgt, _c in flows:
            if src == task_id:
                lines.append(f"      <bpmn:outgoing>{flow_id}</bpmn:outgoing>\n")
        lines.append(f"    </bpmn:{task_tag}>\n")
    for flow_id, src, tgt, coupling in flows:
        attr = f' cpl:coupling="{coupling}"' if coupling is not None else ""
        lines.append(
            f'    <bpmn:sequenceFlow id="{flow_id}" sourceRef="{src}" targetRef="{tgt}"{attr} />\n'
        )
    lines.append(extra_process)
    lines.append("  </bpmn:process>\n")

    if shapes:
        lines.append('  <bpmndi:BPMNDiagram id="BPMNDiagram_1">\n')
        lines.append('    <bpmndi:BPMNPlane id="BPMNPlane_1" bpmnElement="Process_1">\n')
        for i, (task_id, _p) in enumerate(tasks):
            x, y, w, h = task_box(i)
            lines.append(
                f'      <bpmndi:BPMNShape id="{task_id}_di" bpmnElement="{task_id}">'
                f'<dc:Bounds x="{x}" y="{y}" width="{w}" height="{h}" /></bpmndi:BPMNShape>\n'
            )
        for flow_id, _s, _t, _c in flows:
            lines.append(
                f'      <bpmndi:BPMNEdge id="{flow_id}_di" bpmnElement="{flow_id}">'
                f'<di:waypoint x="0" y="0" /><di:waypoint x="1" y="1" /></bpmndi:BPMNEdge>\n'
            )
        lines.append(extra_plane)
        lines.append("    </bpmndi:BPMNPlane>\n  </bpmndi:BPMNDiagram>\n")

    lines.append("</bpmn:definitions>\n")
    return "".join(lines)


def make_doc(*args, **kwargs) -> BpmnDocument:
    return BpmnDocument.from_string(build_bpmn(*args, **kwargs))


def flow_pairs(doc: BpmnDocument) -> list[tuple[str, str]]:
    return [(f.get("sourceRef"), f.get("targetRef")) for f in doc.sequence_flows()]


@pytest.fixture
def chain_doc() -> BpmnDocument:
    tasks = [(t, None) for t in "ABCD"]
    flows = [("F1", "A", "B", 0.8), ("F2", "B", "C", 0.8), ("F3", "C", "D", 0.8)]
    return make_doc(tasks, flows)


@pytest.fixture
def split_chain_doc() -> BpmnDocument:
    tasks = [(t, None) for t in "ABCDE"]
    flows = [
        ("F1", "A", "B", 0.9),
        ("F2", "B", "C", 0.9),
        ("F3", "C", "D", 0.5),
        ("F4", "D", "E", 0.9),
    ]
    return make_doc(tasks, flows)


@pytest.fixture
def masked_chain_doc() -> BpmnDocument:
    tasks = [("A", 0.1), ("M1", 0.9), ("M2", 0.9), ("B", 0.1)]
    flows = [("F1", "A", "M1", None), ("F2", "M1", "M2", None), ("F3", "M2", "B", None)]
    return make_doc(tasks, flows)
