"""
bpmn_rewrite/document.py — Indexed, mutable view over one BPMN 2.0 XML document.

The document is the single piece of mutable state a rewrite run touches. It is
owned by the caller and passed explicitly into every rewrite function; there is
no module-level "current document".

ElementTree has no parent pointers and no id lookup, so BpmnDocument keeps
five indexes in step with every add()/remove():
    id          → element
    element     → parent element
    bpmnElement → DI nodes (BPMNShape / BPMNEdge) drawing that element
    ref         → bpmn:association elements whose sourceRef/targetRef is ref
    ref text    → bpmn:incoming / bpmn:outgoing / bpmn:flowNodeRef children

Serialization is thin: parse, mutate, write back. Schema
validation is out of scope.

Author: bpmn-rewrite contributors
"""

import io
import logging
import math
import re
import xml.etree.ElementTree as ET
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator

from bpmn_rewrite.layout import Box

logger = logging.getLogger(__name__)


NS = {
    "bpmn": "http://www.omg.org/spec/BPMN/20100524/MODEL",
    "bpmndi": "http://www.omg.org/spec/BPMN/20100524/DI",
    "dc": "http://www.omg.org/spec/DD/20100524/DC",
    "di": "http://www.omg.org/spec/DD/20100524/DI",
    "cpl": "http://example.com/schema/coupling",
}

for _prefix, _uri in NS.items():
    ET.register_namespace(_prefix, _uri)

# Task-like flow nodes treated as activities by both rewrite modes.
TASK_TAGS = (
    "task",
    "userTask",
    "serviceTask",
    "scriptTask",
    "manualTask",
    "businessRuleTask",
    "sendTask",
    "receiveTask",
)

# Child elements whose text is the id of a flow or flow node.
_REF_TEXT_TAGS = ("incoming", "outgoing", "flowNodeRef")

_AUTO_PREFIX = re.compile(r"ns\d+$")


def q(prefix: str, local: str) -> str:
    """Clark-notation tag/attribute name: q('bpmn', 'task') → '{uri}task'."""
    return f"{{{NS[prefix]}}}{local}"


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


TASK_QNAMES = frozenset(q("bpmn", t) for t in TASK_TAGS)
_REF_TEXT_QNAMES = frozenset(q("bpmn", t) for t in _REF_TEXT_TAGS)
_ASSOCIATION = q("bpmn", "association")
_DI_TAGS = frozenset((q("bpmndi", "BPMNShape"), q("bpmndi", "BPMNEdge")))


class DocumentError(ValueError):
    """The input cannot be rewritten (unparseable or structurally unusable)."""


class ProcessNotFoundError(DocumentError):
    """The document contains no bpmn:process element."""


def parse_number(value: str | None) -> float | None:
    """Float value of a numeric attribute, or None if absent / not a finite number."""
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _qualified_uris(root: ET.Element) -> tuple[set[str], bool]:
    """
    Namespace URIs used by element and attribute names under root.

    Returns:
        (uris, has_unqualified): has_unqualified is True if some element
        tag carries no namespace at all.
    """
    uris: set[str] = set()
    has_unqualified = False
    for elem in root.iter():
        if not isinstance(elem.tag, str):
            continue
        if elem.tag.startswith("{"):
            uris.add(elem.tag[1:].split("}", 1)[0])
        else:
            has_unqualified = True
        for key in elem.attrib:
            if key.startswith("{"):
                uris.add(key[1:].split("}", 1)[0])
    return uris, has_unqualified


class BpmnDocument:
    """
    A parsed BPMN document plus the lookup indexes the rewrites need.

    Args:
        root:       Parsed root element (bpmn:definitions or bpmn:process).
        namespaces: (prefix, uri) declarations of the input, in document
                    order; prefix "" is the default namespace. Output keeps
                    these bindings, including ones only attribute values
                    such as xsi:type="bpmn2:tFormalExpression" rely on.

    Raises:
        ProcessNotFoundError: on construction, if there is no bpmn:process.
                              Nothing has been mutated at that point.
    """

    def __init__(self, root: ET.Element, namespaces: list[tuple[str, str]] | None = None):
        self.root = root
        self.namespaces: list[tuple[str, str]] = list(namespaces or [])
        self._by_id: dict[str, ET.Element] = {}
        self._parents: dict[ET.Element, ET.Element] = {}
        self._di: dict[str, list[ET.Element]] = defaultdict(list)
        self._assoc_refs: dict[str, list[ET.Element]] = defaultdict(list)
        self._text_refs: dict[str, list[ET.Element]] = defaultdict(list)
        self._index_subtree(root, None)

        if root.tag == q("bpmn", "process"):
            process = root
        else:
            process = root.find(".//bpmn:process", NS)
        if process is None:
            raise ProcessNotFoundError("No bpmn:process found in document.")
        self.process: ET.Element = process

    # ── Loading / saving ──────────────────────────────────────────────────────

    @classmethod
    def from_string(cls, text: str | bytes) -> "BpmnDocument":
        data = text.encode("utf-8") if isinstance(text, str) else text
        events = ET.iterparse(io.BytesIO(data), events=("start-ns",))
        namespaces: list[tuple[str, str]] = []
        seen: set[str] = set()
        try:
            for _event, (prefix, uri) in events:
                # First binding of a prefix wins; nested rebindings are not kept.
                if prefix not in seen:
                    seen.add(prefix)
                    namespaces.append((prefix, uri))
        except ET.ParseError as exc:
            raise DocumentError(f"Malformed BPMN XML: {exc}") from exc
        return cls(events.root, namespaces)

    @classmethod
    def from_file(cls, path: str) -> "BpmnDocument":
        logger.info("Loading BPMN document from: %s", path)
        with open(path, "rb") as fh:
            return cls.from_string(fh.read())

    def to_string(self) -> str:
        with self._input_namespaces():
            return ET.tostring(self.root, encoding="unicode")

    def write(self, path: str) -> None:
        with self._input_namespaces():
            ET.ElementTree(self.root).write(path, encoding="utf-8", xml_declaration=True)
        logger.info("Wrote BPMN document to: %s", path)

    @contextmanager
    def _input_namespaces(self) -> Iterator[None]:
        """
        Serialize with the input's own prefixes instead of the NS defaults.

        ElementTree picks prefixes from a process-wide table and declares only
        namespaces that element or attribute names use. For the duration of
        one write, each input URI is registered under the input's prefix
        (default namespace included), and any input declaration the names
        will not produce is put on the root as a literal xmlns attribute.
        Both are undone afterwards.
        """
        used, has_unqualified = _qualified_uris(self.root)
        chosen: dict[str, str] = {}
        for prefix, uri in self.namespaces:
            if _AUTO_PREFIX.match(prefix) or (prefix == "" and has_unqualified):
                continue
            chosen.setdefault(uri, prefix)

        default_emitted = any(p == "" and u in used for u, p in chosen.items())
        extra: dict[str, str] = {}
        for prefix, uri in self.namespaces:
            if _AUTO_PREFIX.match(prefix):
                continue
            if uri in used and chosen.get(uri) == prefix:
                continue
            if prefix == "":
                # An unused default binding would capture unqualified tags.
                if has_unqualified or default_emitted:
                    continue
                extra["xmlns"] = uri
            else:
                extra[f"xmlns:{prefix}"] = uri
        # Never shadow a default prefix ElementTree will still emit for our own URIs.
        emitted = {p for p, uri in NS.items() if uri in used and uri not in chosen}
        extra = {
            k: v for k, v in extra.items()
            if k not in self.root.attrib and k.partition(":")[2] not in emitted
        }

        for uri, prefix in chosen.items():
            ET.register_namespace(prefix, uri)
        self.root.attrib.update(extra)
        try:
            yield
        finally:
            for key in extra:
                del self.root.attrib[key]
            for prefix, uri in NS.items():
                ET.register_namespace(prefix, uri)

    # ── Indexing ──────────────────────────────────────────────────────────────

    def _index_subtree(self, elem: ET.Element, parent: ET.Element | None) -> None:
        if parent is not None:
            self._parents[elem] = parent
        elem_id = elem.get("id")
        if elem_id:
            self._by_id[elem_id] = elem
        if elem.tag in _DI_TAGS and elem.get("bpmnElement"):
            self._di[elem.get("bpmnElement")].append(elem)
        elif elem.tag == _ASSOCIATION:
            for ref in {elem.get("sourceRef"), elem.get("targetRef")} - {None}:
                self._assoc_refs[ref].append(elem)
        elif elem.tag in _REF_TEXT_QNAMES and elem.text:
            self._text_refs[elem.text.strip()].append(elem)
        for child in elem:
            self._index_subtree(child, elem)

    def _unindex_subtree(self, elem: ET.Element) -> None:
        for child in elem:
            self._unindex_subtree(child)
        self._parents.pop(elem, None)
        elem_id = elem.get("id")
        if elem_id and self._by_id.get(elem_id) is elem:
            del self._by_id[elem_id]
        if elem.tag in _DI_TAGS:
            _discard(self._di, elem.get("bpmnElement"), elem)
        elif elem.tag == _ASSOCIATION:
            for ref in {elem.get("sourceRef"), elem.get("targetRef")} - {None}:
                _discard(self._assoc_refs, ref, elem)
        elif elem.tag in _REF_TEXT_QNAMES and elem.text:
            _discard(self._text_refs, elem.text.strip(), elem)

    # ── Mutation ──────────────────────────────────────────────────────────────

    def add(
        self,
        parent: ET.Element,
        tag: str,
        attrib: dict[str, str] | None = None,
        text: str | None = None,
        index: int | None = None,
    ) -> ET.Element:
        """
        Create a child element and index it.

        Attributes that participate in an index (id, bpmnElement, sourceRef,
        targetRef) must be passed here, not set afterwards.
        """
        elem = ET.Element(tag, attrib or {})
        if text is not None:
            elem.text = text
        if index is None:
            parent.append(elem)
        else:
            parent.insert(index, elem)
        self._index_subtree(elem, parent)
        return elem

    def remove(self, elem: ET.Element) -> None:
        """Detach `elem` (and its subtree) from the tree. No-op if already detached."""
        parent = self._parents.get(elem)
        if parent is None:
            return
        self._unindex_subtree(elem)
        parent.remove(elem)

    def remove_di(self, elem_id: str) -> int:
        """Remove every BPMNShape / BPMNEdge drawing `elem_id`. Returns the count."""
        nodes = list(self._di.get(elem_id, ()))
        for node in nodes:
            self.remove(node)
        return len(nodes)

    def remove_text_references(self, ref: str) -> int:
        """Remove incoming/outgoing/flowNodeRef children whose text is `ref`."""
        nodes = list(self._text_refs.get(ref, ()))
        for node in nodes:
            self.remove(node)
        return len(nodes)

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, elem_id: str) -> ET.Element | None:
        return self._by_id.get(elem_id)

    def __contains__(self, elem_id: str) -> bool:
        return elem_id in self._by_id

    def parent(self, elem: ET.Element) -> ET.Element | None:
        return self._parents.get(elem)

    def is_attached(self, elem: ET.Element) -> bool:
        return elem is self.root or elem in self._parents

    def activities(self) -> list[ET.Element]:
        """Task-like direct children of the process, in document order."""
        return [child for child in self.process if child.tag in TASK_QNAMES]

    def sequence_flows(self) -> list[ET.Element]:
        """Sequence flows that are direct children of the process."""
        return self.process.findall("bpmn:sequenceFlow", NS)

    def associations_touching(self, ref: str) -> list[ET.Element]:
        """Snapshot list of associations referencing `ref` from either end."""
        return list(self._assoc_refs.get(ref, ()))

    def is_text_annotation(self, elem_id: str | None) -> bool:
        elem = self._by_id.get(elem_id) if elem_id else None
        return elem is not None and elem.tag == q("bpmn", "textAnnotation")

    def iter_tag(self, prefix: str, local: str) -> Iterator[ET.Element]:
        return self.root.iter(q(prefix, local))

    def di_nodes(self, elem_id: str) -> list[ET.Element]:
        return list(self._di.get(elem_id, ()))

    def bounds(self, elem_id: str) -> Box | None:
        """Box of the first BPMNShape drawing `elem_id`, or None."""
        for node in self._di.get(elem_id, ()):
            b = node.find("dc:Bounds", NS)
            if b is None:
                continue
            values = [parse_number(b.get(k)) for k in ("x", "y", "width", "height")]
            if any(v is None for v in values):
                logger.warning("Ignoring non-numeric dc:Bounds on shape for '%s'.", elem_id)
                continue
            return Box(*values)
        return None

    def next_free_id(self, prefix: str, start: int = 1) -> tuple[str, int]:
        """First `prefix<n>` with n >= start that is not already an id."""
        n = start
        while f"{prefix}{n}" in self._by_id:
            n += 1
        return f"{prefix}{n}", n

    # ── Structure ─────────────────────────────────────────────────────────────

    @property
    def definitions(self) -> ET.Element:
        return self.root

    def ensure_plane(self) -> ET.Element:
        """The first BPMNPlane, creating BPMNDiagram_Auto/BPMNPlane_Auto if absent."""
        plane = self.root.find(".//bpmndi:BPMNDiagram/bpmndi:BPMNPlane", NS)
        if plane is not None:
            return plane
        logger.info("Document has no BPMNPlane; creating BPMNPlane_Auto.")
        diagram = self.add(self.definitions, q("bpmndi", "BPMNDiagram"), {"id": "BPMNDiagram_Auto"})
        return self.add(
            diagram,
            q("bpmndi", "BPMNPlane"),
            {"id": "BPMNPlane_Auto", "bpmnElement": self.process.get("id", "")},
        )

    def add_shape(self, elem_id: str, box: Box) -> ET.Element:
        plane = self.ensure_plane()
        shape = self.add(plane, q("bpmndi", "BPMNShape"), {"id": f"{elem_id}_di", "bpmnElement": elem_id})
        self.add(shape, q("dc", "Bounds"), {
            "x": _fmt(box.x),
            "y": _fmt(box.y),
            "width": _fmt(box.width),
            "height": _fmt(box.height),
        })
        return shape

    def add_edge(self, elem_id: str, waypoints: tuple[tuple[float, float], ...]) -> ET.Element:
        plane = self.ensure_plane()
        edge = self.add(plane, q("bpmndi", "BPMNEdge"), {"id": f"{elem_id}_di", "bpmnElement": elem_id})
        for x, y in waypoints:
            self.add(edge, q("di", "waypoint"), {"x": _fmt(x), "y": _fmt(y)})
        return edge


def _discard(index: dict[str, list[ET.Element]], key: str | None, elem: ET.Element) -> None:
    if key is None:
        return
    bucket = index.get(key)
    if not bucket:
        return
    index[key] = [e for e in bucket if e is not elem]
    if not index[key]:
        del index[key]


def _fmt(value: float) -> str:
    """Integral floats without a trailing '.0' (100.0 → '100')."""
    return str(int(value)) if float(value).is_integer() else repr(float(value))
