"""
bpmn_rewrite.graph — NetworkX projection of the process and the graph algorithms.

Modules:
    extractor    — Project activities and sequence flows onto a MultiDiGraph.
    disjoint_set — Union-find clustering over coupling-filtered flows.
    boundary     — Nearest unmasked predecessors/successors through masked chains.

All graph objects are NetworkX MultiDiGraphs keyed by flow id:
    Node attrs : activity (bool), privacy (float | None)
    Edge attrs : coupling (float | None)

Author: bpmn-rewrite contributors
"""
