"""
bpmn_rewrite.rewrite — Document rewrites.

Modules:
    cascade   — Association removal with orphaned-annotation collection.
    fragment  — Group coupled activities into labelled bpmn:group fragments.
    mask      — Remove private activities, bridging them with bypass flows.
    cleanup   — Remove fragments generated by a previous run.

Every function takes the BpmnDocument it mutates as its first argument.

Author: bpmn-rewrite contributors
"""
