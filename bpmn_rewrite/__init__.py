"""
bpmn_rewrite — Structural rewrites of BPMN process models.

Two mutually exclusive modes:
- fragment: group strongly coupled activities into labelled bpmn:group
  fragments (bpmn_rewrite.rewrite.fragment)
- mask: remove privacy-sensitive activities and bridge them with bypass
  sequence flows (bpmn_rewrite.rewrite.mask)

plus an optional cleanup pass for fragments generated by an earlier run
(bpmn_rewrite.rewrite.cleanup).

Author: bpmn-rewrite contributors
"""

__version__ = "0.1.0"
