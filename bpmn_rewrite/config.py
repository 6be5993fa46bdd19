"""
bpmn_rewrite/config.py — All tunable parameters for the BPMN rewriter.

No threshold or layout constant should ever be hardcoded in a rewrite module.
Every coupling threshold, privacy cut-off, padding and reserved id prefix
lives here so that calibration changes are a single-file diff.

Author: bpmn-rewrite contributors
"""

from dataclasses import dataclass

MODES = ("fragment", "mask")
PRIVACY_DIRECTIONS = ("above", "below")


@dataclass(frozen=True)
class RewriteConfig:
    """
    Immutable configuration for one rewrite run.

    Override by constructing a new RewriteConfig (or dataclasses.replace())
    with the desired values.
    """

    # ── Mode selection ────────────────────────────────────────────────────────
    mode: str = "fragment"
    # 'fragment' groups coupled activities, 'mask' removes private activities.

    clear_old: bool = False
    # Remove groups/annotations generated by a previous run before rewriting.

    # ── Fragmentation ─────────────────────────────────────────────────────────
    threshold: float = 0.7
    # A flow joins its endpoints into one fragment iff coupling >= threshold.

    include_singletons: bool = True
    # Emit a group for activities whose component has a single member.

    # ── Masking ───────────────────────────────────────────────────────────────
    privacy: float = 0.5
    # Privacy cut-off compared against each activity's cpl:privacy value.

    privacy_dir: str = "below"
    # 'above': mask when privacy >= cut-off. 'below': mask when privacy < cut-off.

    # ── Layout ────────────────────────────────────────────────────────────────
    group_padding: float = 24.0
    # Margin added on every side of the union of member boxes.

    placeholder_x: float = 100.0
    placeholder_y: float = 100.0
    placeholder_width: float = 100.0
    placeholder_height: float = 80.0
    # Box assumed for a member activity that has no BPMNShape.

    annotation_offset: float = 48.0
    # Vertical distance from the group's top edge to the annotation's top edge.

    annotation_width: float = 160.0
    annotation_height: float = 40.0

    # ── Naming conventions ────────────────────────────────────────────────────
    fragment_prefix: str = "Fragment_"
    # Reserved id prefix for generated groups; the cleanup pass matches on it.

    auto_flow_prefix: str = "AutoFlow_"
    # Id prefix for bypass sequence flows synthesized by masking.

    category_id: str = "Category_Fragments"

    def validate(self) -> "RewriteConfig":
        """Raise ValueError on an unknown mode or privacy direction."""
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode '{self.mode}' (expected one of {MODES}).")
        if self.privacy_dir not in PRIVACY_DIRECTIONS:
            raise ValueError(
                f"Unknown privacy direction '{self.privacy_dir}' "
                f"(expected one of {PRIVACY_DIRECTIONS})."
            )
        return self


# Shared default; construct a new RewriteConfig to override.
DEFAULT_CONFIG = RewriteConfig()
