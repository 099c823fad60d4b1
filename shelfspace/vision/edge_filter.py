"""
Edge Filter

Non-maximum suppression over the edge candidates of one band.
"""

from typing import List, Optional, Sequence

from shelfspace.config import DetectionConfig
from shelfspace.vision.edge_extractor import EdgeCandidate


class EdgeFilter:
    """
    Strength-first suppression with a minimum separation.

    The strongest `max_edges_per_band` candidates survive; then a left to
    right sweep keeps an edge only if it is at least `min_edge_separation`
    px from the last kept one. A close competitor replaces the kept edge
    only when it is stronger by `replacement_margin`.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def filter(self, candidates: Sequence[EdgeCandidate]) -> List[EdgeCandidate]:
        cfg = self.config

        strongest = sorted(candidates, key=lambda e: (-e.strength, e.x))[:cfg.max_edges_per_band]

        kept: List[EdgeCandidate] = []
        for edge in sorted(strongest, key=lambda e: e.x):
            if kept and edge.x - kept[-1].x < cfg.min_edge_separation:
                if edge.strength > kept[-1].strength * (1 + cfg.replacement_margin):
                    kept[-1] = edge
                continue
            kept.append(edge)

        return kept
