# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Tuple

from .domain.errors import ConfigurationError


@dataclass(frozen=True)
class OrbProfile:
    """ORB detector parameters for one image class."""
    nlevels: int
    edge_threshold: int
    patch_size: int
    fast_threshold: int


@dataclass(frozen=True)
class ScoringProfile:
    """Match filtering and score shaping for one pairing (both renders vs. anything else)."""
    ratio_threshold: float
    max_distance: float
    expected_match_fraction: float
    # structural, quantity, quality
    weights: Tuple[float, float, float]
    power: float
    bonus_threshold: float


RENDER_ORB = OrbProfile(nlevels=8, edge_threshold=10, patch_size=15, fast_threshold=10)
PHOTO_ORB = OrbProfile(nlevels=12, edge_threshold=15, patch_size=21, fast_threshold=20)

BOTH_RENDERS_SCORING = ScoringProfile(
    ratio_threshold=0.8,
    max_distance=80.0,
    expected_match_fraction=0.05,
    weights=(0.5, 0.3, 0.2),
    power=0.6,
    bonus_threshold=75.0,
)
MIXED_SCORING = ScoringProfile(
    ratio_threshold=0.85,
    max_distance=100.0,
    expected_match_fraction=0.03,
    weights=(0.4, 0.35, 0.25),
    power=0.7,
    bonus_threshold=65.0,
)


@dataclass(frozen=True)
class ComparisonSettings:
    orb_features: int = 3000
    orb_scale_factor: float = 1.1
    top_matches: int = 100
    bonus_factor: float = 1.3
    # Resize the second image to the first one's size when they differ.
    align_sizes: bool = True
    render_orb: OrbProfile = field(default=RENDER_ORB)
    photo_orb: OrbProfile = field(default=PHOTO_ORB)
    both_renders_scoring: ScoringProfile = field(default=BOTH_RENDERS_SCORING)
    mixed_scoring: ScoringProfile = field(default=MIXED_SCORING)

    def orb_for(self, is_render: bool) -> OrbProfile:
        return self.render_orb if is_render else self.photo_orb

    def scoring_for(self, both_renders: bool) -> ScoringProfile:
        return self.both_renders_scoring if both_renders else self.mixed_scoring

    @classmethod
    def from_env(cls) -> ComparisonSettings:
        """
        Defaults overridden by DM_ALIGN_SIZES (true/false) and DM_ORB_FEATURES (int > 0).

        Raises:
            ConfigurationError: if an override cannot be parsed.
        """
        settings = cls()
        align = os.getenv("DM_ALIGN_SIZES")
        if align is not None and align.strip():
            value = align.strip().lower()
            if value in {"1", "true", "yes", "on"}:
                settings = replace(settings, align_sizes=True)
            elif value in {"0", "false", "no", "off"}:
                settings = replace(settings, align_sizes=False)
            else:
                raise ConfigurationError(f"DM_ALIGN_SIZES must be a boolean, got {align!r}")

        features = os.getenv("DM_ORB_FEATURES")
        if features is not None and features.strip():
            try:
                n = int(features)
            except ValueError as e:
                raise ConfigurationError(f"DM_ORB_FEATURES must be an integer: {e}") from e
            if n <= 0:
                raise ConfigurationError("DM_ORB_FEATURES must be positive")
            settings = replace(settings, orb_features=n)
        return settings
