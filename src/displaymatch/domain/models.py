# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing two display images."""
    score: float
    matches: int
    structural_similarity: float = 0.0
    spatial_score: float = 0.0
    is_render1: bool = False
    is_render2: bool = False
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> ComparisonResult:
        return cls(score=0.0, matches=0, error=error)

    def as_dict(self) -> Dict[str, Any]:
        """
        Mapping with the camelCase keys consumers of the comparison expect.
        A failed comparison carries only score, matches and error.
        """
        if self.error is not None:
            return {"score": self.score, "matches": self.matches, "error": self.error}
        return {
            "score": self.score,
            "matches": self.matches,
            "structuralSimilarity": self.structural_similarity,
            "spatialScore": self.spatial_score,
            "isRender1": self.is_render1,
            "isRender2": self.is_render2,
        }


@dataclass(frozen=True)
class BatchEntry:
    """One reference image scored against the probe of a batch run."""
    reference: Path
    result: ComparisonResult


@dataclass
class FeatureSet:
    """Keypoints of an image and its LCD segments, with their stacked descriptors."""
    keypoints: List[Any] = field(default_factory=list)
    descriptors: Optional[np.ndarray] = None

    @property
    def empty(self) -> bool:
        return not self.keypoints or self.descriptors is None or len(self.descriptors) == 0
