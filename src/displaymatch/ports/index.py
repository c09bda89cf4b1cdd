# Licensed under the Apache License, Version 2.0
from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from ..domain.models import ComparisonResult


class IndexPort(Protocol):
    """Persistent store of images and the comparisons run between them."""

    def upsert_image(self, image_meta: dict) -> int: ...

    def record_comparison(
        self, probe_id: int, reference_id: int, result: ComparisonResult
    ) -> int: ...

    def comparisons(self) -> Iterable[dict[str, Any]]: ...

    def best_matches(self, limit: Optional[int] = None) -> Iterable[dict[str, Any]]: ...
