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

import fnmatch
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..domain.errors import ImageLoadError
from ..domain.models import BatchEntry
from ..ports.filesystem import FilesystemPort
from ..ports.image_loader import ImageLoaderPort
from ..ports.index import IndexPort
from .comparison_service import ComparisonService

logger = logging.getLogger(__name__)


class BatchService:
    """
    Compares one probe image (e.g. a camera shot of a display) against every
    reference image under a directory:
      - walks the references
      - skips non-images, unreadable files and the probe itself
      - records each comparison in the index, when one is attached
      - returns entries ranked by score, best first (ties by path)
    """

    def __init__(
        self,
        fs: FilesystemPort,
        loader: ImageLoaderPort,
        comparison: ComparisonService,
        index: Optional[IndexPort] = None,
        *,
        ignore_patterns: Optional[Iterable[str]] = None,
        progress_every: int = 0,
    ) -> None:
        self._fs = fs
        self._loader = loader
        self._comparison = comparison
        self._index = index
        self._ignore_patterns = tuple(ignore_patterns or ())
        self._progress_every = max(0, int(progress_every))

    def _ignored(self, path: Path) -> bool:
        name = str(path)
        return any(fnmatch.fnmatch(name, pat) for pat in self._ignore_patterns)

    def _record(self, probe_id: Optional[int], path: Path, entry: BatchEntry) -> None:
        if self._index is None or probe_id is None:
            return
        try:
            ref_id = self._index.upsert_image(self._fs.stat(path))
            self._index.record_comparison(probe_id, ref_id, entry.result)
        except Exception as e:
            logger.warning("BatchService: recording %s failed: %s", path, e)

    def run(self, probe: Path, refs_root: Path) -> List[BatchEntry]:
        """
        Compare `probe` against each image under `refs_root`.

        Raises:
            ImageLoadError: if the probe itself cannot be read.
        """
        probe = Path(probe)
        probe_image = self._loader.load(probe)

        probe_id = None
        if self._index is not None:
            probe_id = self._index.upsert_image(self._fs.stat(probe))

        entries: List[BatchEntry] = []
        seen = 0
        for path in self._fs.walk(Path(refs_root)):
            p = Path(path)
            if self._ignored(p) or not self._loader.supports(p):
                continue
            try:
                if p.resolve() == probe.resolve():
                    continue
            except OSError:
                pass

            try:
                ref_image = self._loader.load(p)
            except ImageLoadError as e:
                logger.warning("BatchService.run: skipping %s: %s", p, e)
                continue

            entry = BatchEntry(reference=p, result=self._comparison.compare(probe_image, ref_image))
            entries.append(entry)
            self._record(probe_id, p, entry)

            seen += 1
            if self._progress_every and seen % self._progress_every == 0:
                logger.info("Compared %d reference images", seen)

        entries.sort(key=lambda e: (-e.result.score, str(e.reference)))
        return entries
