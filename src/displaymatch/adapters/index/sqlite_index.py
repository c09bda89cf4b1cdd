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

import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, cast

from ...domain.models import ComparisonResult

DDL = """
PRAGMA foreign_keys=ON;
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;
PRAGMA temp_store=MEMORY;

CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    size INTEGER NOT NULL,
    mtime_ns INTEGER NOT NULL,
    seen_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS comparisons (
    id INTEGER PRIMARY KEY,
    probe_id INTEGER NOT NULL,
    reference_id INTEGER NOT NULL,
    score REAL NOT NULL,
    matches INTEGER NOT NULL,
    structural_similarity REAL,
    spatial_score REAL,
    is_render1 INTEGER,
    is_render2 INTEGER,
    error TEXT,
    compared_at INTEGER NOT NULL,
    FOREIGN KEY(probe_id) REFERENCES images(id) ON DELETE CASCADE,
    FOREIGN KEY(reference_id) REFERENCES images(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_comparisons_probe_score
  ON comparisons(probe_id, score DESC);
"""

_SELECT_ROWS = """
SELECT c.id, p.path AS probe_path, r.path AS reference_path,
       c.score, c.matches, c.structural_similarity, c.spatial_score,
       c.is_render1, c.is_render2, c.error, c.compared_at
FROM comparisons c
JOIN images p ON p.id = c.probe_id
JOIN images r ON r.id = c.reference_id
"""


class SQLiteIndex:
    """
    Thin, explicit SQLite store for comparison runs.

    - Avoids broad try/except: let sqlite3 errors bubble up.
    - One row per image path; one row per comparison (re-runs append).
    - Implements context manager support (`with SQLiteIndex(...) as idx:`).
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    # --- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        if getattr(self, "_conn", None) is not None:
            self._conn.close()
            self._conn = None  # type: ignore[assignment]

    def __enter__(self) -> SQLiteIndex:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            if getattr(self, "_conn", None) is not None:
                self._conn.close()
        except Exception:
            pass

    # --- public API ---------------------------------------------------------

    def upsert_image(self, image_meta: dict) -> int:
        try:
            path = str(image_meta["path"])
            size = int(image_meta["size"])
            mtime_ns = int(image_meta["mtime_ns"])
        except Exception as e:
            raise ValueError(f"upsert_image requires path/size/mtime_ns: {e}") from e

        seen_at = int(image_meta.get("seen_at") or time.time())

        row = self._conn.execute(
            "SELECT id FROM images WHERE path=?", (path,)
        ).fetchone()
        if row:
            image_id = cast(int, row["id"])
            self._conn.execute(
                "UPDATE images SET size=?, mtime_ns=?, seen_at=? WHERE id=?",
                (size, mtime_ns, seen_at, image_id),
            )
            return image_id

        cur = self._conn.execute(
            "INSERT INTO images (path, size, mtime_ns, seen_at) VALUES (?, ?, ?, ?)",
            (path, size, mtime_ns, seen_at),
        )
        return cast(int, cur.lastrowid)

    def record_comparison(
        self, probe_id: int, reference_id: int, result: ComparisonResult
    ) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO comparisons (probe_id, reference_id, score, matches,
                                     structural_similarity, spatial_score,
                                     is_render1, is_render2, error, compared_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                probe_id,
                reference_id,
                float(result.score),
                int(result.matches),
                float(result.structural_similarity),
                float(result.spatial_score),
                int(result.is_render1),
                int(result.is_render2),
                result.error,
                int(time.time()),
            ),
        )
        return cast(int, cur.lastrowid)

    def comparisons(self) -> Iterable[dict[str, Any]]:
        cur = self._conn.execute(
            _SELECT_ROWS + " ORDER BY c.score DESC, r.path ASC, c.id ASC"
        )
        yield from self._as_dicts(cur.fetchall())

    def best_matches(self, limit: Optional[int] = None) -> Iterable[dict[str, Any]]:
        """Highest-scoring comparison of each probe, best probes first."""
        sql = (
            _SELECT_ROWS
            + """
            WHERE c.id = (
                SELECT c2.id FROM comparisons c2
                JOIN images r2 ON r2.id = c2.reference_id
                WHERE c2.probe_id = c.probe_id
                ORDER BY c2.score DESC, r2.path ASC, c2.id ASC
                LIMIT 1
            )
            ORDER BY c.score DESC, p.path ASC
            """
        )
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (int(limit),)
        cur = self._conn.execute(sql, params)
        yield from self._as_dicts(cur.fetchall())

    # --- helpers ------------------------------------------------------------

    def _init_schema(self) -> None:
        self._conn.executescript(DDL)

    def _as_dicts(self, rows: Iterable[sqlite3.Row]) -> Iterator[dict[str, Any]]:
        for r in rows:
            rec = {k: r[k] for k in r.keys()}
            for flag in ("is_render1", "is_render2"):
                if rec.get(flag) is not None:
                    rec[flag] = bool(rec[flag])
            yield rec
