"""Read-only access to the local data stores.

- AssetStore: the media asset SQLite database, opened read-only per call
- VaultStore: a Markdown notes vault on the filesystem

Neither store is ever written to. A store that is missing or unreadable
is reported as None (``AssetStore.query_assets``) or CollectorError
(everything else) so the HTTP layer can answer 503.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..collectors.base import BaseCollector, CollectorError

MAX_PAGE_SIZE = 200
SEARCH_LIMIT = 50


def _log(msg: str) -> None:
    print(msg, flush=True)


def _mtime_iso(path: Path) -> Optional[str]:
    try:
        ts = path.stat().st_mtime
    except OSError:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class AssetStore(BaseCollector):
    """Queries over the ``asset`` table of the media database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    @property
    def name(self) -> str:
        return "atlas"

    @property
    def display_name(self) -> str:
        return "Asset Database"

    def _connect(self) -> Optional[sqlite3.Connection]:
        if not self.db_path.exists():
            return None
        try:
            conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            _log(f"[atlas] Cannot open {self.db_path}: {exc}")
            return None
        conn.row_factory = sqlite3.Row
        return conn

    def is_available(self) -> bool:
        conn = self._connect()
        if conn is None:
            return False
        try:
            conn.execute("PRAGMA schema_version").fetchone()
        except sqlite3.Error:
            return False
        finally:
            conn.close()
        return True

    def query_assets(
        self,
        source_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Optional[Tuple[List[Dict[str, Any]], int]]:
        """One page of assets, newest first, and the total matching count.

        Returns None when the database cannot be opened or read.
        """
        conn = self._connect()
        if conn is None:
            return None
        limit = max(0, min(int(limit), MAX_PAGE_SIZE))
        offset = max(0, int(offset))
        where, args = ("", [])
        if source_type:
            where, args = (" WHERE source_type = ?", [source_type])
        try:
            rows = conn.execute(
                f"SELECT * FROM asset{where} ORDER BY recorded_at DESC LIMIT ? OFFSET ?",
                [*args, limit, offset],
            ).fetchall()
            total = conn.execute(f"SELECT COUNT(*) FROM asset{where}", args).fetchone()[0]
        except sqlite3.Error as exc:
            _log(f"[atlas] Query failed on {self.db_path}: {exc}")
            return None
        finally:
            conn.close()
        return [dict(row) for row in rows], int(total)

    def get_asset(self, asset_id: str) -> Optional[Dict[str, Any]]:
        """Raises CollectorError when the database cannot be opened or read."""
        row = self._fetch(
            lambda conn: conn.execute("SELECT * FROM asset WHERE id = ?", (asset_id,)).fetchone()
        )
        return dict(row) if row else None

    def stats(self) -> Dict[str, Any]:
        def read(conn):
            totals = conn.execute("""
                SELECT
                    COUNT(*) AS total_assets,
                    SUM(duration_sec) AS total_duration_seconds,
                    MIN(recorded_at) AS earliest,
                    MAX(recorded_at) AS latest,
                    SUM(CASE WHEN transcript_status = 'done' THEN 1 ELSE 0 END) AS transcribed_count,
                    SUM(CASE WHEN published_at IS NOT NULL THEN 1 ELSE 0 END) AS published_count,
                    SUM(file_size_bytes) AS total_size_bytes
                FROM asset
            """).fetchone()
            by_type = conn.execute(
                "SELECT source_type, COUNT(*) AS count FROM asset GROUP BY source_type"
            ).fetchall()
            return totals, by_type

        totals, by_type = self._fetch(read)
        result = dict(totals)
        result["by_type"] = [dict(row) for row in by_type]
        return result

    def search(self, query: str) -> List[Dict[str, Any]]:
        rows = self._fetch(lambda conn: conn.execute(
            """
            SELECT id, title, source_type, duration_sec, recorded_at,
                   transcript_status, note_path
            FROM asset WHERE title LIKE ?
            ORDER BY recorded_at DESC LIMIT ?
            """,
            (f"%{query}%", SEARCH_LIMIT),
        ).fetchall())
        return [dict(row) for row in rows]

    def _fetch(self, read: Callable[[sqlite3.Connection], Any]) -> Any:
        conn = self._connect()
        if conn is None:
            raise CollectorError("atlas", f"Asset database unavailable: {self.db_path}")
        try:
            return read(conn)
        except sqlite3.Error as exc:
            raise CollectorError("atlas", f"Asset database unreadable: {self.db_path}") from exc
        finally:
            conn.close()


class VaultStore(BaseCollector):
    """Markdown notes under a vault root. Paths are always vault-relative."""

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def name(self) -> str:
        return "vault"

    @property
    def display_name(self) -> str:
        return "Notes Vault"

    def is_available(self) -> bool:
        return self.root.is_dir()

    def _require(self) -> Path:
        if not self.is_available():
            raise CollectorError("vault", f"Vault not found: {self.root}")
        return self.root.resolve()

    def _inside(self, relative: str) -> Optional[Path]:
        root = self._require()
        candidate = (root / relative).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            return None
        return candidate

    def list_notes(self, subdir: str = "") -> List[Dict[str, Any]]:
        directory = self._inside(subdir)
        if directory is None or not directory.is_dir():
            return []
        notes = []
        for entry in sorted(directory.iterdir()):
            if entry.suffix != ".md" or not entry.is_file():
                continue
            notes.append({
                "name": entry.stem,
                "path": str(Path(subdir) / entry.name) if subdir else entry.name,
                "modified": _mtime_iso(entry),
            })
        return notes

    def read_note(self, relative_path: str) -> Optional[str]:
        target = self._inside(relative_path)
        if target is None or not target.is_file():
            return None
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def stats(self) -> Dict[str, Any]:
        root = self._require()
        count = 0
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                entries = list(directory.iterdir())
            except OSError:
                continue
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                if entry.is_dir():
                    stack.append(entry)
                elif entry.suffix == ".md":
                    count += 1
        return {"total_notes": count, "vault_path": str(self.root)}

    def structure(self) -> List[Dict[str, str]]:
        root = self._require()
        return [
            {"name": entry.name, "type": "directory" if entry.is_dir() else "file"}
            for entry in sorted(root.iterdir())
            if not entry.name.startswith(".")
        ]
