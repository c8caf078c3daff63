# order_lifecycle/database.py
"""
File-backed table store using CSV (preferred) or Excel (xlsx) files.
Every value round-trips as a string; the model classes normalize types.
Writes (and read-modify-write sequences) hold a per-file lock so concurrent
requests cannot interleave and lose updates.

Usage:
    from order_lifecycle.database import db
    db.find_records("orders", {"status": "confirmed"}, sort="created_at", descending=True)
    db.compare_and_update("orders", "id", oid, {"status": "pending"}, {"status": "confirmed"})
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import uuid

import pandas as pd
from filelock import FileLock

from order_lifecycle.config import settings


class StaleRecord(Exception):
    """Raised by compare_and_update when the stored row no longer matches."""

    def __init__(self, current: Dict[str, Any], mismatched: Dict[str, Any]):
        self.current = current
        self.mismatched = mismatched
        fields = ", ".join(sorted(mismatched))
        super().__init__(f"Stored record changed ({fields})")


def _same(stored: Any, expected: Any) -> bool:
    if str(stored) == str(expected):
        return True
    # numeric columns may come back as "1.0" after a pandas round-trip
    try:
        return float(stored) == float(expected)
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> str:
    # columns are read back with dtype=str, which rejects non-string values
    return "" if value is None else str(value)


def _clean_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (None if pd.isna(v) else v) for k, v in row.items()}


class FileBackedDB:
    """
    Manages CSV / Excel files inside data_dir.
    Table name corresponds to a file name in settings (or you may pass a full filename).
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir if data_dir is not None else settings.DATA_DIR)

    def _file_path(self, table: str) -> Path:
        """
        Resolve table -> file path. Explicit filenames (.csv/.xlsx) are used as-is,
        well-known tables are mapped through settings, anything else becomes <table>.csv
        """
        if table.endswith(".csv") or table.endswith(".xlsx"):
            return self.data_dir / Path(table)

        mapping = {
            "users": settings.USERS_FILE,
            "orders": settings.ORDERS_FILE,
            "order_status_updates": settings.STATUS_UPDATES_FILE,
        }
        filename = mapping.get(table, f"{table}.csv")
        return self.data_dir / Path(filename)

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(str(path) + ".lock")

    def _read_df(self, table: str) -> pd.DataFrame:
        path = self._file_path(table)
        if not path.exists():
            return pd.DataFrame()
        if path.suffix.lower() in (".xls", ".xlsx"):
            return pd.read_excel(path, dtype=str).fillna("")
        return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")

    def _write_df_nolock(self, path: Path, df: pd.DataFrame) -> None:
        """
        Write DataFrame to `path` WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.suffix.lower() in (".xls", ".xlsx"):
            df.to_excel(path, index=False)
        else:
            df.to_csv(path, index=False)

    @staticmethod
    def _assign(df: pd.DataFrame, mask: pd.Series, updates: Dict[str, Any]) -> None:
        for k, v in updates.items():
            if k not in df.columns:
                df[k] = ""
            df.loc[mask, k] = _text(v)

    @staticmethod
    def _match(df: pd.DataFrame, filters: Dict[str, Any]) -> pd.Series:
        mask = pd.Series(True, index=df.index)
        for k, v in filters.items():
            if k not in df.columns:
                return pd.Series(False, index=df.index)
            if isinstance(v, (list, tuple, set, frozenset)):
                mask &= df[k].astype(str).isin([str(x) for x in v])
            else:
                mask &= df[k].astype(str) == str(v)
        return mask

    # --- high-level CRUD primitives ---

    def list_records(self, table: str) -> List[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty:
            return []
        return [_clean_row(r) for r in df.to_dict(orient="records")]

    def get_record(self, table: str, key: str, value: Any) -> Optional[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty or key not in df.columns:
            return None
        mask = df[key].astype(str) == str(value)
        if not mask.any():
            return None
        return _clean_row(df[mask].iloc[0].to_dict())

    def find_records(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return rows matching every filter (a list value matches any of its members),
        optionally sorted by one column and sliced by offset/limit.
        """
        df = self._read_df(table)
        if df.empty:
            return []
        if filters:
            df = df[self._match(df, filters)]
        if sort and sort in df.columns:
            df = df.sort_values(sort, ascending=not descending, kind="stable")
        end = None if limit is None else offset + limit
        df = df.iloc[offset:end]
        return [_clean_row(r) for r in df.to_dict(orient="records")]

    def count_records(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        df = self._read_df(table)
        if df.empty:
            return 0
        if not filters:
            return int(len(df))
        return int(self._match(df, filters).sum())

    def create_record(self, table: str, data: Dict[str, Any], id_field: str = "id") -> Dict[str, Any]:
        """
        Create a new record. If id_field is missing from `data`, a uuid4 hex is generated.
        Returns the saved record (with id).
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if not data.get(id_field):
                data[id_field] = uuid.uuid4().hex
            new_row = {k: _text(v) for k, v in data.items()}
            if df.empty:
                df = pd.DataFrame([new_row])
            else:
                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True, sort=False)
            self._write_df_nolock(path, df.fillna(""))
        return data

    def update_record(self, table: str, key: str, value: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update rows where df[key] == value with fields in updates. Returns the updated first row or None.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return None
            mask = df[key].astype(str) == str(value)
            if not mask.any():
                return None
            self._assign(df, mask, updates)
            self._write_df_nolock(path, df)
            return _clean_row(df[mask].iloc[0].to_dict())

    def compare_and_update(
        self,
        table: str,
        key: str,
        value: Any,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Apply `updates` to the row identified by key/value only if every field in
        `expected` still holds the expected value. The check and the write happen
        under the same lock.

        Returns the updated row, None if the row does not exist, and raises
        StaleRecord if any expected field differs.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return None
            mask = df[key].astype(str) == str(value)
            if not mask.any():
                return None
            current = _clean_row(df[mask].iloc[0].to_dict())
            mismatched = {
                k: current.get(k) for k, v in expected.items() if not _same(current.get(k, ""), v)
            }
            if mismatched:
                raise StaleRecord(current, mismatched)
            self._assign(df, mask, updates)
            self._write_df_nolock(path, df)
            return _clean_row(df[mask].iloc[0].to_dict())

    def delete_record(self, table: str, key: str, value: Any) -> bool:
        """
        Delete all records where df[key] == value. Returns True if any rows were removed.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return False
            orig_len = len(df)
            df = df[df[key].astype(str) != str(value)]
            if len(df) == orig_len:
                return False
            self._write_df_nolock(path, df)
            return True


# module-level singleton for convenience
db = FileBackedDB()
