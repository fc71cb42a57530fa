import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping
from uuid import uuid4

from genesis_ai.domain.exceptions import StoreError


class JsonMessageTable:
    """本地 JSON Lines 消息表，行结构与 Supabase 上的同名表一致。"""

    def __init__(self, root: str | Path, table: str = "ai_conversation_history"):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / f"{table}.jsonl"

    @property
    def path(self) -> Path:
        return self._path

    def select(self, filters: Mapping[str, str], order_by: str = "created_at") -> List[Dict[str, Any]]:
        rows = [r for r in self._read_rows() if self._matches(r, filters)]
        rows.sort(key=lambda r: str(r.get(order_by) or ""))
        return rows

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(row)
        if not data.get("id"):
            data["id"] = str(uuid4())
        try:
            line = json.dumps(data, ensure_ascii=False)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e))
        return data

    def delete(self, filters: Mapping[str, str]) -> int:
        rows = self._read_rows()
        kept = [r for r in rows if not self._matches(r, filters)]
        deleted = len(rows) - len(kept)
        if deleted == 0:
            return 0
        tmp_path = self._root / f"{self._path.name}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(
                "".join(json.dumps(r, ensure_ascii=False) + "\n" for r in kept),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StoreError(code="STORE_DELETE_ERROR", message=str(e))
        return deleted

    def _read_rows(self) -> List[Dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e))
        rows: List[Dict[str, Any]] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                rows.append(data)
        return rows

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Mapping[str, str]) -> bool:
        return all(str(row.get(k)) == str(v) for k, v in filters.items())
