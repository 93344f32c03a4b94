"""JSONLストア

コミット単位を1行のJSONとして records.jsonl に追記する。
起動時にファイルをリプレイしてメモリキャッシュを復元する。
ファイルロックで同時書き込みを防止。
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any

import portalocker

from ..errors import StoreUnavailableError
from ..models import CheckInLogEntry, Intervention, Student
from .base import DEFAULT_LOG_RETENTION
from .memory import MemoryStudentStore

logger = logging.getLogger(__name__)

# ファイルロックの取得待ち秒数
LOCK_TIMEOUT_SECONDS = 10


class JsonlStudentStore(MemoryStudentStore):
    """JSONL永続化ストア

    data_path/records.jsonl に追記形式で保存。
    ファイルへの追記が成功してからメモリキャッシュに反映する。

    Attributes:
        base_path: データディレクトリのパス
    """

    def __init__(self, base_path: Path | str, log_retention: int = DEFAULT_LOG_RETENTION) -> None:
        """
        Args:
            base_path: データディレクトリのパス
            log_retention: 生徒ごとに保持するチェックインログ件数
        """
        super().__init__(log_retention)
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._inflight: set[asyncio.Future[None]] = set()
        self._replay()

    @property
    def records_path(self) -> Path:
        return self.base_path / "records.jsonl"

    async def commit(
        self,
        student: Student,
        intervention: Intervention | None = None,
        log_entry: CheckInLogEntry | None = None,
    ) -> None:
        """1行追記してからメモリキャッシュに反映

        呼び出し元がタイムアウトで待機を打ち切っても、スレッドでの書き込みは
        完了まで進み、書き込めた行は必ずキャッシュにも反映される。
        """
        await self._settle()
        line = self._encode(student, intervention, log_entry)
        write = asyncio.ensure_future(asyncio.to_thread(self._append_line, line))
        self._inflight.add(write)
        write.add_done_callback(partial(self._written, student, intervention, log_entry))
        await asyncio.shield(write)

    def _written(
        self,
        student: Student,
        intervention: Intervention | None,
        log_entry: CheckInLogEntry | None,
        write: asyncio.Future[None],
    ) -> None:
        self._inflight.discard(write)
        if write.cancelled():
            return
        error = write.exception()
        if error is not None:
            logger.warning(f"レコード書き込みに失敗しました ({self.records_path.name}): {error}")
            return
        self._apply(student, intervention, log_entry)

    async def _settle(self) -> None:
        """書き込み中のコミットがあれば反映を待つ"""
        if self._inflight:
            await asyncio.shield(asyncio.gather(*self._inflight, return_exceptions=True))

    # =========================================================================
    # 読み取り（書き込み中のコミットを反映してから読む）
    # =========================================================================

    async def get_student(self, student_id: str) -> Student | None:
        await self._settle()
        return await super().get_student(student_id)

    async def get_intervention(self, intervention_id: str) -> Intervention | None:
        await self._settle()
        return await super().get_intervention(intervention_id)

    async def get_pending_intervention(self, student_id: str) -> Intervention | None:
        await self._settle()
        return await super().get_pending_intervention(student_id)

    async def list_interventions(self, student_id: str) -> list[Intervention]:
        await self._settle()
        return await super().list_interventions(student_id)

    async def recent_logs(self, student_id: str, limit: int | None = None) -> list[CheckInLogEntry]:
        await self._settle()
        return await super().recent_logs(student_id, limit=limit)

    # =========================================================================
    # 永続化
    # =========================================================================

    @staticmethod
    def _encode(
        student: Student,
        intervention: Intervention | None,
        log_entry: CheckInLogEntry | None,
    ) -> str:
        data: dict[str, Any] = {
            "student": student.model_dump(mode="json"),
            "intervention": intervention.model_dump(mode="json") if intervention else None,
            "log": log_entry.model_dump(mode="json") if log_entry else None,
        }
        return json.dumps(data, ensure_ascii=False, sort_keys=True)

    def _append_line(self, line: str) -> None:
        """JSONLファイルに1行追記"""
        try:
            with portalocker.Lock(
                self.records_path, mode="a", encoding="utf-8", timeout=LOCK_TIMEOUT_SECONDS
            ) as f:
                f.write(line + "\n")
                f.flush()
        except portalocker.exceptions.LockException as e:
            raise StoreUnavailableError(f"Could not lock {self.records_path.name}: {e}") from e

    def _replay(self) -> None:
        """JSONLファイルからメモリキャッシュを復元"""
        path = self.records_path
        if not path.exists():
            return

        with portalocker.Lock(
            path, mode="r", encoding="utf-8", timeout=LOCK_TIMEOUT_SECONDS
        ) as f:
            lines = [line.strip() for line in f if line.strip()]

        for line_no, line in enumerate(lines, start=1):
            try:
                data = json.loads(line)
                student = Student.model_validate(data["student"])
                intervention = (
                    Intervention.model_validate(data["intervention"])
                    if data.get("intervention")
                    else None
                )
                log_entry = (
                    CheckInLogEntry.model_validate(data["log"]) if data.get("log") else None
                )
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"レコード読み込みエラー ({path.name}:{line_no}): {e}")
                continue
            self._apply(student, intervention, log_entry)
