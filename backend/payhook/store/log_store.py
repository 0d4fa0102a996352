"""PaymentLogStore: day-partitioned, append-only payment log on local disk.

Layout:
    {log_dir}/payments-YYYY-MM-DD.jsonl   one JSON record per line (written)
    {log_dir}/payments-YYYY-MM-DD.json    JSON array of records (legacy, read-only)

Writes:
- One store-wide asyncio.Lock serializes appends (single writer), so the
  duplicate check and the write happen atomically with respect to each other.
- Each record is a single line appended in O_APPEND mode, flushed and
  fsynced before append() returns. No read-modify-write, no lost updates.
- If a crash left a torn final line, a newline is written first so the
  fragment stays on its own line and the new record is intact.
- Blocking file I/O runs via asyncio.to_thread(), bounded by write_timeout.

Reads:
- scan_all() walks files in name order (day order, legacy before NDJSON for
  the same day) and yields records in append order.
- Degraded read: an unreadable or unparseable legacy file counts as empty,
  an unparseable NDJSON line is skipped. Both log payment_log_corrupt.
"""

import asyncio
import json
import os
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from payhook.core.exceptions import LogStoreError, LogStoreWriteError
from payhook.schemas.payments import PaymentRecord
from payhook.services.normalizer import as_text
from payhook.store.base import AppendResult

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FILE_PREFIX = "payments-"
NDJSON_SUFFIX = ".jsonl"
LEGACY_SUFFIX = ".json"
DEFAULT_WRITE_TIMEOUT = 10.0  # seconds


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# File helpers (run inside asyncio.to_thread)
# ---------------------------------------------------------------------------


def _append_line(path: Path, line: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+b") as fh:
        size = fh.seek(0, os.SEEK_END)
        if size > 0:
            fh.seek(size - 1)
            if fh.read(1) != b"\n":
                line = b"\n" + line
        fh.write(line)
        fh.flush()
        os.fsync(fh.fileno())


def _list_log_files(log_dir: Path) -> list[Path]:
    if not log_dir.is_dir():
        return []
    files = [
        p
        for p in log_dir.iterdir()
        if p.suffix in (NDJSON_SUFFIX, LEGACY_SUFFIX) and p.is_file()
    ]
    return sorted(files, key=lambda p: (p.stem, p.suffix != LEGACY_SUFFIX))


def _parse_legacy(name: str, text: str) -> list[dict[str, Any]]:
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("payment_log_corrupt", file=name, error=str(e))
        return []
    if not isinstance(data, list):
        logger.warning("payment_log_corrupt", file=name, error="top-level value is not an array")
        return []

    records = []
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            logger.warning("payment_log_corrupt", file=name, position=position, error="entry is not an object")
            continue
        records.append(item)
    return records


def _parse_ndjson(name: str, text: str) -> list[dict[str, Any]]:
    records = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("payment_log_corrupt", file=name, line=line_no, error=str(e))
            continue
        if not isinstance(item, dict):
            logger.warning("payment_log_corrupt", file=name, line=line_no, error="entry is not an object")
            continue
        records.append(item)
    return records


def _read_log_file(path: Path) -> list[dict[str, Any]]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("payment_log_corrupt", file=path.name, error=str(e))
        return []
    if path.suffix == LEGACY_SUFFIX:
        return _parse_legacy(path.name, text)
    return _parse_ndjson(path.name, text)


# ---------------------------------------------------------------------------
# PaymentLogStore
# ---------------------------------------------------------------------------


class PaymentLogStore:
    """File-backed PaymentStore with one log file per UTC day.

    Transaction ids are unique: appending a record whose transactionId is
    already on file writes nothing and returns the stored record with
    duplicate=True. The id index is built from a full scan on the first
    append and kept in memory afterwards (this process is the only writer).
    """

    def __init__(
        self,
        log_dir: str | Path,
        clock: Callable[[], datetime] = utc_now,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    ) -> None:
        self._log_dir = Path(log_dir)
        self._clock = clock
        self._write_timeout = write_timeout
        self._write_lock = asyncio.Lock()
        self._index: dict[str, dict[str, Any]] | None = None

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def day_file(self, moment: datetime) -> Path:
        """Return the NDJSON log file for the UTC day containing moment."""
        day = moment.astimezone(UTC).date().isoformat()
        return self._log_dir / f"{FILE_PREFIX}{day}{NDJSON_SUFFIX}"

    def ensure_ready(self) -> None:
        """Create the log directory. Raises LogStoreError if that is impossible."""
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LogStoreError(f"Cannot create payment log directory '{self._log_dir}': {e}") from e
        if not os.access(self._log_dir, os.W_OK):
            raise LogStoreError(f"Payment log directory '{self._log_dir}' is not writable")

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def append(self, record: PaymentRecord) -> AppendResult:
        """Assign the timestamp and append the record to today's log file.

        Raises:
            LogStoreWriteError: the line could not be written and fsynced in time
        """
        async with self._write_lock:
            index = await self._load_index()
            transaction_id = record.transaction_id
            if transaction_id and transaction_id in index:
                return AppendResult(record=index[transaction_id], duplicate=True)

            moment = self._clock()
            stored = record.model_copy(update={"timestamp": format_timestamp(moment)}).to_log_entry()
            path = self.day_file(moment)
            # ASCII escapes keep lone surrogates from the provider encodable
            line = (json.dumps(stored) + "\n").encode("ascii")

            try:
                await asyncio.wait_for(
                    asyncio.to_thread(_append_line, path, line),
                    timeout=self._write_timeout,
                )
            except TimeoutError as e:
                raise LogStoreWriteError(str(path), f"write timed out after {self._write_timeout}s") from e
            except OSError as e:
                raise LogStoreWriteError(str(path), e.strerror or str(e)) from e

            if transaction_id:
                index[transaction_id] = stored
            return AppendResult(record=stored)

    async def _load_index(self) -> dict[str, dict[str, Any]]:
        if self._index is None:
            index: dict[str, dict[str, Any]] = {}
            async for existing in self.scan_all():
                # Older files may hold numeric ids; key them as received ids are keyed
                tid = as_text(existing.get("transactionId"))
                if tid:
                    index.setdefault(tid, existing)
            self._index = index
            logger.info("payment_index_loaded", transactions=len(index))
        return self._index

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def scan_all(self) -> AsyncIterator[dict[str, Any]]:
        """Yield every record of every log file, one file read at a time."""
        paths = await asyncio.to_thread(_list_log_files, self._log_dir)
        for path in paths:
            records = await asyncio.to_thread(_read_log_file, path)
            for record in records:
                yield record

    async def find_by_transaction_id(self, transaction_id: str) -> dict[str, Any] | None:
        """Return the first record (in scan order) with this transactionId."""
        async with aclosing(self.scan_all()) as records:
            async for record in records:
                if as_text(record.get("transactionId")) == transaction_id:
                    return record
        return None
