"""SQLite swap ledger for Swapper."""

import csv
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from swapper.errors import DuplicateRecordError, LedgerWriteError
from swapper.models import SwapRecord, SwapStatus, to_display

logger = logging.getLogger(__name__)

ACCOUNTING_COLUMNS = [
    "Date",
    "Sent Amount",
    "Sent Currency",
    "Received Amount",
    "Received Currency",
    "Fee Amount",
    "Fee Currency",
    "Net Worth Amount",
    "Net Worth Currency",
    "Label",
    "Description",
    "TxHash",
    "Chain Transactions",
]

HISTORY_COLUMNS = [
    "Timestamp",
    "Transaction ID",
    "From Token",
    "To Token",
    "From Amount",
    "To Amount",
    "Source Price (USD)",
    "Dest Price (USD)",
    "Cost Basis (USD)",
    "Fees (USD)",
    "Effective Rate",
    "From Chain",
    "To Chain",
    "Transaction Hash",
    "Status",
    "Error Kind",
    "Error Message",
    "Dry Run",
]


class SwapLedger:
    """Append-only SQLite store of swap records.

    Each record is written as one JSON document in a single transaction,
    so a reader sees either the whole record or nothing. Records are
    never updated once appended.
    """

    REQUIRED_TABLES = ["swaps"]

    def __init__(self, db_path: Path, export_dir: Optional[Path] = None):
        """Initialize the ledger.

        Args:
            db_path: Path to the SQLite database file.
            export_dir: Default directory for CSV exports. Defaults to the
                database directory.
        """
        self.db_path = Path(db_path)
        self.export_dir = Path(export_dir) if export_dir else self.db_path.parent
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS swaps (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    started_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    cost_basis_usd REAL NOT NULL,
                    effective_rate REAL NOT NULL,
                    payload TEXT NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_swaps_status ON swaps (status)"
            )
            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Writes ====================

    def append(self, record: SwapRecord) -> None:
        """Append a finished record.

        Args:
            record: Completed or failed swap record.

        Raises:
            ValueError: If the record is still pending.
            DuplicateRecordError: If a record with the same id exists.
            LedgerWriteError: If the database write fails.
        """
        if record.status is SwapStatus.PENDING:
            raise ValueError(f"Refusing to append pending record {record.id}")

        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise LedgerWriteError(f"Cannot open ledger {self.db_path}: {e}") from e

        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO swaps
                    (id, started_at, status, cost_basis_usd, effective_rate, payload)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.started_at.isoformat(),
                        record.status.value,
                        record.cost_basis_usd,
                        record.effective_rate,
                        record.model_dump_json(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(f"Record {record.id} already in ledger") from e
        except sqlite3.Error as e:
            raise LedgerWriteError(f"Failed to append record {record.id}: {e}") from e
        finally:
            conn.close()

        logger.info(
            "Transaction logged: %s %s %s -> %s %s (cost basis $%.2f, %s)",
            record.id,
            record.source_amount_display,
            record.source_asset,
            record.dest_amount_display,
            record.dest_asset,
            record.cost_basis_usd,
            record.status.value,
        )

    # ==================== Queries ====================

    def _select(self, where: str = "", params: tuple = ()) -> list[SwapRecord]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT payload FROM swaps {where} ORDER BY seq", params)
            return [SwapRecord.model_validate_json(row["payload"]) for row in cursor.fetchall()]
        finally:
            conn.close()

    def all(self) -> list[SwapRecord]:
        """All records in append order."""
        return self._select()

    def completed_only(self) -> list[SwapRecord]:
        """Completed records in append order."""
        return self._select("WHERE status = ?", (SwapStatus.COMPLETED.value,))

    def get(self, record_id: str) -> Optional[SwapRecord]:
        """Get a record by id.

        Returns:
            SwapRecord if found, None otherwise.
        """
        records = self._select("WHERE id = ?", (record_id,))
        return records[0] if records else None

    def total_cost_basis_usd(self) -> float:
        """Sum of cost basis over completed records."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COALESCE(SUM(cost_basis_usd), 0.0) AS total FROM swaps WHERE status = ?",
                (SwapStatus.COMPLETED.value,),
            )
            return float(cursor.fetchone()["total"])
        finally:
            conn.close()

    def average_effective_rate(self) -> float:
        """Mean effective rate over completed records; 0.0 when there are none."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS n, COALESCE(SUM(effective_rate), 0.0) AS total "
                "FROM swaps WHERE status = ?",
                (SwapStatus.COMPLETED.value,),
            )
            row = cursor.fetchone()
            if row["n"] == 0:
                return 0.0
            return float(row["total"]) / row["n"]
        finally:
            conn.close()

    def stats(self) -> dict:
        """Summary statistics over the ledger."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT status, COUNT(*) AS count FROM swaps GROUP BY status")
            counts = {row["status"]: row["count"] for row in cursor.fetchall()}
        finally:
            conn.close()

        return {
            "total_transactions": sum(counts.values()),
            "successful_transactions": counts.get(SwapStatus.COMPLETED.value, 0),
            "failed_transactions": counts.get(SwapStatus.FAILED.value, 0),
            "total_volume_usd": self.total_cost_basis_usd(),
            "average_rate": self.average_effective_rate(),
        }

    # ==================== Export ====================

    def _export_path(self, path: Optional[Path], prefix: str) -> Path:
        if path is None:
            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
            path = self.export_dir / f"{prefix}_{stamp}.csv"
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def export_accounting_rows(self, path: Optional[Path] = None) -> Path:
        """Write completed swaps as accounting rows.

        Failed attempts carry no realized cost basis and are left out.

        Args:
            path: Destination CSV file. Defaults to a timestamped file in
                the export directory.

        Returns:
            Path of the written file.
        """
        path = self._export_path(path, "swap_accounting")
        records = self.completed_only()

        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=ACCOUNTING_COLUMNS)
            writer.writeheader()
            for record in records:
                writer.writerow(accounting_row(record))

        logger.info("Exported %d transactions to %s", len(records), path)
        return path

    def export_history(self, path: Optional[Path] = None) -> Path:
        """Write every record, failed attempts included, for auditing."""
        path = self._export_path(path, "swap_history")
        records = self.all()

        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=HISTORY_COLUMNS)
            writer.writeheader()
            for record in records:
                writer.writerow(history_row(record))

        logger.info("Exported %d history records to %s", len(records), path)
        return path


def accounting_row(record: SwapRecord) -> dict:
    """Project a completed record into an accounting import row."""
    return {
        "Date": record.started_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        "Sent Amount": record.source_amount_display,
        "Sent Currency": record.source_asset,
        "Received Amount": record.dest_amount_display,
        "Received Currency": record.dest_asset,
        "Fee Amount": f"{record.fee_usd:.2f}" if record.fee_usd else "",
        "Fee Currency": "USD" if record.fee_usd else "",
        "Net Worth Amount": f"{record.cost_basis_usd:.2f}",
        "Net Worth Currency": "USD",
        "Label": "swap",
        "Description": (
            f"{record.source_asset} ({record.source_chain}) -> "
            f"{record.dest_asset} ({record.dest_chain}) swap {record.id}"
        ),
        "TxHash": record.primary_tx_ref,
        "Chain Transactions": record.chain_refs,
    }


def history_row(record: SwapRecord) -> dict:
    return {
        "Timestamp": record.started_at.isoformat(),
        "Transaction ID": record.id,
        "From Token": record.source_asset,
        "To Token": record.dest_asset,
        "From Amount": to_display(record.source_amount, record.source_decimals),
        "To Amount": to_display(record.dest_amount, record.dest_decimals),
        "Source Price (USD)": f"{record.source_price_usd:.6f}",
        "Dest Price (USD)": f"{record.dest_price_usd:.4f}",
        "Cost Basis (USD)": f"{record.cost_basis_usd:.2f}",
        "Fees (USD)": f"{record.fee_usd:.4f}",
        "Effective Rate": f"{record.effective_rate:.6f}",
        "From Chain": record.source_chain,
        "To Chain": record.dest_chain,
        "Transaction Hash": record.primary_tx_ref,
        "Status": record.status.value,
        "Error Kind": record.error_kind.value if record.error_kind else "",
        "Error Message": record.error_detail or "",
        "Dry Run": "yes" if record.dry_run else "no",
    }


def dump_record(record: SwapRecord) -> str:
    """Pretty JSON for one record."""
    return json.dumps(record.model_dump(mode="json"), indent=2)
