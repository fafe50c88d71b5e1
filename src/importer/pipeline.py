"""Import pipeline: one bank-statement CSV upload, start to finish.

Stages, run strictly in sequence:
  read → parse → create import → store raw rows → classify + link bills
  → save transactions → refresh month summary

Each stage reports a progress message. Any stage failure abandons the
upload and returns a failed ImportResult; records already written to the
backend (import, raw rows, bills created so far) are left in place. A
failure to create an individual bill is not a stage failure: that row is
saved without a bill link.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from src.backend.client import BackendError
from src.backend.models import Import, RawTransactionRecord, Transaction
from src.backend.repository import Repository, numeric_user_id
from src.categorize.bill_match import BillLedger, link_bills
from src.categorize.pipeline import Categorizer, ClassifiedTransaction
from src.parsers.csv_parser import BankCsvParser
from src.reports.summary import MonthlySummary, current_month, summarize_month

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("checking", "savings", "high_yield")


class ImportStage(str, Enum):
    READING = "reading"
    PARSING = "parsing"
    CREATING_IMPORT = "creating_import"
    STORING_RAW = "storing_raw"
    PROCESSING = "processing"
    SAVING = "saving"
    REFRESHING = "refreshing"
    DONE = "done"
    FAILED = "failed"


class EmptyImportError(ValueError):
    """Raised when a file yields no parseable transactions."""

    def __init__(self):
        super().__init__("No valid transactions found in CSV")


@dataclass
class ImportResult:
    """Result of importing a single file."""
    file_name: str
    status: str  # "success", "failed"
    transaction_count: int = 0
    bills_created: int = 0
    import_id: int | None = None
    skipped_count: int = 0  # Short rows dropped by the parser
    error_message: str | None = None
    summary: MonthlySummary | None = None


ProgressFn = Callable[[ImportStage, str], None]


class ImportPipeline:
    """Orchestrate one upload against the backend.

    Args:
        repo: Backend repository for the signed-in user.
        categorizer: Classification rules and merchant patterns.
        progress: Optional callback (stage, message) for each step.
    """

    def __init__(
        self,
        repo: Repository,
        categorizer: Categorizer | None = None,
        progress: ProgressFn | None = None,
    ):
        self.repo = repo
        self.categorizer = categorizer or Categorizer()
        self.progress = progress
        self.stage: ImportStage | None = None

    def _report(self, stage: ImportStage, message: str) -> None:
        self.stage = stage
        logger.info("[%s] %s", stage.value, message)
        if self.progress is not None:
            self.progress(stage, message)

    def process_file(
        self,
        filepath: Path,
        account_type: str,
        summary_month: str | None = None,
    ) -> ImportResult:
        """Read a CSV file and run the full pipeline on it."""
        file_name = filepath.name
        self._report(ImportStage.READING, "Reading file...")
        try:
            text = filepath.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            return self._fail(file_name, e, None)
        return self.process_text(text, file_name, account_type, summary_month=summary_month)

    def process_text(
        self,
        text: str,
        file_name: str,
        account_type: str,
        summary_month: str | None = None,
    ) -> ImportResult:
        """Run parse → store → classify → link → save → refresh on CSV text.

        Returns ImportResult with counts; never raises for stage failures.
        """
        imp: Import | None = None
        completed = False
        try:
            if account_type not in ACCOUNT_TYPES:
                raise ValueError(f"Unknown account type: {account_type}")
            user_id = self.repo.user_id

            # Step 1: Parse
            self._report(ImportStage.PARSING, "Parsing CSV...")
            parser = BankCsvParser()
            parsed = parser.parse_text(text)
            if parser.skipped_count > 0:
                logger.warning(
                    "Parser skipped %d row(s) in %s (fewer than 9 fields)",
                    parser.skipped_count, file_name,
                )
            if not parsed:
                raise EmptyImportError()

            # Step 2: Record import
            self._report(
                ImportStage.CREATING_IMPORT,
                f"Found {len(parsed)} transactions. Creating import...",
            )
            imp = self.repo.insert_import(Import(
                user_id=user_id,
                filename=file_name,
                account_type=account_type,
                status="processing",
                record_count=len(parsed),
            ))

            # Step 3: Raw audit rows
            self._report(ImportStage.STORING_RAW, "Storing raw transactions...")
            self.repo.insert_raw_transactions([
                RawTransactionRecord.from_parsed(p, imp.id, user_id) for p in parsed
            ])

            # Step 4: Classify + link bills
            self._report(
                ImportStage.PROCESSING, "Processing transactions and matching bills...",
            )
            ledger = BillLedger(active_bills=self.repo.list_active_bills())
            classified = link_bills(
                self.categorizer.categorize_all(parsed),
                ledger,
                create_bill=self.repo.insert_bill,
                user_id=user_id,
                on_create=lambda merchant: self._report(
                    ImportStage.PROCESSING, f"Creating bill for {merchant}...",
                ),
            )

            # Step 5: Bulk save
            self._report(ImportStage.SAVING, "Saving transactions...")
            self.repo.insert_transactions_batch(
                [_to_transaction(c, imp.id, user_id) for c in classified]
            )
            self._mark_import(imp.id, "completed", record_count=len(parsed))
            completed = True

            # Step 6: Refresh
            self._report(ImportStage.REFRESHING, "Refreshing summary...")
            month = summary_month or current_month()
            summary = summarize_month(self.repo.list_transactions(month=month))

            self._report(
                ImportStage.DONE,
                f"Imported {len(parsed)} transactions!"
                f" Created {ledger.created_count} new bills.",
            )
            return ImportResult(
                file_name=file_name,
                status="success",
                transaction_count=len(parsed),
                bills_created=ledger.created_count,
                import_id=imp.id,
                skipped_count=parser.skipped_count,
                summary=summary,
            )

        except Exception as e:
            return self._fail(file_name, e, imp, mark_failed=not completed)

    def _fail(
        self,
        file_name: str,
        error: Exception,
        imp: Import | None,
        mark_failed: bool = True,
    ) -> ImportResult:
        """Failed result for this upload.

        The import record is patched to failed only when mark_failed is set;
        once transactions are saved and the import is completed it stays so.
        """
        logger.exception("Import failed for %s", file_name)
        if mark_failed and imp is not None and imp.id is not None:
            self._mark_import(imp.id, "failed")
        message = str(error) or "Failed to import transactions"
        self._report(ImportStage.FAILED, message)
        return ImportResult(
            file_name=file_name,
            status="failed",
            import_id=imp.id if imp is not None else None,
            error_message=message,
        )

    def _mark_import(self, import_id: int, status: str, **kwargs) -> None:
        """Best-effort import status update; failures are only logged."""
        try:
            self.repo.update_import_status(import_id, status, **kwargs)
        except BackendError as e:
            logger.warning("Could not mark import %s as %s: %s", import_id, status, e)


def _to_transaction(row: ClassifiedTransaction, import_id: int, user_id: str) -> Transaction:
    p = row.parsed
    return Transaction(
        user_id=numeric_user_id(user_id),
        date=p.date,
        merchant=row.merchant,
        description=p.description,
        amount=p.amount,
        transaction_type=row.transaction_type,
        import_id=import_id,
        bill_id=row.bill_id,
    )
