"""Tests for src.cli: CLI argument parsing and command handlers.

Tests use main(argv=[...]) with the repository and session file mocked, so
command logic runs in isolation without a real backend.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from src.backend.client import BackendError
from src.backend.models import Bill, Transaction
from src.backend.session import AuthSession, load_session, save_session
from src.cli import (
    cmd_bill_from_transaction,
    cmd_import,
    cmd_login,
    cmd_logout,
    cmd_mark_recurring,
    main,
)
from src.importer.pipeline import ImportResult
from src.reports.summary import MonthlySummary
from tests.conftest import CSV_HEADER, make_jwt


# ── Helpers ──────────────────────────────────────────────


def _make_args(**kwargs):
    """Create an argparse.Namespace with given attributes."""
    return argparse.Namespace(**kwargs)


def _run(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


@pytest.fixture
def session_file(tmp_path, monkeypatch):
    path = tmp_path / "session.json"
    monkeypatch.setenv("FINANCE_SESSION_FILE", str(path))
    monkeypatch.setenv("FINANCE_API_BASE_URL", "https://api.example.test")
    monkeypatch.setenv("FINANCE_CONFIG_DIR", str(tmp_path / "no-config"))
    return path


# ── Argument parsing tests (subprocess) ──────────────────


class TestCliHelp:
    def test_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "src.cli", "--help"],
            capture_output=True, text=True,
        )
        assert result.returncode == 0
        assert "Billfold personal bill tracker" in result.stdout

    def test_all_subcommands_listed_in_help(self):
        result = subprocess.run(
            [sys.executable, "-m", "src.cli", "--help"],
            capture_output=True, text=True,
        )
        for cmd in ["login", "logout", "import", "summary", "transactions", "bills",
                    "mark-recurring", "bill-from-transaction"]:
            assert cmd in result.stdout, f"Subcommand '{cmd}' not in help output"


class TestMainDispatch:
    def test_no_args_prints_help(self, capsys):
        assert _run([]) == 0
        assert "usage:" in capsys.readouterr().out.lower()

    def test_rejects_unknown_account_type(self):
        with pytest.raises(SystemExit) as exc:
            main(["import", "x.csv", "--account-type", "brokerage"])
        assert exc.value.code == 2

    def test_signed_out_error(self, session_file, capsys):
        assert _run(["summary"]) == 1
        assert "Not signed in. Run 'billfold login' first." in capsys.readouterr().out

    def test_backend_error_reported(self, session_file, capsys):
        with patch("src.cli._get_repo") as get_repo:
            get_repo.return_value.list_transactions.side_effect = BackendError("down")
            assert _run(["summary", "--month", "2024-01"]) == 1
        assert "Error: down" in capsys.readouterr().out

    def test_invalid_month(self, session_file, capsys):
        save_session(AuthSession(token="t", user_id="42"), session_file)
        assert _run(["summary", "--month", "January"]) == 1
        assert "Invalid month" in capsys.readouterr().out


# ── Auth ─────────────────────────────────────────────────


class TestLogin:
    def test_login_saves_session(self, session_file, capsys):
        token = make_jwt({"id": 42})
        with patch("src.backend.repository.Repository.login", return_value={"authToken": token}):
            code = cmd_login(_make_args(email="a@b.c", password="pw", register=False))
        assert code == 0
        assert load_session(session_file) == AuthSession(token=token, user_id="42")
        assert "Signed in as a@b.c" in capsys.readouterr().out

    def test_register(self, session_file):
        token = make_jwt({"id": 7})
        with patch("src.backend.repository.Repository.register", return_value=token) as reg:
            cmd_login(_make_args(email="a@b.c", password="pw", register=True))
        reg.assert_called_once_with("a@b.c", "pw")
        assert load_session(session_file).user_id == "7"

    def test_prompts_for_password(self, session_file):
        token = make_jwt({"id": 1})
        with patch("src.cli.getpass.getpass", return_value="secret") as gp, \
             patch("src.backend.repository.Repository.login", return_value=token) as login:
            cmd_login(_make_args(email="a@b.c", password=None, register=False))
        gp.assert_called_once()
        login.assert_called_once_with("a@b.c", "secret")

    def test_login_without_token(self, session_file, capsys):
        with patch("src.backend.repository.Repository.login", return_value={}):
            assert _run(["login", "a@b.c", "--password", "pw"]) == 1
        assert "No auth token received" in capsys.readouterr().out
        assert not session_file.exists()

    def test_logout(self, session_file, capsys):
        save_session(AuthSession(token="t", user_id="42"), session_file)
        assert cmd_logout(_make_args()) == 0
        assert not session_file.exists()
        assert cmd_logout(_make_args()) == 0
        assert "Not signed in." in capsys.readouterr().out


# ── Import ───────────────────────────────────────────────


class TestCmdImport:
    def test_missing_file(self, tmp_path, capsys):
        args = _make_args(file=tmp_path / "nope.csv", account_type="checking", month=None)
        assert cmd_import(args) == 1
        assert "File not found" in capsys.readouterr().out

    def test_successful_import(self, session_file, tmp_path, capsys):
        f = tmp_path / "jan.csv"
        f.write_text(CSV_HEADER + "A,T1,1/2/2024,Coffee,,Dining,,-4.50,10\n")
        result = ImportResult(
            file_name="jan.csv", status="success", transaction_count=1,
            summary=MonthlySummary(income=0, recurring=0, misc=4.5, remaining=-4.5),
        )
        with patch("src.cli._get_repo"), \
             patch("src.importer.pipeline.ImportPipeline.process_file", return_value=result) as pf:
            code = cmd_import(_make_args(file=f, account_type="savings", month="2024-01"))
        assert code == 0
        assert pf.call_args[0][1] == "savings"
        assert pf.call_args[1]["summary_month"] == "2024-01"
        assert "-$4.50" in capsys.readouterr().out

    def test_failed_import(self, session_file, tmp_path, capsys):
        f = tmp_path / "empty.csv"
        f.write_text(CSV_HEADER)
        repo = MagicMock()
        repo.user_id = "42"
        with patch("src.cli._get_repo", return_value=repo):
            code = cmd_import(_make_args(file=f, account_type="checking", month=None))
        assert code == 1
        out = capsys.readouterr().out
        assert "Parsing CSV..." in out
        assert "Error: No valid transactions found in CSV" in out
        repo.client.close.assert_called_once()


# ── Reports ──────────────────────────────────────────────


def _txns():
    return [
        Transaction(user_id=42, date="2024-01-02", merchant="ACME", description="d",
                    amount=2500.0, transaction_type="income", id=1),
        Transaction(user_id=42, date="2024-01-05", merchant="Netflix", description="d",
                    amount=-15.99, transaction_type="recurring", bill_id=3, id=2),
    ]


class TestSummaryAndTransactions:
    def test_summary(self, capsys):
        with patch("src.cli._get_repo") as get_repo:
            get_repo.return_value.list_transactions.return_value = _txns()
            assert _run(["summary", "--month", "2024-01"]) == 0
            get_repo.return_value.list_transactions.assert_called_once_with(month="2024-01")
        out = capsys.readouterr().out
        assert "January 2024" in out
        assert "$2,500.00" in out
        assert "$2,484.01" in out

    def test_transactions_filtered(self, capsys):
        with patch("src.cli._get_repo") as get_repo:
            get_repo.return_value.list_transactions.return_value = _txns()
            assert _run(["transactions", "--month", "2024-01", "--type", "recurring"]) == 0
        out = capsys.readouterr().out
        assert "1 transactions" in out
        assert "Netflix" in out
        assert "ACME" not in out

    def test_no_transactions(self, capsys):
        with patch("src.cli._get_repo") as get_repo:
            get_repo.return_value.list_transactions.return_value = []
            assert _run(["transactions", "--month", "2024-01"]) == 0
        assert "No transactions found." in capsys.readouterr().out


# ── Bills ────────────────────────────────────────────────


class TestBillsCommands:
    @pytest.fixture
    def repo(self):
        repo = MagicMock()
        repo.user_id = "42"
        repo.list_active_bills.return_value = [
            Bill(user_id="42", name="Netflix", due_day=5, amount_expected=15.99, id=3),
        ]
        repo.list_bills.return_value = repo.list_active_bills.return_value
        repo.list_bill_payments.return_value = []
        repo.list_transactions.return_value = _txns()
        with patch("src.cli._get_repo", return_value=repo):
            yield repo

    def test_list(self, repo, capsys):
        assert _run(["bills", "list", "--month", "2024-01"]) == 0
        out = capsys.readouterr().out
        assert "Netflix" in out
        assert "[ ]" in out
        assert "1 txn" in out
        assert "(1 linked)" in out

    def test_no_subcommand(self, repo, capsys):
        assert _run(["bills"]) == 1
        assert "Usage: billfold bills" in capsys.readouterr().out

    def test_add(self, repo, capsys):
        repo.insert_bill.side_effect = lambda b: Bill(**{**b.__dict__, "id": 9})
        assert _run(["bills", "add", "  Hulu ", "--due-day", "12", "--amount", "7.99"]) == 0
        bill = repo.insert_bill.call_args[0][0]
        assert bill.name == "Hulu"
        assert bill.due_day == 12
        assert bill.amount_expected == 7.99
        assert "Added bill 'Hulu' (9)" in capsys.readouterr().out

    def test_add_blank_name(self, repo, capsys):
        assert _run(["bills", "add", "  "]) == 1
        assert "Bill name is required" in capsys.readouterr().out
        repo.insert_bill.assert_not_called()

    def test_edit(self, repo):
        repo.update_bill.return_value = Bill(user_id="42", name="Hulu", id=3)
        assert _run(["bills", "edit", "3", "Hulu", "--variable", "--amount", "5"]) == 0
        repo.update_bill.assert_called_once_with(
            3, name="Hulu", due_day=None, amount_expected=None,
            is_variable=True, autopay=False,
        )

    def test_delete(self, repo):
        assert _run(["bills", "delete", "3"]) == 0
        repo.update_bill.assert_called_once_with(3, active=False)

    def test_pay(self, repo):
        assert _run(["bills", "pay", "3", "--month", "2024-01"]) == 0
        payment = repo.upsert_bill_payment.call_args[0][0]
        assert payment.paid is True
        assert payment.month == "2024-01"
        assert payment.amount_paid == pytest.approx(15.99)

    def test_unpay(self, repo):
        assert _run(["bills", "pay", "3", "--month", "2024-01", "--unpaid"]) == 0
        assert repo.upsert_bill_payment.call_args[0][0].paid is False


# ── Transaction linking ──────────────────────────────────


class TestLinking:
    def test_mark_recurring(self, capsys):
        repo = MagicMock()
        with patch("src.cli._get_repo", return_value=repo):
            code = cmd_mark_recurring(_make_args(txn_id=2, bill_id=3, clear=False))
        assert code == 0
        repo.mark_transaction_recurring.assert_called_once_with(2, 3, True)

    def test_clear_recurring(self):
        repo = MagicMock()
        with patch("src.cli._get_repo", return_value=repo):
            cmd_mark_recurring(_make_args(txn_id=2, bill_id=None, clear=True))
        repo.mark_transaction_recurring.assert_called_once_with(2, None, False)

    def test_bill_from_transaction(self, capsys):
        repo = MagicMock()
        repo.user_id = "42"
        repo.list_transactions.return_value = _txns()
        repo.insert_bill.side_effect = lambda b: Bill(**{**b.__dict__, "id": 50})
        with patch("src.cli._get_repo", return_value=repo):
            code = cmd_bill_from_transaction(_make_args(txn_id=2, month="2024-01"))
        assert code == 0
        assert repo.insert_bill.call_args[0][0].name == "Netflix"
        repo.mark_transaction_recurring.assert_called_once_with(2, 50, True)
        assert "Created bill 'Netflix' (50)" in capsys.readouterr().out

    def test_bill_from_missing_transaction(self, capsys):
        repo = MagicMock()
        repo.list_transactions.return_value = _txns()
        with patch("src.cli._get_repo", return_value=repo):
            code = cmd_bill_from_transaction(_make_args(txn_id=99, month="2024-01"))
        assert code == 1
        assert "not found" in capsys.readouterr().out
        repo.insert_bill.assert_not_called()
