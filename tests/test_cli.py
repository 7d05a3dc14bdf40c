import pytest
from decimal import Decimal
from unittest.mock import patch

import cli
from config import Settings
from services import PaymentsEngine


@pytest.fixture(autouse=True)
def cli_settings():
    """Run the CLI with deterministic settings regardless of the environment."""
    with patch('cli.get_settings', return_value=Settings(log_format="text", log_level="INFO")):
        yield


class TestProcessTransactions:
    """Test replaying a transaction file."""

    def test_valid_transactions_processed_as_expected(self, resources):
        engine = cli.process_transactions(resources / "valid_transactions.csv")

        accounts = {account.client: account for account in engine.accounts()}
        assert set(accounts) == {1, 2, 3}
        assert (accounts[1].available, accounts[1].held, accounts[1].locked) == (Decimal("0.5"), Decimal("0"), True)
        assert (accounts[2].available, accounts[2].total) == (Decimal("5.3"), Decimal("5.3"))
        assert (accounts[3].available, accounts[3].held, accounts[3].total) == (Decimal("1.2"), Decimal("4"), Decimal("5.2"))

    @patch('cli.logger')
    def test_rejected_transactions_are_logged(self, mock_logger, resources):
        cli.process_transactions(resources / "valid_transactions.csv")

        codes = [call.kwargs["error_code"] for call in mock_logger.warning.call_args_list]
        assert codes == ["INSUFFICIENT_FUNDS", "LOCKED_ACCOUNT"]

    def test_existing_engine_is_reused(self, write_csv):
        engine = PaymentsEngine()
        engine.deposit(1, 100, Decimal("1"))

        result = cli.process_transactions(write_csv("type,client,tx,amount", "withdrawal,1,1,1"), engine)

        assert result is engine
        assert engine.account(1).available == Decimal("0")


class TestMain:
    """Test the command-line entry point end to end."""

    def test_valid_transactions_output(self, resources, capsys):
        exit_code = cli.main([str(resources / "valid_transactions.csv")])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert captured.out == (
            "client,available,held,total,locked\n"
            "1,0.5,0,0.5,true\n"
            "2,5.3,0,5.3,false\n"
            "3,1.2,4.0,5.2,false\n"
        )

    def test_last_transaction_fails(self, resources, capsys):
        exit_code = cli.main([str(resources / "example_transactions.csv")])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert "insufficient funds for transaction 5" in captured.err
        assert captured.out == (
            "client,available,held,total,locked\n"
            "1,1.5,0,1.5,false\n"
            "2,2.0,0,2.0,false\n"
        )

    def test_invalid_rows_do_not_abort(self, resources, capsys):
        exit_code = cli.main([str(resources / "invalid_rows.csv")])

        captured = capsys.readouterr()
        assert exit_code == 0
        assert captured.err.count("Invalid input row") == 5
        assert captured.out.splitlines()[1:] == ["1,7.5,0,7.5,false"]

    def test_unsorted_output_lists_every_client(self, write_csv, capsys):
        path = write_csv(
            "type,client,tx,amount",
            "deposit,3,1,1",
            "deposit,1,2,1",
            "deposit,2,3,1",
        )

        assert cli.main([str(path), "--unsorted"]) == 0

        rows = capsys.readouterr().out.splitlines()[1:]
        assert sorted(row.split(",")[0] for row in rows) == ["1", "2", "3"]

    def test_missing_file_fails(self, tmp_path, capsys):
        exit_code = cli.main([str(tmp_path / "missing.csv")])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert "Could not read input file" in captured.err

    def test_bad_header_fails(self, write_csv, capsys):
        exit_code = cli.main([str(write_csv("kind,who,amount", "deposit,1,1"))])

        assert exit_code == 1
        assert capsys.readouterr().out == ""
