import unittest
from unittest.mock import patch

from click.testing import CliRunner
from solders.keypair import Keypair

from lodestar.chain.accounts import board_pda, round_pda
from lodestar.cli import cli
from tests.fixtures import StubTransport, pack_board, pack_round


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self.transport = StubTransport({
            board_pda(): pack_board(12),
            round_pda(12): pack_round(12),
        })

    def test_config(self) -> None:
        result = self.runner.invoke(cli, ["config"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Lodestar Configuration", result.output)

    def test_deploy_uses_board_round(self) -> None:
        with patch("lodestar.cli._transport", return_value=self.transport), patch(
            "lodestar.cli.load_signer", return_value=Keypair()
        ):
            result = self.runner.invoke(cli, ["deploy", "--squares", "1,3", "--amount", "0.01"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("submitted", result.output)
        self.assertEqual(len(self.transport.submitted), 1)
        deploy = self.transport.submitted[0][-1]
        self.assertEqual(deploy.accounts[5].pubkey, round_pda(12))

    def test_deploy_defers_on_missing_round(self) -> None:
        with patch("lodestar.cli._transport", return_value=self.transport), patch(
            "lodestar.cli.load_signer", return_value=Keypair()
        ):
            result = self.runner.invoke(cli, ["deploy", "--round", "13", "--squares", "1"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("deferred", result.output)
        self.assertEqual(self.transport.submitted, [])

    def test_status_without_signer(self) -> None:
        with patch("lodestar.cli._transport", return_value=self.transport), patch(
            "lodestar.cli.try_load_signer", return_value=None
        ):
            result = self.runner.invoke(cli, ["status"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Round #12", result.output)


if __name__ == "__main__":
    unittest.main()
