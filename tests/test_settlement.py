import unittest
from unittest.mock import Mock

from solders.keypair import Keypair

from lodestar.chain.accounts import round_pda
from lodestar.chain.state import decode_miner
from lodestar.chain.transport import SubmissionError
from lodestar.trading.errors import ErrorClassifier
from lodestar.trading.settlement import (
    SettlementState,
    classify_settlement,
    reconcile,
    send_checkpoint,
)
from tests.fixtures import StubTransport, capture_console, output, pack_miner


def miner(round_id, checkpoint_id):
    return decode_miner(pack_miner(round_id=round_id, checkpoint_id=checkpoint_id)).unwrap()


class ClassifySettlementTests(unittest.TestCase):
    def test_equal_ids_are_clean_for_any_round(self) -> None:
        for ids in range(0, 15):
            for current in range(0, 15):
                self.assertEqual(classify_settlement(ids, ids, current), SettlementState.CLEAN)

    def test_dirty_and_older_is_eligible(self) -> None:
        for current in range(1, 12):
            for round_id in range(0, current):
                for checkpoint_id in range(0, 12):
                    if checkpoint_id == round_id:
                        continue
                    self.assertEqual(
                        classify_settlement(checkpoint_id, round_id, current),
                        SettlementState.DIRTY_ELIGIBLE,
                    )

    def test_dirty_and_not_older_is_ineligible(self) -> None:
        for current in range(0, 12):
            for round_id in range(current, 14):
                for checkpoint_id in range(0, 14):
                    if checkpoint_id == round_id:
                        continue
                    self.assertEqual(
                        classify_settlement(checkpoint_id, round_id, current),
                        SettlementState.DIRTY_INELIGIBLE,
                    )


class ReconcileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.authority = Keypair().pubkey()

    def test_no_miner_is_clean(self) -> None:
        plan = reconcile(None, 10, self.authority)
        self.assertEqual(plan.state, SettlementState.CLEAN)
        self.assertFalse(plan.needs_checkpoint)

    def test_clean_miner(self) -> None:
        plan = reconcile(miner(9, 9), 10, self.authority)
        self.assertEqual(plan.state, SettlementState.CLEAN)
        self.assertIsNone(plan.instruction)

    def test_dirty_eligible_checkpoints_the_stale_round(self) -> None:
        plan = reconcile(miner(8, 7), 10, self.authority)
        self.assertEqual(plan.state, SettlementState.DIRTY_ELIGIBLE)
        self.assertEqual(plan.stale_round_id, 8)
        self.assertEqual(bytes(plan.instruction.data), b"\x02")
        self.assertEqual(plan.instruction.accounts[3].pubkey, round_pda(8))
        self.assertNotEqual(plan.instruction.accounts[3].pubkey, round_pda(10))

    def test_dirty_ineligible_builds_nothing(self) -> None:
        plan = reconcile(miner(10, 9), 10, self.authority)
        self.assertEqual(plan.state, SettlementState.DIRTY_INELIGIBLE)
        self.assertIsNone(plan.instruction)


class SendCheckpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.signer = Keypair()
        self.console = capture_console()
        self.on_fatal = Mock()
        self.classifier = ErrorClassifier(on_fatal=self.on_fatal, console=self.console)

    def test_success(self) -> None:
        transport = StubTransport()
        ok = send_checkpoint(8, transport, self.signer, self.classifier, console=self.console)
        self.assertTrue(ok)
        self.assertEqual(len(transport.submitted), 1)
        self.assertEqual(transport.submitted[0][0].accounts[3].pubkey, round_pda(8))
        self.assertIn("checkpoint successful", output(self.console))

    def test_already_settled_counts_as_success(self) -> None:
        failure = SubmissionError("simulation failed", logs=[
            "Program log: Error: round already checkpointed",
            "Program oreV3 failed: custom program error: 0x1",
        ])
        ok = send_checkpoint(8, StubTransport(failure=failure), self.signer, self.classifier,
                             console=self.console)
        self.assertTrue(ok)
        self.on_fatal.assert_not_called()

    def test_other_failures_are_fatal(self) -> None:
        failure = SubmissionError("custom program error: 0x3")
        ok = send_checkpoint(8, StubTransport(failure=failure), self.signer, self.classifier,
                             console=self.console)
        self.assertFalse(ok)
        self.on_fatal.assert_called_once_with(failure, None)

    def test_missing_signer(self) -> None:
        transport = StubTransport()
        self.assertFalse(send_checkpoint(8, transport, None, self.classifier, console=self.console))
        self.assertEqual(transport.submitted, [])


if __name__ == "__main__":
    unittest.main()
