import unittest
from unittest.mock import Mock, patch

from lodestar.chain.transport import SubmissionError
from lodestar.trading.errors import (
    ErrorClassifier,
    Outcome,
    extract_program_errors,
    extract_signature,
    handle_fatal_error,
)
from tests.fixtures import SIGNATURE, capture_console, output


class ExtractTests(unittest.TestCase):
    def test_codes_from_logs(self) -> None:
        error = SubmissionError("failed", logs=[
            "Program log: deploy",
            "Program xyz failed: custom program error: 0x1a",
        ])
        self.assertEqual(extract_program_errors(error), [0x1a])

    def test_codes_from_message_when_no_logs(self) -> None:
        error = RuntimeError("Transaction simulation failed: custom program error: 0x1")
        self.assertEqual(extract_program_errors(error), [0x1])

    def test_code_attribute(self) -> None:
        error = RuntimeError("boom")
        error.code = 0x1
        self.assertEqual(extract_program_errors(error), [0x1])

    def test_hex_prefix_does_not_leak_into_other_codes(self) -> None:
        error = RuntimeError("custom program error: 0x10")
        self.assertEqual(extract_program_errors(error), [0x10])

    def test_signature_from_attribute_then_message(self) -> None:
        self.assertEqual(extract_signature(SubmissionError("x", signature="abc")), "abc")
        self.assertEqual(extract_signature(RuntimeError(f"Transaction {SIGNATURE} failed")), SIGNATURE)
        self.assertIsNone(extract_signature(RuntimeError("nothing here")))


class ClassifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self.console = capture_console()
        self.on_fatal = Mock()
        self.classifier = ErrorClassifier(on_fatal=self.on_fatal, console=self.console)

    def test_benign_duplicate(self) -> None:
        error = SubmissionError("failed", logs=["Program x failed: custom program error: 0x1"])
        result = self.classifier.handle(error, operation="checkpoint round 8")
        self.assertEqual(result.outcome, Outcome.BENIGN_DUPLICATE)
        self.assertTrue(result.is_success)
        self.on_fatal.assert_not_called()
        self.assertIn("checkpoint round 8", output(self.console))

    def test_unknown_code_is_fatal(self) -> None:
        error = SubmissionError("failed: custom program error: 0x10")
        result = self.classifier.handle(error)
        self.assertEqual(result.outcome, Outcome.FATAL)
        self.assertEqual(result.codes, [0x10])
        self.on_fatal.assert_called_once_with(error, None)

    def test_no_code_is_fatal(self) -> None:
        error = TimeoutError("confirmation timed out")
        result = self.classifier.classify(error)
        self.assertEqual(result.outcome, Outcome.FATAL)
        self.assertEqual(result.codes, [])
        self.on_fatal.assert_not_called()

    def test_explicit_logs_win_over_message(self) -> None:
        error = RuntimeError("custom program error: 0x7")
        logs = ["Program x failed: custom program error: 0x1"]
        self.assertTrue(self.classifier.handle(error, logs).is_success)


class FatalHandlerTests(unittest.TestCase):
    def test_prints_and_exits(self) -> None:
        console = capture_console()
        with patch("lodestar.trading.errors.console", console):
            with self.assertRaises(SystemExit) as ctx:
                handle_fatal_error(RuntimeError("kaboom"), ["Program log: bad"])
        self.assertEqual(ctx.exception.code, 1)
        text = output(console)
        self.assertIn("kaboom", text)
        self.assertIn("Program log: bad", text)


if __name__ == "__main__":
    unittest.main()
