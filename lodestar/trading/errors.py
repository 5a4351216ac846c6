"""
Error Classifier.

The program reports failures as `custom program error: 0x<code>` in its logs.
A small set of codes means "already done" (a concurrent actor or a previous
run settled it first); those are reported and treated as success. Anything
else is fatal and goes to the fatal-error handler. No retries here: the next
scheduled cycle is the retry.
"""

import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

console = Console()

PROGRAM_ERROR_RE = re.compile(r"custom program error: 0x([0-9a-fA-F]+)")
SIGNATURE_RE = re.compile(r"Transaction ([1-9A-HJ-NP-Za-km-z]{87,88})")

# Program error code -> what it means when we see it.
BENIGN_PROGRAM_ERRORS = {
    0x1: "checkpoint already processed or round not yet expired",
}


class Outcome(Enum):
    BENIGN_DUPLICATE = "benign_duplicate"
    FATAL = "fatal"


@dataclass
class Classification:
    outcome: Outcome
    codes: List[int] = field(default_factory=list)
    reason: str = ""

    @property
    def is_success(self) -> bool:
        return self.outcome is Outcome.BENIGN_DUPLICATE


FatalErrorHandler = Callable[[BaseException, Optional[List[str]]], None]


def error_text(error: BaseException, logs: Optional[Iterable[str]] = None) -> str:
    """Logs when we have them, the exception message otherwise."""
    if logs is None:
        logs = getattr(error, "logs", None)
    if logs:
        return "\n".join(logs)
    return str(error)


def extract_program_errors(error: BaseException, logs: Optional[Iterable[str]] = None) -> List[int]:
    codes = [int(match, 16) for match in PROGRAM_ERROR_RE.findall(error_text(error, logs))]
    code = getattr(error, "code", None)
    if isinstance(code, int) and code not in codes:
        codes.append(code)
    return codes


def extract_signature(error: BaseException) -> Optional[str]:
    signature = getattr(error, "signature", None)
    if signature:
        return signature
    match = SIGNATURE_RE.search(str(error))
    return match.group(1) if match else None


def handle_fatal_error(error: BaseException, logs: Optional[List[str]] = None) -> None:
    """Default fatal handler: show everything we know, then stop the process."""
    body = f"[bold red]{type(error).__name__}[/bold red]: {escape(str(error))}"
    if logs:
        body += "\n\n[dim]" + escape("\n".join(logs)) + "[/dim]"
    console.print(Panel(body, title="[bold red]FATAL[/bold red]"))
    sys.exit(1)


class ErrorClassifier:
    def __init__(self, on_fatal: FatalErrorHandler = handle_fatal_error,
                 console: Console = console):
        self.on_fatal = on_fatal
        self.console = console

    def classify(self, error: BaseException, logs: Optional[List[str]] = None) -> Classification:
        """Pure classification, no side effects."""
        codes = extract_program_errors(error, logs)
        for code in codes:
            if code in BENIGN_PROGRAM_ERRORS:
                return Classification(Outcome.BENIGN_DUPLICATE, codes, BENIGN_PROGRAM_ERRORS[code])
        if codes:
            reason = "unrecognised program error " + ", ".join(hex(c) for c in codes)
        else:
            reason = "no program error code"
        return Classification(Outcome.FATAL, codes, reason)

    def handle(self, error: BaseException, logs: Optional[List[str]] = None,
               operation: str = "transaction") -> Classification:
        """Classify, then report. Returns the classification for the caller."""
        if logs is None:
            logs = getattr(error, "logs", None)
        result = self.classify(error, logs)
        if result.is_success:
            self.console.print(f"[dim]{operation}: {result.reason}[/dim]")
        else:
            self.on_fatal(error, logs)
        return result
