"""Advisory hints derived from borg / shell diagnostic output.

Rules run over normalized lines (split and trimmed), case-insensitively.
Hints never change a command's result; they are extra output only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class HintRule:
    """A hint fires when every pattern matches the same line."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    hint: str

    def matches(self, line: str) -> bool:
        return all(p.search(line) for p in self.patterns)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

NOT_FOUND_PATTERNS: list[re.Pattern[str]] = [
    # cmd.exe (en / de / fr / es)
    re.compile(r"is not recognized as an internal or external command", re.I),
    re.compile(r"wird nicht als interner oder externer befehl", re.I),
    re.compile(r"n'est pas reconnu en tant que commande interne", re.I),
    re.compile(r"no se reconoce como un comando interno o externo", re.I),
    # PowerShell
    re.compile(r"is not recognized as the name of a cmdlet", re.I),
    # POSIX shells
    re.compile(r"command not found", re.I),
    re.compile(r"\bsh: \d+: \S+: not found", re.I),
    # wsl --exec with a missing binary
    re.compile(r"execvpe\(.*\) failed", re.I),
]

NOT_FOUND_HINT = (
    "Hint: the borg executable could not be found.\n"
    "  - Native: install borg for Windows and set its full path in Settings.\n"
    "  - WSL: enable 'Use WSL' and install borg inside the distribution "
    "(e.g. 'sudo apt install borgbackup').\n"
)

SSH_DENIED_HINT = (
    "Hint: the SSH server rejected the login.\n"
    "  - Copy your public key to the remote host "
    "(e.g. 'ssh-copy-id -i ~/.ssh/id_ed25519.pub user@host').\n"
    "  - Password prompts are disabled (BatchMode), so key-based login is required.\n"
)

RULES: list[HintRule] = [
    HintRule(
        name="executable-not-found",
        patterns=(
            re.compile("|".join(p.pattern for p in NOT_FOUND_PATTERNS), re.I),
        ),
        hint=NOT_FOUND_HINT,
    ),
    HintRule(
        name="ssh-access-denied",
        patterns=(
            re.compile(r"permission denied|access denied", re.I),
            re.compile(r"publickey|password", re.I),
        ),
        hint=SSH_DENIED_HINT,
    ),
]


def _normalize(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def classify_lines(lines: list[str]) -> list[str]:
    """Return one hint per rule that matches any of *lines*, in rule order."""
    hints: list[str] = []
    for rule in RULES:
        if any(rule.matches(line) for line in lines):
            hints.append(rule.hint)
    return hints


def classify(chunk: str) -> list[str]:
    """Stateless classification of a single output chunk."""
    return classify_lines(_normalize(chunk))


# Longest unterminated line held back before it is classified as-is.
MAX_PENDING = 16384


class HintClassifier:
    """Per-stream classifier that carries partial lines across chunks.

    A phrase split over two reads is still matched once its line completes.
    A pending line longer than MAX_PENDING is classified and dropped.
    """

    def __init__(self) -> None:
        self._tail = ""

    def feed(self, chunk: str) -> list[str]:
        data = self._tail + chunk
        # borg progress lines end in a bare \r
        cut = max(data.rfind("\n"), data.rfind("\r")) + 1
        complete, self._tail = data[:cut], data[cut:]
        if len(self._tail) > MAX_PENDING:
            complete, self._tail = data, ""
        if not complete:
            return []
        return classify(complete)

    def flush(self) -> list[str]:
        data, self._tail = self._tail, ""
        return classify(data)
