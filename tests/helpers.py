"""
Test helpers — a scripted command runner and canned results.
"""

from devsetup.adapters.shell.command import CommandResult

RUN_ID = "20250824_123456"


class FakeRunner:
    """Stands in for ``run_command``: records argv, replays canned results.

    Responses are matched by the longest registered argv prefix found
    anywhere in the command (so ``sudo -E`` prefixes do not matter).
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self._responses: list[tuple[list[str], list[CommandResult]]] = []

    def respond(self, prefix: list[str], *results: CommandResult) -> None:
        """Queue results for commands containing ``prefix``; the last one repeats."""
        self._responses.append((prefix, list(results)))

    def __call__(self, cmd, **kwargs) -> CommandResult:
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        best = None
        for prefix, results in self._responses:
            if _contains(cmd, prefix) and (best is None or len(prefix) > len(best[0])):
                best = (prefix, results)
        if best is None:
            return CommandResult(cmd=list(cmd))
        results = best[1]
        result = results.pop(0) if len(results) > 1 else results[0]
        return CommandResult(
            cmd=list(cmd),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            timed_out=result.timed_out,
            timeout=kwargs.get("timeout"),
        )

    def commands(self, word: str) -> list[list[str]]:
        return [c for c in self.calls if word in c]


def _contains(cmd: list[str], prefix: list[str]) -> bool:
    n = len(prefix)
    return any(list(cmd[i:i + n]) == prefix for i in range(len(cmd) - n + 1))


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(cmd=[], returncode=0, stdout=stdout)


def fail(code: int = 1, stderr: str = "boom") -> CommandResult:
    return CommandResult(cmd=[], returncode=code, stderr=stderr)


def timeout() -> CommandResult:
    return CommandResult(cmd=[], returncode=124, timed_out=True)


