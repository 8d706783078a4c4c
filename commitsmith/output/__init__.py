"""Terminal Output Package - colors, spinner and report rendering."""

import os
import sys
import threading
import time

from commitsmith.message import HEADER_RE


class Colors:
    """ANSI escape codes for terminal colors."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    MAGENTA = '\033[35m'


def _supports_color(stream=None) -> bool:
    stream = stream or sys.stdout
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    return hasattr(stream, 'isatty') and stream.isatty()


def _supports_unicode() -> bool:
    try:
        '✓⠋─'.encode(sys.stdout.encoding or 'utf-8')
        return True
    except (UnicodeEncodeError, LookupError):
        return False


COLORS_ENABLED = _supports_color()
UNICODE_ENABLED = _supports_unicode()

CHECK = '✓' if UNICODE_ENABLED else '[OK]'
CROSS = '✗' if UNICODE_ENABLED else '[X]'
ARROW = '→' if UNICODE_ENABLED else '->'
RULE = '─' if UNICODE_ENABLED else '-'


def _colorize(text: str, *codes: str) -> str:
    if not COLORS_ENABLED:
        return text
    return f"{''.join(codes)}{text}{Colors.RESET}"


def success(text: str) -> str:
    return _colorize(text, Colors.GREEN)


def error(text: str) -> str:
    return _colorize(text, Colors.RED)


def warning(text: str) -> str:
    return _colorize(text, Colors.YELLOW)


def info(text: str) -> str:
    return _colorize(text, Colors.CYAN)


def dim(text: str) -> str:
    return _colorize(text, Colors.DIM)


def bold(text: str) -> str:
    return _colorize(text, Colors.BOLD)


def print_success(message: str) -> None:
    print(f"{success(CHECK)} {message}")


def print_error(message: str) -> None:
    print(f"{error(CROSS)} {error(message)}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(f"{warning('!')} {warning(message)}", file=sys.stderr)


COMMIT_TYPE_COLORS = {
    'feat': Colors.GREEN,
    'fix': Colors.RED,
    'refactor': Colors.YELLOW,
    'docs': Colors.CYAN,
    'test': Colors.MAGENTA,
    'perf': Colors.GREEN,
    'chore': Colors.DIM,
    'style': Colors.DIM,
    'ci': Colors.CYAN,
    'build': Colors.CYAN,
    'revert': Colors.RED,
}


def colorize_commit_type(message: str) -> str:
    """Color the type(scope)!: prefix of a commit message's header."""
    if not COLORS_ENABLED:
        return message
    lines = message.split('\n')
    match = HEADER_RE.match(lines[0])
    if not match:
        return message
    color = COMMIT_TYPE_COLORS.get(match.group(1))
    if color:
        prefix = lines[0][:match.start(4)]
        lines[0] = _colorize(prefix, Colors.BOLD, color) + lines[0][len(prefix):]
    return '\n'.join(lines)


def display_message(message: str) -> None:
    """Print a commit message between horizontal rules."""
    width = max((len(line) for line in message.split('\n')), default=40)
    lines = colorize_commit_type(message).split('\n')
    print(f"\n{dim(RULE * width)}")
    print(bold(lines[0]))
    for line in lines[1:]:
        print(line)
    print(dim(RULE * width))


def display_file_list(file_details: list[tuple[str, int, int]], max_shown: int, filtered: int = 0) -> None:
    """Show which files will be analyzed, collapsing long lists."""
    if not file_details:
        return
    print(bold("Staged changes:"))
    for path, additions, deletions in file_details[:max_shown]:
        print(dim(f"  {path} (+{additions} -{deletions})"))
    remaining = len(file_details) - max_shown
    if remaining > 0:
        print(dim(f"  ... and {remaining} more files"))
    if filtered > 0:
        print(dim(f"  {filtered} noise files filtered"))


def _score(value) -> str:
    if value is None:
        return "-"
    text = f"{value:.0f}"
    if value >= 80:
        return success(text)
    if value >= 60:
        return warning(text)
    return error(text)


def format_pipeline_report(result) -> str:
    """Audit trail of a pipeline run as plain lines for --verbose."""
    lines = []
    analysis = result.analysis
    if analysis is not None:
        patterns = ", ".join(f"{p.kind} {p.confidence:.2f}" for p in analysis.change_patterns[:3]) or "none"
        lines.append(f"Analysis: {analysis.complexity} complexity, patterns: {patterns}")
        if analysis.modified_symbols:
            names = ", ".join(s.name for s in analysis.modified_symbols[:8])
            lines.append(f"  Symbols: {names}")
        if analysis.ast_analysis and not analysis.ast_analysis.is_empty:
            ast = analysis.ast_analysis
            lines.append(
                f"  Syntax tree: {len(ast.refactorings)} refactorings, "
                f"{len(ast.structural_changes)} structural changes, {len(ast.semantic_impact)} impacts"
            )

    for i, reflection in enumerate(result.reflections):
        decision = result.decisions[i] if i < len(result.decisions) else None
        verification = result.verifications[i] if i < len(result.verifications) else None
        parts = [f"Iteration {i + 1}: {reflection.decision}",
                 f"quality {_score(reflection.quality_score)}"]
        if decision is not None:
            parts.append(f"threshold {decision.threshold}")
        if verification is not None:
            critical = f" {error('critical')}" if verification.has_critical_issues else ""
            parts.append(f"accuracy {_score(verification.factual_accuracy)}{critical}")
        lines.append(", ".join(parts))
        for issue in reflection.issues:
            lines.append(f"  {ARROW} {issue}")
        if verification is not None:
            for issue in verification.issues:
                lines.append(f"  {ARROW} {issue}")
            if verification.hallucinated_symbols:
                lines.append(f"  {ARROW} not in diff: {', '.join(verification.hallucinated_symbols)}")
        if decision is not None:
            lines.append(dim(f"  {decision.reason}"))

    t = result.timings
    lines.append(dim(
        f"Timings: total={t.total:.2f}s, generation={t.generation:.2f}s, reflection={t.reflection:.2f}s, "
        f"verification={t.verification:.2f}s, refinement={t.refinement:.2f}s"
    ))
    return "\n".join(lines)


def print_pipeline_report(result) -> None:
    print()
    for line in format_pipeline_report(result).split('\n'):
        print(dim("  ") + line)


class Spinner:
    """Animated spinner with a label and elapsed time. Use as context manager."""
    FRAMES_UNICODE = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
    FRAMES_ASCII = ['-', '\\', '|', '/']

    def __init__(self, label: str = "", stream=None):
        self.label = label
        self._stream = stream or sys.stdout
        self._thread = None
        self._stop_event = threading.Event()
        self._frames = self.FRAMES_UNICODE if UNICODE_ENABLED else self.FRAMES_ASCII
        self._started = 0.0

    def _active(self) -> bool:
        return hasattr(self._stream, 'isatty') and self._stream.isatty()

    def _spin(self):
        idx = 0
        while not self._stop_event.is_set():
            frame = self._frames[idx % len(self._frames)]
            elapsed = time.time() - self._started
            print(f'\r\033[K{frame} {self.label} {dim(f"{elapsed:.0f}s")}', end='', flush=True, file=self._stream)
            idx += 1
            self._stop_event.wait(0.08)

    def __enter__(self):
        self._started = time.time()
        if self._active():
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._spin, daemon=True)
            self._thread.start()
        return self

    def __exit__(self, *args):
        self._stop_event.set()
        if self._thread:
            self._thread.join()
        if self._active():
            print('\r\033[K', end='', flush=True, file=self._stream)


__all__ = [
    "Colors", "COLORS_ENABLED", "UNICODE_ENABLED",
    "CHECK", "CROSS", "ARROW", "RULE",
    "success", "error", "warning", "info", "dim", "bold",
    "print_success", "print_error", "print_warning",
    "colorize_commit_type", "display_message", "display_file_list",
    "format_pipeline_report", "print_pipeline_report",
    "Spinner", "COMMIT_TYPE_COLORS",
]
