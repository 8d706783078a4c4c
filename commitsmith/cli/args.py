"""CLI Argument Parsing"""

import argparse
import argcomplete

from commitsmith import COMMIT_TYPE_NAMES, __version__


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got '{value}'")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='commitsmith',
        description='Generate reviewed, fact-checked commit messages for staged changes',
        epilog='Example: commitsmith (copies message to clipboard)'
    )

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')

    # Generation options
    parser.add_argument('--hint', type=str, metavar='TEXT', help='Add context: --hint "fixing the login bug"')
    parser.add_argument('-t', '--type', type=str, choices=COMMIT_TYPE_NAMES, help='Force commit type')
    parser.add_argument('-j', '--jira', type=str, metavar='TICKET', help='Add JIRA ticket: -j PROJ-123')
    parser.add_argument('--ticket-prefix', type=str, metavar='PREFIX', help='Ticket reference prefix (default: Refs)')
    parser.add_argument('--no-body', action='store_true', help='Generate subject line only, no bullet points')

    # Pipeline options
    parser.add_argument('-n', '--max-iterations', type=_positive_int, metavar='N',
                        help='Maximum review rounds before accepting (default: 2)')
    parser.add_argument('--no-ast', action='store_true', help='Skip syntax-tree refactor detection')

    # LLM options
    parser.add_argument('-p', '--provider', type=str, choices=['auto', 'ollama', 'claude'], help='LLM provider')
    parser.add_argument('-m', '--model', type=str, metavar='MODEL', help='Model name')
    parser.add_argument('--warmup', action='store_true', help='Pre-load Ollama model into memory')

    # Output options
    parser.add_argument('--no-copy', action='store_true', help='Print message only, do not copy to clipboard')
    parser.add_argument('--verbose', action='store_true', help='Show analysis, review rounds and timings')
    parser.add_argument('--debug', action='store_true', help='Debug logging to stderr, including model responses')

    # Config
    parser.add_argument('--display-config', action='store_true', help='Show current configuration')
    parser.add_argument('--init-config', action='store_true', help='Write a default .commitsmithrc to your home directory')
    parser.add_argument('--install-completion', action='store_true', help='Install shell tab completion')

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argcomplete.autocomplete(parser)
    return parser.parse_args(argv)
