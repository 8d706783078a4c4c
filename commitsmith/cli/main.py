"""CLI Main Entry Point"""

import os
import sys
import threading
import time

import structlog

from commitsmith.analysis import RefactorDetector
from commitsmith.config import Config, load_config
from commitsmith.git import DiffProcessor, GitAnalyzer, GitError, StagedChanges
from commitsmith.llm import LLMError, OllamaClient, get_client
from commitsmith.logging import configure_logging
from commitsmith.message import validate_message
from commitsmith.output import (
    CHECK, Spinner, dim, display_file_list, display_message, info,
    print_error, print_pipeline_report, print_warning, success, warning,
)
from commitsmith.pipeline import CancellationToken, DiffContext, PipelineResult, ReflectionPipeline
from commitsmith.prompts import PromptConfig

from commitsmith.cli.args import parse_args
from commitsmith.cli.commands import display_config, run_init_config, run_install_completion, run_warmup
from commitsmith.cli.utils import append_ticket, copy_to_clipboard

log = structlog.get_logger(__name__)

EXIT_INTERRUPTED = 130


def _handle_subcommands(args):
    """Handle subcommands that exit early.

    Returns:
        tuple: (exit_code, should_exit) - exit_code if should_exit is True
    """
    if args.install_completion:
        return run_install_completion(), True
    if args.display_config:
        return display_config(), True
    if args.init_config:
        return run_init_config(), True
    return 0, False


def _resolve_config(args) -> Config:
    """Effective settings. Precedence: CLI args > environment > config file."""
    config = load_config()
    config.apply_env()

    if args.provider:
        config.provider = args.provider
    if args.model:
        config.model = args.model
    if args.no_body:
        config.include_body = False
    if args.max_iterations:
        config.max_iterations = args.max_iterations
    if args.no_ast:
        config.ast_analysis = False
    if args.ticket_prefix:
        config.ticket_prefix = args.ticket_prefix
    if args.debug:
        config.debug = True
    return config


def _read_staged_changes() -> tuple[GitAnalyzer | None, StagedChanges | None]:
    try:
        git = GitAnalyzer()
        changes = git.get_staged_changes()
    except GitError as e:
        print_error(str(e))
        return None, None

    if changes.is_empty:
        print_error("No staged changes. Run 'git add' first.")
        return git, None
    return git, changes


def _build_context(args, config: Config, git: GitAnalyzer, changes: StagedChanges, is_pipe: bool):
    """Staged changes -> (DiffContext, RefactorDetector or None)."""
    processed = DiffProcessor().process(changes)
    if not is_pipe:
        display_file_list(processed.file_details, config.max_file_display, processed.filtered_files)

    detector = None
    versions = {}
    if config.ast_analysis:
        detector = RefactorDetector()
        for path in processed.file_paths:
            if detector.supports_file(path):
                versions[path] = git.get_file_versions(path)
        log.debug("file_versions_loaded", files=len(versions))

    context = DiffContext(
        diff=processed.detailed_diff,
        files=tuple(processed.file_paths),
        branch=changes.branch,
        recent_commits=tuple(changes.recent_commits),
        hint=args.hint,
        summary=processed.summary,
        truncated=processed.truncated,
        file_versions=versions,
    )
    return context, detector


def _ensure_model_loaded(client, is_pipe: bool) -> None:
    if not isinstance(client, OllamaClient) or client.is_model_loaded():
        return
    if not is_pipe:
        print(dim("Loading model... "), end='', flush=True)
    if not client.warmup() and not is_pipe:
        print(warning("warmup failed, generation may be slow"))
    elif not is_pipe:
        print(success("ready"))


def _run_pipeline(pipeline: ReflectionPipeline, context: DiffContext, label: str) -> PipelineResult:
    """Run in a worker thread so Ctrl+C can cancel between model calls."""
    token = CancellationToken()
    outcome = {}

    def work():
        outcome['result'] = pipeline.run(context, token)

    worker = threading.Thread(target=work, daemon=True)
    with Spinner(label):
        worker.start()
        try:
            while worker.is_alive():
                worker.join(0.1)
        except KeyboardInterrupt:
            token.cancel("interrupted by user")
            print(dim("\nCancelling after the current request..."), file=sys.stderr)
            worker.join()
    return outcome['result']


def _copy_and_report(message: str, no_copy: bool) -> None:
    """Copy message to clipboard and print result."""
    if no_copy:
        return
    copied, reason = copy_to_clipboard(message)
    if copied:
        print(f"{success(CHECK)} Copied to clipboard!")
    else:
        print(f"{warning('!')} Could not copy to clipboard{': ' + reason if reason else ''}")
        print(dim("  Select the message above to copy manually."))


def _generate_commit_flow(args, config: Config) -> int:
    """Main commit message generation flow.

    Returns:
        int: Exit code
    """
    is_pipe = not sys.stdout.isatty()
    started = time.time()

    git, changes = _read_staged_changes()
    if changes is None:
        return 1

    context, detector = _build_context(args, config, git, changes, is_pipe)

    try:
        client = get_client(provider=config.provider, model=config.model)
    except LLMError as e:
        print_error(str(e))
        return 1
    _ensure_model_loaded(client, is_pipe)

    pipeline = ReflectionPipeline(
        client,
        config.pipeline_config(),
        prompt_config=PromptConfig(
            forced_type=args.type,
            include_body=config.include_body,
            max_subject_length=config.max_subject_length,
        ),
        ast_detector=detector,
    )
    label = f"Analyzing {len(context.files)} files using {client.name}..."
    result = _run_pipeline(pipeline, context, label)

    if args.verbose and not is_pipe:
        print_pipeline_report(result)

    if not result.success:
        print_error(result.error or "Commit message generation failed")
        return EXIT_INTERRUPTED if result.error_kind == "cancelled" else 1

    message = result.formatted_message
    if args.jira:
        message = append_ticket(message, args.jira, config.ticket_prefix)

    # Pipe mode: output raw message and exit
    if is_pipe:
        print(message)
        return 0

    display_message(message)
    for problem in validate_message(result.message, config.max_subject_length):
        print_warning(problem)
    print(dim(f"{result.iterations} review round(s), quality {result.final_quality_score:.0f}, "
              f"{time.time() - started:.1f}s with {info(client.name)}"))
    _copy_and_report(message, args.no_copy)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)
    log_file = os.environ.get("COMMITSMITH_LOG_FILE")
    configure_logging(debug=args.debug, log_file=log_file)

    # Handle subcommands that exit early
    exit_code, should_exit = _handle_subcommands(args)
    if should_exit:
        return exit_code

    config = _resolve_config(args)
    if config.debug and not args.debug:
        configure_logging(debug=True, log_file=log_file)
    log.debug("config_resolved", **config.to_dict())

    # Handle warmup subcommand (needs provider/model)
    if args.warmup:
        return run_warmup(config.provider, config.model)

    try:
        return _generate_commit_flow(args, config)
    except KeyboardInterrupt:
        print(dim("\nCancelled."), file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
