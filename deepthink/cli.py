"""
Interactive console host for a DeepThink session.

Plain lines are sent to the current branch; slash commands trigger the
delegation transitions the latest entry enables.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from deepthink.config import DeepThinkConfig
from deepthink.errors import DeepThinkError
from deepthink.gateway import build_gateway
from deepthink.render import TRANSITION_LABELS, render_entry, render_log, render_transcript
from deepthink.router import ActionRouter
from deepthink.schemas import SubtaskRequest
from deepthink.state import AgentEntry, Entry
from deepthink.utils.logging_utils import new_session_id, session_dump_dir, setup_session_logging

logger = logging.getLogger(__name__)

HELP = """Commands:
  <text>              send text to the current branch
  /next               run the transition the latest entry enables
  /invoke [detail]    invoke the requested subtask (optionally with another detail)
  /reply [inquiry]    reply to the pending inquiry (optionally rephrased)
  /notify [result]    notify the requester of task completion (optionally another result)
  /log                print the whole log
  /history N          print the message transcript of entry N
  /clear              reset the log
  /help               show this help
  /quit               exit"""

_TRANSITION_COMMANDS = {
    "/next": "advance",
    "/invoke": "invoke_subtask",
    "/reply": "reply_to_inquiry",
    "/notify": "notify_task_completion",
}

# argparse dest -> DeepThinkConfig.from_settings key
_SETTING_FLAGS = {
    "model_name": "model_name",
    "base_url": "base_url",
    "api_key": "api_key",
    "api": "api",
    "developer_as_system": "developer_role_as_system",
    "max_tokens": "max_tokens",
    "timeout_s": "timeout_s",
    "dump_dir": "dump_dir",
}


def _print_new(router: ActionRouter, entries: List[Entry], out: Callable[[str], None]) -> None:
    start = len(router.log) - len(entries)
    for offset, entry in enumerate(entries):
        out(render_entry(entry, start + offset))
    transition = router.available_transition()
    if transition:
        out(f"(next: {TRANSITION_LABELS[transition]} -> /next)")


def _run_transition(router: ActionRouter, method: str, arg: str) -> List[Entry]:
    if method == "advance" or not arg:
        return getattr(router, method)()
    if method == "invoke_subtask":
        latest = router.log.last()
        pending = latest.action if isinstance(latest, AgentEntry) else None
        title = pending.title if isinstance(pending, SubtaskRequest) else arg
        return router.invoke_subtask(SubtaskRequest(title=title, detail=arg))
    return getattr(router, method)(arg)


def handle_line(router: ActionRouter, line: str, out: Callable[[str], None] = print) -> bool:
    """Run one console line. Returns False when the session should end."""
    line = line.strip()
    if not line:
        return True
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    try:
        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            out(HELP)
        elif command == "/log":
            out(render_log(router.log) or "(empty log)")
        elif command == "/clear":
            router.reset()
            out("(log cleared)")
        elif command == "/history":
            try:
                entry = router.log.get(int(arg))
            except (ValueError, IndexError) as e:
                out(f"error: {e}")
            else:
                out(render_transcript(entry.message_history))
        elif command in _TRANSITION_COMMANDS:
            _print_new(router, _run_transition(router, _TRANSITION_COMMANDS[command], arg), out)
        elif command.startswith("/"):
            out(f"unknown command {command!r}; /help lists commands")
        else:
            _print_new(router, router.send(line), out)
    except DeepThinkError as e:
        logger.error("[DeepThink] %s failed: %s", command, e)
        out(f"error: {e}")
    except KeyboardInterrupt:
        # Entries are committed only after the model answers, so the log is unchanged.
        logger.warning("[DeepThink] %s interrupted", command)
        out("(interrupted; nothing appended)")
    return True


def run_repl(router: ActionRouter, lines: Iterable[str], out: Callable[[str], None] = print) -> int:
    for line in lines:
        if not handle_line(router, line, out):
            break
    return 0


def _stdin_lines(prompt: str = "> ") -> Iterator[str]:
    while True:
        try:
            yield input(prompt)
        except (EOFError, KeyboardInterrupt):
            return


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deepthink",
        description="Multi-agent task delegation console. Environment variables override flags.",
    )
    parser.add_argument("--base_url", default=None, help="OpenAI-compatible endpoint (env: OPENAI_BASE_URL)")
    parser.add_argument("--api_key", default=None, help="env: OPENAI_API_KEY")
    parser.add_argument("--model_name", default=None, help="env: DEEPTHINK_MODEL_NAME")
    parser.add_argument("--api", type=str.lower, choices=["chat", "responses"], default=None, help="env: DEEPTHINK_API")
    parser.add_argument(
        "--developer_as_system",
        action="store_true",
        default=None,
        help="send instructions with the system role (env: DEEPTHINK_DEVELOPER_AS_SYSTEM)",
    )
    parser.add_argument("--max_tokens", type=int, default=None)
    parser.add_argument("--timeout_s", type=float, default=None)
    parser.add_argument("--dump_dir", default=None, help="env: DEEPTHINK_DUMP_DIR")
    parser.add_argument("--output_path", default="./deepthink_runs", help="directory for session logs")
    parser.add_argument("--verbose", action="store_true", help="log raw model responses")
    return parser


def config_from_args(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> DeepThinkConfig:
    settings: Dict[str, Any] = {}
    for flag, key in _SETTING_FLAGS.items():
        value = getattr(args, flag, None)
        if value is not None:
            settings[key] = value
    return DeepThinkConfig.from_settings(settings, environ)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    session_id = new_session_id()

    log_file = setup_session_logging(
        args.output_path,
        session_id,
        level=logging.DEBUG if args.verbose else logging.INFO,
        console=args.verbose,
    )
    try:
        cfg = config_from_args(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        print(f"error: {e}")
        return 2
    cfg.dump_dir = session_dump_dir(cfg.dump_dir, session_id)
    logger.info("DeepThink console started with: %s (log=%s)", cfg.to_dict(), log_file)

    router = ActionRouter(gateway=build_gateway(cfg))
    print(HELP)
    return run_repl(router, _stdin_lines())


if __name__ == "__main__":
    raise SystemExit(main())
