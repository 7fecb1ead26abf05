import io
import logging

import pytest

from deepthink.cli import build_parser, config_from_args, handle_line, run_repl
from deepthink.gateway import ResponsesGateway, build_gateway
from deepthink.render import render_entry, render_log, render_transcript
from deepthink.schemas import Message, SubtaskRequest
from deepthink.state import AgentEntry, UserEntry
from deepthink.utils.logging_utils import session_dump_dir, session_handlers, setup_session_logging
from scripted import answer, completion, inquiry, subtask


def _console(router, *lines):
    out = []
    run_repl(router, lines, out.append)
    return "\n".join(out)


def test_repl_walks_a_delegation(router, gateway):
    gateway.queue(subtask("Find flights", "Search NRT-SFO"), inquiry("Which day?"), answer("Friday"), completion("Booked"))
    text = _console(router, "Book a flight", "/next", "/reply", "/log")

    assert "Subtask Request" in text
    assert "(next: Invoke subtask -> /next)" in text
    assert "(next: Reply to inquiry -> /next)" in text
    assert "[4] agent0" in text
    assert "Respond to Inquiry" in text
    assert len(router.log) == 6


def test_errors_are_reported_not_raised(router, gateway):
    out = []
    assert handle_line(router, "/invoke", out.append)
    assert out[0].startswith("error: invoke_subtask needs")

    gateway.queue("not json")
    handle_line(router, "hello", out.append)
    assert "Invalid response format" in out[-1]
    assert len(router.log) == 0


def test_history_and_housekeeping_commands(router, gateway):
    gateway.queue(completion("ok"))
    out = []
    handle_line(router, "do it", out.append)
    handle_line(router, "/history 1", out.append)
    assert "--- developer" in out[-1]
    assert "--- assistant (resp_1)" in out[-1]

    handle_line(router, "/history nine", out.append)
    assert out[-1].startswith("error:")
    handle_line(router, "/history 7", out.append)
    assert out[-1].startswith("error:")

    handle_line(router, "/bogus", out.append)
    assert "unknown command" in out[-1]

    handle_line(router, "/clear", out.append)
    assert len(router.log) == 0
    handle_line(router, "/log", out.append)
    assert out[-1] == "(empty log)"
    assert handle_line(router, "/quit", out.append) is False


def test_quit_stops_the_loop(router, gateway):
    gateway.queue(completion("ok"))
    _console(router, "/quit", "never sent")
    assert gateway.calls == []


def test_parser_leaves_unset_flags_to_the_config_layer():
    args = build_parser().parse_args(["--model_name", "m", "--developer_as_system", "--api", "Responses"])
    assert args.model_name == "m"
    assert args.developer_as_system is True
    assert args.api == "responses"
    bare = build_parser().parse_args([])
    assert bare.api is None and bare.developer_as_system is None and bare.max_tokens is None
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--api", "legacy"])


def test_console_config_honours_env_overrides():
    env = {"DEEPTHINK_DEVELOPER_AS_SYSTEM": "1", "DEEPTHINK_API": "Responses"}
    cfg = config_from_args(build_parser().parse_args([]), environ=env)
    assert cfg.developer_role_as_system is True
    assert cfg.api == "responses"
    assert isinstance(build_gateway(cfg, client=object()), ResponsesGateway)


def test_console_config_uses_flags_then_defaults():
    args = build_parser().parse_args(["--model_name", "m", "--max_tokens", "99", "--developer_as_system"])
    cfg = config_from_args(args, environ={})
    assert (cfg.model_name, cfg.max_tokens, cfg.developer_role_as_system) == ("m", 99, True)
    assert cfg.api == "chat"
    assert cfg.timeout_s == 60.0

    with pytest.raises(ValueError):
        config_from_args(build_parser().parse_args([]), environ={"DEEPTHINK_API": "legacy"})


def test_transition_commands_pass_their_argument(router, gateway):
    out = []
    gateway.queue(subtask("Find flights", "Search NRT-SFO"), inquiry("Which day?"))
    handle_line(router, "Book a flight", out.append)
    handle_line(router, "/invoke Search KIX-SFO only", out.append)
    assert router.log.get(2).content == "Search KIX-SFO only"
    assert router.log.get(3).message_history[1].content == "Search KIX-SFO only"

    gateway.queue(answer("Friday"), completion("Booked"))
    handle_line(router, "/reply Osaka only", out.append)
    assert gateway.calls[2][0].messages[-1].content == "Subtask executer asked: Osaka only"

    gateway.queue(completion("done"))
    handle_line(router, "/notify Booked KIX-SFO", out.append)
    assert gateway.calls[-1][0].messages[-1].content == "Subtask completed: Booked KIX-SFO"


def test_interrupt_during_a_model_call_keeps_the_console_alive(router, gateway):
    def interrupt():
        raise KeyboardInterrupt

    gateway.on_complete = interrupt
    gateway.queue(completion("never used"))
    out = []
    assert handle_line(router, "hello", out.append) is True
    assert out[-1] == "(interrupted; nothing appended)"
    assert len(router.log) == 0

    gateway.on_complete = None
    handle_line(router, "hello again", out.append)
    assert len(router.log) == 2


def test_render_helpers():
    user = UserEntry(content="hello", message_history=())
    agent = AgentEntry(agent_id=2, thought="split it", action=SubtaskRequest("T", "D"), message_history=())
    assert render_entry(user) == "user\n  hello"
    assert render_entry(agent, 3).splitlines() == ["[3] agent2", "  split it", "    Subtask Request", "    T", "    D"]
    assert render_log([user, agent]).startswith("[0] user")
    assert render_transcript([Message(role="user", content="hi")]) == "--- user\nhi"


def test_session_logging_writes_file_and_replaces_previous_session(tmp_path):
    root = logging.getLogger()
    before, level = list(root.handlers), root.level
    stream = io.StringIO()
    try:
        path = setup_session_logging(str(tmp_path), session_id="abc123", stream=stream)
        assert setup_session_logging(str(tmp_path), session_id="abc123", stream=stream) == path
        assert len(session_handlers(root)) == 2
        logging.getLogger("deepthink.test").info("hello log")
        for h in root.handlers:
            h.flush()
        assert path.endswith("session_abc123.log")
        with open(path, encoding="utf-8") as f:
            assert f.read().count("Sabc123 | deepthink.test | hello log") == 1
        assert "hello log" in stream.getvalue()

        second = setup_session_logging(str(tmp_path), session_id="def456", console=False)
        assert [type(h) for h in session_handlers(root)] == [logging.FileHandler]
        logging.getLogger("deepthink.test").info("second session")
        for h in root.handlers:
            h.flush()
        with open(second, encoding="utf-8") as f:
            assert "Sdef456 | deepthink.test | second session" in f.read()
        with open(path, encoding="utf-8") as f:
            assert "second session" not in f.read()
    finally:
        for h in list(root.handlers):
            if h not in before:
                root.removeHandler(h)
                h.close()
        root.setLevel(level)


def test_session_dump_dir():
    assert session_dump_dir(None, "abc") is None
    assert session_dump_dir("dumps", "abc").endswith("session_abc")
