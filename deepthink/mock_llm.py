"""
Scripted OpenAI-compatible endpoint for running DeepThink without a model.

Walks one delegation scenario, decided from the request itself:
  root task            -> subtask_request
  child's first turn   -> task_detail_inquiry
  ancestor asked       -> respond_to_inquiry (Response2 format)
  child resumed        -> task_completion_notification
  "Subtask completed:" -> task_completion_notification

    python -m deepthink.mock_llm --port 8000
    deepthink --base_url http://localhost:8000/v1 --developer_as_system
"""

import argparse
import itertools
import json
import logging
import time
from typing import Any, Dict, List

from flask import Flask, jsonify, request

logger = logging.getLogger("MockLLM")

SUBTASK_PREFIX = "Find options for: "
INQUIRY_PREFIX = "Subtask executer asked: "
COMPLETION_PREFIX = "Subtask completed: "


def _last_user(messages: List[Dict[str, Any]]) -> str:
    for m in reversed(messages):
        if m.get("role") == "user":
            return str(m.get("content") or "")
    return ""


def scripted_reply(messages: List[Dict[str, Any]], format_name: str) -> Dict[str, Any]:
    text = _last_user(messages)
    if format_name == "Response2":
        return {
            "thought": "The executer needs the departure city; the user mentioned it earlier.",
            "action": {"type": "respond_to_inquiry", "message": "Depart from Tokyo."},
        }
    if text.startswith(COMPLETION_PREFIX):
        return {
            "thought": "The subtask reported back; the overall task is done.",
            "action": {"type": "task_completion_notification", "result": text[len(COMPLETION_PREFIX):]},
        }
    if any(m.get("role") == "assistant" for m in messages):
        return {
            "thought": "With the answer I can finish the subtask.",
            "action": {"type": "task_completion_notification", "result": f"Done ({text})."},
        }
    if text.startswith(SUBTASK_PREFIX):
        return {
            "thought": "I need the departure city before searching.",
            "action": {"type": "task_detail_inquiry", "inquiry": "Which city?"},
        }
    return {
        "thought": "This task needs research first; delegate it.",
        "action": {
            "type": "subtask_request",
            "subtask": {"title": "Find options", "detail": SUBTASK_PREFIX + text},
        },
    }


def create_app() -> Flask:
    app = Flask(__name__)
    ids = itertools.count(1)

    @app.route("/v1/chat/completions", methods=["POST"])
    def chat_completions():
        data = request.get_json(force=True) or {}
        messages = data.get("messages", [])
        fmt = (data.get("response_format") or {}).get("json_schema") or {}
        format_name = str(fmt.get("name") or "Response")
        logger.info("Received request with %d messages (format=%s)", len(messages), format_name)

        content = json.dumps(scripted_reply(messages, format_name), ensure_ascii=False)
        # Mimic OpenAI Response Format
        response = {
            "id": f"chatcmpl-mock-{next(ids)}",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": data.get("model") or "mock-model",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
        }
        return jsonify(response)

    @app.route("/v1/models", methods=["GET"])
    def list_models():
        return jsonify(
            {
                "object": "list",
                "data": [{"id": "mock-model", "object": "model", "created": 1677610602, "owned_by": "mock"}],
            }
        )

    return app


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    print(f"Starting mock LLM on {args.host}:{args.port}...")
    create_app().run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
