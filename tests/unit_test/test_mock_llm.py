import httpx
import pytest
from openai import OpenAI

from deepthink.gateway import ChatCompletionsGateway
from deepthink.mock_llm import COMPLETION_PREFIX, SUBTASK_PREFIX, create_app, scripted_reply
from deepthink.router import ActionRouter
from deepthink.schemas import RespondToInquiry, TaskCompletionNotification, TaskDetailInquiry
from deepthink.state import AgentEntry


@pytest.fixture
def app():
    return create_app()


def test_models_endpoint(app):
    data = app.test_client().get("/v1/models").get_json()
    assert data["data"][0]["id"] == "mock-model"


def test_chat_endpoint_mimics_openai_shape(app):
    resp = app.test_client().post(
        "/v1/chat/completions",
        json={"model": "m", "messages": [{"role": "user", "content": "Plan a trip"}]},
    )
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["id"].startswith("chatcmpl-mock-")
    assert data["choices"][0]["message"]["role"] == "assistant"
    assert '"subtask_request"' in data["choices"][0]["message"]["content"]


def test_scripted_reply_walks_the_scenario():
    root = [{"role": "system", "content": "p"}, {"role": "user", "content": "Plan a trip"}]
    assert scripted_reply(root, "Response")["action"]["subtask"]["detail"] == SUBTASK_PREFIX + "Plan a trip"

    child = [{"role": "system", "content": "p"}, {"role": "user", "content": SUBTASK_PREFIX + "Plan a trip"}]
    assert scripted_reply(child, "Response")["action"]["type"] == "task_detail_inquiry"
    assert scripted_reply(root, "Response2")["action"]["type"] == "respond_to_inquiry"

    resumed = child + [{"role": "assistant", "content": "{}"}, {"role": "user", "content": "Tokyo"}]
    assert scripted_reply(resumed, "Response")["action"]["result"] == "Done (Tokyo)."

    notified = root + [{"role": "assistant", "content": "{}"}, {"role": "user", "content": COMPLETION_PREFIX + "all set"}]
    assert scripted_reply(notified, "Response")["action"]["result"] == "all set"


def test_full_delegation_against_mock_server(app):
    # Real OpenAI client, served in-process through the WSGI app.
    client = OpenAI(
        api_key="EMPTY",
        base_url="http://mock.local/v1",
        http_client=httpx.Client(transport=httpx.WSGITransport(app=app)),
    )
    gateway = ChatCompletionsGateway(model_name="mock-model", client=client, developer_role_as_system=True)
    router = ActionRouter(gateway=gateway)

    router.send("Book a flight")
    router.advance()
    assert isinstance(router.log.last().action, TaskDetailInquiry)
    assert router.log.last().agent_id == 1

    ancestor_answer, resumed = router.advance()
    assert ancestor_answer.agent_id == 0
    assert ancestor_answer.action == RespondToInquiry("Depart from Tokyo.")
    assert resumed.action == TaskCompletionNotification("Done (Depart from Tokyo.).")

    (final,) = router.advance()
    assert final.agent_id == 1
    assert final.action == TaskCompletionNotification("Done (Depart from Tokyo.).")
    assert len(router.log) == 7
    assert all(e.continuation_id.startswith("chatcmpl-mock-") for e in router.log if isinstance(e, AgentEntry))
