import pytest

from deepthink.config import DeepThinkConfig
from deepthink.gateway import build_gateway
from deepthink.router import ActionRouter
from deepthink.state import AgentEntry


@pytest.mark.live
def test_live_send_returns_a_delegation_action():
    cfg = DeepThinkConfig.from_settings()
    router = ActionRouter(gateway=build_gateway(cfg))
    new = router.send("Plan a weekend trip to Kyoto. Delegate the hotel search.")
    assert isinstance(new[-1], AgentEntry)
    assert new[-1].agent_id == 0
    assert router.available_transition() in ("invoke_subtask", "reply_to_inquiry", "notify_task_completion")
