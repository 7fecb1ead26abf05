import pytest

from deepthink.router import ActionRouter
from scripted import ScriptedGateway


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def router(gateway):
    return ActionRouter(gateway=gateway)
