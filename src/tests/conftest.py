"""
Shared fixtures.
"""

import pytest

from src.tests.fakes import FakeEngine, ServiceStub
from src.vtranslate.settings import Settings


@pytest.fixture
def engine():
    eng = FakeEngine()
    yield eng
    eng.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gateway_api_key="gateway-key",
        elevenlabs_api_key="eleven-key",
        gateway_url="https://gateway.test/v1",
        elevenlabs_url="https://tts.test/v1",
        output_dir=str(tmp_path / "out"),
    )


@pytest.fixture
def services():
    return ServiceStub()
