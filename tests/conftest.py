import pytest

from common.config import AppSettings, ASRSettings, AudioSettings, GatewaySettings, SLMSettings
from common.schemas import RawSegment


@pytest.fixture
def raw_segments():
    return [
        RawSegment(start=0.0, end=2.5, text="Um so like I think, you know, it works."),
        RawSegment(start=2.5, end=6.1, text="Uh we basically deploy it, right?"),
        RawSegment(start=6.1, end=9.0, text="Okay well that's actually the whole idea."),
    ]


@pytest.fixture
def app_settings():
    return AppSettings(
        gateway=GatewaySettings(request_timeout_s=5.0),
        audio=AudioSettings(timeout_s=1.0),
        asr=ASRSettings(api_key="dg-test"),
        slm=SLMSettings(api_key="gm-test"),
    )
