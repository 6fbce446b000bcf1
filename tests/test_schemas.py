import pytest
from pydantic import ValidationError

import config
from schemas import GenerateVideoRequest, ProductData, VoiceoverConfig


def test_request_defaults_follow_config():
    request = GenerateVideoRequest()
    assert request.aspect_ratio == config.DEFAULT_ASPECT_RATIO
    assert request.template == config.DEFAULT_TEMPLATE
    assert VoiceoverConfig().voice == config.TTS_VOICE


@pytest.mark.parametrize("voice", config.TTS_VOICES)
def test_every_configured_voice_is_accepted(voice):
    assert VoiceoverConfig(voice=voice).voice == voice


def test_unknown_voice_is_rejected():
    with pytest.raises(ValidationError):
        VoiceoverConfig(voice="robot")


def test_product_title_is_stripped():
    assert ProductData(url="https://example.com/p", title="  Desk Lamp ").title == "Desk Lamp"


def test_short_product_title_is_rejected():
    with pytest.raises(ValidationError):
        ProductData(url="https://example.com/p", title="ab")
