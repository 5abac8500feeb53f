import json
from unittest.mock import MagicMock

from clone_worker.pipeline.orchestrate import ContentOrchestrator, _strict_schema


def fake_client(content):
    client = MagicMock()
    message = MagicMock()
    message.content = content
    client.chat.completions.create.return_value.choices = [MagicMock(message=message)]
    return client


def test_schema_forbids_extra_properties():
    schema = _strict_schema()
    assert schema['additionalProperties'] is False
    assert set(schema['required']) == {'script', 'visual_cues', 'voiceover', 'music_mood'}


def test_payload_uses_camel_case_keys(metadata):
    content = json.dumps({
        'script': 'Welcome aboard',
        'visual_cues': ['card slides in', 'price pops'],
        'voiceover': 'warm',
        'music_mood': 'upbeat',
    })
    client = fake_client(content)

    payload = ContentOrchestrator(client=client).synthesize('Replicate this clip', metadata)

    assert payload == {
        'script': 'Welcome aboard',
        'visualCues': ['card slides in', 'price pops'],
        'voiceover': 'warm',
        'musicMood': 'upbeat',
    }
    kwargs = client.chat.completions.create.call_args[1]
    assert kwargs['response_format']['json_schema']['strict'] is True


def test_failure_yields_none(metadata):
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError('rate limited')

    assert ContentOrchestrator(client=client).synthesize('prompt', metadata) is None


def test_malformed_content_yields_none(metadata):
    assert ContentOrchestrator(client=fake_client('{"script": 1')).synthesize('prompt', metadata) is None
