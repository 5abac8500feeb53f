from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from clone_worker.http_server import create_app
from clone_worker.queue_manager import QueueManager


@pytest.fixture
def client(config, context):
    worker = SimpleNamespace(
        config=config,
        context=context,
        queue_manager=QueueManager(config, context),
    )
    return TestClient(create_app(worker))


def test_state_uses_persisted_field_names(client, context):
    context.add_to_queue('a.mp4')

    body = client.get('/state').json()

    assert body['queue'] == ['a.mp4']
    assert body['status'] == 'idle'
    assert 'processedVideos' in body


def test_video_status(client, context):
    context.mark_complete('done.mp4')

    body = client.get('/videos/done.mp4/status').json()

    assert body['is_processed'] is True


def test_queue(client):
    body = client.get('/queue').json()
    assert body['pending'] == []
    assert body['ready'] is True
    assert body['stats']['videos_processed'] == 0


def test_healthz_reports_missing_directories(config, context, tmp_path):
    config.INPUT_DIR = str(tmp_path / 'vanished')
    worker = SimpleNamespace(config=config, context=context, queue_manager=None)

    response = TestClient(create_app(worker)).get('/healthz')

    assert response.status_code == 503
