"""
ScanLedger Backend — Live Dashboard WebSocket Tests
=====================================================

What:  The /ws/dashboard feed.
How:   Starlette's TestClient, which drives WebSockets; published events are
       injected on the app's own event loop through the session portal.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from scanledger.main import app
from scanledger.models.scan import ScanEvent
from scanledger.services.notifier import dashboard_notifier

from conftest import DEFAULT_NOW


@pytest.fixture
def client():
    return TestClient(app)


def test_rejects_missing_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/dashboard") as ws:
            ws.receive_text()
    assert exc_info.value.code == 1008


def test_rejects_invalid_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/dashboard?token=not-a-jwt") as ws:
            ws.receive_text()
    assert exc_info.value.code == 1008


def test_streams_recorded_scans(client, make_token):
    event = ScanEvent(
        direction="RECEIVING",
        sequence_number=4,
        scanned_at=DEFAULT_NOW,
        username="budi",
        barcode="ABC123",
        model="M1",
        color="RED",
        size="42",
        quantity=1,
    )

    with client.websocket_connect(f"/ws/dashboard?token={make_token()}") as ws:
        delivered = ws.portal.call(dashboard_notifier.publish, event)
        message = ws.receive_json()

    assert delivered == 1
    assert message["type"] == "RECEIVING"
    assert message["sequence_number"] == 4
    assert message["barcode"] == "ABC123"
