import json
import pytest

from iot_service_mqtt.connection import AiomqttConnection
from iot_service_mqtt.errors import DecodeError, TemplateError, UnsupportedQoSError
from iot_service_mqtt.iotshadow import IotShadowClient, model
from iot_service_mqtt.models import QoS

"""
IotShadowClient tests: the topic wire contract of every operation, request
bodies, and typed delivery of responses, rejections and events.
"""

THING = {"thing_name": "lamp1"}
NAMED = {"thing_name": "lamp1", "shadow_name": "main"}

PUBLISH_CASES = [
    ("publish_get_shadow", model.GetShadowRequest(**THING), "$aws/things/lamp1/shadow/get"),
    ("publish_update_shadow", model.UpdateShadowRequest(**THING), "$aws/things/lamp1/shadow/update"),
    ("publish_delete_shadow", model.DeleteShadowRequest(**THING), "$aws/things/lamp1/shadow/delete"),
    ("publish_get_named_shadow", model.GetNamedShadowRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/get"),
    ("publish_update_named_shadow", model.UpdateNamedShadowRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/update"),
    ("publish_delete_named_shadow", model.DeleteNamedShadowRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/delete"),
]

SUBSCRIBE_CASES = [
    ("subscribe_to_get_shadow_accepted", model.GetShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/get/accepted", model.GetShadowResponse),
    ("subscribe_to_get_shadow_rejected", model.GetShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/get/rejected", model.ErrorResponse),
    ("subscribe_to_update_shadow_accepted", model.UpdateShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/update/accepted", model.UpdateShadowResponse),
    ("subscribe_to_update_shadow_rejected", model.UpdateShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/update/rejected", model.ErrorResponse),
    ("subscribe_to_shadow_delta_updated_events", model.ShadowDeltaUpdatedSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/update/delta", model.ShadowDeltaUpdatedEvent),
    ("subscribe_to_shadow_updated_events", model.ShadowUpdatedSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/update/documents", model.ShadowUpdatedEvent),
    ("subscribe_to_delete_shadow_accepted", model.DeleteShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/delete/accepted", model.DeleteShadowResponse),
    ("subscribe_to_delete_shadow_rejected", model.DeleteShadowSubscriptionRequest(**THING),
     "$aws/things/lamp1/shadow/delete/rejected", model.ErrorResponse),
    ("subscribe_to_get_named_shadow_accepted", model.GetNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/get/accepted", model.GetShadowResponse),
    ("subscribe_to_get_named_shadow_rejected", model.GetNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/get/rejected", model.ErrorResponse),
    ("subscribe_to_update_named_shadow_accepted", model.UpdateNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/update/accepted", model.UpdateShadowResponse),
    ("subscribe_to_update_named_shadow_rejected", model.UpdateNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/update/rejected", model.ErrorResponse),
    ("subscribe_to_named_shadow_delta_updated_events", model.NamedShadowDeltaUpdatedSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/update/delta", model.ShadowDeltaUpdatedEvent),
    ("subscribe_to_named_shadow_updated_events", model.NamedShadowUpdatedSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/update/documents", model.ShadowUpdatedEvent),
    ("subscribe_to_delete_named_shadow_accepted", model.DeleteNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/delete/accepted", model.DeleteShadowResponse),
    ("subscribe_to_delete_named_shadow_rejected", model.DeleteNamedShadowSubscriptionRequest(**NAMED),
     "$aws/things/lamp1/shadow/name/main/delete/rejected", model.ErrorResponse),
]


def test_client_declares_every_operation_once():
    assert len(IotShadowClient.operations) == len(PUBLISH_CASES) + len(SUBSCRIBE_CASES)
    patterns = [op.template.pattern for op in IotShadowClient.operations.values()]
    assert len(set(patterns)) == len(patterns)


@pytest.mark.asyncio
@pytest.mark.parametrize("method, request_, topic", PUBLISH_CASES)
async def test_publish_topics(fake_connection, method, request_, topic):
    client = IotShadowClient(fake_connection)

    await getattr(client, method)(request_, QoS.AT_LEAST_ONCE)

    assert fake_connection.published[0][0] == topic


@pytest.mark.asyncio
@pytest.mark.parametrize("method, request_, topic, event_type", SUBSCRIBE_CASES)
async def test_subscribe_topics_and_event_types(fake_connection, method, request_, topic, event_type):
    client = IotShadowClient(fake_connection)
    received = []

    handle = await getattr(client, method)(request_, QoS.AT_LEAST_ONCE, lambda e, r: received.append((e, r)))
    fake_connection.deliver(topic, b'{"timestamp": 1700000000}')

    assert handle.topic == topic
    assert list(fake_connection.callbacks) == [topic]
    error, response = received[0]
    assert error is None
    assert type(response) is event_type
    assert response.timestamp == 1700000000


@pytest.mark.asyncio
async def test_publish_get_shadow_body_excludes_path_params(fake_connection):
    client = IotShadowClient(fake_connection)

    await client.publish_get_shadow(model.GetShadowRequest(thing_name="lamp1", client_token="tok"), QoS.AT_MOST_ONCE)

    topic, payload, qos = fake_connection.published[0]
    assert topic == "$aws/things/lamp1/shadow/get"
    assert json.loads(payload) == {"clientToken": "tok"}
    assert qos is QoS.AT_MOST_ONCE


@pytest.mark.asyncio
async def test_publish_update_named_shadow_body(fake_connection):
    client = IotShadowClient(fake_connection)
    request = model.UpdateNamedShadowRequest(
        thing_name="lamp1", shadow_name="main", client_token="tok", version=3,
        state=model.ShadowState(desired={"color": "red"}, reported={"color": "blue"}))

    await client.publish_update_named_shadow(request, QoS.AT_LEAST_ONCE)

    assert json.loads(fake_connection.published[0][1]) == {
        "clientToken": "tok",
        "state": {"desired": {"color": "red"}, "reported": {"color": "blue"}},
        "version": 3,
    }


@pytest.mark.asyncio
async def test_publish_update_can_clear_desired_state(fake_connection):
    client = IotShadowClient(fake_connection)
    request = model.UpdateShadowRequest(thing_name="lamp1", state=model.ShadowState(desired_is_nullable=True))

    await client.publish_update_shadow(request, QoS.AT_LEAST_ONCE)

    assert json.loads(fake_connection.published[0][1]) == {"state": {"desired": None}}


@pytest.mark.asyncio
async def test_publish_with_empty_thing_name_fails(fake_connection):
    client = IotShadowClient(fake_connection)

    with pytest.raises(TemplateError):
        await client.publish_delete_shadow(model.DeleteShadowRequest(thing_name=""), QoS.AT_LEAST_ONCE)
    assert fake_connection.published == []


@pytest.mark.asyncio
async def test_get_accepted_decodes_full_document(fake_connection):
    client = IotShadowClient(fake_connection)
    received = []
    await client.subscribe_to_get_shadow_accepted(
        model.GetShadowSubscriptionRequest(thing_name="lamp1"), QoS.AT_LEAST_ONCE,
        lambda e, r: received.append(r))

    fake_connection.deliver("$aws/things/lamp1/shadow/get/accepted", json.dumps({
        "state": {"desired": {"color": "red"}, "reported": {"color": "blue"}, "delta": {"color": "red"}},
        "metadata": {"desired": {"color": {"timestamp": 1}}, "reported": {"color": {"timestamp": 2}}},
        "version": 7,
        "timestamp": 1700000000,
        "clientToken": "tok",
    }).encode("utf-8"))

    assert received == [model.GetShadowResponse(
        client_token="tok",
        metadata=model.ShadowMetadata(desired={"color": {"timestamp": 1}}, reported={"color": {"timestamp": 2}}),
        state=model.ShadowStateWithDelta(desired={"color": "red"}, reported={"color": "blue"},
                                         delta={"color": "red"}),
        timestamp=1700000000,
        version=7,
    )]


@pytest.mark.asyncio
async def test_rejection_arrives_as_response_not_error(fake_connection):
    client = IotShadowClient(fake_connection)
    received = []
    await client.subscribe_to_update_shadow_rejected(
        model.UpdateShadowSubscriptionRequest(thing_name="lamp1"), QoS.AT_LEAST_ONCE,
        lambda e, r: received.append((e, r)))

    fake_connection.deliver("$aws/things/lamp1/shadow/update/rejected",
                            b'{"code": 409, "message": "Version conflict", "clientToken": "tok", "timestamp": 5}')

    error, response = received[0]
    assert error is None
    assert response == model.ErrorResponse(code=409, message="Version conflict", client_token="tok", timestamp=5)


@pytest.mark.asyncio
async def test_malformed_delta_arrives_as_error_envelope(fake_connection):
    client = IotShadowClient(fake_connection)
    received = []
    await client.subscribe_to_shadow_delta_updated_events(
        model.ShadowDeltaUpdatedSubscriptionRequest(thing_name="lamp1"), QoS.AT_LEAST_ONCE,
        lambda e, r: received.append((e, r)))

    fake_connection.deliver("$aws/things/lamp1/shadow/update/delta", b'{"state": ')

    error, response = received[0]
    assert isinstance(error, DecodeError)
    assert error.payload == b'{"state": '
    assert response is None


@pytest.mark.asyncio
async def test_documents_event_decodes_snapshots(fake_connection):
    client = IotShadowClient(fake_connection)
    received = []
    await client.subscribe_to_named_shadow_updated_events(
        model.NamedShadowUpdatedSubscriptionRequest(**NAMED), QoS.AT_MOST_ONCE,
        lambda e, r: received.append(r))

    fake_connection.deliver("$aws/things/lamp1/shadow/name/main/update/documents", json.dumps({
        "previous": {"state": {"reported": {"color": "blue"}}, "version": 1},
        "current": {"state": {"reported": {"color": "red"}}, "version": 2},
        "timestamp": 9,
    }).encode("utf-8"))

    event = received[0]
    assert event.previous == model.ShadowUpdatedSnapshot(state=model.ShadowState(reported={"color": "blue"}), version=1)
    assert event.current.state.reported == {"color": "red"}
    assert event.timestamp == 9


@pytest.mark.asyncio
async def test_qos_2_fails_at_the_transport(mocker):
    client = mocker.MagicMock()
    client.publish = mocker.AsyncMock()
    client.subscribe = mocker.AsyncMock(return_value=(1,))
    shadow = IotShadowClient(AiomqttConnection(client))

    with pytest.raises(UnsupportedQoSError):
        await shadow.publish_get_shadow(model.GetShadowRequest(thing_name="lamp1"), QoS.EXACTLY_ONCE)
    with pytest.raises(UnsupportedQoSError):
        await shadow.subscribe_to_get_shadow_accepted(
            model.GetShadowSubscriptionRequest(thing_name="lamp1"), QoS.EXACTLY_ONCE, lambda e, r: None)
    client.publish.assert_not_awaited()
    client.subscribe.assert_not_awaited()


@pytest.mark.asyncio
async def test_end_to_end_through_aiomqtt_adapter(mocker):
    client = mocker.MagicMock()
    client.publish = mocker.AsyncMock()
    client.subscribe = mocker.AsyncMock(return_value=(1,))
    connection = AiomqttConnection(client)
    shadow = IotShadowClient(connection)
    received = []

    await shadow.subscribe_to_update_named_shadow_accepted(
        model.UpdateNamedShadowSubscriptionRequest(**NAMED), QoS.AT_LEAST_ONCE, lambda e, r: received.append(r))
    connection.dispatch("$aws/things/lamp1/shadow/name/main/update/accepted", b'{"version": 4}')

    client.subscribe.assert_awaited_once_with("$aws/things/lamp1/shadow/name/main/update/accepted", qos=1)
    assert received == [model.UpdateShadowResponse(version=4)]
