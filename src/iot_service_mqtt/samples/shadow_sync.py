"""
Shadow Sync Sample.

Keeps one property of a device shadow in sync:
- Subscribes to the get, update and delta topics of the shadow.
- Requests the current shadow and adopts its desired (or reported) value.
- Reports every desired change it receives through a delta event.
- Optionally pushes a new desired value given on the command line.

Runs until interrupted with Ctrl+C.
"""
import asyncio
import logging
import signal
import uuid
from typing import Any, Dict, Optional, Set

from iot_service_mqtt.connection import ConnectionSettings, MqttConnection, connect
from iot_service_mqtt.errors import DecodeError
from iot_service_mqtt.iotshadow import IotShadowClient, model
from iot_service_mqtt.models import QoS
from iot_service_mqtt.samples.cli_args import parse_shadow_args

logger = logging.getLogger(__name__)

DEFAULT_PROPERTY = "color"
DEFAULT_VALUE = "off"


class ShadowSync:
    """
    Mirrors desired changes of `shadow_property` into the reported state of
    a classic shadow, or of the named shadow `shadow_name` when one is given.
    """
    def __init__(self, connection: MqttConnection, thing_name: str, shadow_property: str = DEFAULT_PROPERTY,
                 shadow_name: Optional[str] = None, qos: QoS = QoS.AT_LEAST_ONCE):
        self.client = IotShadowClient(connection)
        self.thing_name = thing_name
        self.shadow_property = shadow_property
        self.shadow_name = shadow_name
        self.qos = qos
        self.local_value: Any = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def named(self) -> bool:
        return self.shadow_name is not None

    def _path(self) -> Dict[str, str]:
        path = {"thing_name": self.thing_name}
        if self.named:
            path["shadow_name"] = self.shadow_name
        return path

    async def subscribe(self):
        """Subscribes to every topic the sample reacts to, accepted before rejected."""
        c, path, qos = self.client, self._path(), self.qos
        if self.named:
            await c.subscribe_to_update_named_shadow_accepted(
                model.UpdateNamedShadowSubscriptionRequest(**path), qos, self.on_update_accepted)
            await c.subscribe_to_update_named_shadow_rejected(
                model.UpdateNamedShadowSubscriptionRequest(**path), qos, self.on_update_rejected)
            await c.subscribe_to_get_named_shadow_accepted(
                model.GetNamedShadowSubscriptionRequest(**path), qos, self.on_get_accepted)
            await c.subscribe_to_get_named_shadow_rejected(
                model.GetNamedShadowSubscriptionRequest(**path), qos, self.on_get_rejected)
            await c.subscribe_to_named_shadow_delta_updated_events(
                model.NamedShadowDeltaUpdatedSubscriptionRequest(**path), qos, self.on_delta)
        else:
            await c.subscribe_to_update_shadow_accepted(
                model.UpdateShadowSubscriptionRequest(**path), qos, self.on_update_accepted)
            await c.subscribe_to_update_shadow_rejected(
                model.UpdateShadowSubscriptionRequest(**path), qos, self.on_update_rejected)
            await c.subscribe_to_get_shadow_accepted(
                model.GetShadowSubscriptionRequest(**path), qos, self.on_get_accepted)
            await c.subscribe_to_get_shadow_rejected(
                model.GetShadowSubscriptionRequest(**path), qos, self.on_get_rejected)
            await c.subscribe_to_shadow_delta_updated_events(
                model.ShadowDeltaUpdatedSubscriptionRequest(**path), qos, self.on_delta)
        logger.info(f"Subscribed to shadow topics of '{self.thing_name}'")

    async def request_shadow(self):
        token = str(uuid.uuid4())
        if self.named:
            await self.client.publish_get_named_shadow(
                model.GetNamedShadowRequest(client_token=token, **self._path()), self.qos)
        else:
            await self.client.publish_get_shadow(
                model.GetShadowRequest(client_token=token, **self._path()), self.qos)
        logger.info(f"Requested current shadow (token {token})")

    async def update_shadow(self, state: model.ShadowState):
        token = str(uuid.uuid4())
        if self.named:
            await self.client.publish_update_named_shadow(
                model.UpdateNamedShadowRequest(client_token=token, state=state, **self._path()), self.qos)
        else:
            await self.client.publish_update_shadow(
                model.UpdateShadowRequest(client_token=token, state=state, **self._path()), self.qos)

    async def change_value(self, value: Any):
        """Sets the local value and reports it as both desired and reported."""
        if value == self.local_value:
            logger.info(f"Local value is already '{value}'.")
            return
        logger.info(f"Changed local shadow value to '{value}'.")
        self.local_value = value
        update = {self.shadow_property: value}
        await self.update_shadow(model.ShadowState(reported=update, desired=update))

    async def request_desired(self, value: Any):
        """Asks for a new desired value; the service answers with a delta event."""
        logger.info(f"Requesting desired value '{value}'.")
        await self.update_shadow(model.ShadowState(desired={self.shadow_property: value}))

    def _schedule(self, coro):
        # Handlers run inside the connection's dispatch loop and must not block it
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Shadow update failed: {task.exception()}")

    # --- Handlers ---

    def on_get_accepted(self, error: Optional[DecodeError], response: Optional[model.GetShadowResponse]):
        if error:
            logger.error(f"Undecodable get response: {error}")
            return
        state = response.state or model.ShadowStateWithDelta()
        delta = state.delta or {}
        reported = state.reported or {}
        if self.shadow_property in delta:
            value = delta[self.shadow_property]
            logger.info(f"Shadow contains delta value '{value}'.")
            self._schedule(self.change_value(value))
        elif self.shadow_property in reported:
            value = reported[self.shadow_property]
            logger.info(f"Shadow contains reported value '{value}'.")
            self.local_value = value
        else:
            logger.info(f"Shadow has no value for '{self.shadow_property}'. Setting default...")
            self._schedule(self.change_value(DEFAULT_VALUE))

    def on_get_rejected(self, error: Optional[DecodeError], response: Optional[model.ErrorResponse]):
        if error:
            logger.error(f"Undecodable get rejection: {error}")
            return
        if response.code == 404:
            logger.info("Thing has no shadow document. Creating with defaults...")
            self._schedule(self.change_value(DEFAULT_VALUE))
        else:
            logger.error(f"Get request was rejected: {response.to_error()}")

    def on_delta(self, error: Optional[DecodeError], event: Optional[model.ShadowDeltaUpdatedEvent]):
        if error:
            logger.error(f"Undecodable delta event: {error}")
            return
        state = event.state or {}
        if self.shadow_property not in state:
            logger.info("Delta did not report a change in our property.")
            return
        value = state[self.shadow_property]
        if value is None:
            logger.info(f"Delta reports that '{self.shadow_property}' was deleted. Resetting defaults...")
            value = DEFAULT_VALUE
        else:
            logger.info(f"Delta reports that desired value is '{value}'. Changing local value...")
        self._schedule(self.change_value(value))

    def on_update_accepted(self, error: Optional[DecodeError], response: Optional[model.UpdateShadowResponse]):
        if error:
            logger.error(f"Undecodable update response: {error}")
            return
        reported = (response.state.reported if response.state else None) or {}
        logger.info(f"Finished updating reported shadow value to '{reported.get(self.shadow_property)}'.")

    def on_update_rejected(self, error: Optional[DecodeError], response: Optional[model.ErrorResponse]):
        if error:
            logger.error(f"Undecodable update rejection: {error}")
            return
        logger.error(f"Update request was rejected: {response.to_error()}")


async def main_application_runner(config: Dict[str, Any]):
    settings = ConnectionSettings.from_config(config)
    shadow_conf = config.get('shadow', {})
    stop = asyncio.Event()

    # Setup Signal Handlers for OS interrupts
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with connect(settings) as connection:
        sync = ShadowSync(
            connection,
            thing_name=shadow_conf['thing_name'],
            shadow_property=shadow_conf.get('shadow_property') or DEFAULT_PROPERTY,
            shadow_name=shadow_conf.get('shadow_name'),
        )
        await sync.subscribe()
        await sync.request_shadow()
        if shadow_conf.get('shadow_value') is not None:
            await sync.request_desired(shadow_conf['shadow_value'])

        logger.info("Shadow sync is running. Press Ctrl+C to exit.")
        await stop.wait()
        logger.info("Received exit signal, disconnecting...")


def run(argv=None):
    config = parse_shadow_args(argv)
    try:
        asyncio.run(main_application_runner(config))
    except KeyboardInterrupt:
        # Handled by the signal handler, but good to catch here just in case.
        pass


if __name__ == "__main__":
    run()
