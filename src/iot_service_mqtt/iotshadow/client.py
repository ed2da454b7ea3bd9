"""
Client for the AWS IoT Device Shadow Service.

Shadows are a simple data store for device properties and state, available to
apps and other services whether the device is connected to AWS IoT or not.

Publishing a request and receiving its answer are independent: to see the
result of ``publish_get_shadow`` a caller subscribes to the get accepted and
rejected topics first, and matches answers by ``client_token`` if needed.

Subscriptions may be requested while the device is offline; the returned
coroutine only completes once the SUBACK arrives. Messages matching the topic
can reach the handler before that.

AWS documentation: https://docs.aws.amazon.com/iot/latest/developerguide/device-shadow-mqtt.html
"""
from iot_service_mqtt.iotshadow import model
from iot_service_mqtt.models import PublishResult, QoS, SubscriptionHandle
from iot_service_mqtt.operation import MessageHandler, ServiceClient, publish_operation, subscribe_operation

_SHADOW = "$aws/things/{thingName}/shadow"
_NAMED_SHADOW = "$aws/things/{thingName}/shadow/name/{shadowName}"


class IotShadowClient(ServiceClient):
    """
    Publishes shadow requests and subscribes to shadow responses and events
    for both the classic (unnamed) shadow and named shadows of a thing.
    """

    # --- Classic shadow ---
    GET_SHADOW = publish_operation(
        "GetShadow", f"{_SHADOW}/get", model.GetShadowRequest)
    GET_SHADOW_ACCEPTED = subscribe_operation(
        "GetShadowAccepted", f"{_SHADOW}/get/accepted",
        model.GetShadowSubscriptionRequest, model.GetShadowResponse)
    GET_SHADOW_REJECTED = subscribe_operation(
        "GetShadowRejected", f"{_SHADOW}/get/rejected",
        model.GetShadowSubscriptionRequest, model.ErrorResponse)

    UPDATE_SHADOW = publish_operation(
        "UpdateShadow", f"{_SHADOW}/update", model.UpdateShadowRequest)
    UPDATE_SHADOW_ACCEPTED = subscribe_operation(
        "UpdateShadowAccepted", f"{_SHADOW}/update/accepted",
        model.UpdateShadowSubscriptionRequest, model.UpdateShadowResponse)
    UPDATE_SHADOW_REJECTED = subscribe_operation(
        "UpdateShadowRejected", f"{_SHADOW}/update/rejected",
        model.UpdateShadowSubscriptionRequest, model.ErrorResponse)
    SHADOW_DELTA_UPDATED = subscribe_operation(
        "ShadowDeltaUpdated", f"{_SHADOW}/update/delta",
        model.ShadowDeltaUpdatedSubscriptionRequest, model.ShadowDeltaUpdatedEvent)
    SHADOW_UPDATED = subscribe_operation(
        "ShadowUpdated", f"{_SHADOW}/update/documents",
        model.ShadowUpdatedSubscriptionRequest, model.ShadowUpdatedEvent)

    DELETE_SHADOW = publish_operation(
        "DeleteShadow", f"{_SHADOW}/delete", model.DeleteShadowRequest)
    DELETE_SHADOW_ACCEPTED = subscribe_operation(
        "DeleteShadowAccepted", f"{_SHADOW}/delete/accepted",
        model.DeleteShadowSubscriptionRequest, model.DeleteShadowResponse)
    DELETE_SHADOW_REJECTED = subscribe_operation(
        "DeleteShadowRejected", f"{_SHADOW}/delete/rejected",
        model.DeleteShadowSubscriptionRequest, model.ErrorResponse)

    # --- Named shadows ---
    GET_NAMED_SHADOW = publish_operation(
        "GetNamedShadow", f"{_NAMED_SHADOW}/get", model.GetNamedShadowRequest)
    GET_NAMED_SHADOW_ACCEPTED = subscribe_operation(
        "GetNamedShadowAccepted", f"{_NAMED_SHADOW}/get/accepted",
        model.GetNamedShadowSubscriptionRequest, model.GetShadowResponse)
    GET_NAMED_SHADOW_REJECTED = subscribe_operation(
        "GetNamedShadowRejected", f"{_NAMED_SHADOW}/get/rejected",
        model.GetNamedShadowSubscriptionRequest, model.ErrorResponse)

    UPDATE_NAMED_SHADOW = publish_operation(
        "UpdateNamedShadow", f"{_NAMED_SHADOW}/update", model.UpdateNamedShadowRequest)
    UPDATE_NAMED_SHADOW_ACCEPTED = subscribe_operation(
        "UpdateNamedShadowAccepted", f"{_NAMED_SHADOW}/update/accepted",
        model.UpdateNamedShadowSubscriptionRequest, model.UpdateShadowResponse)
    UPDATE_NAMED_SHADOW_REJECTED = subscribe_operation(
        "UpdateNamedShadowRejected", f"{_NAMED_SHADOW}/update/rejected",
        model.UpdateNamedShadowSubscriptionRequest, model.ErrorResponse)
    NAMED_SHADOW_DELTA_UPDATED = subscribe_operation(
        "NamedShadowDeltaUpdated", f"{_NAMED_SHADOW}/update/delta",
        model.NamedShadowDeltaUpdatedSubscriptionRequest, model.ShadowDeltaUpdatedEvent)
    NAMED_SHADOW_UPDATED = subscribe_operation(
        "NamedShadowUpdated", f"{_NAMED_SHADOW}/update/documents",
        model.NamedShadowUpdatedSubscriptionRequest, model.ShadowUpdatedEvent)

    DELETE_NAMED_SHADOW = publish_operation(
        "DeleteNamedShadow", f"{_NAMED_SHADOW}/delete", model.DeleteNamedShadowRequest)
    DELETE_NAMED_SHADOW_ACCEPTED = subscribe_operation(
        "DeleteNamedShadowAccepted", f"{_NAMED_SHADOW}/delete/accepted",
        model.DeleteNamedShadowSubscriptionRequest, model.DeleteShadowResponse)
    DELETE_NAMED_SHADOW_REJECTED = subscribe_operation(
        "DeleteNamedShadowRejected", f"{_NAMED_SHADOW}/delete/rejected",
        model.DeleteNamedShadowSubscriptionRequest, model.ErrorResponse)

    # --- Publish ---

    async def publish_get_shadow(self, request: model.GetShadowRequest, qos: QoS) -> PublishResult:
        """
        Gets the (classic) shadow for an AWS IoT thing. The answer arrives on
        the get accepted or rejected topic.

        Completes as soon as the packet is sent (QoS 0) or when the PUBACK is
        received (QoS 1). QoS 2 is not supported by AWS IoT and fails.
        """
        return await self._publish(self.GET_SHADOW, request, qos)

    async def publish_get_named_shadow(self, request: model.GetNamedShadowRequest, qos: QoS) -> PublishResult:
        """Gets a named shadow for an AWS IoT thing."""
        return await self._publish(self.GET_NAMED_SHADOW, request, qos)

    async def publish_update_shadow(self, request: model.UpdateShadowRequest, qos: QoS) -> PublishResult:
        """
        Updates a device's (classic) shadow. If the device is offline the
        transport decides whether the PUBLISH is queued until it reconnects.
        """
        return await self._publish(self.UPDATE_SHADOW, request, qos)

    async def publish_update_named_shadow(self, request: model.UpdateNamedShadowRequest, qos: QoS) -> PublishResult:
        """Updates a named shadow for a device."""
        return await self._publish(self.UPDATE_NAMED_SHADOW, request, qos)

    async def publish_delete_shadow(self, request: model.DeleteShadowRequest, qos: QoS) -> PublishResult:
        """Deletes the (classic) shadow for an AWS IoT thing."""
        return await self._publish(self.DELETE_SHADOW, request, qos)

    async def publish_delete_named_shadow(self, request: model.DeleteNamedShadowRequest, qos: QoS) -> PublishResult:
        """Deletes a named shadow for an AWS IoT thing."""
        return await self._publish(self.DELETE_NAMED_SHADOW, request, qos)

    # --- Subscribe: get ---

    async def subscribe_to_get_shadow_accepted(
            self, request: model.GetShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.GetShadowResponse]) -> SubscriptionHandle:
        """
        Subscribes to the accepted topic for the GetShadow operation.

        Args:
            request: path parameters of the topic
            qos: maximum QoS the server may use when sending messages to the
                client. The server may grant a lower QoS in the SUBACK.
            handler: called as ``handler(error, response)`` for every message;
                exactly one of the two arguments is set.

        Returns:
            The acknowledged `SubscriptionHandle`, once the SUBACK arrives.
        """
        return await self._subscribe(self.GET_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_get_shadow_rejected(
            self, request: model.GetShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        """Subscribes to the rejected topic for the GetShadow operation."""
        return await self._subscribe(self.GET_SHADOW_REJECTED, request, qos, handler)

    async def subscribe_to_get_named_shadow_accepted(
            self, request: model.GetNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.GetShadowResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.GET_NAMED_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_get_named_shadow_rejected(
            self, request: model.GetNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.GET_NAMED_SHADOW_REJECTED, request, qos, handler)

    # --- Subscribe: update ---

    async def subscribe_to_update_shadow_accepted(
            self, request: model.UpdateShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.UpdateShadowResponse]) -> SubscriptionHandle:
        """Subscribes to the accepted topic for the UpdateShadow operation."""
        return await self._subscribe(self.UPDATE_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_update_shadow_rejected(
            self, request: model.UpdateShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        """Subscribes to the rejected topic for the UpdateShadow operation."""
        return await self._subscribe(self.UPDATE_SHADOW_REJECTED, request, qos, handler)

    async def subscribe_to_update_named_shadow_accepted(
            self, request: model.UpdateNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.UpdateShadowResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.UPDATE_NAMED_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_update_named_shadow_rejected(
            self, request: model.UpdateNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.UPDATE_NAMED_SHADOW_REJECTED, request, qos, handler)

    async def subscribe_to_shadow_delta_updated_events(
            self, request: model.ShadowDeltaUpdatedSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ShadowDeltaUpdatedEvent]) -> SubscriptionHandle:
        """
        Subscribes to ShadowDelta events for the (classic) shadow of a thing.
        A delta is sent whenever the desired state differs from the reported one.
        """
        return await self._subscribe(self.SHADOW_DELTA_UPDATED, request, qos, handler)

    async def subscribe_to_named_shadow_delta_updated_events(
            self, request: model.NamedShadowDeltaUpdatedSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ShadowDeltaUpdatedEvent]) -> SubscriptionHandle:
        """Subscribes to ShadowDelta events for a named shadow of a thing."""
        return await self._subscribe(self.NAMED_SHADOW_DELTA_UPDATED, request, qos, handler)

    async def subscribe_to_shadow_updated_events(
            self, request: model.ShadowUpdatedSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ShadowUpdatedEvent]) -> SubscriptionHandle:
        """Subscribes to ShadowUpdated (documents) events for the (classic) shadow of a thing."""
        return await self._subscribe(self.SHADOW_UPDATED, request, qos, handler)

    async def subscribe_to_named_shadow_updated_events(
            self, request: model.NamedShadowUpdatedSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ShadowUpdatedEvent]) -> SubscriptionHandle:
        return await self._subscribe(self.NAMED_SHADOW_UPDATED, request, qos, handler)

    # --- Subscribe: delete ---

    async def subscribe_to_delete_shadow_accepted(
            self, request: model.DeleteShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.DeleteShadowResponse]) -> SubscriptionHandle:
        """Subscribes to the accepted topic for the DeleteShadow operation."""
        return await self._subscribe(self.DELETE_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_delete_shadow_rejected(
            self, request: model.DeleteShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        """Subscribes to the rejected topic for the DeleteShadow operation."""
        return await self._subscribe(self.DELETE_SHADOW_REJECTED, request, qos, handler)

    async def subscribe_to_delete_named_shadow_accepted(
            self, request: model.DeleteNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.DeleteShadowResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.DELETE_NAMED_SHADOW_ACCEPTED, request, qos, handler)

    async def subscribe_to_delete_named_shadow_rejected(
            self, request: model.DeleteNamedShadowSubscriptionRequest, qos: QoS,
            handler: MessageHandler[model.ErrorResponse]) -> SubscriptionHandle:
        return await self._subscribe(self.DELETE_NAMED_SHADOW_REJECTED, request, qos, handler)
