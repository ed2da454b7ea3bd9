"""
Client and data model for the AWS IoT Device Shadow service.
"""
from iot_service_mqtt.iotshadow import model
from iot_service_mqtt.iotshadow.client import IotShadowClient
