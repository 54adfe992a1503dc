"""Delivery channels for blocked-transaction security alerts.

Publishes to topic: fraud.alerts.blocked.v1 (when ALERTS_CHANNEL=kafka)

Channels are best-effort: a failed send is reported to the dispatcher, which
records it on the outbox entry. It never affects the committed evaluation.
"""

import json
import logging
from typing import Any, Protocol
from uuid import UUID

from aiokafka import AIOKafkaProducer
from pydantic import BaseModel

from risk_evaluation.core.config import AlertChannelType, AlertConfig

logger = logging.getLogger(__name__)


class BlockedTransactionAlert(BaseModel):
    """Security alert sent to the owner of a blocked transaction."""

    alert_id: UUID
    transaction_id: UUID
    user_id: UUID
    recipient: str | None = None
    subject: str
    amount: float
    risk_score: int
    payment_method: str | None = None
    device_id: str | None = None
    ip_address: str | None = None


class AlertChannel(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def send(self, alert: BlockedTransactionAlert) -> None: ...


class LoggingAlertChannel:
    """Writes alerts to the service log. Default for local and test environments."""

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def send(self, alert: BlockedTransactionAlert) -> None:
        logger.warning(
            alert.subject,
            extra={
                "alert_id": str(alert.alert_id),
                "transaction_id": str(alert.transaction_id),
                "user_id": str(alert.user_id),
                "recipient": alert.recipient,
                "risk_score": alert.risk_score,
            },
        )


class KafkaAlertChannel:
    """Publishes alerts to Kafka with aiokafka, keyed by transaction ID."""

    def __init__(self, config: AlertConfig):
        self.config = config
        self._producer: AIOKafkaProducer | None = None

    async def start(self) -> None:
        if self._producer is not None:
            logger.warning("Kafka alert producer already running")
            return

        logger.info(
            "Starting Kafka alert producer",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "topic": self.config.topic,
            },
        )
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            client_id=self.config.client_id,
            value_serializer=_serialize,
            key_serializer=lambda k: k.encode("utf-8"),
        )
        await self._producer.start()

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka alert producer stopped")

    async def send(self, alert: BlockedTransactionAlert) -> None:
        if self._producer is None:
            raise RuntimeError("Kafka alert producer is not started")
        await self._producer.send_and_wait(
            self.config.topic,
            value=alert.model_dump(mode="json"),
            key=str(alert.transaction_id),
        )


def _serialize(value: dict[str, Any]) -> bytes:
    return json.dumps(value).encode("utf-8")


def build_alert_channel(config: AlertConfig) -> AlertChannel:
    """Build the alert channel selected by ALERTS_CHANNEL."""
    if config.channel == AlertChannelType.KAFKA:
        return KafkaAlertChannel(config)
    return LoggingAlertChannel()
