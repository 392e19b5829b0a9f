"""
Kafka producer for publishing realtime post events
"""
import asyncio
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from typing import Optional, Dict, Any
import json
import logging

from .config import settings
from .domain.repositories import IEventPublisher
from .errors import DependencyError

logger = logging.getLogger(__name__)


class KafkaProducerManager(IEventPublisher):
    """Manage Kafka producer for event publishing"""

    def __init__(self):
        self.producer: Optional[AIOKafkaProducer] = None
        self.topics: Dict[str, str] = {
            "post.created": settings.KAFKA_TOPIC_POST_CREATED,
        }

    async def start(self):
        """Start Kafka producer"""
        if not settings.KAFKA_ENABLED:
            logger.warning("Kafka is disabled")
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer=lambda v: json.dumps(v, default=str).encode('utf-8'),
                key_serializer=lambda k: k.encode('utf-8') if k else None,
                request_timeout_ms=int(settings.EXTERNAL_CALL_TIMEOUT * 1000),
            )
            await self.producer.start()
            logger.info(f"Kafka producer started at {settings.KAFKA_BOOTSTRAP_SERVERS}")
        except Exception as e:
            logger.error(f"Failed to start Kafka producer: {e}")
            self.producer = None

    async def stop(self):
        """Stop Kafka producer"""
        if self.producer:
            await self.producer.stop()
            logger.info("Kafka producer stopped")

    async def publish(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """
        Publish an event to Kafka

        Args:
            event_name: Event name, mapped to its topic
            payload: JSON-serializable event payload

        Returns:
            True if sent, False when the producer is unavailable
        """
        if not self.producer:
            logger.warning("Kafka producer not available, skipping event publishing")
            return False

        topic = self.topics.get(event_name, event_name)
        event = {"event_type": event_name, **payload}
        key = payload.get("id")

        try:
            await asyncio.wait_for(
                self.producer.send_and_wait(topic, value=event, key=key),
                timeout=settings.EXTERNAL_CALL_TIMEOUT,
            )
        except (KafkaError, asyncio.TimeoutError) as e:
            raise DependencyError("kafka", f"publish to '{topic}' failed: {e}") from e

        logger.debug(f"Published event to topic '{topic}' with key '{key}'")
        return True
