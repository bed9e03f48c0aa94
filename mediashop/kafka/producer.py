from kafka import KafkaProducer
from kafka.errors import KafkaError
import json
import time
from mediashop.core.config import settings
from mediashop.core.logging import get_logger

log = get_logger("kafka")

_producer = None
_unavailable_until = 0.0

def get_producer() -> KafkaProducer:
    global _producer
    if _producer is None:
        _producer = KafkaProducer(
            bootstrap_servers=[settings.KAFKA_BOOTSTRAP],
            value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
            key_serializer=lambda v: (v.encode("utf-8") if isinstance(v, str) else v),
            linger_ms=5,
            retries=3,
            max_block_ms=5000,
            api_version_auto_timeout_ms=3000,
        )
    return _producer

def send(topic: str, key: str, value: dict):
    """Publish one event. Called after commit, so failures are logged and dropped."""
    global _unavailable_until
    if not settings.KAFKA_ENABLED:
        log.debug("event_skipped", topic=topic, type=value.get("type"), key=key)
        return
    if time.monotonic() < _unavailable_until:
        log.warning("event_dropped_broker_unavailable", topic=topic, type=value.get("type"), key=key)
        return
    try:
        p = get_producer()
        p.send(topic, key=key, value=value)
        p.flush(5)
    except KafkaError:
        # don't block every request on a dead broker
        _unavailable_until = time.monotonic() + settings.KAFKA_RETRY_BACKOFF_SECONDS
        log.exception("event_publish_failed", topic=topic, type=value.get("type"), key=key,
                      retry_in=settings.KAFKA_RETRY_BACKOFF_SECONDS)

def emit_payment_event(event: dict):
    send(settings.TOPIC_PAYMENT_EVENTS, key=str(event.get("order_id", "")), value=event)

def close():
    global _producer
    if _producer is not None:
        _producer.close(5)
        _producer = None
