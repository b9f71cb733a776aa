# SPDX-License-Identifier: Apache-2.0

"""
AMQP relay for domain events.

Forwards committed domain events (registrations, withdrawals, collaboration
requests and responses) to a topic exchange so other services can react to
them. Event bus callers only enqueue; a daemon worker thread owns the broker
connection, publishes each event and retries failed publishes with
exponential backoff. When the queue is full new events are dropped and
logged.
"""

import json
import logging
import os
import queue
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Any, Optional, Generator
from urllib.parse import urlparse

import pika
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from opentelemetry.propagate import inject

from domain.events import DomainEvent


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_STOP = object()


@dataclass
class AMQPConfig:
    """AMQP configuration settings."""
    url: str
    exchange: str = "civic.events"
    connection_timeout: int = 5
    heartbeat: int = 600
    blocked_connection_timeout: int = 300
    retry_delay: float = 1.0
    max_retries: int = 3
    queue_maxsize: int = 1000


@dataclass
class PublishResult:
    """Result of message publishing operation."""
    success: bool
    correlation_id: str
    exchange: str
    routing_key: str
    error: Optional[str] = None
    retry_count: int = 0


class AMQPConnectionError(Exception):
    """Raised when AMQP connection fails."""
    pass


class AMQPPublishError(Exception):
    """Raised when message serialization or publishing fails."""
    pass


class AMQPService:
    """
    Relays domain events to a durable topic exchange.

    The routing key of each message is the event's dotted routing key, e.g.
    ``registration.volunteer.registered``, so consumers can bind on
    ``registration.#`` or ``collaboration.request.*``.
    """

    def __init__(self, config: AMQPConfig):
        self.config = config
        self._connection_params = self._parse_connection_url(config.url)
        self._exchange_declared = False
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=config.queue_maxsize)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _parse_connection_url(self, url: str) -> pika.ConnectionParameters:
        """Parse AMQP URL and create connection parameters."""
        parsed = urlparse(url)

        return pika.ConnectionParameters(
            host=parsed.hostname or 'localhost',
            port=parsed.port or 5672,
            virtual_host=parsed.path.lstrip('/') or '/',
            credentials=pika.PlainCredentials(
                username=parsed.username or 'guest',
                password=parsed.password or 'guest'
            ),
            connection_attempts=1,
            socket_timeout=self.config.connection_timeout,
            heartbeat=self.config.heartbeat,
            blocked_connection_timeout=self.config.blocked_connection_timeout
        )

    @contextmanager
    def _get_connection(self) -> Generator[pika.channel.Channel, None, None]:
        """Context manager for AMQP connections with automatic cleanup."""
        connection = None
        channel = None

        try:
            with tracer.start_as_current_span("amqp.connection.create") as span:
                connection = pika.BlockingConnection(self._connection_params)
                channel = connection.channel()

                span.set_attributes({
                    "amqp.host": self._connection_params.host,
                    "amqp.port": self._connection_params.port,
                    "amqp.virtual_host": self._connection_params.virtual_host
                })

            yield channel

        except pika.exceptions.AMQPConnectionError as e:
            logger.error(
                "AMQP connection failed",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "host": self._connection_params.host,
                        "port": self._connection_params.port
                    }
                },
                exc_info=True
            )
            raise AMQPConnectionError(f"Failed to connect to AMQP broker: {e}")

        finally:
            if channel and not channel.is_closed:
                try:
                    channel.close()
                except Exception as e:
                    logger.warning(f"Error closing AMQP channel: {e}")

            if connection and not connection.is_closed:
                try:
                    connection.close()
                except Exception as e:
                    logger.warning(f"Error closing AMQP connection: {e}")

    def declare_exchange(self, channel: pika.channel.Channel) -> None:
        """Declare the durable topic exchange events are published to."""
        channel.exchange_declare(
            exchange=self.config.exchange,
            exchange_type='topic',
            durable=True,
            auto_delete=False
        )
        self._exchange_declared = True

    def start(self) -> None:
        """Start the relay worker thread if it is not already running."""
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._relay_loop, name="amqp-relay", daemon=True)
            self._worker.start()
        logger.info("AMQP relay worker started", extra={"extra_fields": {"exchange": self.config.exchange}})

    def stop(self, timeout: float = 5.0) -> None:
        """Ask the worker to finish the queued events and exit."""
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        self._queue.put(_STOP)
        worker.join(timeout)

    def flush(self) -> None:
        """Block until every queued event has been handled by the worker."""
        self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def handle(self, event: DomainEvent) -> None:
        """Event bus subscriber entry point; never blocks on the broker."""
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                "AMQP relay queue full, dropping event",
                extra={
                    "extra_fields": {
                        "event": event.name,
                        "message_id": event.message_id,
                        "queue_maxsize": self.config.queue_maxsize
                    }
                }
            )

    def _relay_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                result = self.publish_event(item)
                if not result.success:
                    logger.error(
                        "Domain event dropped after failed relay",
                        extra={
                            "extra_fields": {
                                "event": item.name,
                                "message_id": item.message_id,
                                "error": result.error
                            }
                        }
                    )
            except Exception:
                logger.exception("AMQP relay worker failed to publish event")
            finally:
                self._queue.task_done()

    def publish_event(self, event: DomainEvent, correlation_id: Optional[str] = None) -> PublishResult:
        """
        Publish a domain event to the configured exchange.

        Args:
            event: Committed domain event
            correlation_id: Optional correlation ID for message tracking

        Returns:
            PublishResult: Result of the publishing operation
        """
        correlation_id = correlation_id or event.message_id
        routing_key = event.routing_key

        with tracer.start_as_current_span("amqp.publish.event") as span:
            span.set_attributes({
                "event.name": event.name,
                "amqp.exchange": self.config.exchange,
                "amqp.routing_key": routing_key,
                "amqp.correlation_id": correlation_id
            })

            message = {
                "message_id": event.message_id,
                "correlation_id": correlation_id,
                "event": event.name,
                "timestamp": event.occurred_at.isoformat(),
                "payload": event.to_dict()
            }

            # Propagate the current trace context to consumers
            trace_context = {}
            inject(trace_context)
            message["trace_context"] = trace_context

            result = self._publish_with_retry(routing_key, message, correlation_id)
            if result.success:
                span.set_status(Status(StatusCode.OK))
            else:
                span.set_status(Status(StatusCode.ERROR, result.error or "publish failed"))
            return result

    def _publish_with_retry(
        self,
        routing_key: str,
        message: Dict[str, Any],
        correlation_id: str
    ) -> PublishResult:
        """Publish message with exponential backoff retry logic."""
        exchange = self.config.exchange

        try:
            serialized_message = self._serialize_message(message)
        except AMQPPublishError as e:
            return PublishResult(
                success=False,
                correlation_id=correlation_id,
                exchange=exchange,
                routing_key=routing_key,
                error=str(e)
            )

        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                with self._get_connection() as channel:
                    if not self._exchange_declared:
                        self.declare_exchange(channel)

                    properties = pika.BasicProperties(
                        message_id=message["message_id"],
                        correlation_id=correlation_id,
                        timestamp=int(time.time()),
                        delivery_mode=2,  # Persistent message
                        content_type='application/json',
                        headers=message.get('trace_context', {})
                    )

                    channel.basic_publish(
                        exchange=exchange,
                        routing_key=routing_key,
                        body=serialized_message,
                        properties=properties
                    )

                    logger.info(
                        "Domain event relayed",
                        extra={
                            "extra_fields": {
                                "exchange": exchange,
                                "routing_key": routing_key,
                                "correlation_id": correlation_id,
                                "attempt": attempt + 1
                            }
                        }
                    )

                    return PublishResult(
                        success=True,
                        correlation_id=correlation_id,
                        exchange=exchange,
                        routing_key=routing_key,
                        retry_count=attempt
                    )

            except Exception as e:
                last_error = e
                self._exchange_declared = False

                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (2 ** attempt)

                    logger.warning(
                        "Message publish failed, retrying",
                        extra={
                            "extra_fields": {
                                "exchange": exchange,
                                "routing_key": routing_key,
                                "correlation_id": correlation_id,
                                "attempt": attempt + 1,
                                "retry_delay": delay,
                                "error": str(e)
                            }
                        }
                    )

                    time.sleep(delay)
                else:
                    logger.error(
                        "Message publish failed after all retries",
                        extra={
                            "extra_fields": {
                                "exchange": exchange,
                                "routing_key": routing_key,
                                "correlation_id": correlation_id,
                                "total_attempts": attempt + 1,
                                "error": str(e)
                            }
                        },
                        exc_info=True
                    )

        return PublishResult(
            success=False,
            correlation_id=correlation_id,
            exchange=exchange,
            routing_key=routing_key,
            error=str(last_error),
            retry_count=self.config.max_retries
        )

    def _serialize_message(self, message: Dict[str, Any]) -> str:
        """Serialize message to JSON with datetime handling."""
        def json_serializer(obj):
            if hasattr(obj, 'isoformat'):
                return obj.isoformat()
            return str(obj)

        try:
            return json.dumps(message, default=json_serializer, ensure_ascii=False, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            logger.error(f"Message serialization failed: {e}", exc_info=True)
            raise AMQPPublishError(f"Failed to serialize message: {e}")

    def health_check(self) -> bool:
        """Check that the broker accepts a connection and the exchange exists."""
        try:
            with self._get_connection() as channel:
                channel.exchange_declare(exchange=self.config.exchange, exchange_type='topic', passive=True)
                return True
        except Exception as e:
            logger.warning(
                "AMQP health check failed",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "host": self._connection_params.host
                    }
                }
            )
            return False


def create_amqp_service(url: Optional[str] = None, exchange: Optional[str] = None) -> Optional[AMQPService]:
    """
    Create the event relay from configuration.

    Returns:
        AMQPService, or None when no broker URL is configured
    """
    amqp_url = url or os.getenv('AMQP_URL')
    if not amqp_url:
        logger.info("No AMQP_URL configured, domain event relay disabled")
        return None

    config = AMQPConfig(
        url=amqp_url,
        exchange=exchange or os.getenv('AMQP_EXCHANGE', 'civic.events'),
        connection_timeout=int(os.getenv('AMQP_CONNECTION_TIMEOUT', '5')),
        heartbeat=int(os.getenv('AMQP_HEARTBEAT', '600')),
        retry_delay=float(os.getenv('AMQP_RETRY_DELAY', '1.0')),
        max_retries=int(os.getenv('AMQP_MAX_RETRIES', '3')),
        queue_maxsize=int(os.getenv('AMQP_QUEUE_MAXSIZE', '1000'))
    )

    return AMQPService(config)
