"""Notification delivery application service.

Orchestrates delivery of a notification over every eligible channel: checks
eligibility and quiet hours, fans out to the channel transports with a
per-channel timeout, records each attempt, updates the notification status
and schedules retries. Also delivers bulk requests in throttled user batches
and keeps per-channel statistics used for channel scoring.
"""

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from courier.core.config import DeliveryConfig
from courier.core.domain.base import utc_now
from courier.core.errors import CourierError
from courier.core.logging import get_logger
from courier.modules.notification.application.dto import (
    BulkDeliveryRequest,
    DeliveryOptions,
    DeliveryResult,
)
from courier.modules.notification.domain.entities import Notification, Subscription
from courier.modules.notification.domain.enums import (
    ChannelType,
    FrequencyType,
    NotificationStatus,
    NotificationType,
)
from courier.modules.notification.domain.errors import (
    ChannelNotConfiguredError,
    DeliveryTimeoutError,
    EligibilityError,
    NotificationValidationError,
    QuietHoursError,
    TransportError,
)
from courier.modules.notification.domain.interfaces.services import (
    ChannelTransport,
    INotificationDeliveryService,
    OutboundMessage,
    TransportHealth,
)
from courier.modules.notification.domain.value_objects import (
    Channel,
    ChannelPreference,
    DeliveryAttempt,
)

logger = get_logger(__name__)

# Channel scoring weights
SUCCESS_RATE_WEIGHT = 0.4
SPEED_WEIGHT = 0.3
COST_WEIGHT = 0.2
PRIORITY_WEIGHT = 0.1
DEFAULT_SUCCESS_RATE = 50.0

SubscriptionLookup = Callable[[str, NotificationType], Awaitable[Subscription | None]]


def _empty_channel_stats() -> dict[str, Any]:
    return {"attempts": 0, "successes": 0, "failures": 0, "average_response_time": 0.0}


class DeliveryStatistics:
    """Lock-guarded accumulator of delivery outcomes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._reset()

    def _reset(self) -> None:
        self.total_attempts = 0
        self.successful_deliveries = 0
        self.failed_deliveries = 0
        self.average_response_time = 0.0
        self.channel_stats: dict[ChannelType, dict[str, Any]] = {}

    def record(self, result: DeliveryResult) -> None:
        with self._lock:
            self.total_attempts += 1
            if result.success:
                self.successful_deliveries += 1
            else:
                self.failed_deliveries += 1
            self.average_response_time += (
                result.response_time - self.average_response_time
            ) / self.total_attempts

            stats = self.channel_stats.setdefault(result.channel, _empty_channel_stats())
            stats["attempts"] += 1
            if result.success:
                stats["successes"] += 1
            else:
                stats["failures"] += 1
            stats["average_response_time"] += (
                result.response_time - stats["average_response_time"]
            ) / stats["attempts"]

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_attempts": self.total_attempts,
                "successful_deliveries": self.successful_deliveries,
                "failed_deliveries": self.failed_deliveries,
                "average_response_time": self.average_response_time,
                "channel_stats": {
                    channel: dict(stats) for channel, stats in self.channel_stats.items()
                },
            }

    def for_channel(self, channel: ChannelType) -> dict[str, Any] | None:
        with self._lock:
            stats = self.channel_stats.get(channel)
            return dict(stats) if stats else None

    def reset(self) -> None:
        with self._lock:
            self._reset()


class NotificationDeliveryService(INotificationDeliveryService):
    """Service for delivering notifications over channel transports."""

    def __init__(
        self,
        transports: dict[ChannelType, ChannelTransport] | None = None,
        config: DeliveryConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize delivery service.

        Args:
            transports: Transport per channel type
            config: Delivery settings
            clock: Source of the current time for quiet-hours checks
        """
        self.config = config or DeliveryConfig()
        self._transports: dict[ChannelType, ChannelTransport] = dict(transports or {})
        self._clock = clock
        self._stats = DeliveryStatistics()
        self._detached: set[asyncio.Task] = set()

    def register_transport(self, channel: ChannelType, transport: ChannelTransport) -> None:
        self._transports[Channel.from_string(channel).type] = transport

    # -------------------------------------------------------------------------
    # Single notification
    # -------------------------------------------------------------------------

    async def deliver_notification(
        self,
        notification: Notification,
        subscription: Subscription,
        options: DeliveryOptions | None = None,
    ) -> list[DeliveryResult]:
        """Deliver a notification over every eligible channel.

        Channels are dispatched concurrently. One successful channel is
        enough to mark the notification sent; the attempt log keeps the
        notification's channel order.

        Raises:
            NotificationValidationError: If the notification is not deliverable
            EligibilityError: If the subscription blocks delivery
            QuietHoursError: If a non-urgent notification falls in quiet hours
        """
        options = options or DeliveryOptions()

        if (
            notification.status == NotificationStatus.FAILED
            and notification.is_retry_scheduled
            and notification.can_retry()
            and notification.sent_at is None
        ):
            notification.requeue_for_retry()
            logger.info(
                "Notification requeued for retry",
                notification_id=notification.id,
                retry_count=notification.retry_count,
            )

        self._check_eligibility(notification, subscription)

        channels = self._get_delivery_channels(notification, subscription)
        if not channels:
            raise EligibilityError(
                "No eligible delivery channels",
                user_id=subscription.user_id,
                reason="no_eligible_channels",
            )

        results = await asyncio.gather(
            *(
                self._deliver_to_channel(notification, channel, subscription, options)
                for channel in channels
            )
        )

        for result in results:
            notification.add_delivery_attempt(
                DeliveryAttempt(
                    channel=result.channel,
                    success=result.success,
                    response_time=result.response_time,
                    error_message=result.error_message,
                    delivery_id=result.delivery_id,
                )
            )
            self._stats.record(result)

        if any(result.success for result in results):
            self._mark_delivered(notification, subscription, results)
        elif options.retry_on_failure is not False:
            self._handle_failure(notification, options)

        return list(results)

    def _check_eligibility(self, notification: Notification, subscription: Subscription) -> None:
        errors = notification.validate_for_delivery()
        if errors:
            raise NotificationValidationError(
                f"Notification validation failed: {', '.join(errors)}",
                errors=errors,
            )

        if not subscription.can_receive_notifications():
            raise EligibilityError(
                "User cannot receive notifications",
                user_id=subscription.user_id,
                reason=f"subscription_{subscription.status.value}",
            )

        if (
            subscription.is_in_quiet_hours(self._clock())
            and not notification.priority.is_urgent
        ):
            quiet_hours = subscription.quiet_hours
            raise QuietHoursError(
                user_id=subscription.user_id,
                start_time=quiet_hours.start_time,
                end_time=quiet_hours.end_time,
                timezone=quiet_hours.timezone,
            )

    @staticmethod
    def _get_delivery_channels(
        notification: Notification, subscription: Subscription
    ) -> list[Channel]:
        return [
            channel
            for channel in notification.channels
            if subscription.has_channel_enabled(channel.type)
        ]

    def _channel_timeout(
        self, notification: Notification, channel: Channel, options: DeliveryOptions
    ) -> float:
        if options.delivery_timeout is not None:
            return options.delivery_timeout
        return min(channel.typical_delivery_time * 2, notification.priority.delivery_timeout)

    async def _deliver_to_channel(
        self,
        notification: Notification,
        channel: Channel,
        subscription: Subscription,
        options: DeliveryOptions,
    ) -> DeliveryResult:
        transport = self._transports.get(channel.type)
        if transport is None:
            error = ChannelNotConfiguredError(channel.value)
            return DeliveryResult(
                channel=channel.type,
                success=False,
                response_time=0.0,
                error_message=error.message,
            )

        preference = subscription.get_channel_preference(channel.type)
        message = OutboundMessage(
            notification_id=notification.id,
            user_id=notification.user_id,
            subject=notification.title,
            body=notification.content,
            address=preference.address if preference else None,
            metadata={
                "type": notification.type.value,
                "priority": notification.priority.value,
            },
        )
        timeout = self._channel_timeout(notification, channel, options)

        started = time.perf_counter()
        send_task = asyncio.ensure_future(transport.send(channel, message))
        try:
            receipt = await asyncio.wait_for(asyncio.shield(send_task), timeout)
        except asyncio.TimeoutError:
            # The transport call keeps running; only the wait is bounded.
            self._detach(send_task)
            error = DeliveryTimeoutError(channel.value, timeout)
            return DeliveryResult(
                channel=channel.type,
                success=False,
                response_time=time.perf_counter() - started,
                error_message=error.message,
                timed_out=True,
            )
        except TransportError as e:
            return DeliveryResult(
                channel=channel.type,
                success=False,
                response_time=time.perf_counter() - started,
                error_message=e.message,
            )
        except Exception as e:
            logger.exception(
                "Transport raised unexpected error",
                notification_id=notification.id,
                channel=channel.value,
                error=str(e),
            )
            return DeliveryResult(
                channel=channel.type,
                success=False,
                response_time=time.perf_counter() - started,
                error_message=str(e) or e.__class__.__name__,
            )

        return DeliveryResult(
            channel=channel.type,
            success=True,
            response_time=time.perf_counter() - started,
            delivery_id=receipt.delivery_id,
            metadata={"transport_response_time": receipt.response_time},
        )

    def _detach(self, task: asyncio.Task) -> None:
        self._detached.add(task)

        def _finished(done: asyncio.Task) -> None:
            self._detached.discard(done)
            if not done.cancelled() and done.exception() is not None:
                logger.debug(
                    "Timed-out transport call failed",
                    error=str(done.exception()),
                )

        task.add_done_callback(_finished)

    def _mark_delivered(
        self,
        notification: Notification,
        subscription: Subscription,
        results: list[DeliveryResult],
    ) -> None:
        if notification.status == NotificationStatus.PENDING:
            notification.mark_as_sent()

        confirmed = any(
            result.success and result.channel != ChannelType.IN_APP for result in results
        )
        if confirmed and notification.status == NotificationStatus.SENT:
            notification.mark_as_delivered()

        subscription.record_notification()
        logger.info(
            "Notification delivered",
            notification_id=notification.id,
            status=notification.status.value,
            channels=[r.channel.value for r in results if r.success],
        )

    def _handle_failure(self, notification: Notification, options: DeliveryOptions) -> None:
        if not notification.status.can_transition_to(NotificationStatus.FAILED):
            return

        # Decided before the transition so the notification fails exactly once
        if notification.has_retry_budget:
            notification.mark_as_failed("All delivery channels failed")
            base_delay = (
                options.retry_delay
                if options.retry_delay is not None
                else self.config.retry_base_delay_seconds
            )
            next_retry_at = notification.schedule_retry(base_delay)
            logger.warning(
                "Notification delivery failed, retry scheduled",
                notification_id=notification.id,
                retry_count=notification.retry_count,
                next_retry_at=next_retry_at.isoformat(),
            )
        else:
            notification.mark_as_failed("Maximum retry attempts exceeded")
            logger.error(
                "Notification delivery failed permanently",
                notification_id=notification.id,
                retry_count=notification.retry_count,
            )

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    async def deliver_bulk(
        self,
        request: BulkDeliveryRequest,
        subscription_lookup: SubscriptionLookup | None = None,
    ) -> dict[str, list[DeliveryResult]]:
        """Deliver notifications grouped by user in throttled batches.

        Each batch of users runs on a bounded worker pool; batches are
        separated by ``delay_between_batches`` seconds. A failing item
        yields a single failed result and never aborts the batch.
        """
        batch_size = request.batch_size or self.config.bulk_batch_size
        delay = (
            request.delay_between_batches
            if request.delay_between_batches is not None
            else self.config.bulk_delay_between_batches
        )
        channel = Channel.from_string(request.channel).type

        by_user: dict[str, list[Notification]] = {}
        for notification in request.notifications:
            by_user.setdefault(notification.user_id, []).append(notification)
        user_ids = list(by_user)

        results: dict[str, list[DeliveryResult]] = {}

        async def deliver_for_user(user_id: str, semaphore: asyncio.Semaphore) -> None:
            async with semaphore:
                notifications = by_user[user_id]
                try:
                    subscription = await self._resolve_subscription(
                        user_id, notifications[0], channel, subscription_lookup
                    )
                except Exception as e:
                    for notification in notifications:
                        results[notification.id] = [self._failed_result(channel, e)]
                    return

                for notification in notifications:
                    try:
                        results[notification.id] = await self.deliver_notification(
                            notification, subscription
                        )
                    except Exception as e:
                        results[notification.id] = [self._failed_result(channel, e)]

        for index, start in enumerate(range(0, len(user_ids), batch_size)):
            if index and delay > 0:
                await asyncio.sleep(delay)
            batch = user_ids[start : start + batch_size]
            semaphore = asyncio.Semaphore(self.config.bulk_concurrency)
            await asyncio.gather(*(deliver_for_user(user_id, semaphore) for user_id in batch))
            logger.debug(
                "Bulk batch processed",
                batch_index=index,
                users=len(batch),
            )

        logger.info(
            "Bulk delivery completed",
            notifications=len(request.notifications),
            users=len(user_ids),
            channel=channel.value,
        )
        return {
            notification.id: results[notification.id]
            for notification in request.notifications
            if notification.id in results
        }

    async def _resolve_subscription(
        self,
        user_id: str,
        notification: Notification,
        channel: ChannelType,
        subscription_lookup: SubscriptionLookup | None,
    ) -> Subscription:
        if subscription_lookup is not None:
            subscription = await subscription_lookup(user_id, notification.type)
            if subscription is not None:
                return subscription

        return Subscription.create(
            user_id=user_id,
            notification_type=notification.type,
            channel_preferences=[
                ChannelPreference(
                    channel=channel,
                    enabled=True,
                    frequency=FrequencyType.IMMEDIATE,
                    address=notification.metadata.get("address"),
                )
            ],
        )

    @staticmethod
    def _failed_result(channel: ChannelType, error: Exception) -> DeliveryResult:
        message = error.message if isinstance(error, CourierError) else str(error)
        return DeliveryResult(
            channel=channel,
            success=False,
            response_time=0.0,
            error_message=message,
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_delivery_stats(self) -> dict[str, Any]:
        return self._stats.snapshot()

    def get_channel_stats(self, channel: ChannelType | str) -> dict[str, Any] | None:
        return self._stats.for_channel(Channel.from_string(channel).type)

    def get_success_rate(self) -> float:
        stats = self._stats.snapshot()
        if not stats["total_attempts"]:
            return 0.0
        return stats["successful_deliveries"] / stats["total_attempts"] * 100

    def get_channel_success_rate(self, channel: ChannelType | str) -> float:
        stats = self.get_channel_stats(channel)
        if not stats or not stats["attempts"]:
            return 0.0
        return stats["successes"] / stats["attempts"] * 100

    def reset_stats(self) -> None:
        self._stats.reset()

    # -------------------------------------------------------------------------
    # Channel optimization
    # -------------------------------------------------------------------------

    def get_optimal_channel(
        self, notification: Notification, subscription: Subscription
    ) -> Channel | None:
        """Best-scoring eligible channel; ties keep the notification's order."""
        best_channel = None
        best_score = float("-inf")
        for channel in self._get_delivery_channels(notification, subscription):
            score = self.calculate_channel_score(channel, notification)
            if score > best_score:
                best_channel, best_score = channel, score
        return best_channel

    def calculate_channel_score(self, channel: Channel, notification: Notification) -> float:
        stats = self._stats.for_channel(channel.type)
        if stats and stats["attempts"]:
            success_rate = stats["successes"] / stats["attempts"] * 100
        else:
            success_rate = DEFAULT_SUCCESS_RATE
        latency_ms = channel.typical_delivery_time * 1000
        speed = 1000 / latency_ms
        cost = 10 / (channel.cost_factor + 1)
        return (
            success_rate * SUCCESS_RATE_WEIGHT
            + speed * SPEED_WEIGHT
            + cost * COST_WEIGHT
            + notification.priority.rank * PRIORITY_WEIGHT
        )

    async def validate_delivery_capability(self, channel: ChannelType | str) -> TransportHealth:
        channel_type = Channel.from_string(channel).type
        transport = self._transports.get(channel_type)
        if transport is None:
            return TransportHealth(
                available=False,
                response_time=0.0,
                error_message=f"No transport configured for channel '{channel_type.value}'",
            )
        return await transport.health_check()
