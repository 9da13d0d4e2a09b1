"""Weighted bundler that batches trace records for upload."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import (
    BundleOverflowError,
    BundlerClosedError,
    InvalidBundlerConfigError,
    OversizedItemError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BundlerConfig:
    """Thresholds and limits for the bundler.

    Weights are abstract units, not bytes. A limit of 0 disables that limit.
    """

    # Flush a bundle this long after its first item was added (in seconds)
    delay_threshold_seconds: float = 2.0
    # Flush once a bundle holds this many items
    bundle_count_threshold: int = 100
    # Flush once a bundle weighs at least this much
    bundle_weight_threshold: int = 1000
    # Hard ceiling for a single bundle; items are never split across bundles
    bundle_weight_limit: int = 1000
    # Ceiling for pending plus in-flight weight
    buffered_weight_limit: int = 10000
    # Number of bundles that may be uploading at the same time
    handler_limit: int = 1

    def __post_init__(self) -> None:
        if self.delay_threshold_seconds <= 0:
            raise InvalidBundlerConfigError(
                f"delay_threshold_seconds must be positive, got {self.delay_threshold_seconds}"
            )
        if self.bundle_count_threshold < 1:
            raise InvalidBundlerConfigError(
                f"bundle_count_threshold must be at least 1, got {self.bundle_count_threshold}"
            )
        for name in ("bundle_weight_threshold", "bundle_weight_limit", "buffered_weight_limit"):
            if getattr(self, name) < 0:
                raise InvalidBundlerConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.bundle_weight_limit and self.bundle_weight_limit < self.bundle_weight_threshold:
            raise InvalidBundlerConfigError(
                f"bundle_weight_limit ({self.bundle_weight_limit}) must be >= "
                f"bundle_weight_threshold ({self.bundle_weight_threshold})"
            )
        if self.buffered_weight_limit and self.bundle_weight_limit > self.buffered_weight_limit:
            raise InvalidBundlerConfigError(
                f"buffered_weight_limit ({self.buffered_weight_limit}) must be >= "
                f"bundle_weight_limit ({self.bundle_weight_limit})"
            )
        if self.handler_limit < 1:
            raise InvalidBundlerConfigError(f"handler_limit must be at least 1, got {self.handler_limit}")


class Bundler(Generic[T]):
    """
    Accumulates weighted items and hands them to a handler in bundles.

    A bundle is flushed when the first of these happens:
    - its weight reaches ``bundle_weight_threshold``
    - its item count reaches ``bundle_count_threshold``
    - ``delay_threshold_seconds`` passed since its first item was added

    Flushed bundles run through the handler on a background pool, so ``add``
    never waits for the handler. Handler failures are logged and the bundle
    is dropped.
    """

    def __init__(
        self,
        handler: Callable[[list[T]], Any],
        config: BundlerConfig | None = None,
        name: str = "gcloudtrace-bundler",
    ) -> None:
        """
        Initialize the bundler.

        Args:
            handler: Called with each flushed bundle, on a pool thread
            config: Optional configuration (uses defaults if not provided)
            name: Thread name prefix for the timer and handler threads
        """
        self._handler = handler
        self._config = config or BundlerConfig()
        self._name = name

        self._lock = threading.Lock()
        self._bundle: list[T] = []
        self._bundle_weight = 0
        # Bumped on every flush so a stale timer can tell its bundle is gone
        self._generation = 0
        self._timer: threading.Timer | None = None

        self._buffered_weight = 0
        self._in_flight: set[Future[None]] = set()
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.handler_limit,
            thread_name_prefix=name,
        )
        self._closed = False

    @property
    def config(self) -> BundlerConfig:
        return self._config

    def add(self, item: T, weight: int) -> None:
        """
        Add an item to the pending bundle.

        Args:
            item: The item to bundle
            weight: Weight the item contributes towards thresholds and limits

        Raises:
            BundlerClosedError: close() was already called
            OversizedItemError: weight exceeds the bundle weight limit
            BundleOverflowError: buffered weight would exceed its limit; the
                item was not retained and stays with the caller
        """
        config = self._config
        with self._lock:
            if self._closed:
                raise BundlerClosedError()

            if config.bundle_weight_limit and weight > config.bundle_weight_limit:
                raise OversizedItemError(weight, config.bundle_weight_limit)

            if config.buffered_weight_limit and self._buffered_weight + weight > config.buffered_weight_limit:
                raise BundleOverflowError(weight, self._buffered_weight, config.buffered_weight_limit)

            if config.bundle_weight_limit and self._bundle_weight + weight > config.bundle_weight_limit:
                self._flush_locked()

            self._bundle.append(item)
            self._bundle_weight += weight
            self._buffered_weight += weight

            if len(self._bundle) == 1:
                self._arm_timer_locked()

            if (
                self._bundle_weight >= config.bundle_weight_threshold
                or len(self._bundle) >= config.bundle_count_threshold
            ):
                self._flush_locked()

    def flush(self, timeout: float | None = None) -> bool:
        """
        Flush the pending bundle and wait for every in-flight handler.

        Args:
            timeout: Maximum time to wait for handlers (None waits forever)

        Returns:
            True if all handlers finished within the timeout
        """
        with self._lock:
            self._flush_locked()
            pending = {f for f in self._in_flight if not f.done()}

        if not pending:
            return True

        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning("%d bundle handler(s) still running after flush timeout", len(not_done))
        return not not_done

    def close(self, timeout: float | None = None) -> None:
        """
        Stop accepting items, drain the pending bundle and stop the handler pool.

        The last pending bundle is handled on the calling thread once in-flight
        handlers have finished, so close() also drains from interpreter exit
        hooks that run after the pool stopped accepting work.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel_timer_locked()
            bundle, weight = self._take_bundle_locked()
            in_flight = {f for f in self._in_flight if not f.done()}

        if in_flight:
            _, not_done = wait(in_flight, timeout=timeout)
            if not_done:
                logger.warning("%d bundle handler(s) still running at close", len(not_done))
        if bundle:
            self._run_handler(bundle, weight)

        self._executor.shutdown(wait=timeout is None)
        logger.debug("Bundler %s closed", self._name)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._bundle)

    @property
    def pending_weight(self) -> int:
        with self._lock:
            return self._bundle_weight

    @property
    def buffered_weight(self) -> int:
        """Weight of the pending bundle plus bundles still being handled."""
        with self._lock:
            return self._buffered_weight

    def _arm_timer_locked(self) -> None:
        self._cancel_timer_locked()
        timer = threading.Timer(
            self._config.delay_threshold_seconds,
            self._on_delay_expired,
            args=(self._generation,),
        )
        timer.daemon = True
        timer.name = f"{self._name}-timer"
        self._timer = timer
        timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_delay_expired(self, generation: int) -> None:
        with self._lock:
            # A size-triggered flush already shipped this bundle
            if generation != self._generation:
                return
            self._timer = None
            self._flush_locked()

    def _flush_locked(self) -> None:
        """Hand the pending bundle to the pool. Caller holds the lock."""
        self._cancel_timer_locked()
        if not self._bundle:
            return

        try:
            future = self._executor.submit(self._run_handler, self._bundle, self._bundle_weight)
        except RuntimeError as e:
            # Pool is shut down (interpreter exit); the bundle stays pending for close()
            logger.debug("Bundler %s could not schedule %d item(s): %s", self._name, len(self._bundle), e)
            return

        self._take_bundle_locked()
        self._in_flight = {f for f in self._in_flight if not f.done()}
        self._in_flight.add(future)

    def _take_bundle_locked(self) -> tuple[list[T], int]:
        bundle = self._bundle
        weight = self._bundle_weight
        self._bundle = []
        self._bundle_weight = 0
        self._generation += 1
        return bundle, weight

    def _run_handler(self, bundle: list[T], weight: int) -> None:
        try:
            self._handler(bundle)
        except Exception as e:
            logger.error("Bundle handler failed for %d item(s): %s", len(bundle), e)
        finally:
            with self._lock:
                self._buffered_weight -= weight
