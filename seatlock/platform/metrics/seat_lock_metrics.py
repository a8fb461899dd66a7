from prometheus_client import Counter, Gauge, Histogram


class SeatLockMetrics:
    """
    Seat Lock Core Metrics Collector

    Tracks lease operations on the lock store, how hybrid requests are routed,
    and how long queued requests wait before reaching a terminal status.
    """

    def __init__(self) -> None:
        # ========== Lock Store Metrics ==========
        self.lock_operations = Counter(
            'seat_lock_operations_total',
            'Lease operations against the lock store',
            ['operation', 'result'],  # operation: acquire/extend/release
        )

        self.lock_operation_duration = Histogram(
            'seat_lock_operation_duration_seconds',
            'Lock store round-trip duration',
            ['operation'],
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
        )

        self.expired_locks_purged = Counter(
            'seat_lock_expired_purged_total', 'Expired leases removed by the sweep'
        )

        # ========== Hybrid Routing Metrics ==========
        self.routing_decisions = Counter(
            'seat_lock_routing_decisions_total',
            'Hybrid lock routing decisions',
            ['route'],  # direct/queued/rejected/direct_conflict_queued
        )

        # ========== Queue Metrics ==========
        self.queue_depth = Gauge(
            'seat_lock_queue_depth', 'Pending queued requests per event', ['event_id']
        )

        self.queue_outcomes = Counter(
            'seat_lock_queue_outcomes_total',
            'Terminal outcomes of queued requests',
            ['action', 'status'],  # status: granted/denied/expired
        )

        self.queue_wait = Histogram(
            'seat_lock_queue_wait_seconds',
            'Time from enqueue to terminal status',
            ['action'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
        )


# Global metrics instance
metrics = SeatLockMetrics()
