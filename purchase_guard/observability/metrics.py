"""
Metrics Collection with Prometheus.

Exposes purchase validation and inventory metrics for monitoring.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram


class ValidatorMetrics:
    """
    Centralized metrics for the purchase validator.

    Covers:
    - Purchase validation outcomes (purchased, pending, failed)
    - Remote validation results and latency
    - Store transaction confirmations
    - Inventory syncs and skipped inventory requests
    - Restore submissions
    """

    def __init__(self, registry: CollectorRegistry | None = None, enabled: bool = True) -> None:
        """Initialize all Prometheus metrics on the given registry."""
        self.enabled = enabled
        self.registry = registry or CollectorRegistry()

        # ====================================================================
        # Validation Metrics
        # ====================================================================
        self.purchase_outcomes_total = Counter(
            "purchase_guard_purchase_outcomes_total",
            "Purchase validation outcomes returned to the caller",
            ["outcome", "storefront"],
            registry=self.registry,
        )

        self.remote_validations_total = Counter(
            "purchase_guard_remote_validations_total",
            "Remote receipt validation results",
            ["result"],
            registry=self.registry,
        )

        self.remote_validation_duration_seconds = Histogram(
            "purchase_guard_remote_validation_duration_seconds",
            "Remote receipt validation round trip in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )

        self.transactions_confirmed_total = Counter(
            "purchase_guard_transactions_confirmed_total",
            "Store transactions confirmed after validation",
            registry=self.registry,
        )

        # ====================================================================
        # Inventory Metrics
        # ====================================================================
        self.inventory_syncs_total = Counter(
            "purchase_guard_inventory_syncs_total",
            "Inventory sync attempts",
            ["result"],
            registry=self.registry,
        )

        self.inventory_requests_skipped_total = Counter(
            "purchase_guard_inventory_requests_skipped_total",
            "Inventory requests skipped before any network call",
            ["reason"],
            registry=self.registry,
        )

        # ====================================================================
        # Restore Metrics
        # ====================================================================
        self.restore_submissions_total = Counter(
            "purchase_guard_restore_submissions_total",
            "Purchases resubmitted for validation by a restore",
            registry=self.registry,
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_outcome(self, outcome: str, storefront: str) -> None:
        """Record an outcome returned by request_purchase."""
        if self.enabled:
            self.purchase_outcomes_total.labels(outcome=outcome, storefront=storefront).inc()

    def record_remote_validation(self, result: str, duration: float) -> None:
        """Record a remote validation result with its latency."""
        if self.enabled:
            self.remote_validations_total.labels(result=result).inc()
            self.remote_validation_duration_seconds.observe(duration)

    def record_confirmation(self) -> None:
        """Record a confirmed store transaction."""
        if self.enabled:
            self.transactions_confirmed_total.inc()

    def record_inventory_sync(self, result: str) -> None:
        """Record an inventory sync attempt."""
        if self.enabled:
            self.inventory_syncs_total.labels(result=result).inc()

    def record_inventory_skipped(self, reason: str) -> None:
        """Record an inventory request skipped by policy or heuristics."""
        if self.enabled:
            self.inventory_requests_skipped_total.labels(reason=reason).inc()

    def record_restore_submission(self) -> None:
        """Record a restore resubmission."""
        if self.enabled:
            self.restore_submissions_total.inc()
