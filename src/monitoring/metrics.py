"""
Metrics collector for chat routing and cost tracking.
"""

import time
from datetime import datetime
from typing import Optional
from dataclasses import dataclass
from collections import defaultdict
import threading


@dataclass
class RoutingMetric:
    """Single chat message metric."""

    timestamp: datetime
    query: str
    model: str
    smart_mode: bool
    latency_ms: float
    success: bool
    complexity: Optional[str] = None  # only set in smart mode
    score: Optional[int] = None
    total_tokens: int = 0
    estimated_cost: float = 0.0
    num_knowledge_docs: int = 0
    error_message: Optional[str] = None
    message_id: Optional[str] = None


class RoutingMetrics:
    """Thread-safe metrics collector."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "initialized"):
            self.initialized = True
            self._max_history = 1000  # Keep last 1000 messages in memory
            self.reset_metrics()

    def record(self, metric: RoutingMetric):
        """Record a message metric."""
        with self._lock:
            self.messages.append(metric)

            if len(self.messages) > self._max_history:
                self.messages = self.messages[-self._max_history :]

            if metric.success:
                self.success_count += 1
            else:
                self.error_count += 1

            self.model_usage[metric.model] += 1
            if metric.complexity:
                self.complexity_counts[metric.complexity] += 1
            self.total_tokens += metric.total_tokens
            self.total_cost += metric.estimated_cost
            self.total_latency_ms += metric.latency_ms

    def get_statistics(self) -> dict:
        """Get current statistics."""
        with self._lock:
            total = self.success_count + self.error_count
            if total == 0:
                return {
                    "total_messages": 0,
                    "success_rate": 0.0,
                    "avg_latency_ms": 0.0,
                    "smart_mode_share": 0.0,
                    "model_usage": {},
                    "complexity_distribution": {},
                    "total_tokens": 0,
                    "total_cost": 0.0,
                }

            smart = sum(1 for m in self.messages if m.smart_mode)
            return {
                "total_messages": total,
                "success_rate": round(self.success_count / total * 100, 2),
                "avg_latency_ms": round(self.total_latency_ms / total, 2),
                "smart_mode_share": round(smart / len(self.messages) * 100, 2),
                "model_usage": dict(self.model_usage),
                "complexity_distribution": dict(self.complexity_counts),
                "total_tokens": self.total_tokens,
                "total_cost": round(self.total_cost, 6),
            }

    def get_recent(self, limit: int = 20) -> list[RoutingMetric]:
        with self._lock:
            return list(reversed(self.messages[-limit:]))

    def reset_metrics(self):
        """Clear all collected metrics."""
        with self._lock:
            self.messages: list[RoutingMetric] = []
            self.model_usage: dict[str, int] = defaultdict(int)
            self.complexity_counts: dict[str, int] = defaultdict(int)
            self.success_count = 0
            self.error_count = 0
            self.total_tokens = 0
            self.total_cost = 0.0
            self.total_latency_ms = 0.0


metrics_collector = RoutingMetrics()


class MessageTimer:
    """Context manager timing one chat message and recording its routing."""

    def __init__(self, query: str):
        self.query = query
        self.start_time = None
        self.model = "unknown"
        self.smart_mode = False
        self.complexity = None
        self.score = None
        self.total_tokens = 0
        self.estimated_cost = 0.0
        self.num_knowledge_docs = 0
        self.message_id = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        latency_ms = (time.time() - self.start_time) * 1000

        metrics_collector.record(
            RoutingMetric(
                timestamp=datetime.now(),
                query=self.query,
                model=self.model,
                smart_mode=self.smart_mode,
                latency_ms=latency_ms,
                success=exc_type is None,
                complexity=self.complexity,
                score=self.score,
                total_tokens=self.total_tokens,
                estimated_cost=self.estimated_cost,
                num_knowledge_docs=self.num_knowledge_docs,
                error_message=str(exc_val) if exc_val is not None else None,
                message_id=self.message_id,
            )
        )
        return False  # Don't suppress exceptions

    def set_routing(self, model: str, smart_mode: bool, complexity: str = None, score: int = None):
        self.model = model
        self.smart_mode = smart_mode
        self.complexity = complexity
        self.score = score

    def set_usage(self, total_tokens: int, estimated_cost: float):
        self.total_tokens = total_tokens
        self.estimated_cost = estimated_cost
