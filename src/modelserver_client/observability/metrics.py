"""Client metrics.

Defines OpenTelemetry metrics for the model server client:
- Requests: REST operations against the server
- Subscriptions: Live-update connections and keep-alives
"""

from opentelemetry import metrics

meter = metrics.get_meter(__name__)

# =============================================================================
# REQUEST METRICS
# =============================================================================

requests_sent = meter.create_counter(
    name="modelserver_client.requests.sent",
    description="Total REST requests sent to the model server",
    unit="1",
)

request_failures = meter.create_counter(
    name="modelserver_client.requests.failures",
    description="Total REST requests that ended with a ModelServerError",
    unit="1",
)

request_duration = meter.create_histogram(
    name="modelserver_client.request.duration",
    description="Time to complete REST requests",
    unit="ms",
)

# =============================================================================
# SUBSCRIPTION METRICS
# =============================================================================

subscriptions_opened = meter.create_counter(
    name="modelserver_client.subscriptions.opened",
    description="Total subscription connections registered",
    unit="1",
)

subscriptions_closed = meter.create_counter(
    name="modelserver_client.subscriptions.closed",
    description="Total subscription connections closed",
    unit="1",
)

subscription_conflicts = meter.create_counter(
    name="modelserver_client.subscriptions.conflicts",
    description="Total subscribe calls for an already subscribed model URI",
    unit="1",
)

keep_alives_sent = meter.create_counter(
    name="modelserver_client.subscriptions.keep_alives",
    description="Total keep-alive messages sent on subscription connections",
    unit="1",
)
