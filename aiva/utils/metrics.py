"""Prometheus metrics for the asset service, the assistant and the AI integrations"""
from prometheus_client import Counter, Histogram

# Assistant tool-dispatch loop
assistant_tool_calls = Counter(
    'assistant_tool_calls_total',
    'Total number of assistant tool executions',
    ['tool', 'status']  # success, error, unknown
)

assistant_rounds = Histogram(
    'assistant_tool_rounds',
    'Tool rounds used per assistant request',
    buckets=[0, 1, 2, 3, 5]
)

chat_messages = Counter(
    'chat_messages_total',
    'Chat messages handled, by how they were answered',
    ['intent', 'handled_by']  # local, assistant
)

# Generative AI provider
provider_requests = Counter(
    'provider_requests_total',
    'Requests sent to the generative AI provider',
    ['operation', 'status']
)

provider_request_duration = Histogram(
    'provider_request_duration_seconds',
    'Time spent waiting on the generative AI provider',
    ['operation'],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Embedding generation
embedding_generation_total = Counter(
    'embedding_generation_total',
    'Total number of asset embeddings generated',
    ['status']  # success, failed, skipped
)

# Content verification
verifications_total = Counter(
    'content_verifications_total',
    'Content verification requests',
    ['content_type', 'status']
)

uploads_blocked = Counter(
    'uploads_blocked_total',
    'Uploads blocked by the content verifier',
    ['reason']  # restricted, fake
)

# Object storage
storage_operations = Counter(
    'storage_operations_total',
    'Object storage operations',
    ['operation', 'status']
)

# Analytics
analytics_events_recorded = Counter(
    'analytics_events_recorded_total',
    'Analytics events appended',
    ['event_type']
)
