"""
Prometheus metrics configuration
"""
from prometheus_client import Counter, Histogram

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'promptvc_db_queries_total',
    'Total number of database queries',
    ['operation', 'table']
)

db_query_duration_seconds = Histogram(
    'promptvc_db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

# ============================================================================
# Version Control Metrics
# ============================================================================

prompt_commits_total = Counter(
    'promptvc_prompt_commits_total',
    'Total number of prompt commits created',
    ['kind']  # commit, rollback
)

commit_state_transitions_total = Counter(
    'promptvc_commit_state_transitions_total',
    'Number of persisted commit flag changes',
    ['state']
)

# ============================================================================
# Reconciliation Metrics
# ============================================================================

prompt_reindex_total = Counter(
    'promptvc_prompt_reindex_total',
    'Prompts visited by model reindex batches',
    ['outcome']  # updated, skipped, failed
)

provider_models_synced_total = Counter(
    'promptvc_provider_models_synced_total',
    'Models seen while syncing custom providers',
    ['outcome']  # created, existing
)

provider_deletions_total = Counter(
    'promptvc_provider_deletions_total',
    'Custom provider deletion attempts',
    ['outcome']  # deleted, blocked
)
