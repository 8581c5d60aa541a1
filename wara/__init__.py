"""Tenant-wide reliability assessment orchestrator.

Enumerates the units (subscriptions) of a tenant, filters them, and runs a
rate-limited, retried collection job per unit on a bounded worker pool,
aggregating every outcome into one run summary.

Key modules:
    models          -- Unit, FilterCriteria, JobResult, RunSummary dataclasses
    errors          -- error taxonomy (fatal run errors vs. per-unit errors)
    filters         -- is_in_scope / select_units filter engine
    resume          -- should_skip / apply_resume for interrupted runs
    rate_limiter    -- RateLimiter fixed-interval requests-per-minute gate
    backoff         -- BackoffStrategy for exponential retry delays
    retry           -- RetryPolicy and transient/fatal classification
    controller      -- UnitScheduler bounded worker pool
    progress        -- ProgressTracker shared counters
    aggregator      -- aggregate() into a RunSummary
    storage         -- JsonlStorage unit journal and JsonSummaryStorage
    metrics         -- MetricsCollector for call attempts
    base            -- BaseCollector abstract collaborator
    collectors      -- ArmCollector for Azure Resource Manager
    config          -- AssessmentConfig loading and validation
    orchestrator    -- AssessmentOrchestrator tying it all together
"""
