"""jobspine core -- models, errors, persistence and the scheduling engine.

Architecture::

    Layer 1 -- Types & Errors
        models/          JobKey, JobDefinition, EngineTrigger, ReconcileReport
        errors.py        JobSpineError hierarchy
        protocols.py     JobStore and Executor protocols

    Layer 2 -- Infrastructure
        logging.py       structlog configuration
        settings.py      SchedulerSettings (pydantic-settings)
        orm/             SQLAlchemy 2.0 base, session, scheduler_jobs table
        repositories/    SQLAlchemyJobStore

    Layer 3 -- Scheduling
        scheduling/      cron parsing, SchedulingEngine, LockManager,
                         ReconciliationService, create_scheduler()
"""
