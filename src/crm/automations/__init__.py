"""CRM automations -- lead prioritization and engagement scoring.

Provides the waffling scorer, at-risk detector, deadline alert ranker, stale
contact prioritizer, daily digest and the run-all orchestrator, together with
the store ports they read through, the SQLAlchemy AutomationRepository that
implements them, and AutomationService for the API.
"""
