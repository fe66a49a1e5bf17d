"""
Scripts Package.

Operational entry points.

Scripts:
- bootstrap_db: Database initialization
- run_risk_report: Score one agent or company
"""
