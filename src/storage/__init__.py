"""Dashboard state: widgets, dashboards, persistence and import/export."""
