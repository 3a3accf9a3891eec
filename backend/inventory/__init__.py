"""
Inventory application for the mining equipment IP dashboard.

This app contains:
- Database models for equipment, IP addresses, assignments and import history.
- The spreadsheet import pipeline (sheet catalog, row parser, grouping,
  duplicate detection, commit).
- The integrity scanner for duplicate records, assignment conflicts and
  status mismatches.
- API views and management commands that drive both.
"""
