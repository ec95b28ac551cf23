"""Pydantic schemas package.

Folder intent:
  common.py      - CamelModel base + HealthResponse (all schemas inherit CamelModel)
  account.py     - credit info, dashboard, usage history, document history, admin user views
  group.py       - group administration
  processing.py  - upload / classify / extract responses
  payment.py     - payments and revenue stats
  analytics.py   - admin platform analytics
  training.py    - training-data curation
"""
