"""v1 router package: every /api/v1/* endpoint lives here.

Files:
  processing.py      upload, classify and credit-metered extract
  account.py         /user/* self-service (dashboard, credits, usage, documents)
  admin_users.py     /admin/users
  admin_groups.py    /admin/groups (members, shared credit pool)
  admin_payments.py  /admin/payments
  admin_analytics.py /admin/analytics platform totals
  billing.py         /admin/billing scheduled jobs
  training.py        /training/* curation and fine-tuning

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to rexeli/services/.
"""
