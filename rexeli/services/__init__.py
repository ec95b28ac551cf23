"""Services package: all business logic lives here, never in routers.

Files:
  credit_holder.py       individual vs group balance; atomic deduction
  credit_service.py      credit validation, deduction, grants, balance info
  subscription.py        plan tables, plan assignment, monthly reset, expiry
  notifications.py       low-credit email notices (fire-and-forget)
  post_tasks.py          best-effort work after a successful extraction
  processing.py          upload, classify and credit-metered extract
  openai_service.py      OpenAI vision classification and extraction
  pdf_utils.py           page counting, page rendering, text layer
  storage.py             file storage for uploads and exports
  prompts.py             prompts per document type
  usage_service.py       dashboard, usage history, stats, document history
  group_service.py       group lifecycle and membership
  user_admin_service.py  admin user management
  payment_service.py     payments and revenue stats
  analytics_service.py   platform-wide usage, credit and revenue totals
  training_service.py    training-data curation, fine-tune triggers and job status

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
