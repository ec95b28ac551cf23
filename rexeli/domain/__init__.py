"""Domain package: all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  account.py   - subscriber accounts and their individual balances
  group.py     - shared-credit groups and memberships
  ledger.py    - usage logs and credit ledgers (append-only)
  document.py  - processed-document history
  payment.py   - recorded payments
  training.py  - fine-tuning data curation records
  mixins.py    - shared UUID / timestamp columns
"""

from rexeli.domain.account import Account
from rexeli.domain.document import UserDocument
from rexeli.domain.group import Group, GroupMember
from rexeli.domain.ledger import CreditTransaction, GroupCreditTransaction, UsageLog
from rexeli.domain.payment import Payment
from rexeli.domain.training import (
    FineTuningJob,
    TrainingDocument,
    TrainingRun,
    TrainingTrigger,
    VerificationEdit,
)

__all__ = [
    "Account",
    "CreditTransaction",
    "FineTuningJob",
    "Group",
    "GroupCreditTransaction",
    "GroupMember",
    "Payment",
    "TrainingDocument",
    "TrainingRun",
    "TrainingTrigger",
    "UsageLog",
    "UserDocument",
    "VerificationEdit",
]
