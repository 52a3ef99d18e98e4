# spentiva.api.v1 package - every router module, imported by spentiva.main
from . import (  # noqa: F401
    admin,
    analytics,
    auth,
    categories,
    expenses,
    health,
    payments,
    refunds,
    report_schedules,
    support,
    uploads,
    usage,
    usage_logs,
    trackers,
)
