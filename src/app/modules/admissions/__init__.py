"""
Admissions Module

Handles the student admission decision workflow:
1. Application submission (self-service or manual entry by an admin)
2. Optional automatic approval after a configurable delay
3. Manual accept / reject / reset, which always cancels a pending auto-approval
4. Admission letter (PDF) generation and email delivery on acceptance

API Endpoints:
- POST /applications - Submit new application
- /admin/applicants/... - Applicant listing, decisions, letters
- /admin/settings/decision - Approval mode, delay and reporting date
- /admin/notifications - Notification log
- /admin/pending-decisions - Scheduled auto-approvals

Background Jobs (via APScheduler):
- One DateTrigger job per pending applicant in automatic mode
- Timers are rebuilt from pending applicants on startup
"""

from .admin_router import router as admin_router
from .router import router
from .service import AdmissionsService

__all__ = ["router", "admin_router", "AdmissionsService"]
