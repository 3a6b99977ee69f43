from constructpm.db.base_class import Base

# Import models here so create_all sees every table
from constructpm.db.models.organization import Organization
from constructpm.db.models.user import User
from constructpm.db.models.project import Project, ProjectMember
from constructpm.db.models.phase import Phase, PhaseAssignment, PhaseComment, PhaseDependency
from constructpm.db.models.daily_log import DailyLog
from constructpm.db.models.staff import Staff
from constructpm.db.models.document import Document, Photo, PhotoAnnotation
from constructpm.db.models.checklist import ChecklistTemplate, ChecklistTemplateItem, Checklist, ChecklistItem
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.notification import Notification, NotificationPreference
from constructpm.db.models.punch_list import PunchListItem
from constructpm.db.models.finance import LienWaiver, PaymentApplication, SubcontractorBid
from constructpm.db.models.voice_note import VoiceNote
from constructpm.db.models.api_key import ApiKey
from constructpm.db.models.report import ReportSchedule
from constructpm.db.models.quickbooks import QuickBooksConnection, QuickBooksSyncLog
from constructpm.db.models.ai import AISettings, AIUsageLog
