# Workforce Alert Engine — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.alert import Alert                           # noqa
from app.models.alert_escalation import AlertEscalation      # noqa
from app.models.project import Project                       # noqa
from app.models.employee import Employee                     # noqa
from app.models.attendance import Attendance                 # noqa
from app.models.task_assignment import WorkerTaskAssignment  # noqa
