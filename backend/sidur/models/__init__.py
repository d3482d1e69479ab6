from .schedule import Schedule, Shift, Unit, Role, Assignment
from .employee import Employee
from .extras import ExtraMission, ExtraAmbulance
from .log import ActivityLog
