# Route modules
from . import schedules, employees, export, activity, reports, websocket

# Every router, mounted under /api
routers = [
    schedules.router,
    employees.router,
    export.router,
    activity.router,
    reports.router,
    websocket.router,
]
