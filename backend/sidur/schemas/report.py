from pydantic import BaseModel
from typing import List, Optional
from datetime import date


class ReportSummary(BaseModel):
    total_schedules: int = 0
    total_assignments: int = 0
    unique_ambulances: int = 0


class TopEmployee(BaseModel):
    employee_name: str
    assignment_count: int
    # False for names typed in manually
    linked: bool = True


class StationStat(BaseModel):
    station: str
    schedule_count: int = 0
    assignment_count: int = 0


class ShiftStat(BaseModel):
    shift_name: str
    shift_count: int = 0
    unit_count: int = 0
    role_count: int = 0


class RecentSchedule(BaseModel):
    id: int
    schedule_date: date
    station: str
    status: str
    shift_count: int = 0
    assignment_count: int = 0


class StatisticsReport(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    summary: ReportSummary
    top_employees: List[TopEmployee] = []
    station_stats: List[StationStat] = []
    shift_stats: List[ShiftStat] = []
    recent_schedules: List[RecentSchedule] = []
