import argparse
from datetime import date

from sidur.core.database import SessionLocal, create_tables
from sidur.models import Schedule, Shift, Unit, Role, Assignment, Employee

SAMPLE_EMPLOYEES = [
    {"first_name": "דנה", "last_name": "לוי", "employee_id": "1001", "position": "נהג", "station": "צפון"},
    {"first_name": "יוסי", "last_name": "כהן", "employee_id": "1002", "position": "פראמדיק", "station": "צפון"},
    {"first_name": "מיכל", "last_name": "אברהם", "employee_id": "1003", "position": "חובש", "station": "מרכז"},
]

# shift -> units -> (role name, ambulance number)
SAMPLE_STRUCTURE = [
    ("לילה", "23:00", "07:00", [
        ("צפון", "אטן", [("נהג", "101"), ("פראמדיק", "101")]),
    ]),
    ("בוקר", "07:00", "15:00", [
        ("צפון", None, [("נהג", "101"), ("חובש", None), ("רגיל תקן", "204")]),
        ("מרכז", None, [("07:00-11:00", None), ("נהג", "330"), ("חובש", "330")]),
    ]),
    ("ערב", "15:00", "23:00", [
        ("מרכז", None, [("נהג", "330"), ("חובש", None)]),
    ]),
]


def seed_sample(db):
    if db.query(Schedule).filter(Schedule.schedule_date == date.today()).first():
        print("Sample schedule for today already exists, skipping")
        return

    employees = [Employee(**data) for data in SAMPLE_EMPLOYEES]
    db.add_all(employees)

    schedule = Schedule(schedule_date=date.today(), station="כללי", status="draft", created_by="init_db")
    db.add(schedule)
    db.flush()

    first_roles = []
    for shift_order, (shift_name, start, end, units) in enumerate(SAMPLE_STRUCTURE):
        shift = Shift(schedule_id=schedule.id, shift_name=shift_name, start_time=start,
                      end_time=end, shift_order=shift_order)
        db.add(shift)
        db.flush()
        for unit_order, (unit_name, unit_type, roles) in enumerate(units):
            unit = Unit(shift_id=shift.id, unit_name=unit_name, unit_type=unit_type, unit_order=unit_order)
            db.add(unit)
            db.flush()
            for role_order, (role_name, ambulance) in enumerate(roles):
                role = Role(unit_id=unit.id, role_name=role_name, ambulance_number=ambulance,
                            role_order=role_order)
                db.add(role)
                if role_order == 0:
                    first_roles.append(role)
    db.flush()

    # fill the first role of each unit, leave the rest open
    for index, role in enumerate(first_roles):
        employee = employees[index % len(employees)]
        db.add(Assignment(schedule_id=schedule.id, role_id=role.id, employee_id=employee.id))

    db.commit()
    print(f"Sample schedule {schedule.id} created for {schedule.schedule_date}")


def init_db(with_sample: bool = False):
    db = SessionLocal()
    try:
        create_tables()
        print("Tables created")
        if with_sample:
            seed_sample(db)
    except Exception as e:
        print(f"Database initialisation failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the database tables")
    parser.add_argument("--with-sample", action="store_true", help="also seed a sample schedule for today")
    args = parser.parse_args()
    print("Initialising database...")
    init_db(with_sample=args.with_sample)
