# shopagenda/db/base.py

"""
Imports every ORM model so Alembic autogenerate (and create_all in tests)
sees the full metadata. Add new models here.
"""
from shopagenda.db.models.shop import Shop, Customer  # noqa: F401
from shopagenda.db.models.working_hours import WorkingHours  # noqa: F401
from shopagenda.db.models.appointment import Appointment, AppointmentEvent, AppointmentMessage  # noqa: F401
