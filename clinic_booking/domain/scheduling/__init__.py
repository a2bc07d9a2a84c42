"""
Scheduling Domain

Doctor weekly schedules and the slots patients can book from them.

STRUCTURE:
- time_calculator.py - Clinic timezone, week arithmetic, weekday labels, slot strings
- repository.py - Schedule store queries
- availability_service.py - Effective availability (declared slots minus live bookings)
- schedule_service.py - Weekly schedule editor (create, update, delete)
- router_schedules.py - Admin editor, doctor week view, patient slot lookup

Booked flags inside a schedule are derived from the appointment store and
are only written through the appointments domain booking service or the
editor's reconciliation with live appointments.
"""
