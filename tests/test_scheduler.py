from datetime import timedelta

from conftest import at
from monitor.scheduler import DailySchedule, ReminderScheduler


def test_reminder_once_per_slot():
    scheduler = ReminderScheduler(["09:00", "10:00"])
    now = at(8, 59, 58)
    end = at(10, 0, 2)
    fired = []
    while now <= end:
        reminder = scheduler.check(now)
        if reminder is not None:
            fired.append((reminder.slot, now))
        now += timedelta(seconds=1)

    assert [slot for slot, _ in fired] == ["09:00", "10:00"]
    assert fired[0][1] == at(9, 0, 0)
    assert fired[1][1] == at(10, 0, 0)


def test_reminder_survives_missed_exact_second():
    scheduler = ReminderScheduler(["09:00"])
    assert scheduler.check(at(8, 59, 59)) is None
    reminder = scheduler.check(at(9, 0, 37))
    assert reminder is not None
    assert reminder.slot == "09:00"
    assert scheduler.last_fired_slot == "09:00"


def test_reminder_fires_again_next_day():
    scheduler = ReminderScheduler(["09:00"])
    assert scheduler.check(at(9, day=6)) is not None
    assert scheduler.check(at(9, 0, 30, day=6)) is None
    assert scheduler.check(at(9, day=7)) is not None


def test_reminder_text():
    reminder = ReminderScheduler(["09:00"], title="Class Starting", message="Mark attendance").check(at(9))
    assert reminder.title == "Class Starting"
    assert reminder.message == "Mark attendance"


def test_default_reminder_slots_match_class_starts():
    scheduler = ReminderScheduler()
    assert {"09:00", "13:30", "15:45"} <= scheduler.slots
    assert "10:45" not in scheduler.slots


def test_daily_schedule_current_index():
    schedule = DailySchedule([
        ("09:00", "10:00", "class"),
        ("10:00", "10:45", "class"),
        ("10:45", "11:00", "break"),
    ])
    assert schedule.current_index(at(8, 59)) is None
    assert schedule.current_index(at(9, 0)) == 0
    assert schedule.current_index(at(10, 0)) == 1
    assert schedule.current_index(at(10, 50)) == 2
    assert schedule.current_index(at(11, 0)) is None
    assert schedule.class_starts() == ["09:00", "10:00"]


def test_daily_schedule_to_dict():
    data = DailySchedule().to_dict(at(12, 50))
    assert data['slots'][data['current_index']] == {'start': "12:45", 'end': "13:30", 'kind': "break"}
