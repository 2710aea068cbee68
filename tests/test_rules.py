from datetime import date, time

import pydantic
import pytest

from telecare.core.errors import TemplateValidationError
from telecare.modules.availability.rules import validate_template
from telecare.modules.availability.schemas import (
    AvailabilityTemplateBase,
    AvailabilityTemplateIn,
    TimeWindow,
)


def _template(**overrides) -> AvailabilityTemplateBase:
    data = dict(
        valid_from=date(2025, 1, 1),
        valid_until=date(2025, 1, 31),
        excluded_weekdays=[0, 6],
        daily_windows=[TimeWindow(start=time(9, 0), end=time(12, 0))],
        slot_duration_minutes=30,
        timezone="UTC",
    )
    data.update(overrides)
    return AvailabilityTemplateBase(**data)


def _code(template) -> str:
    with pytest.raises(TemplateValidationError) as info:
        validate_template(template)
    return info.value.code


def test_valid_template_passes(weekday_template):
    validate_template(weekday_template)


def test_single_day_range_is_valid():
    validate_template(_template(valid_from=date(2025, 1, 6), valid_until=date(2025, 1, 6)))


def test_reversed_date_range():
    tpl = _template(valid_from=date(2025, 2, 1), valid_until=date(2025, 1, 1))
    assert _code(tpl) == "invalid_date_range"


@pytest.mark.parametrize("start,end", [(time(10, 0), time(10, 0)), (time(11, 0), time(10, 0))])
def test_window_must_start_before_it_ends(start, end):
    tpl = _template(daily_windows=[TimeWindow(start=start, end=end)])
    assert _code(tpl) == "invalid_window"


def test_overlapping_windows_detected_in_any_order():
    tpl = _template(
        daily_windows=[
            TimeWindow(start=time(10, 0), end=time(12, 0)),
            TimeWindow(start=time(9, 0), end=time(11, 0)),
        ]
    )
    assert _code(tpl) == "overlapping_windows"


def test_touching_windows_are_not_overlapping():
    validate_template(
        _template(
            daily_windows=[
                TimeWindow(start=time(9, 0), end=time(10, 0)),
                TimeWindow(start=time(10, 0), end=time(11, 0)),
            ]
        )
    )


def test_slot_longer_than_every_window():
    tpl = _template(
        daily_windows=[
            TimeWindow(start=time(9, 0), end=time(9, 30)),
            TimeWindow(start=time(10, 0), end=time(10, 45)),
        ],
        slot_duration_minutes=60,
    )
    assert _code(tpl) == "invalid_slot_duration"


def test_slot_fitting_one_window_is_enough():
    validate_template(
        _template(
            daily_windows=[
                TimeWindow(start=time(9, 0), end=time(9, 30)),
                TimeWindow(start=time(10, 0), end=time(11, 0)),
            ],
            slot_duration_minutes=60,
        )
    )


@pytest.mark.parametrize("duration", [0, -15])
def test_non_positive_slot_duration(duration):
    assert _code(_template(slot_duration_minutes=duration)) == "invalid_slot_duration"


def test_weekday_out_of_range():
    assert _code(_template(excluded_weekdays=[7])) == "invalid_weekday"


def test_unknown_timezone():
    assert _code(_template(timezone="Mars/Olympus_Mons")) == "unknown_timezone"


def test_template_error_is_a_value_error():
    assert issubclass(TemplateValidationError, ValueError)


def test_request_model_rejects_invalid_template():
    with pytest.raises(pydantic.ValidationError) as info:
        AvailabilityTemplateIn(
            valid_from="2025-01-31",
            valid_until="2025-01-01",
            daily_windows=[{"start": "09:00", "end": "12:00"}],
        )
    assert "invalid_date_range" in str(info.value)


def test_request_model_requires_a_window():
    with pytest.raises(pydantic.ValidationError):
        AvailabilityTemplateIn(valid_from="2025-01-01", valid_until="2025-01-31", daily_windows=[])


def test_request_model_bounds_slot_duration():
    with pytest.raises(pydantic.ValidationError):
        AvailabilityTemplateIn(
            valid_from="2025-01-01",
            valid_until="2025-01-31",
            daily_windows=[{"start": "09:00", "end": "17:00"}],
            slot_duration_minutes=240,
        )


def test_window_serialises_as_hh_mm():
    window = TimeWindow(start=time(9, 0), end=time(12, 30))
    assert window.model_dump(mode="json") == {"start": "09:00", "end": "12:30"}


@pytest.mark.parametrize("value", ["09:00+02:00", "09:00:30", "09:00:00.250"])
def test_window_times_are_plain_wall_clock_minutes(value):
    with pytest.raises(pydantic.ValidationError):
        TimeWindow(start=value, end="10:00")
    with pytest.raises(pydantic.ValidationError):
        TimeWindow(start="08:00", end=value)
