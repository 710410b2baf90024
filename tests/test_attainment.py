from types import SimpleNamespace

import pytest

from copo.services.attainment import (
    attainment_level, direct_co_attainment, indirect_co_attainment, combine,
    po_attainment, build_subject_report, department_po_attainment,
)

SETTINGS = {
    "academic_year": "2024-2025",
    "direct_attainment_weight": 80,
    "indirect_attainment_weight": 20,
    "attainment_threshold": 60,
    "attainment_type": "SEP",
}


def mark(assessment_id, student_id, co_id, marks):
    return SimpleNamespace(
        assessment_id=assessment_id, student_id=student_id,
        course_outcome_id=co_id, marks_obtained=marks,
    )


@pytest.fixture
def assessments():
    return [SimpleNamespace(id=1, max_marks=50), SimpleNamespace(id=2, max_marks=50)]


@pytest.mark.parametrize("percentage,level", [
    (100, 3), (70, 3), (69.99, 2), (60, 2), (50, 1), (49.99, 0), (0, 0), (None, None),
])
def test_attainment_level(percentage, level):
    assert attainment_level(percentage) == level


def test_direct_attainment_counts_students_over_threshold(assessments):
    marks = [
        mark(1, 10, 1, 40), mark(2, 10, 1, 40),  # 80%
        mark(1, 11, 1, 20), mark(2, 11, 1, 20),  # 40%
    ]

    result = direct_co_attainment(marks, assessments, [1, 2], threshold=60)

    assert result[1] == {
        "direct": 50.0,
        "meanPercentage": 60.0,
        "studentsAssessed": 2,
        "studentsAttained": 1,
    }
    assert result[2]["direct"] is None
    assert result[2]["studentsAssessed"] == 0


def test_direct_attainment_only_counts_assessments_that_tested_the_student(assessments):
    # Student 10 only sat assessment 1
    result = direct_co_attainment([mark(1, 10, 1, 30)], assessments, [1], threshold=60)

    assert result[1]["meanPercentage"] == 60.0
    assert result[1]["direct"] == 100.0


def test_indirect_attainment_scales_ratings():
    payloads = [
        {"ratings": {"1": 4, "2": 5, "9": 1}, "scale": 5},
        {"ratings": {"1": 2}},
        "not a payload",
        {"ratings": {"1": "bad"}, "scale": 5},
    ]

    assert indirect_co_attainment(payloads, [1, 2]) == {1: 60.0, 2: 100.0}


def test_combine_falls_back_to_available_side():
    assert combine(50, 60, 80, 20) == 52.0
    assert combine(None, 60, 80, 20) == 60
    assert combine(50, None, 80, 20) == 50
    assert combine(None, None, 80, 20) is None


def test_po_attainment_is_correlation_weighted():
    mappings = [
        SimpleNamespace(course_outcome_id=1, program_outcome_id=1, correlation_level=3),
        SimpleNamespace(course_outcome_id=2, program_outcome_id=1, correlation_level=1),
        SimpleNamespace(course_outcome_id=2, program_outcome_id=2, correlation_level=2),
        SimpleNamespace(course_outcome_id=3, program_outcome_id=2, correlation_level=3),
    ]

    result = po_attainment({1: 52.0, 2: 100.0, 3: None}, mappings)

    assert result == {1: 64.0, 2: 100.0}


def test_subject_report_shape(assessments):
    course_outcomes = [
        SimpleNamespace(id=2, outcome_number=2),
        SimpleNamespace(id=1, outcome_number=1),
    ]
    marks = [mark(1, 10, 1, 40), mark(1, 11, 1, 10)]
    mappings = [SimpleNamespace(course_outcome_id=1, program_outcome_id=7, correlation_level=2)]
    program_outcomes = [SimpleNamespace(id=7, outcome_number=3)]

    co_data, po_data = build_subject_report(
        course_outcomes, assessments, marks, [{"ratings": {"1": 5}, "scale": 5}],
        mappings, program_outcomes, SETTINGS,
    )

    assert co_data["policy"]["attainmentThreshold"] == 60
    assert [row["outcomeNumber"] for row in co_data["courseOutcomes"]] == [1, 2]
    first = co_data["courseOutcomes"][0]
    assert first["direct"] == 50.0
    assert first["indirect"] == 100.0
    assert first["final"] == 60.0
    assert first["level"] == 2
    assert co_data["courseOutcomes"][1]["final"] is None

    assert po_data["programOutcomes"] == [
        {"programOutcomeId": 7, "outcomeNumber": 3, "attainment": 60.0, "level": 2},
    ]


def test_department_average_over_reporting_subjects():
    reports = [
        {"programOutcomes": [{"programOutcomeId": 1, "outcomeNumber": 1, "attainment": 60.0}]},
        {"programOutcomes": [
            {"programOutcomeId": 1, "outcomeNumber": 1, "attainment": 80.0},
            {"programOutcomeId": 2, "outcomeNumber": 2, "attainment": 50.0},
        ]},
        {"programOutcomes": []},
    ]

    rows = department_po_attainment(reports)

    assert rows == [
        {"programOutcomeId": 1, "outcomeNumber": 1, "attainment": 70.0, "level": 3, "subjectsCounted": 2},
        {"programOutcomeId": 2, "outcomeNumber": 2, "attainment": 50.0, "level": 1, "subjectsCounted": 1},
    ]
