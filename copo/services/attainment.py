"""
CO/PO attainment computation.

The ``*_attainment`` functions are pure: they take already loaded rows and
return plain dicts, so they can be exercised without a database.
``AttainmentService`` loads the inputs, runs them and stores the result as
``Attainment`` snapshots. Snapshots are treated as a cache: every write to an
input drops the affected snapshots (see ``invalidate_subject`` and
``invalidate_department``) and the calculate endpoints rebuild them on demand.
"""
import logging
from collections import defaultdict
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from copo.models.academics import Subject, CourseOutcome, CoPOMapping, ProgramOutcome
from copo.models.assessment import (
    Attainment, AttainmentType, DirectAssessment, IndirectAssessment,
    StudentAssessmentMarks, StudentResponse,
)
from copo.services import repository
from copo.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

# (minimum % of students attaining, level)
LEVEL_THRESHOLDS = ((70, 3), (60, 2), (50, 1))
DEFAULT_RATING_SCALE = 5

def attainment_level(percentage: Optional[float]) -> Optional[int]:
    if percentage is None:
        return None
    for floor, level in LEVEL_THRESHOLDS:
        if percentage >= floor:
            return level
    return 0

def direct_co_attainment(marks, assessments, course_outcome_ids: Iterable[int], threshold: float) -> Dict[int, Dict[str, Any]]:
    """
    Share of students whose marks on a CO clear ``threshold`` percent.

    A student's percentage on a CO is the sum of marks obtained across every
    assessment that tested the CO, over the sum of those assessments'
    ``max_marks`` (each assessment counted once).
    """
    max_marks = {a.id: a.max_marks for a in assessments}
    obtained = defaultdict(int)
    tested_in = defaultdict(set)
    for mark in marks:
        if not max_marks.get(mark.assessment_id):
            continue
        key = (mark.course_outcome_id, mark.student_id)
        obtained[key] += mark.marks_obtained
        tested_in[key].add(mark.assessment_id)

    per_co = defaultdict(list)
    for key, assessment_ids in tested_in.items():
        possible = sum(max_marks[a_id] for a_id in assessment_ids)
        per_co[key[0]].append(min(obtained[key] / possible * 100, 100.0))

    results = {}
    for co_id in course_outcome_ids:
        percentages = per_co.get(co_id, [])
        if not percentages:
            results[co_id] = {
                "direct": None,
                "meanPercentage": None,
                "studentsAssessed": 0,
                "studentsAttained": 0,
            }
            continue
        attained = sum(1 for pct in percentages if pct >= threshold)
        results[co_id] = {
            "direct": round(attained / len(percentages) * 100, 2),
            "meanPercentage": round(mean(percentages), 2),
            "studentsAssessed": len(percentages),
            "studentsAttained": attained,
        }
    return results

def indirect_co_attainment(payloads: Iterable[Dict[str, Any]], course_outcome_ids: Iterable[int]) -> Dict[int, float]:
    """Mean survey rating per CO, scaled to a percentage of the rating scale."""
    wanted = set(course_outcome_ids)
    ratings = defaultdict(list)
    for payload in payloads:
        if not isinstance(payload, dict):
            continue
        scale = payload.get("scale") or DEFAULT_RATING_SCALE
        try:
            scale = float(scale)
        except (TypeError, ValueError):
            continue
        if scale <= 0:
            continue
        for key, rating in (payload.get("ratings") or {}).items():
            try:
                co_id = int(key)
                value = float(rating)
            except (TypeError, ValueError):
                continue
            if co_id in wanted:
                ratings[co_id].append(min(max(value / scale * 100, 0.0), 100.0))
    return {co_id: round(mean(values), 2) for co_id, values in ratings.items()}

def combine(direct: Optional[float], indirect: Optional[float], direct_weight: int, indirect_weight: int) -> Optional[float]:
    if direct is None and indirect is None:
        return None
    if indirect is None:
        return direct
    if direct is None:
        return indirect
    return round((direct * direct_weight + indirect * indirect_weight) / 100, 2)

def po_attainment(final_by_co: Dict[int, Optional[float]], mappings) -> Dict[int, float]:
    """Correlation-weighted mean of the final CO attainments mapped to each PO."""
    numerator = defaultdict(float)
    denominator = defaultdict(int)
    for mapping in mappings:
        value = final_by_co.get(mapping.course_outcome_id)
        if value is None or mapping.correlation_level <= 0:
            continue
        numerator[mapping.program_outcome_id] += value * mapping.correlation_level
        denominator[mapping.program_outcome_id] += mapping.correlation_level
    return {
        po_id: round(numerator[po_id] / denominator[po_id], 2)
        for po_id in numerator
        if denominator[po_id] > 0
    }

def build_subject_report(
    course_outcomes,
    assessments,
    marks,
    response_payloads,
    mappings,
    program_outcomes,
    settings: Dict[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return the (co, po) attainment payloads for one subject."""
    threshold = settings["attainment_threshold"]
    direct_weight = settings["direct_attainment_weight"]
    indirect_weight = settings["indirect_attainment_weight"]

    co_ids = [co.id for co in course_outcomes]
    direct = direct_co_attainment(marks, assessments, co_ids, threshold)
    indirect = indirect_co_attainment(response_payloads, co_ids)

    co_rows = []
    final_by_co = {}
    for co in sorted(course_outcomes, key=lambda c: c.outcome_number):
        d = direct[co.id]
        final = combine(d["direct"], indirect.get(co.id), direct_weight, indirect_weight)
        final_by_co[co.id] = final
        co_rows.append({
            "courseOutcomeId": co.id,
            "outcomeNumber": co.outcome_number,
            "direct": d["direct"],
            "indirect": indirect.get(co.id),
            "final": final,
            "level": attainment_level(final),
            "meanPercentage": d["meanPercentage"],
            "studentsAssessed": d["studentsAssessed"],
            "studentsAttained": d["studentsAttained"],
        })

    po_values = po_attainment(final_by_co, mappings)
    po_numbers = {po.id: po.outcome_number for po in program_outcomes}
    po_rows = [
        {
            "programOutcomeId": po_id,
            "outcomeNumber": po_numbers.get(po_id),
            "attainment": value,
            "level": attainment_level(value),
        }
        for po_id, value in sorted(po_values.items(), key=lambda item: po_numbers.get(item[0]) or 0)
    ]

    policy = {
        "attainmentThreshold": threshold,
        "directAttainmentWeight": direct_weight,
        "indirectAttainmentWeight": indirect_weight,
        "attainmentType": settings.get("attainment_type"),
    }
    return {"policy": policy, "courseOutcomes": co_rows}, {"policy": policy, "programOutcomes": po_rows}

def department_po_attainment(subject_reports: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Average each PO over the subject-level PO payloads that report it."""
    values = defaultdict(list)
    numbers = {}
    for report in subject_reports:
        for row in report.get("programOutcomes", []):
            values[row["programOutcomeId"]].append(row["attainment"])
            numbers[row["programOutcomeId"]] = row["outcomeNumber"]
    rows = []
    for po_id in sorted(values, key=lambda p: numbers.get(p) or 0):
        value = round(mean(values[po_id]), 2)
        rows.append({
            "programOutcomeId": po_id,
            "outcomeNumber": numbers[po_id],
            "attainment": value,
            "level": attainment_level(value),
            "subjectsCounted": len(values[po_id]),
        })
    return rows

class AttainmentService:
    @staticmethod
    async def calculate_subject(db: AsyncSession, subject: Subject) -> List[Attainment]:
        settings = await SettingsService.get_general(db)

        course_outcomes = await repository.course_outcomes.list(db, CourseOutcome.subject_id == subject.id)
        co_ids = [co.id for co in course_outcomes]

        assessments = await repository.direct_assessments.list(db, DirectAssessment.subject_id == subject.id)
        marks = []
        if assessments:
            marks = await repository.student_marks.list(
                db, StudentAssessmentMarks.assessment_id.in_([a.id for a in assessments])
            )

        surveys = await repository.indirect_assessments.list(
            db,
            IndirectAssessment.department_id == subject.department_id,
            IndirectAssessment.academic_year == subject.academic_year,
        )
        payloads = []
        if surveys:
            responses = await repository.student_responses.list(
                db, StudentResponse.assessment_id.in_([s.id for s in surveys])
            )
            payloads = [r.responses for r in responses]

        mappings = []
        program_outcomes = []
        if co_ids:
            mappings = await repository.co_po_mappings.list(db, CoPOMapping.course_outcome_id.in_(co_ids))
        if mappings:
            program_outcomes = await repository.program_outcomes.list(
                db, ProgramOutcome.id.in_(sorted({m.program_outcome_id for m in mappings}))
            )

        co_data, po_data = build_subject_report(
            course_outcomes, assessments, marks, payloads, mappings, program_outcomes, settings
        )

        await repository.attainments.delete_where(db, Attainment.subject_id == subject.id, commit=False)
        rows = []
        for attainment_type, data in ((AttainmentType.CO, co_data), (AttainmentType.PO, po_data)):
            rows.append(await repository.attainments.create(db, {
                "subject_id": subject.id,
                "academic_year": subject.academic_year,
                "attainment_type": attainment_type.value,
                "attainment_data": data,
            }, commit=False))
        await db.commit()
        logger.info(f"Attainment recalculated for subject {subject.id} ({len(course_outcomes)} COs, {len(mappings)} mappings)")
        return rows

    @staticmethod
    async def calculate_department(db: AsyncSession, department_id: int) -> Attainment:
        settings = await SettingsService.get_general(db)
        subjects = await repository.subjects.list(db, Subject.department_id == department_id)

        reports = []
        for subject in subjects:
            rows = await AttainmentService.calculate_subject(db, subject)
            reports.extend(row.attainment_data for row in rows if row.attainment_type == AttainmentType.PO.value)

        data = {
            "subjectIds": [s.id for s in subjects],
            "programOutcomes": department_po_attainment(reports),
        }
        await AttainmentService.invalidate_department(db, department_id, include_subjects=False)
        row = await repository.attainments.create(db, {
            "department_id": department_id,
            "academic_year": settings["academic_year"],
            "attainment_type": AttainmentType.PO.value,
            "attainment_data": data,
        }, commit=False)
        await db.commit()
        await db.refresh(row)
        return row

    @staticmethod
    async def invalidate_subject(db: AsyncSession, subject_id: Optional[int]):
        """Drop snapshots that depend on this subject. Caller commits."""
        if subject_id is None:
            return
        await repository.attainments.delete_where(db, Attainment.subject_id == subject_id, commit=False)
        subject = await repository.subjects.get(db, subject_id)
        if subject:
            await AttainmentService.invalidate_department(db, subject.department_id, include_subjects=False)

    @staticmethod
    async def invalidate_department(db: AsyncSession, department_id: Optional[int], include_subjects: bool = True):
        """Drop the department roll-up and, optionally, every subject snapshot under it. Caller commits."""
        if department_id is None:
            return
        await repository.attainments.delete_where(
            db,
            Attainment.department_id == department_id,
            Attainment.subject_id.is_(None),
            commit=False,
        )
        if include_subjects:
            subjects = await repository.subjects.list(db, Subject.department_id == department_id)
            if subjects:
                await repository.attainments.delete_where(
                    db, Attainment.subject_id.in_([s.id for s in subjects]), commit=False
                )

    @staticmethod
    async def subject_for_course_outcome(db: AsyncSession, course_outcome_id: int) -> Optional[int]:
        co = await repository.course_outcomes.get(db, course_outcome_id)
        return co.subject_id if co else None
