"""
Teacher endpoints - grading, level-3 grants, resets and student views.

Every route checks that the teacher owns the class containing the quiz.
"""

import uuid

from fastapi import APIRouter

from src.api.deps import AssistanceServiceDep, TeacherActor
from src.kernel.models.submission import SubmissionStatus
from src.schemas.assistance import (
    AssistanceStatusResponse,
    Level2GradeRequest,
    Level2GradeResponse,
    Level2SubmissionResponse,
    Level3AccessRequest,
    LevelResultResponse,
    ProgressResponse,
    QuizSubmissionListResponse,
    QuizSubmissionResponse,
    SubmissionFeedbackRequest,
)

router = APIRouter()


@router.post("/assistance-level2/{submission_id}/grade", response_model=Level2GradeResponse)
async def grade_level2_submission(
    submission_id: uuid.UUID,
    body: Level2GradeRequest,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Grade a pending level-2 submission PASSED or FAILED."""
    outcome = await service.grade_level2(
        teacher.user_id,
        submission_id,
        SubmissionStatus(body.status),
        body.feedback,
    )
    return Level2GradeResponse(
        level_completed=outcome.level_completed,
        next_level=outcome.next_level,
        must_retake_main_quiz=outcome.must_retake_main_quiz,
        submission_id=outcome.submission.id,
        submission=Level2SubmissionResponse.model_validate(outcome.submission),
    )


@router.post("/submissions/{submission_id}/feedback", response_model=QuizSubmissionResponse)
async def add_submission_feedback(
    submission_id: uuid.UUID,
    body: SubmissionFeedbackRequest,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Attach feedback to a graded main-quiz attempt; the score is unchanged."""
    submission = await service.add_submission_feedback(teacher.user_id, submission_id, body.feedback)
    return QuizSubmissionResponse.model_validate(submission)


@router.post(
    "/quizzes/{quiz_id}/students/{student_id}/level3-access",
    response_model=LevelResultResponse,
)
async def grant_level3_access(
    quiz_id: uuid.UUID,
    student_id: uuid.UUID,
    body: Level3AccessRequest,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Grant (or revoke) level-3 completion for a student."""
    outcome = await service.grant_level3_access(teacher.user_id, quiz_id, student_id, body.granted)
    return LevelResultResponse(
        level_completed=outcome.level_completed,
        next_level=outcome.next_level,
        must_retake_main_quiz=outcome.must_retake_main_quiz,
    )


@router.post("/quizzes/{quiz_id}/students/{student_id}/reset", response_model=ProgressResponse)
async def reset_student_attempts(
    quiz_id: uuid.UUID,
    student_id: uuid.UUID,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Reset a student's attempts and assistance progress; history is kept."""
    progress = await service.reset_attempts(teacher.user_id, quiz_id, student_id)
    return ProgressResponse.model_validate(progress)


@router.get(
    "/quizzes/{quiz_id}/students/{student_id}/status",
    response_model=AssistanceStatusResponse,
)
async def get_student_status(
    quiz_id: uuid.UUID,
    student_id: uuid.UUID,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    current = await service.get_status_for_teacher(teacher.user_id, quiz_id, student_id)
    return AssistanceStatusResponse.model_validate(current)


@router.get(
    "/quizzes/{quiz_id}/students/{student_id}/submissions",
    response_model=QuizSubmissionListResponse,
)
async def list_student_submissions(
    quiz_id: uuid.UUID,
    student_id: uuid.UUID,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Main-quiz attempt history of a student, across resets."""
    await service.ownership.require_quiz_owner(teacher.user_id, quiz_id)
    submissions = await service.list_main_quiz_submissions(student_id, quiz_id)
    return QuizSubmissionListResponse(
        items=[QuizSubmissionResponse.model_validate(s) for s in submissions],
        total=len(submissions),
    )


@router.get(
    "/quizzes/{quiz_id}/students/{student_id}/level2-submissions",
    response_model=list[Level2SubmissionResponse],
)
async def list_student_level2_submissions(
    quiz_id: uuid.UUID,
    student_id: uuid.UUID,
    teacher: TeacherActor,
    service: AssistanceServiceDep,
):
    """Level-2 submissions of a student, to find the one awaiting grading."""
    await service.ownership.require_quiz_owner(teacher.user_id, quiz_id)
    submissions = await service.list_level2_submissions(student_id, quiz_id)
    return [Level2SubmissionResponse.model_validate(s) for s in submissions]
