"""
Student endpoints - main-quiz attempts, assistance submissions and status.
"""

import uuid

from fastapi import APIRouter, status

from src.api.deps import AssistanceServiceDep, StudentActor
from src.engines.assistance.progress_store import ProgressSnapshot
from src.schemas.assistance import (
    AssistanceStatusResponse,
    Level1SubmitRequest,
    Level2SubmissionResponse,
    Level2SubmitRequest,
    Level3AcknowledgeRequest,
    LevelResultResponse,
    MainQuizAttemptRequest,
    MainQuizAttemptResponse,
    QuizSubmissionListResponse,
    QuizSubmissionResponse,
)

router = APIRouter()


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=MainQuizAttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_main_quiz_attempt(
    quiz_id: uuid.UUID,
    body: MainQuizAttemptRequest,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """Record a graded main-quiz attempt and return where the student goes next."""
    result = await service.evaluate_main_quiz_attempt(
        student.user_id,
        quiz_id,
        score=body.score,
        correct_answers=body.correct_answers,
        total_questions=body.total_questions,
    )
    progress: ProgressSnapshot = result.progress
    return MainQuizAttemptResponse(
        passed=result.passed,
        score=result.score,
        passing_score=result.passing_score,
        attempt_number=result.attempt_number,
        submission_id=result.submission_id,
        next_level=result.next_level,
        must_retake_main_quiz=result.must_retake_main_quiz,
        current_attempt=progress.current_attempt,
        failed_attempts=progress.failed_attempts,
        max_attempts=progress.max_attempts,
    )


@router.get("/quizzes/{quiz_id}/assistance-status", response_model=AssistanceStatusResponse)
async def get_assistance_status(
    quiz_id: uuid.UUID,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """Get the current student's ladder position for a quiz."""
    current = await service.get_student_status(student.user_id, quiz_id)
    return AssistanceStatusResponse.model_validate(current)


@router.post("/quizzes/{quiz_id}/assistance/level1", response_model=LevelResultResponse)
async def submit_level1(
    quiz_id: uuid.UUID,
    body: Level1SubmitRequest,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """Submit yes/no answers for level 1; graded immediately."""
    outcome = await service.submit_level1(student.user_id, quiz_id, body.answers)
    return LevelResultResponse(
        level_completed=outcome.level_completed,
        next_level=outcome.next_level,
        must_retake_main_quiz=outcome.must_retake_main_quiz,
        submission_id=outcome.submission_id,
        correct_count=outcome.correct_count,
        total_count=outcome.total_count,
    )


@router.post(
    "/quizzes/{quiz_id}/assistance/level2",
    response_model=Level2SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_level2(
    quiz_id: uuid.UUID,
    body: Level2SubmitRequest,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """Submit essay answers for level 2; they wait for teacher grading."""
    submission = await service.submit_level2(student.user_id, quiz_id, body.answers)
    return Level2SubmissionResponse.model_validate(submission)


@router.get("/quizzes/{quiz_id}/assistance/level2", response_model=list[Level2SubmissionResponse])
async def list_level2_submissions(
    quiz_id: uuid.UUID,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """List the student's level-2 submissions with grading feedback."""
    await service.ownership.require_enrollment(student.user_id, quiz_id)
    submissions = await service.list_level2_submissions(student.user_id, quiz_id)
    return [Level2SubmissionResponse.model_validate(s) for s in submissions]


@router.post("/quizzes/{quiz_id}/assistance/level3/acknowledge", response_model=LevelResultResponse)
async def acknowledge_level3(
    quiz_id: uuid.UUID,
    body: Level3AcknowledgeRequest,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """Confirm the level-3 material has been read."""
    outcome = await service.acknowledge_level3(student.user_id, quiz_id, body.reading_time_seconds)
    return LevelResultResponse(
        level_completed=outcome.level_completed,
        next_level=outcome.next_level,
        must_retake_main_quiz=outcome.must_retake_main_quiz,
    )


@router.get("/quizzes/{quiz_id}/submissions", response_model=QuizSubmissionListResponse)
async def list_main_quiz_submissions(
    quiz_id: uuid.UUID,
    student: StudentActor,
    service: AssistanceServiceDep,
):
    """List the student's main-quiz attempts, including those before a reset."""
    await service.ownership.require_enrollment(student.user_id, quiz_id)
    submissions = await service.list_main_quiz_submissions(student.user_id, quiz_id)
    return QuizSubmissionListResponse(
        items=[QuizSubmissionResponse.model_validate(s) for s in submissions],
        total=len(submissions),
    )
