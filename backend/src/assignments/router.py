import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from src.assignments.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    GradeSubmissionRequest,
    SubmissionResponse,
    SubmissionUploadRequest,
    SubmissionUploadResponse,
)
from src.assignments.service import AssignmentService
from src.auth import CurrentAuth
from src.middleware.security import upload_rate_limit
from src.storage import AbstractStorage, get_storage_provider


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/v1/assignments", tags=["assignments"])


async def get_assignment_service(
    auth: CurrentAuth,
    storage: Annotated[AbstractStorage, Depends(get_storage_provider)],
) -> AssignmentService:
    return AssignmentService(auth.session, storage)


Service = Annotated[AssignmentService, Depends(get_assignment_service)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(data: AssignmentCreate, auth: CurrentAuth, service: Service) -> AssignmentResponse:
    assignment = await service.create_assignment(auth, data)
    return AssignmentResponse.model_validate(assignment)


@router.get("/submissions/{submission_id}")
async def get_submission(submission_id: UUID, auth: CurrentAuth, service: Service) -> SubmissionResponse:
    """A submission, visible to the submitting learner and to staff."""
    submission = await service.get_submission(auth, submission_id)
    return SubmissionResponse.model_validate(submission)


@router.post("/submissions/{submission_id}/complete")
async def complete_submission_upload(
    submission_id: UUID, auth: CurrentAuth, service: Service
) -> SubmissionResponse:
    submission = await service.complete_submission_upload(auth, submission_id)
    return SubmissionResponse.model_validate(submission)


@router.post("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: UUID, body: GradeSubmissionRequest, auth: CurrentAuth, service: Service
) -> SubmissionResponse:
    """Grade a submission once; grading completes the assignment lesson."""
    submission = await service.grade_submission(auth, submission_id, body.marks, body.feedback)
    return SubmissionResponse.model_validate(submission)


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: UUID, service: Service) -> AssignmentResponse:
    assignment = await service.get_assignment(assignment_id)
    return AssignmentResponse.model_validate(assignment)


@router.post("/{assignment_id}/presign", status_code=status.HTTP_201_CREATED)
@upload_rate_limit
async def presign_submission(
    request: Request,  # noqa: ARG001
    assignment_id: UUID,
    body: SubmissionUploadRequest,
    auth: CurrentAuth,
    service: Service,
) -> SubmissionUploadResponse:
    """Start the caller's one submission and return where to upload the file."""
    return await service.generate_submission_upload(auth, assignment_id, body.file_name, body.content_type)


@router.get("/{assignment_id}/submission")
async def get_my_submission(assignment_id: UUID, auth: CurrentAuth, service: Service) -> SubmissionResponse:
    submission = await service.get_submission_by_assignment(auth, assignment_id)
    return SubmissionResponse.model_validate(submission)


@router.get("/{assignment_id}/submissions")
async def list_submissions(assignment_id: UUID, auth: CurrentAuth, service: Service) -> list[SubmissionResponse]:
    """All submissions for an assignment (staff)."""
    submissions = await service.list_submissions(auth, assignment_id)
    return [SubmissionResponse.model_validate(s) for s in submissions]
