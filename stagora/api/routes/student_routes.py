"""
Student Routes

POST /students - Create a student (admin)
POST /students/import - Bulk import from a JSON or CSV file (admin)
GET /students - List students
GET /students/{student_id} - Get one student
PUT /students/{student_id} - Update (owner or admin)
DELETE /students/{student_id} - Soft delete (admin)
"""

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from stagora.core.auth import get_current_user, get_current_admin, ensure_owner_or_admin
from stagora.services.student_service import StudentService, get_student_service
from stagora.utils.file_upload import read_import_file, parse_import_content
from stagora.schemas.schemas import ImportResult, PaginatedResponse, StudentCreate, StudentUpdate

router = APIRouter(prefix="/students", tags=["Students"])


@router.post("", status_code=201)
async def create_student(
    data: StudentCreate,
    admin: dict = Depends(get_current_admin),
    service: StudentService = Depends(get_student_service)
):
    return service.create_student(data)


@router.post("/import", response_model=ImportResult, status_code=201)
async def import_students(
    file: UploadFile = File(None),
    skip_existing_records: bool = Form(False),
    admin: dict = Depends(get_current_admin),
    service: StudentService = Depends(get_student_service)
):
    """
    Import students from a file.

    Accepted: JSON array or CSV with a header row (email, student_number,
    first_name, last_name). Returns how many rows were added and skipped.
    """
    content = await read_import_file(file)
    rows = parse_import_content(content, file.content_type)
    return service.import_students(rows, skip_existing_records)


@router.get("", response_model=PaginatedResponse)
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    service: StudentService = Depends(get_student_service)
):
    return service.list_students(page, limit)


@router.get("/{student_id}")
async def get_student(
    student_id: str,
    user: dict = Depends(get_current_user),
    service: StudentService = Depends(get_student_service)
):
    return service.get_student(student_id)


@router.put("/{student_id}")
async def update_student(
    student_id: str,
    data: StudentUpdate,
    user: dict = Depends(get_current_user),
    service: StudentService = Depends(get_student_service)
):
    ensure_owner_or_admin(user, student_id)
    return service.update_student(student_id, data)


@router.delete("/{student_id}", status_code=204)
async def delete_student(
    student_id: str,
    admin: dict = Depends(get_current_admin),
    service: StudentService = Depends(get_student_service)
):
    service.remove_student(student_id)
    return Response(status_code=204)
