from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from studybuddy import config
from studybuddy.dependencies import get_orchestrator
from studybuddy.middleware.rate_limit import ai_generation_limit, general_api_limit
from studybuddy.models import GenerationRequest, GenerationResult, SubjectCategory
from studybuddy.services.generation import GenerationOrchestrator, GenerationPreconditionError
from studybuddy.services.question_types import QuestionTypeDistributor
from studybuddy.services.text_extraction import TextExtractionError, extract_text

router = APIRouter(prefix="/questions", tags=["questions"])


class GenerateQuestionsBody(BaseModel):
    content: str
    count: int
    subject: SubjectCategory = SubjectCategory.OTHER
    topic_name: str = ""


def _run_generation(
    orchestrator: GenerationOrchestrator,
    content: str,
    count: int,
    subject: SubjectCategory,
    topic_name: str,
) -> GenerationResult:
    if count > config.MAX_QUESTIONS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"At most {config.MAX_QUESTIONS_PER_REQUEST} questions can be generated per request",
        )
    request = GenerationRequest(content=content, requested_count=count, subject=subject, topic_name=topic_name)
    try:
        return orchestrator.generate(request)
    except GenerationPreconditionError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/generate", response_model=GenerationResult)
@ai_generation_limit()
def generate_questions(
    request: Request,
    body: GenerateQuestionsBody,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Generate validated questions from study material"""
    return _run_generation(orchestrator, body.content, body.count, body.subject, body.topic_name)


@router.post("/generate-from-file", response_model=GenerationResult)
@ai_generation_limit()
def generate_questions_from_file(
    request: Request,
    file: UploadFile = File(...),
    count: int = Form(...),
    subject: SubjectCategory = Form(SubjectCategory.OTHER),
    topic_name: str = Form(""),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Generate questions from an uploaded PDF or text file"""
    try:
        content = extract_text(file.filename, file.file.read())
    except TextExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not content:
        raise HTTPException(status_code=400, detail="Could not extract any text from the file")
    return _run_generation(orchestrator, content, count, subject, topic_name or file.filename)


@router.get("/subjects")
@general_api_limit()
def list_subjects(request: Request) -> List[dict]:
    distributor = QuestionTypeDistributor()
    subjects = []
    for subject in SubjectCategory:
        ratio = distributor.ratio(subject)
        subjects.append({
            "id": subject.value,
            "display_name": subject.display_name,
            "multiple_choice_ratio": ratio.multiple_choice,
            "reasoning": ratio.reasoning,
        })
    return subjects
