"""Main entry point for the Manual Navigator API."""
import logging
import time
import tiktoken
from typing import List
from fastapi import FastAPI, HTTPException, UploadFile, File, Query
from fastapi.middleware.cors import CORSMiddleware

from config import PORT, CORS_ORIGINS, LOG_FORMAT, LOG_LEVEL
from logger import setup_logging
from models.api import (
    QueryRequest,
    QueryResponse,
    ResponseMetadata,
    TokenUsage,
    ManualSummary,
    KnowledgeResponse,
    KnowledgeItemModel,
    CategoryView,
    SearchResponse,
    SearchResultModel,
    TroubleshootRequest,
    TroubleshootResponse,
    ErrorLookupRequest,
    ErrorLookupResponse,
    AssistMetadata,
)
from models.knowledge import CATEGORIES, PROCEDURES, ERRORS, count_items
from models.session import ManualSession
from services.document_loader import DocumentLoader
from services.text_structurer import TextStructurer
from services.compression_client import CompressionClient
from services.compression_adapter import CompressionAdapter
from services.categorizer import KnowledgeCategorizer
from services.knowledge_extractor import KnowledgeExtractor
from services.context_builder import ContextBuilder
from services.manual_library import ManualLibrary
from services.troubleshooter import Troubleshooter, AssistAnswer
from services.llm_client import LLMClient, LLMClientError, ImageData
from services.errors import ParseFailure, InvalidResponseStructure, ExtractionInProgress

# Initialize logging
logger = logging.getLogger(__name__)

DEFAULT_IMAGE_QUESTION = "What can you tell me about this image?"

# Initialize FastAPI app
app = FastAPI(
    title="Manual Navigator",
    description="Product manual assistant: knowledge extraction and grounded chat",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
library: ManualLibrary = None
document_loader: DocumentLoader = None
knowledge_extractor: KnowledgeExtractor = None
context_builder: ContextBuilder = None
llm_client: LLMClient = None
troubleshooter: Troubleshooter = None
tiktoken_encoder = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global library, document_loader, knowledge_extractor, context_builder
    global llm_client, troubleshooter, tiktoken_encoder

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info("Initializing Manual Navigator services...")

    try:
        tiktoken_encoder = tiktoken.get_encoding("o200k_base")
        logger.info("Initialized tiktoken encoder (o200k_base)")

        llm_client = LLMClient()

        document_loader = DocumentLoader(TextStructurer(), llm_client=llm_client)
        knowledge_extractor = KnowledgeExtractor(
            CompressionAdapter(CompressionClient()),
            KnowledgeCategorizer(llm_client)
        )
        context_builder = ContextBuilder()
        troubleshooter = Troubleshooter(llm_client)
        library = ManualLibrary()

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Manual Navigator API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "manual-navigator",
        "version": "1.0.0"
    }


@app.get("/manuals", response_model=List[ManualSummary])
def list_manuals() -> List[ManualSummary]:
    return [_summary(session) for session in library.list()]


@app.post("/manuals", response_model=ManualSummary)
def upload_manual(file: UploadFile = File(...)) -> ManualSummary:
    """
    Load an uploaded PDF manual and extract its knowledge index.

    A failed extraction does not fail the upload: the manual is kept and
    its summary reports status "failed" with the error message.
    """
    filename = file.filename or "manual.pdf"
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Please upload a valid PDF file")

    data = file.file.read()
    try:
        pages = document_loader.load_bytes(data)
    except Exception as e:
        logger.error(f"Failed to load PDF {filename}: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail=f"Error processing PDF: {str(e)}")

    session = library.add(filename, pages)

    try:
        knowledge_extractor.extract(session)
    except (ParseFailure, InvalidResponseStructure, LLMClientError) as e:
        logger.warning(f"Manual {session.manual_id} stored without knowledge index: {e}")

    return _summary(session)


@app.delete("/manuals/{manual_id}")
def delete_manual(manual_id: str):
    if not library.remove(manual_id):
        raise HTTPException(status_code=404, detail=f"Manual not found: {manual_id}")
    return {"status": "deleted", "manual_id": manual_id}


@app.post("/manuals/{manual_id}/extract", response_model=KnowledgeResponse)
def extract_manual(manual_id: str) -> KnowledgeResponse:
    """Re-run knowledge extraction for a loaded manual."""
    session = _get_session(manual_id)

    try:
        knowledge_extractor.extract(session)
    except ExtractionInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (ParseFailure, InvalidResponseStructure) as e:
        raise HTTPException(
            status_code=502,
            detail={"error": {"code": type(e).__name__, "message": str(e)}}
        )
    except LLMClientError as e:
        raise _llm_http_error(e)

    return _knowledge(session)


@app.get("/manuals/{manual_id}/knowledge", response_model=KnowledgeResponse)
def get_knowledge(manual_id: str) -> KnowledgeResponse:
    return _knowledge(_get_session(manual_id))


@app.get("/search", response_model=SearchResponse)
def search_manuals(q: str = Query(..., min_length=1)) -> SearchResponse:
    """Search page text across every loaded manual."""
    hits = library.search(q)
    return SearchResponse(
        query=q,
        total=len(hits),
        results=[
            SearchResultModel(
                manual_id=hit.manual_id,
                manual_name=hit.manual_name,
                page_num=hit.page_num,
                snippet=hit.snippet,
                image_ref=hit.image_ref
            )
            for hit in hits
        ]
    )


@app.post("/query", response_model=QueryResponse)
def query_endpoint(request: QueryRequest) -> QueryResponse:
    """
    Answer a question about a manual.

    1. Detect the intent category and build the retrieval context
    2. Count the category towards the manual's usage stats
    3. Generate the answer, with the attached image if any

    Raises:
        HTTPException: For validation errors or API failures
    """
    start_time = time.time()

    has_image = request.image is not None
    question = request.question.strip() if request.question else ""
    if not question and not has_image:
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    session = _resolve_session(request.manual_id)
    if session.is_extracting:
        raise HTTPException(status_code=409, detail="Knowledge extraction in progress, try again shortly")

    session.record_query()

    try:
        logger.info(f"Processing query: {question[:100]}...")

        context = context_builder.build_context(question, session.buckets, session.pages)
        session.record_category(context.category)

        context_tokens = len(tiktoken_encoder.encode(context.text)) if context.text else 0

        prompt = LLMClient.build_prompt(
            query=question or DEFAULT_IMAGE_QUESTION,
            context=context.text,
            category=context.category,
            has_image=has_image
        )

        image = None
        if has_image:
            image = ImageData(base64=request.image.base64, mime_type=request.image.mime_type)

        llm_response = llm_client.generate(prompt, image=image)
        session.record_resolved()

        total_latency_ms = int((time.time() - start_time) * 1000)

        response = QueryResponse(
            answer=llm_response.text,
            metadata=ResponseMetadata(
                model_used=llm_response.model_used,
                category=context.category,
                context_source=context.source,
                context_tokens=context_tokens,
                tokens=TokenUsage(
                    input=llm_response.tokens_input,
                    output=llm_response.tokens_output
                ),
                latency_ms=total_latency_ms
            )
        )

        logger.info(f"Query processed successfully in {total_latency_ms}ms")
        return response

    except LLMClientError as e:
        logger.error(f"LLM client error: {e.error.message}")
        raise _llm_http_error(e)
    except InvalidResponseStructure as e:
        logger.error(f"LLM response error: {e}")
        raise HTTPException(
            status_code=502,
            detail={"error": {"code": "InvalidResponseStructure", "message": str(e)}}
        )
    except Exception as e:
        logger.error(f"Unexpected error processing query: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Internal server error: {str(e)}"
        )


@app.post("/manuals/{manual_id}/troubleshoot", response_model=TroubleshootResponse)
def troubleshoot(manual_id: str, request: TroubleshootRequest) -> TroubleshootResponse:
    """Generate a troubleshooting workflow for an issue class."""
    session = _ready_session(manual_id)

    try:
        answer = troubleshooter.build_guide(request.issue, session.buckets)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMClientError as e:
        raise _llm_http_error(e)
    except InvalidResponseStructure as e:
        raise HTTPException(
            status_code=502,
            detail={"error": {"code": "InvalidResponseStructure", "message": str(e)}}
        )

    session.record_category(PROCEDURES)
    return TroubleshootResponse(
        issue=request.issue,
        label=answer.title,
        guide=answer.text,
        metadata=_assist_metadata(answer)
    )


@app.post("/manuals/{manual_id}/error-lookup", response_model=ErrorLookupResponse)
def error_lookup(manual_id: str, request: ErrorLookupRequest) -> ErrorLookupResponse:
    """Explain an error code from the manual's diagnostics."""
    session = _ready_session(manual_id)

    try:
        answer = troubleshooter.lookup_error_code(request.code, session.buckets)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMClientError as e:
        raise _llm_http_error(e)
    except InvalidResponseStructure as e:
        raise HTTPException(
            status_code=502,
            detail={"error": {"code": "InvalidResponseStructure", "message": str(e)}}
        )

    session.record_category(ERRORS)
    return ErrorLookupResponse(code=answer.title, answer=answer.text, metadata=_assist_metadata(answer))


def _ready_session(manual_id: str) -> ManualSession:
    session = _get_session(manual_id)
    if session.is_extracting:
        raise HTTPException(status_code=409, detail="Knowledge extraction in progress, try again shortly")
    return session


def _assist_metadata(answer: AssistAnswer) -> AssistMetadata:
    return AssistMetadata(
        model_used=answer.response.model_used,
        context_items=answer.context_items,
        tokens=TokenUsage(
            input=answer.response.tokens_input,
            output=answer.response.tokens_output
        ),
        latency_ms=answer.response.latency_ms
    )


def _get_session(manual_id: str) -> ManualSession:
    session = library.get(manual_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Manual not found: {manual_id}")
    return session


def _resolve_session(manual_id) -> ManualSession:
    """Explicit manual id, else the most recently added manual."""
    if manual_id:
        return _get_session(manual_id)
    manuals = library.list()
    if not manuals:
        raise HTTPException(status_code=404, detail="No manual loaded")
    return manuals[-1]


def _llm_http_error(e: LLMClientError) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": {
                "code": e.error.code,
                "message": e.error.message,
                "details": e.error.details
            }
        }
    )


def _summary(session: ManualSession) -> ManualSummary:
    return ManualSummary(
        id=session.manual_id,
        name=session.name,
        page_count=session.page_count,
        date_added=session.date_added.isoformat(),
        status=session.status.value,
        total_items=count_items(session.buckets),
        last_error=session.last_error,
        total_queries=session.total_queries,
        resolved_queries=session.resolved_queries
    )


def _knowledge(session: ManualSession) -> KnowledgeResponse:
    return KnowledgeResponse(
        manual_id=session.manual_id,
        status=session.status.value,
        total_items=count_items(session.buckets),
        categories=[
            CategoryView(
                key=key,
                label=category.label,
                color=category.color,
                instruction=category.instruction,
                state=session.category_state(key),
                items=[
                    KnowledgeItemModel(page=item.page, text=item.text)
                    for item in session.buckets.get(key, [])
                ]
            )
            for key, category in CATEGORIES.items()
        ]
    )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Manual Navigator API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
