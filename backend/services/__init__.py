"""Services for Manual Navigator."""
from .errors import (
    PipelineError,
    TransportFailure,
    AuthFailure,
    ParseFailure,
    InvalidResponseStructure,
    ExtractionInProgress,
)
from .text_structurer import TextStructurer
from .compression_client import CompressionClient
from .compression_adapter import CompressionAdapter
from .response_parser import parse_json_from_response
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError, ImageData
from .categorizer import KnowledgeCategorizer
from .context_builder import ContextBuilder
from .document_loader import DocumentLoader
from .knowledge_extractor import KnowledgeExtractor
from .manual_library import ManualLibrary, SearchHit
from .troubleshooter import Troubleshooter, AssistAnswer, ISSUE_LABELS

__all__ = [
    'PipelineError', 'TransportFailure', 'AuthFailure', 'ParseFailure',
    'InvalidResponseStructure', 'ExtractionInProgress',
    'TextStructurer', 'CompressionClient', 'CompressionAdapter', 'parse_json_from_response',
    'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'ImageData',
    'KnowledgeCategorizer', 'ContextBuilder', 'DocumentLoader', 'KnowledgeExtractor',
    'ManualLibrary', 'SearchHit', 'Troubleshooter', 'AssistAnswer', 'ISSUE_LABELS',
]
