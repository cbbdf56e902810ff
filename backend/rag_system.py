import logging
import threading
from concurrent.futures import Future
from enum import Enum
from typing import List, Optional, Dict, Any

from ai_generator import GenerativeClient, GenerationConfig
from document_store import DocumentStore
from embedding_client import EmbeddingClient
from exceptions import LoadError, ServiceNotInitialized
from models import RAGResponse, SearchResult, Source
from vector_store import VectorIndex

# Set up logging
logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class RAGOrchestrator:
    """Process-wide retrieval-augmented answering service for compliance questions"""

    PROMPT_TEMPLATE = """You are an AI specialized in regulations, laws, and compliance. You have expertise in ISO standards, cybersecurity regulations, and general compliance frameworks.

If the provided context contains specific information about SATIM's implementation or policies, use that information. However, you can also provide general knowledge about regulations and laws even if they're not specifically mentioned in the context.

Context:
{context}

Question: {question}

Please provide a clear and concise answer that:
1. Directly addresses the question
2. Uses specific information from the context if available
3. Includes relevant regulatory knowledge
4. Keeps the response medium-length (2-3 paragraphs)
5. Avoids markdown formatting
6. Uses simple, clear language
7. Focuses on practical information

Format your response as plain text with:
- A clear opening statement
- Supporting details in simple paragraphs
- No bullet points or special formatting
- No technical jargon unless necessary

Answer:"""

    NO_CONTEXT = "No specific context available."
    UNKNOWN_SOURCE = "Unknown Source"
    STRICT_REFUSAL = (
        "I could not find any document in the compliance knowledge base that addresses this question, "
        "so I cannot give a grounded answer."
    )

    _instance: Optional['RAGOrchestrator'] = None
    _instance_lock = threading.Lock()

    def __init__(self, config,
                 document_store: Optional[DocumentStore] = None,
                 embedding_client: Optional[EmbeddingClient] = None,
                 generative_client: Optional[GenerativeClient] = None,
                 vector_index: Optional[VectorIndex] = None):
        self.config = config

        # Build collaborators from config unless supplied
        self.generation_config = GenerationConfig(
            temperature=config.TEMPERATURE,
            top_k=config.TOP_K,
            top_p=config.TOP_P,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        )
        self.generative_client = generative_client or GenerativeClient(
            config.ANTHROPIC_API_KEY, config.ANTHROPIC_MODEL, self.generation_config
        )
        self.document_store = document_store or DocumentStore(
            config.DOCS_PATH, config.CHUNK_SIZE, config.CHUNK_OVERLAP
        )
        if vector_index is None:
            vector_index = VectorIndex(
                embedding_client or EmbeddingClient(config.EMBEDDING_MODEL),
                max_results=config.MAX_RESULTS,
                snapshot_path=config.SNAPSHOT_PATH or None,
            )
        self.vector_index = vector_index

        self._state = ServiceState.UNINITIALIZED
        self._last_error: Optional[BaseException] = None
        self._init_future: Optional[Future] = None
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls, config=None, retry: bool = False, **components) -> 'RAGOrchestrator':
        """
        Return the process-wide orchestrator, initializing it on first use.

        Concurrent first callers share one initialization run. Components are
        only used when the instance is created by this call.

        Raises:
            ConfigurationError: If a provider credential is missing; no instance is kept
            Exception: The recorded initialization error when initialization failed
        """
        with cls._instance_lock:
            if cls._instance is None:
                if config is None:
                    from config import config as default_config
                    config = default_config
                cls._instance = cls(config, **components)
            instance = cls._instance
        return instance.initialize(retry=retry)

    @classmethod
    def current(cls) -> Optional['RAGOrchestrator']:
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Forget the process-wide instance (explicit restart)"""
        with cls._instance_lock:
            cls._instance = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    def initialize(self, retry: bool = False) -> 'RAGOrchestrator':
        """
        Run initialization at most once; later and concurrent callers wait
        for the same run. A failed run is only repeated when retry is set.
        """
        with self._lock:
            start = (
                self._state == ServiceState.UNINITIALIZED
                or (self._state == ServiceState.FAILED and retry)
            )
            if start:
                self._state = ServiceState.INITIALIZING
                self._last_error = None
                self._init_future = Future()
            future = self._init_future

        if start:
            self._run_initialization(future)

        future.result()
        return self

    def _run_initialization(self, future: Future):
        logger.info("Initializing RAG service")
        try:
            self._build_index()
        except Exception as e:
            logger.error(f"Failed to initialize RAG service: {e}", exc_info=True)
            with self._lock:
                self._state = ServiceState.FAILED
                self._last_error = e
            future.set_exception(e)
        except BaseException as e:
            # Interrupted: fail the run so waiting callers are released, then propagate
            with self._lock:
                self._state = ServiceState.FAILED
                self._last_error = e
            future.set_exception(e)
            raise
        else:
            with self._lock:
                self._state = ServiceState.READY
            logger.info(f"RAG service ready with {self.vector_index.count()} indexed documents")
            future.set_result(self)

    def _build_index(self):
        index = self.vector_index
        index.clear()

        if index.snapshot_path:
            try:
                index.load()
            except LoadError as e:
                logger.warning(f"Snapshot unavailable, starting from an empty index: {e}")
                index.clear()

        if index.count() > 0:
            logger.info(f"Restored {index.count()} documents from snapshot")
            return

        documents = self.document_store.load_documents()
        index.add_documents(documents)
        logger.info("Documents loaded and indexed successfully")

        if index.snapshot_path:
            try:
                index.save()
            except (OSError, TypeError, ValueError) as e:
                logger.warning(f"Could not save vector index snapshot: {e}")

    def query(self, question: str, k: Optional[int] = None) -> RAGResponse:
        """
        Answer a question from the indexed compliance documents.

        Args:
            question: The user's question
            k: Number of snippets to retrieve; defaults to MAX_RESULTS

        Returns:
            RAGResponse with the answer and one source per retrieved snippet

        Raises:
            ServiceNotInitialized: If the service is not ready
            ProviderError: If embedding or generation fails
        """
        if self._state != ServiceState.READY:
            raise ServiceNotInitialized(f"RAG service not initialized (state: {self._state.value})")

        limit = self.config.MAX_RESULTS if k is None else k
        results = self.vector_index.search(question, limit)

        if self.config.STRICT_RETRIEVAL:
            results = [r for r in results if r.score >= self.config.MIN_SIMILARITY]
            if not results:
                logger.warning("No sources above the similarity threshold; refusing to answer")
                return RAGResponse(answer=self.STRICT_REFUSAL, sources=[])

        if not results:
            logger.warning("No context retrieved for question; answering from general knowledge")

        prompt = self.build_prompt(question, results)
        answer = self.generative_client.generate(prompt, self.generation_config)

        sources = [Source.from_search_result(r, self.UNKNOWN_SOURCE) for r in results]
        return RAGResponse(answer=answer, sources=sources)

    def build_prompt(self, question: str, results: List[SearchResult]) -> str:
        if results:
            context = "\n\n".join(r.document.content for r in results)
        else:
            context = self.NO_CONTEXT
        return self.PROMPT_TEMPLATE.format(context=context, question=question)

    def get_status(self) -> Dict[str, Any]:
        """Summary of service state for status displays"""
        return {
            "state": self._state.value,
            "document_count": self.vector_index.count(),
            "error": str(self._last_error) if self._last_error else None,
        }
