import logging
from typing import List

from chromadb.utils import embedding_functions

from exceptions import ProviderError

# Set up logging
logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Turns text into a fixed-length embedding vector using a sentence-transformers model"""

    def __init__(self, model_name: str):
        self.model_name = model_name
        try:
            self._embedding_function = embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=model_name
            )
        except Exception as e:
            logger.error(f"Could not load embedding model {model_name}: {e}")
            raise ProviderError(f"Could not load embedding model '{model_name}': {e}") from e

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text. One attempt only; any failure is terminal for the call.

        Raises:
            ProviderError: If the embedding backend fails or returns nothing
        """
        try:
            vectors = self._embedding_function([text])
        except Exception as e:
            logger.error(f"Embedding call failed: {e}")
            raise ProviderError(f"Embedding failed: {e}") from e

        if vectors is None or len(vectors) == 0:
            raise ProviderError("Embedding provider returned no vector")

        return [float(value) for value in vectors[0]]
