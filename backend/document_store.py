import os
import re
import logging
from typing import List, Optional

from models import Document

# Set up logging
logger = logging.getLogger(__name__)


class DocumentStore:
    """Supplies the compliance knowledge corpus as content + metadata documents"""

    # Built-in corpus, always part of the knowledge base
    DEFAULT_DOCUMENTS = (
        Document(
            content="SATIM is committed to maintaining the highest standards of corporate governance and compliance.",
            metadata={"source": "SATIM GRC Guidelines", "page": 1},
        ),
        Document(
            content="All employees must follow the company's code of conduct and ethical guidelines.",
            metadata={"source": "SATIM Code of Conduct", "page": 2},
        ),
        Document(
            content="Regular risk assessments and audits are conducted to ensure compliance with regulatory requirements.",
            metadata={"source": "SATIM Risk Management Policy", "page": 3},
        ),
    )

    SUPPORTED_EXTENSIONS = (".txt", ".md")

    def __init__(self, docs_path: Optional[str] = None,
                 chunk_size: int = 800,
                 chunk_overlap: int = 100,
                 include_defaults: bool = True):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be between 0 and chunk_size")
        self.docs_path = docs_path
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.include_defaults = include_defaults

    def load_documents(self) -> List[Document]:
        """
        Load the full corpus: the built-in documents followed by every
        supported file under docs_path, chunked.

        Returns:
            Documents in a stable order (built-ins first, then files by name)
        """
        documents = list(self.DEFAULT_DOCUMENTS) if self.include_defaults else []

        if self.docs_path and os.path.isdir(self.docs_path):
            for file_name in sorted(os.listdir(self.docs_path)):
                file_path = os.path.join(self.docs_path, file_name)
                if not os.path.isfile(file_path):
                    continue
                if not file_name.lower().endswith(self.SUPPORTED_EXTENSIONS):
                    continue
                try:
                    documents.extend(self.process_file(file_path))
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"Skipping unreadable document {file_name}: {e}")
        elif self.docs_path:
            logger.info(f"Documents folder {self.docs_path} not found, using built-in corpus only")

        logger.info(f"Loaded {len(documents)} documents")
        return documents

    def process_file(self, file_path: str) -> List[Document]:
        """Read a text file and split it into chunk documents"""
        with open(file_path, "r", encoding="utf-8") as f:
            text = f.read()

        source = os.path.basename(file_path)
        chunks = self.chunk_text(text)
        logger.debug(f"Split {source} into {len(chunks)} chunks")
        return [
            Document(content=chunk, metadata={"source": source, "chunk": index})
            for index, chunk in enumerate(chunks)
        ]

    def chunk_text(self, text: str) -> List[str]:
        """
        Split text into sentence-aligned chunks of at most chunk_size
        characters, repeating up to chunk_overlap characters of trailing
        sentences at the start of the next chunk. A single sentence longer
        than chunk_size becomes its own chunk.
        """
        text = re.sub(r'\s+', ' ', text).strip()
        if not text:
            return []

        sentences = re.split(r'(?<=[.!?])\s+', text)

        chunks = []
        current: List[str] = []
        current_len = 0

        for sentence in sentences:
            added_len = len(sentence) + (1 if current else 0)
            if current and current_len + added_len > self.chunk_size:
                chunks.append(" ".join(current))

                # Carry trailing sentences forward as overlap
                overlap: List[str] = []
                overlap_len = 0
                for previous in reversed(current):
                    if overlap_len + len(previous) > self.chunk_overlap:
                        break
                    overlap.insert(0, previous)
                    overlap_len += len(previous) + 1

                current = overlap
                current_len = len(" ".join(current))
                added_len = len(sentence) + (1 if current else 0)
                if current and current_len + added_len > self.chunk_size:
                    current = []
                    current_len = 0
                    added_len = len(sentence)

            current.append(sentence)
            current_len += added_len

        if current:
            chunks.append(" ".join(current))

        return chunks
