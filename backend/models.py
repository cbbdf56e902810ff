from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional


@dataclass(frozen=True)
class Document:
    """A unit of knowledge-base text with its metadata"""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorDocument(Document):
    """A document together with its embedding vector"""
    embedding: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "metadata": dict(self.metadata),
            "embedding": list(self.embedding),
        }


@dataclass(frozen=True)
class SearchResult:
    """A stored document and its cosine similarity to a query"""
    document: VectorDocument
    score: float


@dataclass
class Source:
    """A retrieved snippet cited in an answer"""
    name: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    score: Optional[float] = None

    @classmethod
    def from_search_result(cls, result: SearchResult, default_name: str = "Unknown Source") -> 'Source':
        metadata = dict(result.document.metadata)
        return cls(
            name=metadata.get("source") or default_name,
            content=result.document.content,
            metadata=metadata,
            score=result.score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "content": self.content,
            "metadata": dict(self.metadata),
            "score": self.score,
        }


@dataclass
class RAGResponse:
    """An answer and the sources it was grounded on"""
    answer: str
    sources: List[Source] = field(default_factory=list)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class AssistantMessage:
    """One entry of an assistant conversation"""
    id: int
    role: MessageRole
    content: str
    timestamp: datetime
    sources: Optional[List[Source]] = None
    is_error: bool = False
