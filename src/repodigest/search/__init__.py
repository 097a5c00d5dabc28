"""Search — cosine ranking, similarity search, question answering."""

from repodigest.search.qa import QuestionAnswerer, is_commit_question
from repodigest.search.scoring import cosine_similarity, rank_by_similarity
from repodigest.search.similarity import SimilaritySearch
from repodigest.search.types import Answer, FileMatch

__all__ = [
    "Answer",
    "FileMatch",
    "QuestionAnswerer",
    "SimilaritySearch",
    "cosine_similarity",
    "is_commit_question",
    "rank_by_similarity",
]
