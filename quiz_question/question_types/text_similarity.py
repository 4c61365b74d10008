"""
Deterministic text similarity for short answers.

TF-IDF cosine similarity, falling back to Jaccard overlap when the
vectorizer cannot build a vocabulary (e.g. answers made only of stop words).
"""
import re

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity


def normalize_text(text: str) -> str:
    if not text:
        return ""

    text = text.lower()

    # Punctuation except apostrophes in contractions
    text = re.sub(r"[^\w\s']", ' ', text)
    return ' '.join(text.split())


def jaccard_similarity(text1: str, text2: str) -> float:
    words1 = set(text1.split())
    words2 = set(text2.split())

    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / len(words1 | words2)


def text_similarity(answer: str, expected: str) -> float:
    """Similarity of two texts in [0, 1]."""
    answer = normalize_text(answer)
    expected = normalize_text(expected)
    if not answer or not expected:
        return 0.0
    if answer == expected:
        return 1.0

    vectorizer = TfidfVectorizer(
        lowercase=True,
        stop_words='english',
        ngram_range=(1, 2),
        sublinear_tf=True
    )
    try:
        tfidf_matrix = vectorizer.fit_transform([answer, expected])
    except ValueError:
        return jaccard_similarity(answer, expected)

    similarity = cosine_similarity(tfidf_matrix[0:1], tfidf_matrix[1:2])[0][0]
    return float(max(0.0, min(1.0, similarity)))
