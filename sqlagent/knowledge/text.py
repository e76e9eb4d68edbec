"""Keyword extraction and relevance scoring for knowledge search."""

import re

STOPWORDS = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "can", "to", "of", "in", "for",
        "on", "with", "at", "by", "from", "as", "into", "through", "during",
        "before", "after", "above", "below", "between", "under", "again",
        "further", "then", "once", "here", "there", "when", "where", "why",
        "how", "all", "each", "few", "more", "most", "other", "some", "such",
        "no", "nor", "not", "only", "own", "same", "so", "than", "too",
        "very", "just", "and", "but", "if", "or", "because", "until", "while",
        "what", "which", "who", "whom", "this", "that", "these", "those",
        "am", "i", "me", "my", "myself", "we", "our", "ours", "ourselves",
        "you", "your", "yours", "yourself", "yourselves", "he", "him", "his",
        "himself", "she", "her", "hers", "herself", "it", "its", "itself",
        "they", "them", "their", "theirs", "themselves", "show", "get", "find",
        "list", "give", "tell", "many", "much",
    }
)

_TOKEN_SPLIT = re.compile(r"[^a-zA-Z0-9]+")
_SQL_TABLE_PATTERNS = [
    re.compile(rf"\b{keyword}\s+[`\"\[]?(\w+)[`\"\]]?", re.IGNORECASE)
    for keyword in ("FROM", "JOIN", "UPDATE", "INTO")
]


def extract_keywords(text: str) -> list[str]:
    """Lowercase tokens longer than two characters, stopwords removed."""
    return [
        word
        for word in _TOKEN_SPLIT.split(text.lower())
        if len(word) > 2 and word not in STOPWORDS
    ]


def prepare_search_term(question: str) -> str:
    return " ".join(extract_keywords(question))


def extract_tables_from_sql(sql: str) -> list[str]:
    """Distinct table names following FROM, JOIN, UPDATE and INTO."""
    tables: list[str] = []
    for pattern in _SQL_TABLE_PATTERNS:
        for name in pattern.findall(sql):
            if name not in tables:
                tables.append(name)
    return tables


def relevance_score(query_keywords: list[str], text: str) -> float:
    """
    Score candidate text against query keywords.

    Each (query token, candidate token) pair adds 2 on an exact match or 1
    when either token contains the other. The sum is normalised by the
    longer of the two token lists.
    """
    candidate_keywords = extract_keywords(text)
    if not query_keywords or not candidate_keywords:
        return 0.0

    score = 0
    for query_word in query_keywords:
        for candidate_word in candidate_keywords:
            if query_word == candidate_word:
                score += 2
            elif query_word in candidate_word or candidate_word in query_word:
                score += 1

    return score / max(len(query_keywords), len(candidate_keywords))
