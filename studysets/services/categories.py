"""
Category naming helpers: turn generic LLM labels ("Basics", "Key Concepts")
into something that can be grouped across study sets.
"""
import re

GENERIC_CATEGORY_WORDS = [
    "fundamentals", "basics", "principles", "introduction", "concepts",
    "overview", "training", "analysis", "techniques", "methods",
    "theory", "practice", "management", "development", "design",
]

DOMAIN_KEYWORDS = [
    ("AI", ["artificial intelligence", "machine learning", "neural network", "deep learning", "nlp", "computer vision"]),
    ("Web", ["html", "css", "javascript", "web development", "frontend", "backend", "api"]),
    ("Database", ["sql", "database", "query", "nosql", "mongodb", "mysql", "postgresql"]),
    ("Security", ["encryption", "security", "cybersecurity", "firewall", "authentication", "vulnerability"]),
    ("Cloud", ["cloud", "aws", "azure", "gcp", "serverless", "microservices", "container", "docker"]),
    ("Network", ["network", "tcp/ip", "protocol", "routing", "switch", "packet", "dns"]),
    ("Mobile", ["mobile", "android", "ios", "swift", "kotlin", "react native", "flutter"]),
    ("Business", ["business", "marketing", "sales", "finance", "strategy", "management", "leadership"]),
    ("Data", ["data", "analytics", "big data", "visualization", "statistics", "dashboard", "metrics"]),
]

ALNUM_TOKEN_RE = re.compile(r"^[A-Z0-9]+$", re.IGNORECASE)


def is_generic_category(category: str) -> bool:
    lowered = category.lower()
    return len(category.split(" ")) <= 2 and any(word in lowered for word in GENERIC_CATEGORY_WORDS)


def _is_technical_term(word: str) -> bool:
    capitalized = len(word) > 2 and word[0].isupper()
    return capitalized or bool(ALNUM_TOKEN_RE.match(word))


def make_more_specific(question: str, category: str) -> str:
    if not is_generic_category(category):
        return category

    question_lower = question.lower()
    for domain, terms in DOMAIN_KEYWORDS:
        if any(term in question_lower for term in terms) and domain.lower() not in category.lower():
            return f"{domain} {category}"

    technical_terms = [w for w in question.split() if _is_technical_term(w)]
    if technical_terms:
        return f"{technical_terms[0]} {category}"
    return category


def topic_hint_for(question: str, category: str = None) -> str:
    """Short phrase used to template decoy options."""
    if category:
        return category
    return " ".join(question.split(" ")[:3])
