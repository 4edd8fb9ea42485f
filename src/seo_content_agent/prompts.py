"""Prompt builders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence


class _SafeDict(dict):
    def __missing__(self, key):
        return "{" + key + "}"


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


CONTENT_STRUCTURE: Dict[str, Dict[str, str]] = {
    "overview": {
        "sections": "2-3 main sections",
        "depth": "key points and basic explanations",
        "examples": "brief examples",
        "style": "concise and focused",
    },
    "detailed": {
        "sections": "3-4 main sections",
        "depth": "detailed explanations and analysis",
        "examples": "relevant examples and evidence",
        "style": "balanced and informative",
    },
    "comprehensive": {
        "sections": "4-6 main sections",
        "depth": "thorough analysis and context",
        "examples": "multiple examples and research citations",
        "style": "in-depth and authoritative",
    },
}
DEFAULT_LENGTH = "detailed"

ARTICLE_SYSTEM = (
    "You are a professional writer with years of experience writing for major publications. "
    "Write with a natural, engaging flow, use concrete examples and smooth transitions, "
    "and write in a distinctly human voice. Ensure all articles are complete with proper "
    "conclusions. Never truncate content."
)

ARTICLE_TEMPLATE = """Write a complete and engaging {tone} article about "{topic}".

Approach this as an experienced writer would:
- Write naturally and conversationally, as if for a leading publication
- Include specific examples and real-world applications
- Incorporate these keywords naturally: {keywords}
- Maintain a consistent {tone} tone throughout
- Aim for approximately 800-1000 words

Structure Guidelines:
- Start with an engaging introduction
- Develop {sections} with {depth}
- Support them with {examples}; keep the style {style}
- End with a closing section headed "Conclusion" that ties everything together
- Ensure all thoughts and sections are complete

Do not open with phrases such as "As an AI", "Here's", "Sure" or "Title:".
Do not echo these instructions, word counts, keywords or tone labels.
Make sure all sentences and sections are complete - no truncated thoughts or paragraphs."""

KEYWORD_SYSTEM = (
    "You are an SEO expert. Respond only with valid JSON objects and no additional text."
)

KEYWORD_TEMPLATE = """Generate 10 long-tail keywords for the niche: "{niche}".

For each keyword, assign a category such as informational, commercial, transactional or navigational.

Return ONLY a JSON object in exactly this format:
{{
  "keywords": [
    {{"keyword": "example long-tail keyword", "category": "informational"}}
  ]
}}"""

OPTIMIZE_SYSTEM = (
    "You are a JSON generator that ONLY outputs valid JSON objects with no additional text. "
    "Format your response as a valid JSON object with readabilityScore (number), seoScore "
    "(number), suggestions (array of strings), and optimizedContent (string)."
)

OPTIMIZE_TEMPLATE = """Analyze and optimize the following content for SEO.

Content to optimize:
{content}

Target Keywords: {keywords}

Return ONLY a JSON object with exactly these four keys:
{{
  "readabilityScore": number between 0 and 100,
  "seoScore": number between 0 and 100,
  "suggestions": ["suggestion 1", "suggestion 2"],
  "optimizedContent": "content here"
}}

Important: Keep the optimizedContent under 2000 characters and made of complete sentences.
Escape any double quotes inside optimizedContent."""

META_SYSTEM = (
    "You are an SEO expert specializing in writing meta descriptions that rank well in search "
    "engines while maintaining readability and engagement."
)

META_TEMPLATE = """Generate 3 unique, SEO-optimized meta descriptions for a webpage with the following details:

Title: {title}
Keywords: {keywords}
Content: {content}

Requirements:
1. Each description should be between 120-160 characters
2. Include the most important keywords naturally
3. Be compelling and action-oriented
4. Be unique and accurately represent the page content
5. Avoid keyword stuffing
6. Use active voice
7. Include a call-to-action when appropriate

Format: Return only the 3 descriptions, one per line, without any additional text or numbering."""

PLAGIARISM_SYSTEM = (
    "You are a plagiarism detection expert. Analyze the given text for potential plagiarism, "
    "quotes, and paraphrasing. Respond only with a valid JSON object."
)

PLAGIARISM_TEMPLATE = """Analyze this text for plagiarism, quotes, and paraphrasing:

{content}

Return ONLY a JSON object in exactly this format:
{{
  "originalityScore": number between 0 and 100,
  "similarityScore": number between 0 and 100,
  "sources": [
    {{"url": "source url", "title": "source title", "matchedText": "matched text", "similarityPercentage": number}}
  ],
  "detectedQuotes": [
    {{"text": "quoted text", "source": "source if known"}}
  ],
  "paraphrasedContent": [
    {{"text": "paraphrased text", "similarityScore": number, "possibleSource": "source if known"}}
  ]
}}"""


def join_keywords(keywords: str | Sequence[str]) -> str:
    if isinstance(keywords, str):
        parts = keywords.split(",")
    else:
        parts = list(keywords)
    return ", ".join(p.strip() for p in parts if str(p).strip())


def build_article_prompt(topic: str, keywords: str | Sequence[str], tone: str, length: str | None = None) -> PromptPair:
    structure = CONTENT_STRUCTURE.get((length or DEFAULT_LENGTH).lower(), CONTENT_STRUCTURE[DEFAULT_LENGTH])
    vars_map = _SafeDict(topic=topic, keywords=join_keywords(keywords), tone=tone, **structure)
    return PromptPair(system=ARTICLE_SYSTEM, user=ARTICLE_TEMPLATE.format_map(vars_map))


def build_keyword_prompt(niche: str) -> PromptPair:
    return PromptPair(system=KEYWORD_SYSTEM, user=KEYWORD_TEMPLATE.format_map(_SafeDict(niche=niche)))


def build_optimize_prompt(content: str, target_keywords: str | Sequence[str]) -> PromptPair:
    vars_map = _SafeDict(content=content, keywords=join_keywords(target_keywords))
    return PromptPair(system=OPTIMIZE_SYSTEM, user=OPTIMIZE_TEMPLATE.format_map(vars_map))


def build_meta_prompt(title: str, keywords: str | Sequence[str], content: str) -> PromptPair:
    vars_map = _SafeDict(title=title, keywords=join_keywords(keywords), content=content)
    return PromptPair(system=META_SYSTEM, user=META_TEMPLATE.format_map(vars_map))


def build_plagiarism_prompt(content: str) -> PromptPair:
    return PromptPair(system=PLAGIARISM_SYSTEM, user=PLAGIARISM_TEMPLATE.format_map(_SafeDict(content=content)))
