"""Tolerant parsing of LLM mutation and crossover output."""

import re
from typing import List

from loguru import logger

MUTATION_BLOCK_PATTERN = re.compile(
    r"---MUTATION \d+---\s*([\s\S]*?)(?=---MUTATION \d+---|$)",
    re.IGNORECASE
)
PARAGRAPH_SPLIT_PATTERN = re.compile(r"\n{2,}")
MIN_BLOCK_LENGTH = 10
MIN_PARAGRAPH_LENGTH = 20
NON_PROMPT_PREFIXES = ("#", "```")


def mutation_marker(index: int) -> str:
    """Delimiter line for the index-th template (1-based)."""
    return f"---MUTATION {index}---"


def format_blocks(count: int, placeholder: str) -> str:
    """Response layout showing one delimited block per requested template."""
    return "\n\n".join(
        f"{mutation_marker(i)}\n[{placeholder}]" for i in range(1, count + 1)
    )


def looks_like_prompt(text: str) -> bool:
    """Heuristic for a prose paragraph that can serve as a template."""
    return len(text) > MIN_PARAGRAPH_LENGTH and not text.startswith(NON_PROMPT_PREFIXES)


def parse_mutations(output: str, expected_count: int) -> List[str]:
    """Extract up to expected_count templates from delimited LLM output.

    Falls back to blank-line separated paragraphs when fewer delimited blocks
    than requested are found.
    """
    if expected_count <= 0:
        return []

    blocks = [match.strip() for match in MUTATION_BLOCK_PATTERN.findall(output)]
    blocks = [block for block in blocks if len(block) > MIN_BLOCK_LENGTH][:expected_count]
    if len(blocks) >= expected_count:
        return blocks

    paragraphs = [part.strip() for part in PARAGRAPH_SPLIT_PATTERN.split(output)]
    parsed = [part for part in paragraphs if looks_like_prompt(part)][:expected_count]
    logger.debug(
        f"Found {len(blocks)}/{expected_count} delimited blocks, "
        f"fallback parser produced {len(parsed)}"
    )
    return parsed
