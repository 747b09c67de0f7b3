"""Prompt templates for planning, extraction and JSON repair."""

SYSTEM_PROMPT = (
    "You are an expert at planning web research and turning scraped web "
    "pages into clean, tabular JSON data."
)

PLANNER_PROMPT_TEMPLATE = """You are an AI planner for a generalized web scraping system. Take the user's request and output a structured JSON plan.

**STEPS**

1. Analyze intent: understand the explicit request AND the details users commonly expect for that kind of data (jobs: company, role, salary, description, apply link; restaurants: name, address, rating, cuisine, contact; products: title, price, brand, description, buy link).
2. Define a schema covering both the requested fields and reasonable implied fields. Keep field names concise and consistent.
3. Return a JSON object with exactly two keys:

{{
  "searchQuery": str,
  "extractionPrompt": str
}}

- searchQuery: one focused query for the Google Search API, broad enough to find reliable sources but precise enough to target authoritative directories, review platforms or relevant sites. Exclude LinkedIn and Reddit.
- extractionPrompt: detailed instructions for extracting structured records from scraped page text. List every schema field explicitly, use "N/A" when a field is missing, and stay reusable across varied website structures. Records must be suitable for a spreadsheet (flat objects, human-readable values).

Return ONLY the JSON object, no additional text.

**USER REQUEST**

{prompt}"""

EXTRACTION_PROMPT_TEMPLATE = """{extraction_prompt}

Here are the scraped pages:

{raw_content}

Return ONLY valid JSON: an array of flat objects, one per record, all using the same keys."""

REPAIR_PROMPT_TEMPLATE = """The following text was supposed to be valid JSON but could not be parsed.

**ERROR**

{error}

**TEXT**

{bad_output}

Correct it into valid JSON that keeps the same data. Return ONLY the corrected JSON, no additional text."""


def build_planner_prompt(user_prompt: str) -> str:
    return PLANNER_PROMPT_TEMPLATE.format(prompt=user_prompt)


def build_extraction_prompt(extraction_prompt: str, raw_content: str) -> str:
    """Build the per-chunk extraction prompt.

    Args:
        extraction_prompt: Instructions produced by the planner.
        raw_content: Serialized pages of one chunk.

    Returns:
        Formatted prompt string.
    """
    return EXTRACTION_PROMPT_TEMPLATE.format(
        extraction_prompt=extraction_prompt, raw_content=raw_content
    )


def build_repair_prompt(bad_output: str, error: str) -> str:
    return REPAIR_PROMPT_TEMPLATE.format(bad_output=bad_output, error=error)
