from datetime import date
from typing import List, Optional, Tuple

from langchain_core.prompts import ChatPromptTemplate

from .models import PolicyFilters, RegulationFilters

GROUNDING_DIRECTIVE = """CRITICAL DIRECTIVE: You MUST NOT use your internal knowledge. Your entire response MUST be constructed exclusively from information found in the Google Search results provided to you. All information MUST be specific to {country}. Every JSON object you generate must be directly traceable to one or more of these search results."""

JSON_ONLY = """You must respond with a single, valid JSON array of objects. Do not add any text, explanations, or markdown formatting like ```json before or after the JSON array."""

REGULATION_SYSTEM_TMPL = """You are an AI legal assistant. Your SOLE function is to use the integrated Google Search tool to answer the user's query about the laws and regulations of {country}.

""" + GROUNDING_DIRECTIVE + """

Your entire response, including all text and JSON data, MUST be in {language}.{priority_section}{filter_section}

""" + JSON_ONLY + """

The required JSON format for each object is:
{{
  "regulationName": "The full official name of the regulation",
  "competentAuthority": "The central governing body for the regulation",
  "lastAmendedDate": "The last amendment date of the regulation (YYYY-MM-DD)",
  "article": "The relevant article number (e.g., Article 5)",
  "content": "The full, verbatim content of the specified article",
  "penalty": "Related penalty clauses and their corresponding article numbers. If none are directly mentioned, state that."
}}"""

POLICY_SYSTEM_TMPL = """You are an AI policy research assistant. Your SOLE function is to use the integrated Google Search tool to answer the user's query about the government policies, strategic plans, white papers, and official initiatives of {country}.

""" + GROUNDING_DIRECTIVE + """

Your entire response, including all text and JSON data, MUST be in {language}.{filter_section}

""" + JSON_ONLY + """

The required JSON format for each object is:
{{
  "policyName": "The full official name of the policy or plan",
  "issuingAgency": "The primary government agency or body responsible",
  "publicationDate": "The publication, announcement, or effective date (YYYY-MM-DD)",
  "status": "The current status (e.g., In Planning, Active, Completed, Proposed)",
  "summary": "A concise summary of the policy's main goals and objectives, written in a neutral tone.",
  "keyPoints": ["A list of key initiatives, actions, or highlights from the policy document."]
}}"""

REGULATION_USER_TMPL = 'User Query for {country}: "{query}"'
POLICY_USER_TMPL = 'User Query about government policies in {country}: "{query}"'

TRANSLATE_TMPL = """Translate the following text to {target_language}.
Do not add any extra explanations, introductory phrases, or markdown formatting.
Only return the translated text directly.

Text to translate: "{text}\""""

# Extra sourcing rules for jurisdictions with an authoritative official database.
JURISDICTION_PRIORITY = {
    "Taiwan": """
CRITICAL INSTRUCTIONS FOR TAIWAN LAW:
1. You MUST give the highest priority to information from the official Taiwan (Republic of China) Laws & Regulations Database (全國法規資料庫) at https://law.moj.gov.tw/.
2. When generating the "content" and "penalty" fields, you MUST meticulously replicate the specific formatting structure of Taiwanese legal text. Pay close attention to the hierarchy and correct representation:
   - 條: The basic unit, e.g., "第Ｏ條".
   - 項: A paragraph within a 條. It starts on a new line with a two-character indentation and no number.
   - 款: A subdivision of a 項, prefixed with CJK numerals like "一、", "二、", "三、".
   - 目: A subdivision of a 款, prefixed with parenthesized CJK numerals like "（一）", "（二）", "（三）".
   - 細目: A further subdivision of a 目, prefixed with Arabic numerals like "1.", "2.", "3.".
   It is crucial that you reproduce this structure verbatim.
""",
}

FILTER_HEADER = """
ADDITIONAL FILTERING CRITERIA:
You MUST strictly adhere to the following filters when searching and constructing your JSON response. These are not suggestions, but mandatory constraints on the output:"""


def _date_range_line(field: str, date_from: Optional[date], date_to: Optional[date]) -> Optional[str]:
    if date_from and date_to:
        return f'The "{field}" field in the JSON output MUST be a date between {date_from.isoformat()} and {date_to.isoformat()}, inclusive.'
    if date_from:
        return f'The "{field}" field in the JSON output MUST be a date on or after {date_from.isoformat()}.'
    if date_to:
        return f'The "{field}" field in the JSON output MUST be a date on or before {date_to.isoformat()}.'
    return None


def regulation_filter_lines(filters: RegulationFilters) -> List[str]:
    lines = []
    if filters.competent_authority:
        lines.append(f'The "competentAuthority" field in the JSON output MUST exactly match "{filters.competent_authority}".')
    rng = _date_range_line("lastAmendedDate", filters.date_from, filters.date_to)
    if rng:
        lines.append(rng)
    return lines


def policy_filter_lines(filters: PolicyFilters) -> List[str]:
    lines = []
    rng = _date_range_line("publicationDate", filters.date_from, filters.date_to)
    if rng:
        lines.append(rng)
    if filters.include_keywords:
        lines.append(f'The search results and generated JSON MUST be directly and primarily related to the following keywords: "{filters.include_keywords}".')
    if filters.exclude_keywords:
        lines.append(f'You MUST explicitly EXCLUDE any policies or documents primarily focused on the following keywords: "{filters.exclude_keywords}".')
    return lines


def format_filter_section(lines: List[str]) -> str:
    if not lines:
        return ""
    return FILTER_HEADER + "".join(f"\n- {ln}" for ln in lines)


def priority_section(country: str) -> str:
    return JURISDICTION_PRIORITY.get(country, "")


_regulation_prompt = ChatPromptTemplate.from_messages([
    ("system", REGULATION_SYSTEM_TMPL),
    ("human", REGULATION_USER_TMPL),
])

_policy_prompt = ChatPromptTemplate.from_messages([
    ("system", POLICY_SYSTEM_TMPL),
    ("human", POLICY_USER_TMPL),
])

_translate_prompt = ChatPromptTemplate.from_template(TRANSLATE_TMPL)


def build_regulation_prompt(query: str, country: str, language: str, filters: RegulationFilters) -> Tuple[str, str]:
    """Return (system_instruction, contents) for a grounded regulation search."""
    system, human = _regulation_prompt.format_messages(
        query=query,
        country=country,
        language=language,
        priority_section=priority_section(country),
        filter_section=format_filter_section(regulation_filter_lines(filters)),
    )
    return system.content, human.content


def build_policy_prompt(query: str, country: str, language: str, filters: PolicyFilters) -> Tuple[str, str]:
    """Return (system_instruction, contents) for a grounded policy search."""
    system, human = _policy_prompt.format_messages(
        query=query,
        country=country,
        language=language,
        filter_section=format_filter_section(policy_filter_lines(filters)),
    )
    return system.content, human.content


def build_translation_prompt(text: str, target_language: str) -> str:
    (msg,) = _translate_prompt.format_messages(text=text, target_language=target_language)
    return msg.content
