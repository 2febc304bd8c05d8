# casereview/reasoning/prompts.py
"""
Prompt templates. Each builder is parameterised only by case data and
prior-stage output; nothing here knows about caching or the UI.
"""
from __future__ import annotations

from typing import Dict, List, Sequence

from casereview.reasoning.state import ReasoningState

Messages = List[Dict[str, str]]


def _lines(items: Sequence[str]) -> str:
    return "\n".join(items)


def symptoms_messages(state: ReasoningState) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are an assistant specialised in clinical psychology. "
                "Read the patient information and extract every relevant symptom."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Patient information:\n{state.case_text}\n\n"
                "List every symptom mentioned, one per line."
            ),
        },
    ]


def criteria_messages(state: ReasoningState) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are a clinical psychology expert with thorough knowledge of the DSM-5. "
                "Compare the symptoms against DSM-5 criteria and determine which disorders "
                "they could correspond to."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Patient symptoms:\n{_lines(state.symptoms)}\n\n"
                "State which DSM-5 criteria these symptoms meet and the associated "
                "disorders, one finding per line."
            ),
        },
    ]


def diagnoses_messages(state: ReasoningState) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are an experienced clinical psychologist. Formulate possible "
                "diagnoses from the symptoms and the DSM-5 analysis."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Patient symptoms:\n{_lines(state.symptoms)}\n\n"
                f"DSM-5 analysis:\n{_lines(state.criteria_findings)}\n\n"
                "List the possible diagnoses with their ICD-10 F codes, one per line, "
                "most likely first."
            ),
        },
    ]


def treatments_messages(state: ReasoningState) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are a clinical psychologist with wide experience in evidence-based "
                "treatment. Suggest appropriate treatments for the diagnoses presented."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Diagnoses:\n{_lines(state.candidate_diagnoses)}\n\n"
                "Recommend evidence-based treatments, including psychotherapeutic "
                "approaches and pharmacological considerations, one per line, most "
                "important first."
            ),
        },
    ]


LEGACY_SCHEMA_DESCRIPTION = """
You must return a single JSON object with the following structure:

{
  "symptoms": [string, ...],
  "criteria_findings": [string, ...],
  "diagnoses": [
    {"name": string, "description": string, "confidence": "high" | "medium" | "low"},
    ...
  ],
  "treatments": [string, ...]
}

Order diagnoses and treatments from most to least likely / important.
"""


def legacy_messages(case_text: str) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are a specialised clinical psychologist who provides analyses in JSON. "
                "Analyse the patient data and give a professional assessment.\n\n"
                "Do NOT invent details that are not clearly implied. "
                "Leave lists empty if information is missing."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Patient data:\n{case_text}\n\n"
                f"{LEGACY_SCHEMA_DESCRIPTION}\n"
                "Return ONLY the JSON object, with no additional commentary."
            ),
        },
    ]


GROUNDING_SYSTEM_PROMPT = (
    "You are a clinical psychology assistant helping a clinician review a single case. "
    "Use a professional but accessible tone and base answers on scientific evidence. "
    "Avoid speculation and say clearly when the data is insufficient for a conclusion.\n\n"
    "If your answer changes the analysis, you MAY append one fenced ```json block with "
    'any of the keys "symptoms", "criteria_findings", "diagnoses", "treatments", each a '
    "list of NEW entries to add. Omit the block otherwise."
)


def summarize_state(state: ReasoningState) -> str:
    """
    Compact textual summary of the analysis so far, one section per
    populated stage.
    """
    sections = []
    if state.symptoms:
        sections.append("Identified symptoms:\n" + _lines(state.symptoms))
    if state.criteria_findings:
        sections.append("DSM-5 findings:\n" + _lines(state.criteria_findings))
    if state.candidate_diagnoses:
        sections.append("Possible diagnoses:\n" + _lines(state.candidate_diagnoses))
    if state.treatment_suggestions:
        sections.append("Treatment suggestions:\n" + _lines(state.treatment_suggestions))
    if not sections:
        return "No analysis available yet."
    return "\n\n".join(sections)


def grounding_user_message(question: str, state: ReasoningState) -> str:
    return (
        f"Patient data:\n{state.case_text}\n\n"
        f"Prior analysis:\n{summarize_state(state)}\n\n"
        f"Question: {question}\n\n"
        "Give a detailed answer based on the information available about this patient."
    )
