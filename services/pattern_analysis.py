"""
Pattern Analysis Service
Schema-constrained LLM pass over derived intake metrics.

The model only ever sees aggregated statistics and short keyword tokens,
never raw logs. Its output is validated against a fixed schema; anything
that does not fit is dropped. No failure in here propagates to the caller.
"""

import json
import logging
from typing import List, Dict, Any, Optional, Literal, Union
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import settings, analysis_config
from services.llm_service import LLMService, llm_service
from tools.intake_metrics import IntakeMetricsBundle
from tools.sufficiency import SufficiencyLevel, assess_coverage, is_sufficient_for_analysis


logger = logging.getLogger(__name__)


SYSTEM_PROMPT_VERSION = "2024-06-intake-patterns-v1"

Confidence = Literal["low", "moderate", "high"]

_JSON_DECODER = json.JSONDecoder()


# ==================== OUTPUT SCHEMA ====================

class MedicationPattern(BaseModel):
    """Pattern in intake behaviour for one medication"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["irregular_intake", "timing_inconsistency", "observation_cluster"]
    medication_id: Union[int, str] = Field(alias="medicationId")
    context: str = Field(max_length=analysis_config.MAX_FINDING_CONTEXT_LENGTH)
    confidence: Confidence


class AdherenceSignal(BaseModel):
    """Deviation from the expected intake pattern"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    signal: Literal["missed_streak", "low_adherence", "inconsistent_pattern"]
    medication_id: Union[int, str] = Field(alias="medicationId")
    severity: Literal["low", "moderate"]


class ObservationAssociation(BaseModel):
    """Temporal association between an observation keyword and intake"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    observation: str = Field(min_length=1, max_length=64)
    temporal_relation: Literal["within_24_hours", "same_day", "unclear"] = Field(alias="temporalRelation")
    confidence: Confidence


_FINDING_FIELDS = (
    ("medicationPatterns", MedicationPattern),
    ("adherenceSignals", AdherenceSignal),
    ("observationAssociations", ObservationAssociation),
)


@dataclass
class DataQuality:
    logs_in_window: int
    sufficiency_level: SufficiencyLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logs_in_window": self.logs_in_window,
            "sufficiency_level": self.sufficiency_level.value,
        }


@dataclass
class AIPatternAnalysisResult:
    """Findings for one medication; findings are plain dicts in snake_case"""
    data_quality: DataQuality
    medication_patterns: List[Dict[str, Any]] = field(default_factory=list)
    adherence_signals: List[Dict[str, Any]] = field(default_factory=list)
    observation_associations: List[Dict[str, Any]] = field(default_factory=list)
    analysis_attempted: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.medication_patterns or self.adherence_signals or self.observation_associations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_patterns": self.medication_patterns,
            "adherence_signals": self.adherence_signals,
            "observation_associations": self.observation_associations,
            "data_quality": self.data_quality.to_dict(),
        }


# ==================== PROMPTS ====================

def build_system_prompt() -> str:
    """Fixed system contract for the pattern recognition call"""
    return f"""You are a deterministic pattern recognition system for medication intake data.
Prompt version: {SYSTEM_PROMPT_VERSION}

MANDATORY CONSTRAINTS:
- Do not provide medical advice, diagnoses, recommendations or instructions.
- Do not use imperative or urgency language.
- Do not infer causation and do not suggest interventions.
- Output valid JSON only, with no text before or after it.
- Confidence is one of: low, moderate, high. Severity is one of: low, moderate.
- If the data is sparse or insufficient, return empty arrays.
- Do not guess or extrapolate beyond the numbers given.

ROLE:
- Describe regularity, timing and consistency of intake.
- Describe deviations from the expected intake pattern.
- Describe temporal co-occurrence of observation keywords with intake, without causal claims.

OUTPUT FORMAT (exact structure, no other keys):
{{
  "medicationPatterns": [
    {{
      "type": "irregular_intake" | "timing_inconsistency" | "observation_cluster",
      "medicationId": "...",
      "context": "plain factual description, no recommendations",
      "confidence": "low" | "moderate" | "high"
    }}
  ],
  "adherenceSignals": [
    {{
      "signal": "missed_streak" | "low_adherence" | "inconsistent_pattern",
      "medicationId": "...",
      "severity": "low" | "moderate"
    }}
  ],
  "observationAssociations": [
    {{
      "observation": "keyword taken from the data",
      "temporalRelation": "within_24_hours" | "same_day" | "unclear",
      "confidence": "low" | "moderate" | "high"
    }}
  ]
}}

FORBIDDEN OUTPUT EXAMPLES:
- "Patient should reduce evening doses" (advice)
- "This indicates diabetes" (diagnosis)
- "High risk of adverse event" (urgency)
- "Likely caused by stress" (causation)

ACCEPTABLE OUTPUT EXAMPLES:
- "Evening schedule shows 40% missed rate" (fact with metric)
- "Observation 'dizziness' appears on 3 days with the morning dose" (association without claim)
- "Adherence varies 10-90% week to week" (pattern description)
"""


def _percent(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value * 100:.1f}%"


def build_user_prompt(metrics: IntakeMetricsBundle) -> str:
    """Serialize aggregated metrics into the user message"""
    adherence = metrics.adherence
    timing_by_schedule = {t.schedule_id: t for t in metrics.timing.per_schedule}
    consistency_by_schedule = {c.schedule_id: c for c in metrics.consistency.per_schedule}

    schedule_lines = []
    for streak in metrics.missed.per_schedule:
        consistency = consistency_by_schedule.get(streak.schedule_id)
        variance = consistency.variance_taken_ratio if consistency else None
        schedule_lines.append(
            f"Schedule {streak.schedule_id}: {streak.longest_missed_streak} longest missed streak, "
            f"variance {_percent(variance)}"
        )

    timing_lines = []
    for streak in metrics.missed.per_schedule:
        timing = timing_by_schedule.get(streak.schedule_id)
        if timing is None or timing.avg_abs_minutes is None:
            timing_lines.append(f"Schedule {streak.schedule_id}: no data")
        else:
            timing_lines.append(f"Schedule {streak.schedule_id}: {timing.avg_abs_minutes:.1f} min avg")

    consistency_lines = [
        f"Schedule {c.schedule_id}: {_percent(c.variance_taken_ratio)}"
        for c in metrics.consistency.per_schedule
    ]

    keywords = metrics.observations.top_keywords(analysis_config.PROMPT_TOP_KEYWORDS)
    observation_summary = ", ".join(f'"{word}" ({count}x)' for word, count in keywords)

    return f"""Analyze intake patterns for medication {metrics.medication_id} ({metrics.time_window.days} days):

Adherence: {adherence.adherence_rate * 100:.1f}% ({adherence.taken_count}/{adherence.expected_count})
Schedules in window: {metrics.schedule_count}

Per-Schedule Details:
{chr(10).join(schedule_lines) or "none"}

Timing Variance:
{chr(10).join(timing_lines) or "none"}

Consistency (daily TAKEN/MISSED variance):
{chr(10).join(consistency_lines) or "none"}

Observations (top keywords): {observation_summary or "none"}

Identify patterns, deviations, and temporal associations without advice or diagnosis."""


# ==================== RESPONSE PARSING ====================

def _validated_findings(raw_items: Any, model: type) -> List[Dict[str, Any]]:
    if not isinstance(raw_items, list):
        return []
    findings = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        try:
            findings.append(model.model_validate(item).model_dump())
        except ValidationError:
            logger.debug("Dropped malformed %s finding", model.__name__)
    return findings


def _first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First balanced JSON object in the text, ignoring anything after it"""
    start = text.find("{")
    while start != -1:
        try:
            data, _ = _JSON_DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return data
        start = text.find("{", start + 1)
    return None


def parse_analysis_response(text: Optional[str]) -> Optional[Dict[str, List[Dict[str, Any]]]]:
    """
    Extract and validate the JSON object from a model response

    Returns:
        Dict with the three finding lists, or None when no JSON object parses
    """
    if not text:
        return None

    data = _first_json_object(text)
    if data is None:
        return None

    medication_patterns, adherence_signals, observation_associations = (
        _validated_findings(data.get(key), model) for key, model in _FINDING_FIELDS
    )
    return {
        "medication_patterns": medication_patterns,
        "adherence_signals": adherence_signals,
        "observation_associations": observation_associations,
    }


# ==================== SERVICE ====================

class PatternAnalysisService:
    """
    Runs the constrained AI pass for one metrics bundle

    Contract: analyze_intake_patterns never raises. Missing key, network
    errors, non-200 responses and malformed JSON all yield empty findings
    carrying the computed data quality.
    """

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or llm_service

    def assess(self, metrics: IntakeMetricsBundle) -> DataQuality:
        level = assess_coverage(
            metrics.logs_in_window,
            metrics.schedule_count,
            metrics.time_window.days,
        )
        return DataQuality(logs_in_window=metrics.logs_in_window, sufficiency_level=level)

    async def analyze_intake_patterns(self, metrics: IntakeMetricsBundle) -> AIPatternAnalysisResult:
        """
        Analyze one medication's metrics

        Args:
            metrics: IntakeMetricsBundle for one medication and window

        Returns:
            AIPatternAnalysisResult (empty findings when skipped or failed)
        """
        try:
            data_quality = self.assess(metrics)
        except Exception as e:
            logger.error(f"Could not assess data quality for medication {getattr(metrics, 'medication_id', None)}: {e}")
            return AIPatternAnalysisResult(
                data_quality=DataQuality(logs_in_window=0, sufficiency_level=SufficiencyLevel.INSUFFICIENT)
            )

        if not is_sufficient_for_analysis(data_quality.sufficiency_level):
            logger.info(
                f"Skipping AI analysis for medication {metrics.medication_id}: "
                f"coverage {data_quality.sufficiency_level.value}"
            )
            return AIPatternAnalysisResult(data_quality=data_quality)

        if not self.llm.is_configured:
            return AIPatternAnalysisResult(data_quality=data_quality)

        try:
            response = await self.llm.generate(
                prompt=build_user_prompt(metrics),
                system_prompt=build_system_prompt(),
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS,
            )
        except Exception as e:
            logger.error(f"Pattern analysis failed for medication {metrics.medication_id}: {e}")
            return AIPatternAnalysisResult(data_quality=data_quality, analysis_attempted=True)

        parsed = parse_analysis_response(response)
        if parsed is None:
            logger.warning(f"Malformed pattern analysis response for medication {metrics.medication_id}")
            return AIPatternAnalysisResult(data_quality=data_quality, analysis_attempted=True)

        return AIPatternAnalysisResult(
            data_quality=data_quality,
            analysis_attempted=True,
            **parsed,
        )

    async def analyze_multiple_medications(
        self,
        bundles: List[IntakeMetricsBundle]
    ) -> Dict[Any, AIPatternAnalysisResult]:
        """Analyze several bundles one after another"""
        results = {}
        for bundle in bundles:
            results[bundle.medication_id] = await self.analyze_intake_patterns(bundle)
        return results


# Singleton instance
pattern_analysis_service = PatternAnalysisService()
