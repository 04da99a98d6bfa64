from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Literal, Tuple, Optional

CORRECT_PRONUNCIATION = "Correct pronunciation"
INCORRECT_PRONUNCIATION = "Incorrect pronunciation"

PatternType = Literal["tensification", "h_liaison", "vowel_confusion", "none"]


class PronunciationExample(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    standard: str
    actual: str


class PronunciationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str # Identity within the corpus
    description: str
    examples: Tuple[PronunciationExample, ...] = ()


class RuleCorpusDocument(BaseModel):
    rules: List[PronunciationRule]


class PatternEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: str # Literal substring searched for in the transcription
    correct: str
    incorrect: Optional[str] = None
    romanized: Optional[str] = None
    rule: Optional[str] = None
    explanation: Optional[str] = None


class PatternTables(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tensification: Tuple[PatternEntry, ...] = Field(default=(), alias="tensificationPatterns")
    h_liaison: Tuple[PatternEntry, ...] = Field(default=(), alias="hLiaisonPatterns")
    vowel_confusion: Tuple[PatternEntry, ...] = Field(default=(), alias="vowelConfusionPatterns")


class PatternMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern_type: PatternType = "none"
    matches: Tuple[PatternEntry, ...] = ()
    # "좋은 하루" gets a combined liaison + weakening explanation
    special_case: bool = False

    @property
    def found(self) -> bool:
        return self.pattern_type != "none"


class AnalysisRequest(BaseModel):
    transcription: str
    expected_text: Optional[str] = None


class AnalysisResult(BaseModel):
    result: Literal["Correct pronunciation", "Incorrect pronunciation"]
    correct_pronunciation: Optional[str] = None
    feedback: Optional[str] = None

    @model_validator(mode="after")
    def check_verdict_fields(self) -> "AnalysisResult":
        if self.result == CORRECT_PRONUNCIATION:
            if self.correct_pronunciation is not None or self.feedback is not None:
                raise ValueError("a correct verdict carries no correction or feedback")
        elif self.feedback is None:
            raise ValueError("an incorrect verdict requires feedback")
        return self

    @property
    def is_correct(self) -> bool:
        return self.result == CORRECT_PRONUNCIATION


class WordTimestamp(BaseModel):
    text: str
    timestamp: Tuple[Optional[float], Optional[float]]


class TranscriptionResult(BaseModel):
    text: str
    words: List[WordTimestamp] = []


# --- HTTP response bodies ---

class CorrectPronunciationResponse(BaseModel):
    result: Literal["Correct pronunciation"] = CORRECT_PRONUNCIATION


class IncorrectPronunciationResponse(BaseModel):
    result: Literal["Incorrect pronunciation."] = "Incorrect pronunciation."
    correct_pronunciation: Optional[str] = None
    feedback: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "OK"
    message: str


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
    details: Optional[str] = None
