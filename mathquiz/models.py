from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, List, Literal, Optional, Union

class DifficultyAdjustment(str, Enum):
    INITIAL = "initial"
    SIGNIFICANT_INCREASE = "significant_increase"
    MODERATE_INCREASE = "moderate_increase"
    SIGNIFICANT_DECREASE = "significant_decrease"
    MODERATE_DECREASE = "moderate_decrease"

class GamePhase(str, Enum):
    START = "start"
    LOADING = "loading"
    PLAYING = "playing"
    FEEDBACK = "feedback"

class FeedbackKind(str, Enum):
    NONE = "none"
    CORRECT = "correct"
    INCORRECT = "incorrect"

class GameMode(str, Enum):
    ADAPTIVE = "adaptive"
    STANDARD = "standard"

# Question tree. Nodes are immutable; fixup passes build new nodes.

class LiteralNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["literal"] = "literal"
    value: str

class GroupNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["group"] = "group"
    content: List["QuestionNode"]

class FractionNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["fraction"] = "fraction"
    numerator: List["QuestionNode"]
    denominator: List["QuestionNode"]

class PowerNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["power"] = "power"
    base: List["QuestionNode"]
    exponent: List["QuestionNode"]

class RootNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["root"] = "root"
    content: List["QuestionNode"]

class AbsoluteNode(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["absolute"] = "absolute"
    content: List["QuestionNode"]

QuestionNode = Annotated[
    Union[LiteralNode, GroupNode, FractionNode, PowerNode, RootNode, AbsoluteNode],
    Field(discriminator="type"),
]

for _model in (GroupNode, FractionNode, PowerNode, RootNode, AbsoluteNode):
    _model.model_rebuild()

class Problem(BaseModel):
    model_config = ConfigDict(frozen=True)
    question_string: str
    tree: List[QuestionNode]
    answer: float
    estimated_time: float = Field(gt=0)
    difficulty_adjustment: DifficultyAdjustment = DifficultyAdjustment.INITIAL
    reasoning: Optional[str] = None

class PerformanceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)
    question_text: str
    correct_answer: float
    user_answer: Optional[float] = None
    time_taken: float
    estimated_time: float
    correct: bool
    difficulty_adjustment: DifficultyAdjustment

class ProblemRequest(BaseModel):
    history: List[PerformanceRecord] = []
    level: int = 1

class StreakUpdate(BaseModel):
    level: int
    correct_streak: int
    wrong_streak: int
    direction: str = "none"

# HTTP schemas

class StartSessionRequest(BaseModel):
    mode: Optional[GameMode] = None

class InputRequest(BaseModel):
    key: Literal["0", "1", "2", "3", "4", "5", "6", "7", "8", "9", "-", ".", "backspace", "enter", "skip", "increase_difficulty"]

class ModeRequest(BaseModel):
    mode: GameMode

class SessionView(BaseModel):
    session_id: str
    phase: GamePhase
    mode: GameMode
    question_string: Optional[str] = None
    tree: Optional[List[QuestionNode]] = None
    estimated_time: Optional[float] = None
    answer_buffer: str = ""
    score: int = 0
    level: int = 1
    correct_streak: int = 0
    wrong_streak: int = 0
    elapsed: float = 0.0
    last_time_taken: Optional[float] = None
    feedback: FeedbackKind = FeedbackKind.NONE
    correct_answer: Optional[float] = None
    notice: Optional[str] = None
    shaking: bool = False
    generative_unavailable: bool = False
    rounds_played: int = 0
    timed_out: bool = False

class EvaluateRequest(BaseModel):
    question: str

class EvaluateResponse(BaseModel):
    ok: bool
    tree: Optional[List[QuestionNode]] = None
    canonical: Optional[str] = None
    answer: Optional[float] = None
    feedback: Optional[str] = None

class DebugPromptResponse(BaseModel):
    prompt: str
