"""Domain objects and the JSON messages exchanged over the quiz websocket."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable


@dataclass
class Quiz:
    """A quiz definition bound to a game session."""

    quiz_id: str
    game_session: str


@dataclass
class Participant:
    """A connected user taking part in (or hosting) a game session."""

    user_id: str
    user_name: str
    gsession_id: str = ""
    is_host: bool = False
    score: int = 0


@dataclass
class GameSession:
    """A running instance of a quiz, started by its creator."""

    creator: Participant
    quiz_id: str
    game_session_id: str
    is_finished: bool = False


@dataclass
class Question:
    """A question asked during a game session."""

    question_id: str
    question: str
    answers: list[str] | None
    correct_answer: int
    cost: int
    is_finished: bool = False


@dataclass
class Score:
    """A user's score as reported to clients."""

    user_id: str
    user_name: str
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "user_name": self.user_name, "score": self.score}


class QuizStore(ABC):
    """Persistence interface for quizzes and game sessions."""

    @abstractmethod
    def get_game_sessions(self, user_id: str) -> list[GameSession]:
        """Return the game sessions started by ``user_id``."""

    @abstractmethod
    def start_quiz(self, quiz: Quiz) -> GameSession:
        """Create and return a game session for ``quiz``."""


class MessageError(ValueError):
    """Raised when an incoming websocket message cannot be understood."""


class _FieldError(ValueError):
    pass


@dataclass
class StartQuizRequest:
    quiz_id: str = ""


@dataclass
class EnterQuizRequest:
    gsession_id: str = ""


@dataclass
class NextQuestionRequest:
    question_id: str = ""
    gsession_id: str = ""
    question: str = ""
    answers: list[str] | None = field(default=None)
    correct_answer: int = 0
    cost: int = 0


@dataclass
class AnswerRequest:
    question_id: str = ""
    gsession_id: str = ""
    answer: int = 0


@dataclass
class FinishQuestionRequest:
    question_id: str = ""
    gsession_id: str = ""


@dataclass
class FinishQuizRequest:
    gsession_id: str = ""
    user_id: str = ""


def _lookup(data: dict[str, Any], name: str) -> Any:
    """Find a field the way struct decoding does: case-insensitively, last key wins."""
    value = None
    for key, item in data.items():
        if key.lower() == name:
            value = item
    return value


def _string(data: dict[str, Any], name: str) -> str:
    value = _lookup(data, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _FieldError(f"cannot unmarshal {type(value).__name__} into field {name} of type string")
    return value


def _integer(data: dict[str, Any], name: str) -> int:
    value = _lookup(data, name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise _FieldError(f"cannot unmarshal {value!r} into field {name} of type int")
    if not -(2**63) <= value < 2**63:
        raise _FieldError(f"cannot unmarshal number {value} into field {name} of type int")
    return value


def _strings(data: dict[str, Any], name: str) -> list[str] | None:
    value = _lookup(data, name)
    if value is None:
        return None
    if not isinstance(value, list):
        raise _FieldError(f"cannot unmarshal {type(value).__name__} into field {name} of type []string")
    result = []
    for item in value:
        if item is None:
            result.append("")
        elif isinstance(item, str):
            result.append(item)
        else:
            raise _FieldError(f"cannot unmarshal {type(item).__name__} into field {name} of type string")
    return result


def _load(raw: str | bytes | bytearray) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    data = json.loads(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise _FieldError(f"cannot unmarshal {type(data).__name__} into an object")
    return data


def parse_action(raw: str | bytes | bytearray) -> str:
    """Return the ``action`` of a raw websocket message."""
    try:
        return _string(_load(raw), "action")
    except ValueError as exc:
        raise MessageError(f"failed to parse base: {exc}") from exc


_REQUESTS: dict[str, tuple[type, Callable[[dict[str, Any]], Any]]] = {
    "START_QUIZ": (
        StartQuizRequest,
        lambda d: StartQuizRequest(quiz_id=_string(d, "quiz_id")),
    ),
    "ENTER_QUIZ": (
        EnterQuizRequest,
        lambda d: EnterQuizRequest(gsession_id=_string(d, "gsession_id")),
    ),
    "NEXT_QUESTION": (
        NextQuestionRequest,
        lambda d: NextQuestionRequest(
            question_id=_string(d, "question_id"),
            gsession_id=_string(d, "gsession_id"),
            question=_string(d, "question"),
            answers=_strings(d, "answers"),
            correct_answer=_integer(d, "correct_answer"),
            cost=_integer(d, "cost"),
        ),
    ),
    "ANSWER_QUESTION": (
        AnswerRequest,
        lambda d: AnswerRequest(
            question_id=_string(d, "question_id"),
            gsession_id=_string(d, "gsession_id"),
            answer=_integer(d, "answer"),
        ),
    ),
    "FINISH_QUESTION": (
        FinishQuestionRequest,
        lambda d: FinishQuestionRequest(
            question_id=_string(d, "question_id"),
            gsession_id=_string(d, "gsession_id"),
        ),
    ),
    "FINISH_QUIZ_SESSION": (
        FinishQuizRequest,
        lambda d: FinishQuizRequest(
            gsession_id=_string(d, "gsession_id"),
            user_id=_string(d, "user_id"),
        ),
    ),
}


def parse_request(raw: str | bytes | bytearray) -> Any:
    """Decode a raw websocket message into the request type named by its action."""
    action = parse_action(raw)
    try:
        cls, build = _REQUESTS[action]
    except KeyError:
        raise MessageError(f"unknown action: {action}") from None
    try:
        return build(_load(raw))
    except ValueError as exc:
        raise MessageError(f"failed to parse {cls.__name__}: {exc}") from exc


def _scores(scores: Iterable[Score | dict[str, Any]] | None) -> list[dict[str, Any]] | None:
    if scores is None:
        return None
    return [s.to_dict() if isinstance(s, Score) else dict(s) for s in scores]


def error_message(error: BaseException | str) -> dict[str, Any]:
    return {"action": "ERROR", "error": str(error)}


def connected_message(user_id: str, user_name: str) -> dict[str, Any]:
    return {"action": "CONNECTED", "user_id": user_id, "user_name": user_name}


def quiz_started_message(quiz_id: str, gsession_id: str) -> dict[str, Any]:
    return {"action": "QUIZ_STARTED", "quiz_id": quiz_id, "gsession_id": gsession_id}


def entered_quiz_message(quiz_id: str, gsession_id: str) -> dict[str, Any]:
    return {"action": "ENTERED_QUIZ", "user_id": "", "quiz_id": quiz_id, "gsession_id": gsession_id}


def entered_quiz_broadcast(user_id: str, user_name: str, gsession_id: str) -> dict[str, Any]:
    return {
        "action": "ENTERED_QUIZ_BROADCAST",
        "user_id": user_id,
        "user_name": user_name,
        "gsession_id": gsession_id,
    }


def left_quiz_broadcast(user_id: str, user_name: str, gsession_id: str) -> dict[str, Any]:
    return {
        "action": "LEAVED_QUIZ_BROADCAST",
        "user_id": user_id,
        "user_name": user_name,
        "gsession_id": gsession_id,
    }


def next_question_broadcast(
    question_id: str, gsession_id: str, question: str, answers: Iterable[str] | None, cost: int
) -> dict[str, Any]:
    return {
        "action": "NEXT_QUESTION_BROADCAST",
        "question_id": question_id,
        "gsession_id": gsession_id,
        "question": question,
        "answers": None if answers is None else list(answers),
        "cost": cost,
    }


def answered_broadcast(
    gsession_id: str, question_id: str, user_name: str, user_id: str, correct: bool
) -> dict[str, Any]:
    return {
        "action": "QUESTION_ANSWERED_BROADCAST",
        "gsession_id": gsession_id,
        "question_id": question_id,
        "user_name": user_name,
        "user_id": user_id,
        "correct": correct,
    }


def question_finished_broadcast(
    question_id: str, gsession_id: str, scores: Iterable[Score] | None
) -> dict[str, Any]:
    return {
        "action": "QUESTION_FINISHED_BROADCAST",
        "question_id": question_id,
        "gsession_id": gsession_id,
        "scores": _scores(scores),
    }


def quiz_finished_broadcast(gsession_id: str, scores: Iterable[Score] | None) -> dict[str, Any]:
    return {
        "action": "QUESTION_FINISHED_BROADCAST",
        "gsession_id": gsession_id,
        "scores": _scores(scores),
    }