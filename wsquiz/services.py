"""In-memory quiz sessions, questions, answers and user registration."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterable

from .models import GameSession, Participant, Question, Score

_BASE62 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
_ID_EPOCH = 1_400_000_000
_ID_LENGTH = 27


def _new_session_id() -> str:
    """Return a time-ordered, 27-character base62 identifier."""
    timestamp = (int(time.time()) - _ID_EPOCH) & 0xFFFFFFFF
    number = int.from_bytes(timestamp.to_bytes(4, "big") + os.urandom(16), "big")
    digits = []
    while number:
        number, rem = divmod(number, 62)
        digits.append(_BASE62[rem])
    return "".join(reversed(digits)).rjust(_ID_LENGTH, "0")


class QuizServiceError(Exception):
    """Raised when a quiz operation cannot be carried out."""


class UserAlreadyExistsError(QuizServiceError):
    """Raised when a user name is already taken by another user id."""

    def __init__(self, message: str = "user already exists") -> None:
        super().__init__(message)


class QuizService:
    """Keeps game sessions, their participants, questions and correct answers."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.log = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._sessions: dict[str, GameSession] = {}  # creator user id -> session
        self._participants: dict[str, list[Participant]] = {}  # session id -> participants
        self._questions: dict[str, Question] = {}
        self._answers: dict[str, list[str]] = {}

    def update_scores(self, scores: Iterable[Score], gsession_id: str) -> list[Score]:
        """Add question scores to the session's participants and return everyone's totals."""
        scores = list(scores)
        with self._lock:
            result = []
            for participant in self._participants.get(gsession_id, []):
                gained = next((s for s in scores if s.user_id == participant.user_id), None)
                if gained is None:
                    result.append(Score(participant.user_id, participant.user_name, participant.score))
                    continue
                participant.score += gained.score
                result.append(Score(gained.user_id, gained.user_name, participant.score))
                self.log.info(
                    "Updated score for user %s (session %s): +%d => %d",
                    participant.user_name, gsession_id, gained.score, participant.score,
                )
            return result

    def add_question(self, question: Question) -> None:
        with self._lock:
            self._questions[question.question_id] = question

    def finish_question(self, question_id: str) -> Question | None:
        """Mark a question finished and return it, or ``None`` if it is unknown."""
        with self._lock:
            question = self._questions.get(question_id)
            if question is not None:
                question.is_finished = True
            return question

    def check_and_save_answer(self, question_id: str, answer: int, participant: Participant) -> bool:
        """Return whether ``answer`` is correct, recording the first correct answer of each user."""
        with self._lock:
            question = self._questions.get(question_id)
            if question is None or question.is_finished or question.correct_answer != answer:
                return False
            answered = self._answers.setdefault(question_id, [])
            if participant.user_id not in answered:
                answered.append(participant.user_id)
            return True

    def get_answers(self, question_id: str) -> list[str]:
        """User ids that answered correctly, in the order they answered."""
        with self._lock:
            return list(self._answers.get(question_id, []))

    def start_quiz(self, quiz_id: str, creator: Participant) -> GameSession:
        with self._lock:
            if creator.user_id in self._sessions:
                raise QuizServiceError(f"user {creator.user_name} has already started quiz {quiz_id}")
            session = GameSession(creator=creator, quiz_id=quiz_id, game_session_id=_new_session_id())
            self._sessions[creator.user_id] = session
            self.log.info("Game session created: %s", session)
            return session

    def finish_quiz(self, gsession_id: str, user_id: str) -> None:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                raise QuizServiceError(f"gsession {gsession_id} cant be found")
            if session.is_finished:
                raise QuizServiceError(f"gsession {gsession_id} already finished")
            if session.game_session_id != gsession_id:
                raise QuizServiceError(f"gsession {gsession_id} cant be found, other session started")
            session.is_finished = True

    def join_game_session(self, gsession_id: str, participant: Participant) -> str:
        """Add ``participant`` to a session and return the session's quiz id."""
        with self._lock:
            session = self._find_session(gsession_id)
            if session is None:
                raise QuizServiceError(f"game session {gsession_id} not found")
            members = self._participants.setdefault(gsession_id, [])
            if any(m.user_id == participant.user_id for m in members):
                raise QuizServiceError(f"user {participant.user_id} already joined session {gsession_id}")
            members.append(participant)
            self.log.info("User %s joined session %s", participant.user_name, gsession_id)
            return session.quiz_id

    def leave_all_game_sessions(self, participant: Participant) -> None:
        with self._lock:
            left = 0
            for gsession_id, members in self._participants.items():
                remaining = [m for m in members if m.user_id != participant.user_id]
                if len(remaining) != len(members):
                    self._participants[gsession_id] = remaining
                    left += 1
                    self.log.info("User %s left session %s", participant.user_name, gsession_id)
            if not left:
                raise QuizServiceError(f"user {participant.user_name} was not part of any sessions")

    def leave_game_session(self, gsession_id: str, participant: Participant) -> None:
        with self._lock:
            members = self._participants.get(gsession_id)
            if members is None:
                raise QuizServiceError(f"game session {gsession_id} not found")
            remaining = [m for m in members if m.user_id != participant.user_id]
            if len(remaining) == len(members):
                raise QuizServiceError(f"user {participant.user_id} not found in session {gsession_id}")
            self._participants[gsession_id] = remaining
            self.log.info("User %s left session %s", participant.user_name, gsession_id)

    def get_participants(self, gsession_id: str) -> list[Participant]:
        with self._lock:
            return list(self._participants.get(gsession_id, []))

    def get_participants_with_creator(self, gsession_id: str) -> list[Participant]:
        """Participants of a session followed by a copy of its creator's identity."""
        with self._lock:
            session = self._find_session(gsession_id)
            if session is None:
                raise QuizServiceError(f"could not find creator for game session {gsession_id}")
            creator = Participant(user_id=session.creator.user_id, user_name=session.creator.user_name)
            return [*self._participants.get(gsession_id, []), creator]

    def _find_session(self, gsession_id: str) -> GameSession | None:
        return next((s for s in self._sessions.values() if s.game_session_id == gsession_id), None)


class UserService:
    """Reserves user names for the user id that first registered them."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._users: dict[str, Participant] = {}

    def register_user(self, participant: Participant) -> None:
        """Register a user name; raises :class:`UserAlreadyExistsError` if another id holds it."""
        with self._lock:
            existing = self._users.setdefault(participant.user_name, participant)
        if existing.user_id != participant.user_id:
            raise UserAlreadyExistsError()