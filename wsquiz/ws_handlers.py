"""Websocket endpoint and the message loop that drives quiz sessions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from aiohttp import WSMsgType, web

from .models import (
    AnswerRequest,
    EnterQuizRequest,
    FinishQuestionRequest,
    FinishQuizRequest,
    NextQuestionRequest,
    Participant,
    Question,
    Score,
    StartQuizRequest,
    answered_broadcast,
    connected_message,
    entered_quiz_broadcast,
    entered_quiz_message,
    error_message,
    left_quiz_broadcast,
    next_question_broadcast,
    parse_request,
    question_finished_broadcast,
    quiz_finished_broadcast,
    quiz_started_message,
)
from .responses import ErrorHandler, UserIdRequiredError, UserNameRequiredError
from .services import QuizService, QuizServiceError, UserAlreadyExistsError, UserService


@dataclass
class ParticipantWithConn:
    """A participant together with the websocket it is connected through."""

    participant: Participant
    conn: Any

    @property
    def user_id(self) -> str:
        return self.participant.user_id

    @property
    def user_name(self) -> str:
        return self.participant.user_name

    @property
    def gsession_id(self) -> str:
        return self.participant.gsession_id

    @gsession_id.setter
    def gsession_id(self, value: str) -> None:
        self.participant.gsession_id = value

    @property
    def is_host(self) -> bool:
        return self.participant.is_host

    @is_host.setter
    def is_host(self, value: bool) -> None:
        self.participant.is_host = value

    @property
    def score(self) -> int:
        return self.participant.score

    async def send(self, message: Any) -> None:
        await self.conn.send_json(message)


class WsHandlers:
    """Accepts websocket clients and processes their quiz messages one at a time."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        error_handler: ErrorHandler | None = None,
        user_service: UserService | None = None,
        quiz_service: QuizService | None = None,
    ) -> None:
        self.log = logger or logging.getLogger(__name__)
        self.error_handler = error_handler or ErrorHandler(self.log)
        self.user_service = user_service or UserService(self.log)
        self.quiz_service = quiz_service or QuizService(self.log)
        self.queue: asyncio.Queue[tuple[ParticipantWithConn, Any]] = asyncio.Queue()
        self.clients: dict[str, ParticipantWithConn] = {}
        self._actions: dict[type, Callable[[ParticipantWithConn, Any], Awaitable[None]]] = {
            StartQuizRequest: self._start_quiz,
            EnterQuizRequest: self._enter_quiz,
            NextQuestionRequest: self._next_question,
            AnswerRequest: self._answer_question,
            FinishQuestionRequest: self._finish_question,
            FinishQuizRequest: self._finish_quiz,
        }

    async def ws_endpoint(self, request: web.Request) -> web.StreamResponse:
        """Validate the user, upgrade to a websocket and serve it until it closes."""
        user_id = request.query.get("user-id", "")
        user_name = request.query.get("user-name", "")

        if not user_id:
            return self.error_handler.bad_request_response(request, UserIdRequiredError())
        if not user_name:
            return self.error_handler.bad_request_response(request, UserNameRequiredError())

        participant = Participant(user_id=user_id, user_name=user_name)
        try:
            self.user_service.register_user(participant)
        except UserAlreadyExistsError as exc:
            return self.error_handler.bad_request_response(request, exc)

        if participant.user_id in self.clients:
            self.log.info("Client %s already connected", user_name)
            return self.error_handler.forbidden_response(request)

        ws = web.WebSocketResponse()
        try:
            await ws.prepare(request)
        except web.HTTPException as exc:
            self.log.warning("websocket upgrade failed: %s", exc)
            raise

        client = ParticipantWithConn(participant=participant, conn=ws)
        self.log.info("Client connected to server: %s %s", user_name, user_id)

        if participant.user_id in self.clients:
            self.log.info("Client %s already connected", user_name)
            return ws
        self.clients[participant.user_id] = client

        try:
            await client.send(connected_message(user_id, user_name))
        except (ConnectionError, RuntimeError) as exc:
            self.log.warning("%s", exc)
            return ws

        await self.listen_for_ws(client)
        return ws

    async def listen_for_ws(self, client: ParticipantWithConn) -> None:
        """Queue the client's text and binary messages until its socket closes."""
        try:
            async for message in client.conn:
                if message.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self.queue.put((client, message.data))
        except Exception as exc:  # keep one broken connection from taking down the server
            self.log.error("Error in ListenForWs: %s", exc)
        await self._connection_closed(client, getattr(client.conn, "close_code", None))

    async def _connection_closed(self, client: ParticipantWithConn, code: int | None) -> None:
        self.log.info("Websocket connection closed, code: %s", code)
        self.clients.pop(client.user_name, None)
        try:
            self.quiz_service.leave_all_game_sessions(client.participant)
        except QuizServiceError as exc:
            self.log.info("Error leaving sessions for user %s: %s", client.user_id, exc)
        await self.broadcast_all(
            left_quiz_broadcast(client.user_id, client.user_name, client.gsession_id),
            client.gsession_id,
        )

    async def handle_message(self, client: ParticipantWithConn, raw: str | bytes | bytearray) -> None:
        """Act on one raw message from ``client``; raises on invalid or refused requests."""
        request = parse_request(raw)
        await self._actions[type(request)](client, request)

    async def _start_quiz(self, client: ParticipantWithConn, req: StartQuizRequest) -> None:
        session = self.quiz_service.start_quiz(req.quiz_id, client.participant)
        client.gsession_id = session.game_session_id
        client.is_host = True
        self.log.info("Starting quiz with id: %s", session)
        await client.send(quiz_started_message(session.quiz_id, session.game_session_id))

    async def _enter_quiz(self, client: ParticipantWithConn, req: EnterQuizRequest) -> None:
        quiz_id = self.quiz_service.join_game_session(req.gsession_id, client.participant)
        client.gsession_id = req.gsession_id
        client.is_host = False
        self.log.info("User %s joining quiz with id: %s", client.user_name, req.gsession_id)
        await client.send(entered_quiz_message(quiz_id, req.gsession_id))
        await self.broadcast_all(
            entered_quiz_broadcast(client.user_id, client.user_name, req.gsession_id),
            req.gsession_id,
        )

    async def _next_question(self, client: ParticipantWithConn, req: NextQuestionRequest) -> None:
        self.quiz_service.add_question(
            Question(
                question_id=req.question_id,
                question=req.question,
                answers=req.answers,
                correct_answer=req.correct_answer,
                cost=req.cost,
            )
        )
        await self.broadcast_participants(
            next_question_broadcast(req.question_id, req.gsession_id, req.question, req.answers, req.cost),
            req.gsession_id,
        )

    async def _answer_question(self, client: ParticipantWithConn, req: AnswerRequest) -> None:
        correct = self.quiz_service.check_and_save_answer(req.question_id, req.answer, client.participant)
        await self.broadcast_all(
            answered_broadcast(req.gsession_id, req.question_id, client.user_name, client.user_id, correct),
            req.gsession_id,
        )

    async def _finish_question(self, client: ParticipantWithConn, req: FinishQuestionRequest) -> None:
        question = self.quiz_service.finish_question(req.question_id)
        answers = self.quiz_service.get_answers(req.question_id)

        scores: list[Score] = []
        if answers and question is not None:
            step = question.cost / len(answers)
            for position, user_id in enumerate(answers):
                points = max(question.cost - step * position, 0.0)
                answered = self.clients.get(user_id)
                if answered is not None:
                    scores.append(Score(answered.user_id, answered.user_name, int(points)))

        totals = self.quiz_service.update_scores(scores, req.gsession_id)
        await self.broadcast_all(
            question_finished_broadcast(req.question_id, req.gsession_id, totals),
            req.gsession_id,
        )

    async def _finish_quiz(self, client: ParticipantWithConn, req: FinishQuizRequest) -> None:
        try:
            self.quiz_service.finish_quiz(req.gsession_id, req.user_id)
        except QuizServiceError as exc:
            raise QuizServiceError(f"failed to finish quiz: {exc}") from exc

        scores = [
            Score(member.user_id, member.user_name, member.score)
            for member in (
                self.clients.get(p.user_id) for p in self.quiz_service.get_participants(req.gsession_id)
            )
            if member is not None
        ]
        await self.broadcast_all(quiz_finished_broadcast(req.gsession_id, scores), req.gsession_id)

    async def broadcast_participants(self, message: Any, gsession_id: str) -> None:
        """Send ``message`` to the session's participants, not its host."""
        await self.broadcast(self.quiz_service.get_participants(gsession_id), message)

    async def broadcast_all(self, message: Any, gsession_id: str) -> None:
        """Send ``message`` to the session's participants and its host."""
        try:
            members = self.quiz_service.get_participants_with_creator(gsession_id)
        except QuizServiceError as exc:
            self.log.info("Unable to broadcast %s", exc)
            members = []
        await self.broadcast(members, message)

    async def broadcast(self, participants: Iterable[Participant], message: Any) -> None:
        """Send ``message`` to every connected client among ``participants``."""
        for participant in participants:
            client = self.clients.get(participant.user_id)
            if client is None:
                continue
            try:
                await client.send(message)
            except Exception as exc:  # one dead socket must not stop the others
                self.log.warning("Failed to broadcast to user %s: %s", participant.user_name, exc)

    async def listen_to_ws_channel(self) -> None:
        """Process queued messages forever, replying with an ERROR message on failure."""
        while True:
            client, raw = await self.queue.get()
            try:
                await self.handle_message(client, raw)
            except Exception as exc:  # every failure is reported back to the sender
                try:
                    await client.send(error_message(exc))
                except Exception as send_exc:
                    self.log.warning("Failed to send message: %s", send_exc)
            finally:
                self.queue.task_done()