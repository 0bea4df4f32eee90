import pytest

from wsquiz.models import (
    AnswerRequest,
    EnterQuizRequest,
    FinishQuizRequest,
    GameSession,
    MessageError,
    NextQuestionRequest,
    Quiz,
    QuizStore,
    Score,
    StartQuizRequest,
    answered_broadcast,
    connected_message,
    entered_quiz_message,
    error_message,
    left_quiz_broadcast,
    next_question_broadcast,
    parse_action,
    parse_request,
    quiz_finished_broadcast,
)


def test_parse_action_reads_action():
    assert parse_action(b'{"action":"START_QUIZ","quiz_id":"q1"}') == "START_QUIZ"


def test_parse_action_missing_is_empty():
    assert parse_action("{}") == ""


def test_parse_action_rejects_array():
    with pytest.raises(MessageError, match="^failed to parse base"):
        parse_action("[1, 2]")


def test_parse_action_rejects_invalid_json():
    with pytest.raises(MessageError, match="^failed to parse base"):
        parse_action("{not json")


def test_parse_request_start_quiz():
    assert parse_request('{"action":"START_QUIZ","quiz_id":"q1"}') == StartQuizRequest(quiz_id="q1")


def test_parse_request_matches_keys_case_insensitively():
    req = parse_request('{"Action":"ENTER_QUIZ","GSESSION_ID":"g1","extra":true}')
    assert req == EnterQuizRequest(gsession_id="g1")


def test_parse_request_next_question():
    raw = (
        '{"action":"NEXT_QUESTION","question_id":"qq","gsession_id":"g",'
        '"question":"cat?","answers":["dog","cat"],"correct_answer":1,"cost":100}'
    )
    assert parse_request(raw) == NextQuestionRequest(
        question_id="qq", gsession_id="g", question="cat?", answers=["dog", "cat"], correct_answer=1, cost=100
    )


def test_parse_request_missing_fields_get_zero_values():
    assert parse_request('{"action":"ANSWER_QUESTION"}') == AnswerRequest("", "", 0)


def test_parse_request_finish_quiz():
    req = parse_request('{"action":"FINISH_QUIZ_SESSION","gsession_id":"g","user_id":"u"}')
    assert req == FinishQuizRequest(gsession_id="g", user_id="u")


def test_parse_request_rejects_fractional_int():
    with pytest.raises(MessageError, match="AnswerRequest"):
        parse_request('{"action":"ANSWER_QUESTION","answer":1.5}')


def test_parse_request_rejects_wrong_string_type():
    with pytest.raises(MessageError):
        parse_request('{"action":"START_QUIZ","quiz_id":7}')


def test_parse_request_unknown_action():
    with pytest.raises(MessageError, match="unknown action: FOO"):
        parse_request('{"action":"FOO"}')


def test_score_to_dict():
    assert Score("u1", "alice", 10).to_dict() == {"user_id": "u1", "user_name": "alice", "score": 10}


def test_error_message():
    assert error_message(ValueError("boom")) == {"action": "ERROR", "error": "boom"}


def test_connected_message():
    assert connected_message("u1", "alice") == {"action": "CONNECTED", "user_id": "u1", "user_name": "alice"}


def test_entered_quiz_message_has_empty_user_id():
    msg = entered_quiz_message("q1", "g1")
    assert msg["action"] == "ENTERED_QUIZ"
    assert msg["user_id"] == ""
    assert (msg["quiz_id"], msg["gsession_id"]) == ("q1", "g1")


def test_left_quiz_broadcast_action():
    assert left_quiz_broadcast("u", "n", "g")["action"] == "LEAVED_QUIZ_BROADCAST"


def test_next_question_broadcast_keeps_null_answers():
    msg = next_question_broadcast("q", "g", "text", None, 5)
    assert msg["answers"] is None
    assert msg["action"] == "NEXT_QUESTION_BROADCAST"
    assert "correct_answer" not in msg


def test_answered_broadcast():
    msg = answered_broadcast("g", "q", "alice", "u1", True)
    assert msg == {
        "action": "QUESTION_ANSWERED_BROADCAST",
        "gsession_id": "g",
        "question_id": "q",
        "user_name": "alice",
        "user_id": "u1",
        "correct": True,
    }


def test_quiz_finished_broadcast_serialises_scores():
    msg = quiz_finished_broadcast("g", [Score("u1", "alice", 3)])
    assert msg["action"] == "QUESTION_FINISHED_BROADCAST"
    assert msg["scores"] == [{"user_id": "u1", "user_name": "alice", "score": 3}]


def test_quiz_store_is_abstract():
    with pytest.raises(TypeError):
        QuizStore()


def test_quiz_store_subclass():
    class _Store(QuizStore):
        def get_game_sessions(self, user_id):
            return []

        def start_quiz(self, quiz):
            return GameSession(creator=None, quiz_id=quiz.quiz_id, game_session_id=quiz.game_session)

    session = _Store().start_quiz(Quiz("q1", "g1"))
    assert (session.quiz_id, session.game_session_id, session.is_finished) == ("q1", "g1", False)