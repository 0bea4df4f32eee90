# wsquiz

A small server for live quizzes. Players connect over a websocket. A host
starts a quiz session, and other players join it. The host then pushes
questions to the players in the session. Answers are scored by speed: the
first correct answer earns the full cost of the question, and each later
correct answer earns less. Running totals go out to everyone in the session.

All state is kept in process memory and is lost when the server stops.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Running

```
wsquiz
```

The command takes no options besides `--help`. It logs at INFO level and
serves until interrupted. It is configured from the environment:

| Variable     | Default          | Meaning                                   |
|--------------|------------------|-------------------------------------------|
| `APP_ADDR`   | `:8080`          | `host:port` the HTTP server binds         |
| `REDIS_ADDR` | `localhost:6379` | read into `Config.rdb_addr`; not used yet |

## Endpoints

The server started by `wsquiz` (the app built by `Application.routes()`)
serves:

- `GET /ws?user-id=<id>&user-name=<name>` opens the player's websocket. Both
  parameters are required; a missing one gives a `400` with a JSON body
  `{"error": "..."}`. Each user name belongs to the first user id that used
  it (another id gives a `400`), and a user id that is already connected gets
  a `403`.
- `GET /static/...` serves files from `./static/` when that directory exists,
  and `404` otherwise.

`Application.mount()` builds a separate app with request middleware (request
id, real client IP, access log, error recovery and a 60-second timeout) and
one route, `GET /v1/health`, which answers
`{"data": {"status": "ok", "Env": "", "version": "0.0.1"}}`. The `wsquiz`
command does not serve this app; mount it yourself if you need it.

## Websocket protocol

Every message is a JSON object with an `action` field.

Messages a client sends:

| action                | fields                                                          |
|-----------------------|-----------------------------------------------------------------|
| `START_QUIZ`          | `quiz_id`                                                       |
| `ENTER_QUIZ`          | `gsession_id`                                                   |
| `NEXT_QUESTION`       | `question_id`, `gsession_id`, `question`, `answers`, `correct_answer`, `cost` |
| `ANSWER_QUESTION`     | `question_id`, `gsession_id`, `answer`                          |
| `FINISH_QUESTION`     | `question_id`, `gsession_id`                                    |
| `FINISH_QUIZ_SESSION` | `gsession_id`, `user_id`                                        |

What the server sends back:

- `CONNECTED` to a player right after the websocket opens.
- `QUIZ_STARTED` (with `quiz_id` and the new `gsession_id`) to the host. A
  user can start only one quiz.
- `ENTERED_QUIZ` to a player who joined, and `ENTERED_QUIZ_BROADCAST` to the
  session's players and host.
- `NEXT_QUESTION_BROADCAST` to the session's players (not the host); the
  correct answer is not included.
- `QUESTION_ANSWERED_BROADCAST` to players and host, with `correct` telling
  whether the answer was right.
- `QUESTION_FINISHED_BROADCAST` to players and host when a question or the
  whole session is finished, carrying `scores` as a list of
  `{"user_id", "user_name", "score"}` totals.
- `LEAVED_QUIZ_BROADCAST` when a player's websocket closes.
- `ERROR` to the sender when a message cannot be parsed or is refused; the
  reason is in the `error` field.

Messages are handled one at a time, in the order they arrive.

## Using the pieces

The game rules live in `wsquiz.services` and do not depend on the network:

```python
from wsquiz.models import Participant, Question
from wsquiz.services import QuizService

quizzes = QuizService()
host = Participant(user_id="u1", user_name="host")
ann = Participant(user_id="u2", user_name="ann")

session = quizzes.start_quiz("1", host)
quizzes.join_game_session(session.game_session_id, ann)

quizzes.add_question(Question("q1", "2 + 2?", ["3", "4"], correct_answer=1, cost=100))
quizzes.check_and_save_answer("q1", 1, ann)   # True
quizzes.get_answers("q1")                     # ["u2"]
```

Other modules:

- `wsquiz.models` – the dataclasses (`Participant`, `GameSession`,
  `Question`, `Score`, ...), `parse_request()` for incoming messages and the
  builders for outgoing ones.
- `wsquiz.services` – `QuizService` and `UserService`.
- `wsquiz.ws_handlers` – `WsHandlers`, the websocket endpoint and message loop.
- `wsquiz.responses` – JSON responses and `ErrorHandler`.
- `wsquiz.env` – `get_string`, `get_int`, `get_bool` environment lookups.
- `wsquiz.store` – `InMemoryStore` and `QuizRedisStore`.
- `wsquiz.app` – `Config`, `Application` and `main()`.

## What it does not do

- There is no quiz page: `GET /` is not served, so a browser client has to be
  provided separately (for example as files under `./static/`).
- Nothing is stored persistently. `QuizRedisStore` only opens a Redis client
  and `InMemoryStore` holds nothing; neither is used by the server, and
  `REDIS_ADDR` has no effect on it.