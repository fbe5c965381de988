from __future__ import annotations

import asyncio
from typing import Any

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from lithsync.storage import KeyValueStore


class FakeBackend:
    """In-process stand-in for the Lithuaningo API with per-route failure injection."""

    def __init__(self) -> None:
        self.url = ""
        self.requests: list[dict[str, Any]] = []
        # "METHOD /path" -> status to answer with instead of the real handler
        self.fail: dict[str, int] = {}
        self.delay = 0.0
        self.challenge_stats: dict[str, dict[str, Any]] = {
            "u1": {
                "currentStreak": 3,
                "longestStreak": 5,
                "todayCorrectAnswers": 1,
                "todayIncorrectAnswers": 0,
                "totalChallengesCompleted": 10,
                "totalCorrectAnswers": 40,
                "totalIncorrectAnswers": 7,
            }
        }
        self.user_stats: dict[str, dict[str, Any]] = {
            "u1": {"userId": "u1", "level": 4, "experiencePoints": 320, "totalQuizzesCompleted": 6}
        }
        self.flashcard_answers: list[dict[str, Any]] = []
        self.leaderboard: dict[str, int] = {"u1": 10, "u2": 25}
        self.sentences = [
            {"id": "s1", "text": "Labas rytas!", "translation": "Good morning!"},
            {"id": "s2", "text": "Kaip sekasi?", "translation": "How are you?"},
            {"id": "s3", "text": "Ačiū, gerai.", "translation": "Thanks, fine."},
        ]
        self.reports: list[dict[str, Any]] = []
        self.deleted_users: list[str] = []

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r["method"] == method and r["path"] == path)

    @web.middleware
    async def _middleware(self, request: web.Request, handler):
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "headers": request.headers.copy(),
                "body": await request.text(),
            }
        )
        status = self.fail.get(f"{request.method} {request.path}")
        if status:
            return web.json_response({"message": f"Injected failure {status}"}, status=status)
        if self.delay:
            await asyncio.sleep(self.delay)
        return await handler(request)

    def _stats_for(self, request: web.Request) -> dict[str, Any]:
        user_id = request.match_info["user_id"]
        if user_id not in self.challenge_stats:
            raise web.HTTPNotFound(
                text='{"message": "Challenge stats not found"}', content_type="application/json"
            )
        return self.challenge_stats[user_id]

    async def get_challenge_stats(self, request: web.Request) -> web.Response:
        return web.json_response(self._stats_for(request))

    async def put_challenge_stats(self, request: web.Request) -> web.Response:
        stats = self._stats_for(request)
        stats.update(await request.json())
        return web.json_response(stats)

    async def submit_challenge_answer(self, request: web.Request) -> web.Response:
        stats = self._stats_for(request)
        body = await request.json()
        if body["wasCorrect"]:
            stats["todayCorrectAnswers"] += 1
            stats["totalCorrectAnswers"] += 1
            uid = request.match_info["user_id"]
            self.leaderboard[uid] = self.leaderboard.get(uid, 0) + 1
        else:
            stats["todayIncorrectAnswers"] += 1
            stats["totalIncorrectAnswers"] += 1
        return web.json_response(stats)

    async def bump_challenge_stat(self, request: web.Request) -> web.Response:
        stats = self._stats_for(request)
        user = self.user_stats.setdefault(request.match_info["user_id"], {"userId": request.match_info["user_id"]})
        stat = request.match_info["stat"]
        if stat == "streak":
            stats["hasCompletedTodayChallenge"] = True
            stats["currentStreak"] = stats.get("currentStreak", 0) + 1
            stats["longestStreak"] = max(stats.get("longestStreak", 0), stats["currentStreak"])
        elif stat == "quiz-completed":
            stats["totalChallengesCompleted"] = stats.get("totalChallengesCompleted", 0) + 1
            user["totalQuizzesCompleted"] = user.get("totalQuizzesCompleted", 0) + 1
        elif stat == "cards-reviewed":
            stats["cardsReviewed"] = stats.get("cardsReviewed", 0) + 1
        elif stat == "cards-mastered":
            stats["cardsMastered"] = stats.get("cardsMastered", 0) + 1
        elif stat == "experience":
            body = await request.json()
            user["experiencePoints"] = user.get("experiencePoints", 0) + int(body["amount"])
        else:
            raise web.HTTPNotFound(text='{"message": "Unknown stat"}', content_type="application/json")
        return web.Response(status=204)

    async def get_user_stats(self, request: web.Request) -> web.Response:
        uid = request.match_info["user_id"]
        return web.json_response(self.user_stats.get(uid, {"userId": uid}))

    async def get_flashcard_summary(self, request: web.Request) -> web.Response:
        uid = request.match_info["user_id"]
        answers = [a for a in self.flashcard_answers if a["userId"] == uid]
        return web.json_response(
            {
                "userId": uid,
                "totalViews": len(answers),
                "totalCorrectAnswers": sum(1 for a in answers if a["wasCorrect"]),
                "totalIncorrectAnswers": sum(1 for a in answers if not a["wasCorrect"]),
            }
        )

    async def submit_flashcard_answer(self, request: web.Request) -> web.Response:
        self.flashcard_answers.append(await request.json())
        return web.json_response({"ok": True})

    async def get_leaderboard(self, request: web.Request) -> web.Response:
        ranked = sorted(self.leaderboard.items(), key=lambda kv: -kv[1])
        return web.json_response(
            [{"userId": uid, "name": uid.upper(), "score": score, "rank": i + 1} for i, (uid, score) in enumerate(ranked)]
        )

    async def post_leaderboard_entry(self, request: web.Request) -> web.Response:
        body = await request.json()
        uid = body["userId"]
        self.leaderboard[uid] = self.leaderboard.get(uid, 0) + int(body["scoreToAdd"])
        return web.json_response({"userId": uid, "name": uid.upper(), "score": self.leaderboard[uid]})

    async def get_sentences(self, request: web.Request) -> web.Response:
        return web.json_response(self.sentences)

    async def get_challenge_questions(self, request: web.Request) -> web.Response:
        return web.json_response([{"id": "q1", "question": "Labas?"}, {"id": "q2", "question": "Ačiū?"}])

    async def get_announcements(self, request: web.Request) -> web.Response:
        return web.json_response([{"id": "a1", "title": "Sveiki", "content": "New lessons"}])

    async def get_app_info(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "platform": request.match_info["platform"],
                "currentVersion": "1.4.0",
                "minimumVersion": "1.2.0",
                "updateUrl": "https://example.invalid/app",
                "releaseNotes": "Faster quizzes",
            }
        )

    async def post_report(self, request: web.Request) -> web.Response:
        self.reports.append(await request.json())
        return web.json_response({"id": "r1"}, status=201)

    async def delete_profile(self, request: web.Request) -> web.Response:
        self.deleted_users.append(request.match_info["user_id"])
        return web.Response(status=204)

    async def server_error(self, request: web.Request) -> web.Response:
        return web.Response(status=500, text="Internal failure")

    async def unauthorized(self, request: web.Request) -> web.Response:
        return web.json_response({"message": "Unauthorized"}, status=401)

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._middleware])
        stats = "/api/v1/UserChallengeStats/{user_id}"
        app.router.add_get(f"{stats}/stats", self.get_challenge_stats)
        app.router.add_put(f"{stats}/stats", self.put_challenge_stats)
        app.router.add_post(f"{stats}/submit-answer", self.submit_challenge_answer)
        app.router.add_post("/api/v1/ChallengeStats/{user_id}/stats/{stat}", self.bump_challenge_stat)
        app.router.add_get("/api/user/{user_id}/stats", self.get_user_stats)
        app.router.add_get("/api/v1/UserFlashcardStats/{user_id}/summary-stats", self.get_flashcard_summary)
        app.router.add_post("/api/v1/UserFlashcardStats/submit-answer", self.submit_flashcard_answer)
        app.router.add_get("/api/v1/Leaderboard/current", self.get_leaderboard)
        app.router.add_post("/api/v1/Leaderboard/entry", self.post_leaderboard_entry)
        app.router.add_get("/api/v1/Sentence/daily", self.get_sentences)
        app.router.add_get("/api/v1/Challenge/daily", self.get_challenge_questions)
        app.router.add_get("/api/v1/Announcement", self.get_announcements)
        app.router.add_get("/api/v1/AppInfo/{platform}", self.get_app_info)
        app.router.add_post("/api/Report", self.post_report)
        app.router.add_delete("/api/v1/UserProfile/{user_id}", self.delete_profile)
        app.router.add_get("/boom", self.server_error)
        app.router.add_get("/private", self.unauthorized)
        return app


@pytest_asyncio.fixture
async def backend():
    fake = FakeBackend()
    server = TestServer(fake.app())
    await server.start_server()
    fake.url = str(server.make_url("")).rstrip("/")
    try:
        yield fake
    finally:
        await server.close()


@pytest_asyncio.fixture
async def store(tmp_path):
    kv = KeyValueStore(tmp_path / "test.db")
    await kv.init()
    return kv
