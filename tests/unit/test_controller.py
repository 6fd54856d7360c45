"""Unit tests for the controller state machine."""

import asyncio

import pytest

from de_en_dict.core.dictionary import DictionaryStats
from de_en_dict.exceptions import (
    ControllerNotReadyError,
    RequestTimeoutError,
    SearchInProgressError,
    SearchTermRejectedError,
)
from de_en_dict.protocol.controller import MainController, environment_identifier
from de_en_dict.protocol.messages import (
    DictProgressMessage,
    DictUpdateMessage,
    RandomLineMessage,
    ResultsMessage,
    SearchProgressMessage,
    WorkerStatusMessage,
    encode_message,
)
from de_en_dict.protocol.states import MainState, WorkerState

STATS = DictionaryStats(lines=6, entries=7, one_to_one=4)


class Harness:
    """A controller wired to a recording send function."""

    def __init__(self, settings):
        self.sent = []
        self.controller = MainController(settings, self.sent.append)

    def deliver(self, message):
        self.controller.receive(encode_message(message))

    def ready(self):
        self.deliver(WorkerStatusMessage(state=WorkerState.READY, stats=STATS))

    def results(self, query, matches=("run::rennen",)):
        self.deliver(ResultsMessage(query=query, pattern="r[uü]n", matches=list(matches)))


def ready_harness(settings):
    harness = Harness(settings)
    harness.controller.start()
    harness.ready()
    return harness


class TestStartup:
    """Status handshake and dictionary loading."""

    def test_start_requests_worker_status(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            assert harness.sent == [{"type": "status-req"}]
            assert harness.controller.state == MainState.INIT

        asyncio.run(scenario())

    def test_unanswered_status_requests_lead_to_error(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            await asyncio.sleep(0.5)
            assert harness.sent == [{"type": "status-req"}] * settings.status_retries
            assert harness.controller.state == MainState.ERROR
            assert "status" in harness.controller.diagnostic()

        asyncio.run(scenario())

    def test_loading_then_ready(self, settings):
        async def scenario():
            harness = Harness(settings)
            controller = harness.controller
            controller.start()
            harness.deliver(WorkerStatusMessage(state=WorkerState.LOADING_DICT))
            assert controller.state == MainState.AWAITING_DICT

            harness.deliver(DictProgressMessage(percent=40.0))
            assert controller.status().load_progress == 40.0

            harness.ready()
            assert controller.state == MainState.READY
            assert controller.navigation_installed
            assert controller.stats == STATS

            await asyncio.sleep(0.2)
            # no further status requests and no search for the empty location
            assert harness.sent == [{"type": "status-req"}]

        asyncio.run(scenario())

    def test_location_is_searched_once_ready(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            assert harness.controller.navigate(" Hund ") is None
            harness.ready()
            assert harness.sent[-1] == {"type": "search", "query": "Hund"}
            assert harness.controller.state == MainState.SEARCHING

        asyncio.run(scenario())

    def test_worker_error_enters_error_state(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            harness.deliver(WorkerStatusMessage(state=WorkerState.ERROR, error="disk full"))
            controller = harness.controller
            assert controller.state == MainState.ERROR
            diagnostic = controller.diagnostic()
            assert diagnostic.startswith(environment_identifier())
            assert "worker: disk full" in diagnostic
            with pytest.raises(ControllerNotReadyError):
                controller.request_search("Hund")

        asyncio.run(scenario())

    def test_undecodable_messages_are_dropped(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            harness.controller.receive({"type": "bogus"})
            harness.controller.receive(None)
            assert harness.controller.state == MainState.READY

        asyncio.run(scenario())


class TestSearching:
    """Search requests, caching and the one-request-at-a-time rule."""

    def test_search_resolves_with_results_and_is_cached(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            controller = harness.controller
            future = controller.request_search("  run ")
            assert harness.sent[-1] == {"type": "search", "query": "run"}
            assert controller.state == MainState.SEARCHING

            harness.deliver(SearchProgressMessage(percent=50.0))
            assert controller.status().search_progress == 50.0

            harness.results("run", ["to run::laufen", "run::rennen"])
            outcome = await future
            assert outcome.matches == ["to run::laufen", "run::rennen"]
            assert outcome.cache_hit is False
            assert controller.state == MainState.READY

            sent_before = len(harness.sent)
            cached = await controller.request_search("run")
            assert cached.cache_hit is True
            assert cached.matches == outcome.matches
            assert len(harness.sent) == sent_before

        asyncio.run(scenario())

    def test_search_while_searching_is_a_no_op(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            controller = harness.controller
            controller.request_search("run")
            assert controller.request_search("Hund") is None
            with pytest.raises(SearchInProgressError):
                await controller.search("Hund")
            assert [m for m in harness.sent if m["type"] == "search"] == [{"type": "search", "query": "run"}]

        asyncio.run(scenario())

    def test_single_character_terms_are_rejected(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            sent_before = len(harness.sent)
            with pytest.raises(SearchTermRejectedError):
                harness.controller.request_search(" a ")
            assert len(harness.sent) == sent_before

        asyncio.run(scenario())

    def test_search_before_ready_is_refused(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            with pytest.raises(ControllerNotReadyError):
                harness.controller.request_search("Hund")

        asyncio.run(scenario())

    def test_empty_term_resolves_locally(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            outcome = await harness.controller.request_search("   ")
            assert outcome.matches == []
            assert harness.controller.state == MainState.READY

        asyncio.run(scenario())

    def test_results_outside_searching_are_dropped(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            harness.results("run")
            assert harness.controller.state == MainState.READY
            assert len(harness.controller.results_cache) == 0

        asyncio.run(scenario())

    def test_stale_results_are_dropped(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_search("run")
            harness.results("Hund")
            assert harness.controller.state == MainState.SEARCHING
            assert not future.done()

        asyncio.run(scenario())

    def test_timeout_forces_error_and_drops_late_reply(self, settings):
        async def scenario():
            harness = ready_harness(settings.model_copy(update={"search_timeout": 0.05}))
            controller = harness.controller
            future = controller.request_search("run")
            with pytest.raises(RequestTimeoutError):
                await future
            assert controller.state == MainState.ERROR

            harness.results("run")
            assert controller.state == MainState.ERROR
            assert "timed out" in controller.diagnostic()

        asyncio.run(scenario())

    def test_worker_refusing_a_search_is_an_error(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_search("run")
            harness.deliver(WorkerStatusMessage(state=WorkerState.LOADING_DICT))
            assert harness.controller.state == MainState.ERROR
            with pytest.raises(ControllerNotReadyError):
                await future

        asyncio.run(scenario())

    def test_navigation_triggers_search(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            controller = harness.controller
            future = controller.navigate("Hund")
            assert harness.sent[-1] == {"type": "search", "query": "Hund"}
            assert controller.location == "Hund"
            # navigating while searching is a no-op
            assert controller.navigate("Katze") is None
            assert controller.location == "Hund"
            harness.results("Hund", ["Hund::dog"])
            assert (await future).matches == ["Hund::dog"]

        asyncio.run(scenario())

    def test_refused_search_keeps_location(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            controller = harness.controller
            future = asyncio.ensure_future(controller.search("run"))
            await asyncio.sleep(0)
            assert controller.location == "run"

            with pytest.raises(SearchInProgressError):
                await controller.search("Hund")
            assert controller.location == "run"

            harness.results("run")
            await future
            with pytest.raises(SearchTermRejectedError):
                await controller.search(" x ")
            assert controller.location == "run"

        asyncio.run(scenario())

    def test_search_before_ready_does_not_move_location(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            with pytest.raises(ControllerNotReadyError):
                await harness.controller.search("Hund")
            assert harness.controller.location == ""

        asyncio.run(scenario())

    def test_returned_matches_do_not_alias_the_cache(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            controller = harness.controller
            future = controller.request_search("run")
            harness.results("run", ["to run::laufen", "run::rennen"])
            outcome = await future
            outcome.matches.clear()
            outcome.suggestions.append("rennen")

            cached = await controller.request_search("run")
            assert cached.cache_hit is True
            assert cached.matches == ["to run::laufen", "run::rennen"]
            assert cached.suggestions == []

        asyncio.run(scenario())

    def test_close_fails_outstanding_request(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_search("run")
            harness.controller.close()
            with pytest.raises(ControllerNotReadyError):
                await future

        asyncio.run(scenario())


class TestRandomAndUpdates:
    """Random entries, background update notices and subscribers."""

    def test_random_entry(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_random()
            assert harness.sent[-1] == {"type": "get-rand"}
            harness.deliver(RandomLineMessage(line="Hund::dog"))
            assert await future == "Hund::dog"
            assert harness.controller.state == MainState.READY

        asyncio.run(scenario())

    def test_random_line_during_search_is_dropped(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_search("run")
            harness.deliver(RandomLineMessage(line="Hund::dog"))
            assert harness.controller.state == MainState.SEARCHING
            assert not future.done()

        asyncio.run(scenario())

    def test_update_notice_accepted_in_any_state(self, settings):
        async def scenario():
            harness = Harness(settings)
            harness.controller.start()
            harness.deliver(DictUpdateMessage(status="loading", stats=STATS))
            assert harness.controller.state == MainState.INIT
            assert harness.controller.stats == STATS
            assert harness.controller.status().update_status == "loading"

        asyncio.run(scenario())

    def test_finished_update_clears_result_cache(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            future = harness.controller.request_search("run")
            harness.results("run")
            await future
            assert len(harness.controller.results_cache) == 1

            harness.deliver(DictUpdateMessage(status="done", stats=DictionaryStats(lines=7, entries=8)))
            status = harness.controller.status()
            assert status.state == MainState.READY
            assert status.stats.lines == 7
            assert status.update_text == "Dictionary updated"
            assert len(harness.controller.results_cache) == 0

        asyncio.run(scenario())

    def test_progress_in_wrong_state_is_dropped(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            harness.deliver(SearchProgressMessage(percent=10.0))
            harness.deliver(DictProgressMessage(percent=10.0))
            status = harness.controller.status()
            assert status.search_progress is None
            assert status.load_progress is None

        asyncio.run(scenario())

    def test_subscribers_see_accepted_messages_only(self, settings):
        async def scenario():
            harness = ready_harness(settings)
            seen = []
            harness.controller.subscribe(lambda message: seen.append(message.type))
            harness.deliver(SearchProgressMessage(percent=10.0))
            harness.deliver(DictUpdateMessage(status="error", stats=STATS))
            assert seen == ["dict-upd"]

        asyncio.run(scenario())
