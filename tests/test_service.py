from datetime import datetime, timezone

import pytest

from engine.errors import (
    Conflict,
    InsufficientChips,
    InvalidInput,
    NotAuthorized,
    NotFound,
    TournamentClosed,
)
from engine.models import GRACE_PERIOD_MS
from host.projection import project_table
from host.store import VersionMismatch

from .helpers import FakeClock, make_service

CONFIG = {"variant": "lowball_27", "maxPlayers": 4, "turnTimeMs": 30_000}


def cash_table(clock=None, **extra):
    service = make_service({"alice": 5_000, "bob": 5_000, "carol": 500}, clock=clock)
    payload = {"tableId": "T1", "config": dict(CONFIG)}
    payload.update(extra)
    result = service.create_table("alice", payload)
    assert result.version == 1
    return service


def seated_table(clock=None):
    service = cash_table(clock)
    service.submit("T1", "alice", "joinAsPlayer", {"buyIn": 1_000, "displayName": "Alice"})
    service.submit("T1", "bob", "joinAsPlayer", {"buyIn": 1_000})
    return service


def test_join_moves_chips_from_wallet():
    service = seated_table()
    assert service.store.balance("alice") == 4_000
    state, version = service.view("T1", "alice")
    assert version == 3
    assert [seat["displayName"] for seat in state["seats"][:2]] == ["Alice", "bob"]
    assert state["seats"][0]["chips"] == 1_000


def test_join_rejects_short_wallet_without_committing():
    service = cash_table()
    with pytest.raises(InsufficientChips):
        service.submit("T1", "carol", "joinAsPlayer", {"buyIn": 1_000})
    state, version = service.view("T1", "carol")
    assert version == 1
    assert all(seat is None for seat in state["seats"])
    assert service.store.balance("carol") == 500


def test_leave_cashes_out():
    service = seated_table()
    result = service.submit("T1", "bob", "leaveTable")
    assert result.events[0]["cashOut"] == 1_000
    assert service.store.balance("bob") == 5_000
    assert result.state["seats"][1] is None


def test_projection_hides_other_hands_and_the_deck():
    service = seated_table()
    service.submit("T1", "alice", "deal")
    alice_view, _ = service.view("T1", "alice")
    bob_view, _ = service.view("T1", "bob")
    assert "deck" not in alice_view and "recentIntents" not in alice_view
    assert len(alice_view["seats"][0]["hand"]) == 5
    assert alice_view["seats"][1]["hand"] == []
    assert alice_view["seats"][1]["handCount"] == 5
    assert bob_view["seats"][0]["hand"] == []
    assert len(bob_view["seats"][1]["hand"]) == 5


def test_projection_shows_revealed_hands():
    document = {
        "config": {"passwordHash": "abc"},
        "seats": [
            {"uid": "a", "hand": [{"rank": "A", "suit": "s"}], "handRevealed": True},
            {"uid": "b", "hand": [{"rank": "2", "suit": "c"}], "handRevealed": False},
            None,
        ],
        "deck": {"live": []},
    }
    view = project_table(document, "spectator")
    assert view["seats"][0]["hand"] == [{"rank": "A", "suit": "s"}]
    assert view["seats"][1]["hand"] == []
    assert view["config"] == {"hasPassword": True}
    assert document["seats"][1]["hand"]


def test_members_only():
    service = seated_table()
    with pytest.raises(NotAuthorized):
        service.submit("T1", "carol", "deal")
    service.submit("T1", "alice", "deal")
    with pytest.raises(NotAuthorized):
        service.submit("T1", "carol", "betAction", {"action": "FOLD"})
    with pytest.raises(InvalidInput):
        service.submit("T1", "alice", "shuffleUp")
    with pytest.raises(InvalidInput):
        service.submit("T1", "alice", "betAction", {"action": "SHOVE"})
    with pytest.raises(NotFound):
        service.submit("nope", "alice", "deal")


def test_duplicate_intent_is_not_applied_twice():
    service = seated_table()
    dealt = service.submit("T1", "alice", "deal")
    first = service.submit("T1", "alice", "betAction", {"action": "CALL"}, version=dealt.version)
    assert first.committed
    assert first.version == dealt.version + 1
    again = service.submit("T1", "alice", "betAction", {"action": "CALL"}, version=dealt.version)
    assert not again.committed
    assert again.version == first.version
    assert again.events == []
    state, _ = service.view("T1", "alice")
    assert state["seats"][0]["chips"] == 980


def test_cas_retries_then_gives_up(monkeypatch):
    service = seated_table()
    calls = []

    def always_busy(table_id, document, expected_version, wallet_deltas=None):
        calls.append(expected_version)
        raise VersionMismatch(table_id, expected_version, expected_version + 1)

    monkeypatch.setattr(service.store, "commit", always_busy)
    with pytest.raises(Conflict):
        service.submit("T1", "alice", "deal")
    assert len(calls) == 5


def test_cas_retry_recovers_after_a_race(monkeypatch):
    service = seated_table()
    real_commit = service.store.commit
    calls = []

    def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise VersionMismatch("T1", args[2], args[2] + 1)
        return real_commit(*args, **kwargs)

    monkeypatch.setattr(service.store, "commit", flaky)
    result = service.submit("T1", "alice", "deal")
    assert result.committed
    assert len(calls) == 2
    assert result.state["phase"] == "BETTING_1"


def test_password_protected_table():
    service = cash_table(password="hunter2")
    state, _ = service.view("T1", "bob")
    assert state["config"]["hasPassword"]
    assert "passwordHash" not in state["config"]
    with pytest.raises(NotAuthorized):
        service.submit("T1", "bob", "joinAsPlayer", {"buyIn": 1_000})
    with pytest.raises(NotAuthorized):
        service.submit("T1", "bob", "joinAsPlayer", {"buyIn": 1_000, "password": "nope"})
    service.submit("T1", "bob", "joinAsPlayer", {"buyIn": 1_000, "password": "hunter2"})
    assert service.store.balance("bob") == 4_000


def test_early_timeout_is_not_committed_and_tick_fires_it():
    clock = FakeClock()
    service = seated_table(clock)
    dealt = service.submit("T1", "alice", "deal")
    early = service.submit("T1", "bob", "timeout", {"seat": 0})
    assert not early.committed
    assert early.version == dealt.version

    clock.advance(30_000 + GRACE_PERIOD_MS)
    results = service.tick("T1")
    assert len(results) == 1
    state, _ = service.view("T1", "alice")
    assert state["phase"] == "SHOWDOWN"
    assert state["seats"][0]["lastAction"] == "Fold (timeout)"
    assert service.tick("T1") == []


def test_chat_and_bots():
    service = seated_table()
    result = service.submit("T1", "bob", "sendChat", {"text": "  gl hf  "})
    assert result.state["chatLog"][-1]["text"] == "gl hf"
    with pytest.raises(InvalidInput):
        service.submit("T1", "bob", "sendChat", {"text": "   "})

    with pytest.raises(NotAuthorized):
        service.submit("T1", "bob", "addBot", {"difficulty": "hard"})
    with pytest.raises(InvalidInput):
        service.submit("T1", "alice", "addBot", {"difficulty": "godlike"})
    added = service.submit("T1", "alice", "addBot", {"difficulty": "hard"})
    bot = added.state["seats"][2]
    assert bot["isBot"] and bot["botDifficulty"] == "hard" and bot["chips"] == 1_000
    kicked = service.submit("T1", "alice", "kickBot", {"seat": 2})
    assert kicked.state["seats"][2] is None


def test_sit_and_go_pays_the_winner():
    service = make_service({"alice": 5_000, "bob": 5_000, "carol": 5_000})
    config = {"mode": "sng", "variant": "holdem", "maxPlayers": 2, "buyIn": 1_000, "startingChips": 1_000}
    service.create_table("alice", {"tableId": "S1", "config": config})
    service.submit("S1", "alice", "registerForTournament")
    assert service.store.balance("alice") == 4_000
    service.submit("S1", "bob", "joinAsPlayer")
    state, _ = service.view("S1", "alice")
    assert state["tournament"]["state"] == "RUNNING"
    assert state["tournament"]["prizePool"] == 2_000
    assert state["phase"] == "CUT_FOR_DEALER"

    service.submit("S1", "carol", "joinAsPlayer")
    state, _ = service.view("S1", "carol")
    assert [entry["uid"] for entry in state["railbirds"]] == ["carol"]
    with pytest.raises(TournamentClosed):
        service.submit("S1", "carol", "registerForTournament")

    for _ in range(300):
        state, _ = service.view("S1", "alice")
        if state["tournament"]["state"] == "COMPLETED":
            break
        phase = state["phase"]
        if phase == "CUT_FOR_DEALER":
            service.submit("S1", "alice", "resolveCutForDealer")
        elif phase == "SHOWDOWN":
            service.submit("S1", "alice", "startNextHand")
        elif phase == "IDLE":
            service.submit("S1", "alice", "deal")
        else:
            uid = state["seats"][state["activeSeat"]]["uid"]
            legal = service.turn_options("S1", uid)["legal"]
            action = "ALL_IN" if "ALL_IN" in legal else ("CALL" if "CALL" in legal else "CHECK")
            service.submit("S1", uid, "betAction", {"action": action})

    assert state["tournament"]["state"] == "COMPLETED"
    payouts = state["tournament"]["payouts"]
    assert len(payouts) == 1 and payouts[0]["amount"] == 2_000
    balances = sorted(service.store.balance(uid) for uid in ("alice", "bob"))
    assert balances == [4_000, 6_000]


def play_out(service, table_id, players):
    for _ in range(400):
        state, _ = service.view(table_id, players[0])
        if state["tournament"]["state"] == "COMPLETED":
            return state
        phase = state["phase"]
        if phase == "CUT_FOR_DEALER":
            service.submit(table_id, players[0], "resolveCutForDealer")
        elif phase == "SHOWDOWN":
            service.submit(table_id, players[0], "startNextHand")
        elif phase == "IDLE":
            service.submit(table_id, players[0], "deal")
        else:
            uid = state["seats"][state["activeSeat"]]["uid"]
            legal = service.turn_options(table_id, uid)["legal"]
            action = "ALL_IN" if "ALL_IN" in legal else ("CALL" if "CALL" in legal else "CHECK")
            service.submit(table_id, uid, "betAction", {"action": action})
    raise AssertionError("tournament did not finish")


def test_bot_finishers_are_paid_so_the_whole_pool_is_credited():
    service = make_service({"alice": 5_000})
    config = {"mode": "sng", "variant": "holdem", "maxPlayers": 3, "buyIn": 1_000, "startingChips": 1_000}
    service.create_table("alice", {"tableId": "S1", "config": config})
    service.submit("S1", "alice", "registerForTournament")
    service.submit("S1", "alice", "addBot", {"difficulty": "easy"})
    service.submit("S1", "alice", "addBot", {"difficulty": "hard"})
    state, _ = service.view("S1", "alice")
    assert state["tournament"]["state"] == "RUNNING"
    assert state["tournament"]["prizePool"] == 3_000
    bots = [entry["uid"] for entry in state["tournament"]["registrations"] if entry["isBot"]]
    assert [service.store.balance(uid) for uid in bots] == [0, 0]

    state = play_out(service, "S1", ["alice"])
    payouts = state["tournament"]["payouts"]
    assert sum(p["amount"] for p in payouts) == 3_000
    credited = service.store.balance("alice") - 4_000 + sum(service.store.balance(uid) for uid in bots)
    assert credited == 3_000
    for payout in payouts:
        if payout["uid"] in bots:
            assert service.store.balance(payout["uid"]) == payout["amount"]


def test_tick_accepts_seconds_shaped_turn_deadline():
    clock = FakeClock()
    service = seated_table(clock)
    service.submit("T1", "alice", "deal")
    document, version = service.store.read("T1")
    document["turnDeadline"] = {"seconds": (clock.now + 30_000) // 1_000, "nanoseconds": 0}
    service.store.commit("T1", document, version)

    assert service.tick("T1") == []
    clock.advance(30_000 + GRACE_PERIOD_MS)
    assert len(service.tick("T1")) == 1
    state, _ = service.view("T1", "alice")
    assert state["phase"] == "SHOWDOWN"
    assert state["turnDeadline"] is None


def test_tick_accepts_datetime_blind_deadline():
    clock = FakeClock()
    service = make_service({"alice": 5_000, "bob": 5_000}, clock=clock)
    config = {"mode": "sng", "variant": "holdem", "maxPlayers": 2, "buyIn": 1_000, "startingChips": 1_000}
    service.create_table("alice", {"tableId": "S1", "config": config})
    service.submit("S1", "alice", "registerForTournament")
    service.submit("S1", "bob", "registerForTournament")
    document, version = service.store.read("S1")
    due = datetime.fromtimestamp((clock.now - 1_000) / 1_000, tz=timezone.utc)
    document["tournament"]["blindTimer"]["nextLevelAt"] = due
    service.store.commit("S1", document, version)

    assert service.tick("S1")
    state, _ = service.view("S1", "alice")
    timer = state["tournament"]["blindTimer"]
    assert timer["currentLevel"] == 1
    assert timer["nextLevelAt"] == clock.now + 300_000


def test_recent_intent_record_holds_request_and_base_version():
    service = seated_table()
    dealt = service.submit("T1", "alice", "deal")
    service.submit("T1", "alice", "betAction", {"action": "CALL"}, version=dealt.version)
    document, _ = service.store.read("T1")
    record = document["recentIntents"]["alice"]
    assert set(record) == {"request", "baseVersion"}
    assert record["baseVersion"] == dealt.version
