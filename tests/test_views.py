import asyncio

import discord

from conftest import ScriptedRandom
from nappbot.modules.session import GameKind, SessionState
from nappbot.views.games import DiscordRenderer, GameView, MoveButton, ReplayButton, build_embed


def test_blackjack_embed_hides_the_dealer_hole_card(engine, rng):
    rng.cards.extend(["10S", "9H", "6S", "8D"])
    session = engine.start_session("u1", GameKind.BLACKJACK, 20)
    embed = build_embed(session)
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Your Hand"] == "10♠ 6♠ (Total: 16)"
    assert fields["Dealer's Hand"] == "9♥ ?"
    assert "Risky" in fields["Tip"]
    assert embed.colour == discord.Colour.blue()


def test_settled_embed_shows_the_result(engine, rng):
    rng.symbols.append((7, "red"))
    session = engine.start_session("u1", GameKind.ROULETTE, 10, {"bet_type": "number", "number": 7})
    embed = build_embed(session)
    assert "350" in embed.description
    assert embed.colour == discord.Colour.green()
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Streak"] == "🔥 1 win in a row"
    assert fields["Balance"] == "💰 450 coins"
    assert "Play Again" in embed.footer.text


def test_expired_embed(engine, rng, clock):
    rng.uniforms.append(50)
    session = engine.start_session("u1", GameKind.HIGHERLOWER, 20)
    clock.advance(61)
    engine.expire_session(session.session_id)
    embed = build_embed(session)
    assert "forfeited" in embed.description
    assert embed.colour == discord.Colour.orange()
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Streak"] == "🥶 1 loss in a row"


def test_view_offers_legal_moves_then_replay(engine, rng):
    rng.cards.extend(["10S", "9H", "9S", "8D"])
    session = engine.start_session("u1", GameKind.BLACKJACK, 20)

    async def build():
        playing = GameView.for_session(engine, session)
        engine.submit_move(session.session_id, "stand", "u1")
        finished = GameView.for_session(engine, session)
        return playing, finished

    playing, finished = asyncio.run(build())
    assert [b.move for b in playing.children if isinstance(b, MoveButton)] == ["hit", "stand", "double"]
    assert len(finished.children) == 1
    assert isinstance(finished.children[0], ReplayButton)
    assert finished.children[0].token == session.replay_token


class FakeMessage:
    def __init__(self):
        self.edits = []

    async def edit(self, **kwargs):
        self.edits.append(kwargs)


def test_renderer_only_edits_timed_out_games(engine, rng, clock):
    rng.uniforms.extend([50, 50, 10])
    timed_out = engine.start_session("u1", GameKind.HIGHERLOWER, 20)
    played = engine.start_session("u2", GameKind.HIGHERLOWER, 20)

    async def run():
        renderer = DiscordRenderer(asyncio.get_running_loop())
        engine.renderer = renderer
        expired_msg, played_msg = FakeMessage(), FakeMessage()
        renderer.track(timed_out.session_id, expired_msg)
        renderer.track(played.session_id, played_msg)

        engine.submit_move(played.session_id, "higher", "u2")
        clock.advance(61)
        await asyncio.to_thread(engine.expire_session, timed_out.session_id)
        await asyncio.sleep(0.05)
        return expired_msg, played_msg

    expired_msg, played_msg = asyncio.run(run())
    assert timed_out.state == SessionState.EXPIRED
    assert len(expired_msg.edits) == 1
    assert expired_msg.edits[0]["view"] is None
    assert played_msg.edits == []
    assert played.state == SessionState.SETTLED


def test_higher_lower_offers_cash_out_with_the_pot(engine, rng):
    rng.uniforms.extend([50, 80])
    session = engine.start_session("u1", GameKind.HIGHERLOWER, 20)
    engine.submit_move(session.session_id, "higher", "u1")

    async def build():
        return GameView.for_session(engine, session)

    view = asyncio.run(build())
    buttons = [b for b in view.children if isinstance(b, MoveButton)]
    assert [b.move for b in buttons] == ["higher", "lower", "cashout"]
    assert buttons[-1].label == "💰 Cash Out (40)"

    fields = {f.name: f.value for f in build_embed(session).fields}
    assert fields["Current Number"] == "**80**"
    assert fields["Pot"] == "💰 40 coins (1 in a row)"
    assert fields["Your Call"].startswith("Keep going for **80**")


def test_renderer_edits_a_game_cashed_out_by_the_clock(engine, rng, clock):
    rng.uniforms.extend([50, 80])
    session = engine.start_session("u1", GameKind.HIGHERLOWER, 20)
    engine.submit_move(session.session_id, "higher", "u1")

    async def run():
        renderer = DiscordRenderer(asyncio.get_running_loop())
        engine.renderer = renderer
        message = FakeMessage()
        renderer.track(session.session_id, message)
        clock.advance(61)
        await asyncio.to_thread(engine.expire_session, session.session_id)
        await asyncio.sleep(0.05)
        return message

    message = asyncio.run(run())
    assert session.state == SessionState.SETTLED
    assert len(message.edits) == 1
    assert "cashed out" in message.edits[0]["embed"].description
