from __future__ import annotations

import logging
import math
import random
import threading
from datetime import datetime, timedelta

from .config import TriviaConfig
from .names import DisplayNameCache
from .normalize import format_utc_timestamp, normalize_letter, render_template, utc_now
from .ports import Clock, MessengerPort, RandomPort, RewardGrantorPort
from .questions import QuestionBank
from .recency import RecentlyUsedIds
from .types import CommandResult, PersistedRoundResult, Phase, Round
from ..persistence.interfaces import RoundResultRepo


class SessionScheduler:
    """Timer-driven trivia round: join window, questions, reveal, winners, claims.

    Every public entry point runs under one lock, so player commands never
    interleave with a tick. Timed transitions only happen inside ``on_tick``;
    player commands at most pull a deadline forward, and the next tick performs
    the transition.
    """

    def __init__(
        self,
        config: TriviaConfig,
        bank: QuestionBank,
        messenger: MessengerPort,
        grantor: RewardGrantorPort,
        result_repo: RoundResultRepo | None = None,
        clock: Clock | None = None,
        rng: RandomPort | None = None,
        names: DisplayNameCache | None = None,
        logger: logging.Logger | None = None,
    ):
        self._config = config
        self._bank = bank
        self._messenger = messenger
        self._grantor = grantor
        self._result_repo = result_repo
        self._clock = clock or utc_now
        self._rng = rng or random.Random()
        self._names = names or DisplayNameCache()
        self._logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._tick_guard = threading.Lock()
        self._round = Round()
        self._recent: RecentlyUsedIds[str] = RecentlyUsedIds(config.recency_capacity)
        self._result: PersistedRoundResult | None = self._load_result()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._round.phase

    @property
    def round(self) -> Round:
        return self._round

    @property
    def result(self) -> PersistedRoundResult | None:
        return self._result

    @property
    def config(self) -> TriviaConfig:
        return self._config

    @property
    def recent_question_ids(self) -> RecentlyUsedIds[str]:
        return self._recent

    def status_line(self) -> str:
        with self._lock:
            r = self._round
            tag = " (dry-run)" if r.is_dry_run else ""
            if r.phase is Phase.IDLE:
                return "[TRIVIA] Idle. Next start: top of the hour."
            if r.phase is Phase.JOINING:
                return f"[TRIVIA] Joining{tag}: {len(r.joined_players)} joined."
            if r.phase is Phase.ASKING:
                return (
                    f"[TRIVIA] Question {r.question_index + 1}/{len(r.selected_questions)}{tag}. "
                    f"Players: {len(r.joined_players)}."
                )
            if r.phase is Phase.REVEAL:
                return f"[TRIVIA] Revealing Q{r.question_index + 1}{tag}."
            if r.phase is Phase.FINISHED:
                return f"[TRIVIA] Computing winners{tag}..."
            return f"[TRIVIA] Winners may /claim{tag}."

    # ------------------------------------------------------------------
    # Tick driver
    # ------------------------------------------------------------------

    def on_tick(self, now: datetime | None = None) -> bool:
        """Advance time-based state. Returns False when skipped as re-entrant."""
        if not self._tick_guard.acquire(blocking=False):
            self._logger.debug("Tick skipped: previous tick still running")
            return False
        try:
            with self._lock:
                self._tick(now or self._clock())
        except Exception:
            self._logger.exception("Trivia tick failed")
        finally:
            self._tick_guard.release()
        return True

    def _tick(self, now: datetime) -> None:
        r = self._round
        if r.phase is Phase.IDLE:
            if self._should_auto_start(now):
                self._begin_joining(now, is_dry_run=False, starter_id=None)
            return

        tick_every = self._config.tick_every_seconds
        if tick_every > 0 and r.next_tick_time is not None and now >= r.next_tick_time:
            self._emit_progress(now)
            r.next_tick_time = now + timedelta(seconds=tick_every)

        if r.phase_deadline is not None and now >= r.phase_deadline:
            handler = {
                Phase.JOINING: self._on_joining_deadline,
                Phase.ASKING: self._on_asking_deadline,
                Phase.REVEAL: self._on_reveal_deadline,
                Phase.FINISHED: self._on_finished_deadline,
                Phase.CLAIMABLE: self._on_claimable_deadline,
            }[r.phase]
            handler(now)

    def _should_auto_start(self, now: datetime) -> bool:
        schedule = self._config.schedule
        if schedule.mode != "hourly":
            return False
        return now.minute == schedule.minute and now.second == 0

    def _emit_progress(self, now: datetime) -> None:
        r = self._round
        secs_left = max(0, math.ceil((r.phase_deadline - now).total_seconds()))
        if secs_left == 0:
            return
        messages = self._config.messages
        if r.phase is Phase.JOINING:
            self._broadcast(render_template(messages.join_tick, secs=secs_left, count=len(r.joined_players)))
        elif r.phase is Phase.ASKING:
            self._broadcast(render_template(messages.tick, secs=secs_left))

    # ------------------------------------------------------------------
    # Phase transitions
    # ------------------------------------------------------------------

    def begin_joining(self, now: datetime, is_dry_run: bool = False, starter_id: int | None = None) -> None:
        with self._lock:
            self._begin_joining(now, is_dry_run=is_dry_run, starter_id=starter_id)

    def _begin_joining(self, now: datetime, *, is_dry_run: bool, starter_id: int | None) -> None:
        cfg = self._config
        join_seconds = max(5, cfg.join_window_seconds)
        self._round = Round(
            phase=Phase.JOINING,
            phase_deadline=now + timedelta(seconds=join_seconds),
            next_tick_time=now,
            is_dry_run=is_dry_run,
            starter_id=starter_id,
        )
        if is_dry_run and starter_id is not None:
            self._enroll(starter_id)
            self._send_private(starter_id, cfg.messages.dry_run_joined)

        announce = render_template(cfg.messages.announce, join=join_seconds)
        self._broadcast(announce + self._dry_run_tag())
        self._logger.info("Join window open %ss (dry_run=%s)", join_seconds, is_dry_run)

    def _on_joining_deadline(self, now: datetime) -> None:
        r = self._round
        cfg = self._config
        joined = len(r.joined_players)
        if not r.is_dry_run and joined < cfg.min_players:
            self._broadcast(render_template(cfg.messages.not_enough_players, need=cfg.min_players, got=joined))
            self._logger.info("Round canceled: %d < %d players", joined, cfg.min_players)
            self._round = Round()
            return

        picked = self._bank.pick(cfg.question_count, self._recent, self._rng)
        if not picked:
            self._broadcast(cfg.messages.no_questions)
            self._logger.warning("Round canceled: question bank is empty")
            self._round = Round()
            return
        if len(picked) < cfg.question_count:
            self._logger.warning("Only %d of %d questions available", len(picked), cfg.question_count)

        r.selected_questions = picked
        r.question_index = 0
        self._begin_question(now)

    def _begin_question(self, now: datetime) -> None:
        r = self._round
        cfg = self._config
        r.answered_this_question.clear()
        rq = r.current_question
        question_line = render_template(cfg.messages.q, n=r.question_index + 1, question=rq.source.text)
        options_line = render_template(
            cfg.messages.opts,
            A=rq.choices[0],
            B=rq.choices[1],
            C=rq.choices[2],
            D=rq.choices[3],
        )
        self._broadcast(question_line + "\n" + options_line)

        r.phase = Phase.ASKING
        r.phase_deadline = now + timedelta(seconds=max(1, cfg.question_time_seconds))
        r.next_tick_time = now + timedelta(seconds=cfg.tick_every_seconds)
        self._logger.info(
            "Q%d/%d ends at %s",
            r.question_index + 1,
            len(r.selected_questions),
            r.phase_deadline.isoformat(),
        )

    def _on_asking_deadline(self, now: datetime) -> None:
        r = self._round
        rq = r.current_question
        self._broadcast(
            render_template(self._config.messages.reveal, letter=rq.correct_letter, text=rq.source.correct_text)
        )
        r.phase = Phase.REVEAL
        r.phase_deadline = now + timedelta(seconds=self._config.reveal_seconds)

    def _on_reveal_deadline(self, now: datetime) -> None:
        r = self._round
        if r.question_index + 1 < len(r.selected_questions):
            r.question_index += 1
            self._begin_question(now)
            return
        r.phase = Phase.FINISHED
        r.phase_deadline = now + timedelta(seconds=self._config.finish_seconds)

    def _on_finished_deadline(self, now: datetime) -> None:
        self._announce_winners(now)
        r = self._round
        minutes = max(5, self._config.claim_window_minutes)
        r.phase = Phase.CLAIMABLE
        r.phase_deadline = now + timedelta(minutes=minutes)
        self._logger.info("Claims open for ~%d minutes (dry_run=%s)", minutes, r.is_dry_run)

    def _on_claimable_deadline(self, now: datetime) -> None:
        self._round = Round()
        self._logger.info("Claim window closed -> idle")

    def _compute_winners(self) -> tuple[list[int], int]:
        r = self._round
        scores = {pid: r.score_per_player.get(pid, 0) for pid in r.joined_players}
        top = max(scores.values(), default=0)
        if top > 0:
            return sorted(pid for pid, s in scores.items() if s == top), top
        if self._config.allow_zero_score_winners:
            return sorted(scores), 0
        return [], 0

    def _announce_winners(self, now: datetime) -> None:
        r = self._round
        messages = self._config.messages
        winners, top = self._compute_winners()
        tag = self._dry_run_tag()

        self._result = PersistedRoundResult(
            round_id=format_utc_timestamp(now),
            winners=winners,
            claimed=[],
            dry_run=r.is_dry_run,
            top_score=top,
        )
        self._persist_result()

        if not winners:
            self._broadcast(messages.round_no_win + tag)
            self._logger.info("Round %s finished with no winners", self._result.round_id)
            return

        names = ", ".join(self._names.label(pid) for pid in winners)
        lines = [
            render_template(messages.round_win, score=top, total=len(r.selected_questions), winners=names) + tag
        ]
        if r.is_dry_run:
            lines.append(messages.dry_run_claim_notice)
        else:
            lines.append(render_template(messages.claimable, credits=self._config.reward.credits))
        self._broadcast("\n".join(lines))
        self._logger.info("Round %s winners: %s (score %d)", self._result.round_id, winners, top)

    # ------------------------------------------------------------------
    # Player commands
    # ------------------------------------------------------------------

    def on_join_command(self, player_id: int) -> CommandResult:
        with self._lock:
            r = self._round
            if r.phase is not Phase.JOINING:
                return self._reject(player_id, "not_joining", self._config.messages.no_join_window)
            if player_id in r.joined_players:
                return CommandResult(status="already_joined")
            self._enroll(player_id)
            confirm = self._config.messages.join_confirm + self._dry_run_tag()
            self._send_private(player_id, confirm)
            return CommandResult(status="ok", message=confirm)

    def on_answer_command(self, player_id: int, letter: str | None) -> CommandResult:
        with self._lock:
            r = self._round
            messages = self._config.messages
            if r.phase is not Phase.ASKING:
                return self._reject(player_id, "no_question", messages.no_question)
            if player_id not in r.joined_players:
                return self._reject(player_id, "not_joined", messages.not_joined)

            now = self._clock()
            until = r.answer_cooldowns.get(player_id)
            if until is not None and now < until:
                return CommandResult(status="rate_limited")

            upper = normalize_letter(letter)
            if upper is None:
                return self._reject(player_id, "invalid_letter", messages.bad_letter)
            r.answer_cooldowns[player_id] = now + timedelta(seconds=self._config.answer_cooldown_seconds)

            if player_id in r.answered_this_question:
                return self._reject(player_id, "already_answered", messages.already_answered)

            r.answered_this_question.add(player_id)
            if upper == r.current_question.correct_letter:
                r.score_per_player[player_id] = r.score_per_player.get(player_id, 0) + 1

            if len(r.answered_this_question) >= len(r.joined_players):
                r.phase_deadline = now
                self._logger.debug("All %d players answered; fast-forwarding", len(r.joined_players))
            return CommandResult(status="ok")

    def on_claim_command(self, player_id: int) -> CommandResult:
        with self._lock:
            messages = self._config.messages
            result = self._result
            if result is None:
                return self._reject(player_id, "nothing_to_claim", messages.nothing_to_claim)
            if not result.winners:
                return self._reject(player_id, "no_winners", messages.no_winners_to_claim)
            if result.dry_run:
                return self._reject(player_id, "dry_run", messages.dry_run_claim_denied)
            if player_id not in result.winners:
                return self._reject(player_id, "not_winner", messages.not_winner)
            if player_id in result.claimed:
                return self._reject(player_id, "already_claimed", messages.already_claimed)

            reward = self._config.reward
            try:
                granted = bool(self._grantor.grant(player_id, reward))
            except Exception:
                self._logger.exception("Reward grant raised for player %s", player_id)
                granted = False
            if not granted:
                self._logger.warning("Reward grant failed for player %s (round %s)", player_id, result.round_id)
                return self._reject(player_id, "grant_failed", messages.grant_failed)

            result.claimed.append(player_id)
            self._persist_result()
            announcement = render_template(
                messages.claimed,
                player=self._names.label(player_id),
                credits=reward.credits,
            )
            self._broadcast(announcement)
            self._logger.info("Player %s claimed %s credits for round %s", player_id, reward.credits, result.round_id)
            return CommandResult(status="ok", message=announcement)

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    def force_start(self) -> bool:
        with self._lock:
            if self._round.phase is not Phase.IDLE:
                return False
            self._begin_joining(self._clock(), is_dry_run=False, starter_id=None)
            return True

    def force_dry_run(self, starter_id: int | None) -> bool:
        with self._lock:
            if self._round.phase is not Phase.IDLE:
                return False
            self._begin_joining(self._clock(), is_dry_run=True, starter_id=starter_id)
            return True

    def force_stop(self) -> None:
        with self._lock:
            previous = self._round.phase
            self._round = Round()
            self._broadcast(self._config.messages.aborted)
            self._logger.info("Round aborted by admin (was %s)", previous.value)

    def reload(self, config: TriviaConfig | None = None, bank: QuestionBank | None = None) -> None:
        with self._lock:
            if config is not None:
                self._config = config
                if config.recency_capacity != self._recent.capacity:
                    resized: RecentlyUsedIds[str] = RecentlyUsedIds(config.recency_capacity)
                    resized.push_many(reversed(list(self._recent)))
                    self._recent = resized
            if bank is not None:
                self._bank = bank

    def set_reward_credits(self, credits: int) -> None:
        if credits < 0:
            raise ValueError("reward credits must be >= 0")
        with self._lock:
            self._config.reward.credits = int(credits)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enroll(self, player_id: int) -> None:
        r = self._round
        r.joined_players.add(player_id)
        r.score_per_player[player_id] = 0
        self._names.prefetch(player_id)

    def _dry_run_tag(self) -> str:
        return self._config.messages.dry_run_tag if self._round.is_dry_run else ""

    def _reject(self, player_id: int, status: str, message: str) -> CommandResult:
        self._send_private(player_id, message)
        return CommandResult(status=status, message=message)

    def _load_result(self) -> PersistedRoundResult | None:
        if self._result_repo is None:
            return None
        try:
            return self._result_repo.load()
        except Exception:
            self._logger.exception("Could not load persisted round result")
            return None

    def _persist_result(self) -> None:
        if self._result_repo is None or self._result is None:
            return
        try:
            self._result_repo.save(self._result)
        except Exception:
            self._logger.exception("Could not persist round result %s", self._result.round_id)

    def _broadcast(self, text: str) -> None:
        try:
            self._messenger.broadcast(text)
        except Exception:
            self._logger.warning("Broadcast failed: %r", text, exc_info=True)

    def _send_private(self, player_id: int, text: str) -> None:
        try:
            self._messenger.send_private(player_id, text)
        except Exception:
            self._logger.warning("Private message to %s failed", player_id, exc_info=True)
