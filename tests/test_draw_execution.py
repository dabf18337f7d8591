from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from luckydraw.draw import DrawOrchestrator
from luckydraw.errors import (
    ConfigNotFound,
    DrawNotScheduled,
    NoEntries,
)
from luckydraw.models import Base, DrawConfiguration, Entry, Winner
from luckydraw.stores import MappingPhotoLookup, PhotoDisplayInfo
from luckydraw.testing import SeededRandomSource
from luckydraw.workflows import (
    cancel_draw,
    create_configuration,
    create_entry,
    execute_draw,
    list_winners,
)

EVENT = "event-1"


class KeepOrderSource:
    """Random source that never swaps, so the pool keeps insertion order."""

    def randbelow(self, upper: int) -> int:
        return upper - 1


class FailingPhotoLookup:
    def get_display_info(self, photo_id: str):
        raise RuntimeError("photo service unavailable")


class DrawExecutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _configure(self, session, tiers=None, **kwargs) -> DrawConfiguration:
        if tiers is None:
            tiers = [
                {"tier": "grand", "name": "Trip", "count": 1},
                {"tier": "first", "name": "Camera", "count": 2},
            ]
        return create_configuration(session, EVENT, tiers, **kwargs)

    def _enter(self, session, count: int, *, prefix: str = "fp") -> list[Entry]:
        return [
            create_entry(session, EVENT, f"{prefix}-{i}", participant_name=f"P{i}")
            for i in range(count)
        ]

    def test_ten_distinct_entries_yield_three_winners(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            self._enter(session, 10)

            execution = execute_draw(
                session, config.id, random_source=SeededRandomSource("ten")
            )

            self.assertEqual(len(execution.winners), 3)
            self.assertEqual(execution.statistics.total_entries, 10)
            self.assertEqual(execution.statistics.eligible_entries, 10)
            self.assertEqual(execution.statistics.winners_selected, 3)
            self.assertEqual(config.status, "completed")
            self.assertIsNotNone(config.completed_at)

            non_winners = session.scalars(
                select(Entry).where(Entry.config_id == config.id, Entry.is_winner.is_(False))
            ).all()
            self.assertEqual(len(non_winners), 7)

            tiers = sorted(w.prize_tier for w in execution.winners)
            self.assertEqual(tiers, ["first", "first", "grand"])
            for winner in execution.winners:
                self.assertEqual(winner.entry.prize_tier, winner.prize_tier)
                self.assertTrue(winner.entry.is_winner)

    def test_under_filled_tiers_are_not_an_error(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            self._enter(session, 2)

            execution = execute_draw(session, config.id)

            self.assertEqual(execution.statistics.winners_selected, 2)
            self.assertEqual(
                sorted(w.prize_tier for w in execution.winners), ["first", "grand"]
            )
            self.assertEqual(config.status, "completed")

    def test_grand_is_filled_before_consolation_regardless_of_declaration(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(
                session,
                tiers=[
                    {"tier": "consolation", "name": "Sticker", "count": 1},
                    {"tier": "grand", "name": "Trip", "count": 1},
                ],
            )
            entries = self._enter(session, 2)

            execution = execute_draw(session, config.id, random_source=KeepOrderSource())

            by_order = sorted(execution.winners, key=lambda w: w.selection_order)
            self.assertEqual([w.prize_tier for w in by_order], ["grand", "consolation"])
            self.assertEqual(by_order[0].entry_id, entries[0].id)
            self.assertEqual([w.selection_order for w in by_order], [1, 2])

    def test_no_entry_is_used_twice(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(
                session,
                tiers=[
                    {"tier": "grand", "name": "Trip", "count": 2},
                    {"tier": "second", "name": "Mug", "count": 5},
                ],
                max_entries_per_user=3,
                prevent_duplicate_winners=False,
            )
            for i in range(4):
                for _ in range(3):
                    create_entry(session, EVENT, f"fp-{i}")

            execution = execute_draw(session, config.id)

            entry_ids = [w.entry_id for w in execution.winners]
            self.assertEqual(len(entry_ids), len(set(entry_ids)))
            self.assertEqual(len(entry_ids), 7)
            self.assertEqual(execution.statistics.eligible_entries, 12)

    def test_duplicate_suppression_allows_one_win_per_identity(self) -> None:
        for seed in ("a", "b", "c", "d", "e"):
            with self.subTest(seed=seed), self.Session.begin() as session:
                event = f"dup-{seed}"
                config = create_configuration(
                    session,
                    event,
                    [{"tier": "consolation", "name": "Pen", "count": 6}],
                    max_entries_per_user=3,
                    prevent_duplicate_winners=True,
                )
                for identity in ("alice", "bob"):
                    for _ in range(3):
                        create_entry(session, event, identity)

                execution = execute_draw(
                    session, config.id, random_source=SeededRandomSource(seed)
                )

                identities = [w.entry.participant_identity for w in execution.winners]
                self.assertEqual(sorted(identities), ["alice", "bob"])
                self.assertEqual(execution.statistics.total_entries, 6)
                self.assertEqual(execution.statistics.eligible_entries, 2)

    def test_second_execute_fails_with_draw_not_scheduled(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            self._enter(session, 5)
            execute_draw(session, config.id)

            with self.assertRaises(DrawNotScheduled):
                execute_draw(session, config.id)

            self.assertEqual(len(list_winners(session, EVENT)), 3)

    def test_missing_configuration(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ConfigNotFound):
                execute_draw(session, 999)

    def test_no_entries_leaves_configuration_scheduled(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            with self.assertRaises(NoEntries) as ctx:
                execute_draw(session, config.id)
            self.assertEqual(ctx.exception.code, "NO_ENTRIES")
            self.assertEqual(config.status, "scheduled")

    def test_selection_order_continues_across_configurations(self) -> None:
        with self.Session.begin() as session:
            first = self._configure(session)
            self._enter(session, 4, prefix="first")
            execute_draw(session, first.id)

            second = self._configure(
                session, tiers=[{"tier": "second", "name": "Mug", "count": 2}]
            )
            self._enter(session, 3, prefix="second")
            execution = execute_draw(session, second.id)

            orders = sorted(w.selection_order for w in execution.winners)
            self.assertEqual(orders, [4, 5])
            all_orders = [w.selection_order for w in list_winners(session, EVENT)]
            self.assertEqual(all_orders, [1, 2, 3, 4, 5])

    def test_winner_display_fields_use_photo_fallbacks(self) -> None:
        photos = MappingPhotoLookup(
            {
                "p-1": PhotoDisplayInfo(name="From Photo", image_url="https://img/1.jpg"),
                "p-2": PhotoDisplayInfo(name=None, image_url=None),
            }
        )
        with self.Session.begin() as session:
            config = self._configure(
                session, tiers=[{"tier": "third", "name": "Cap", "count": 3}]
            )
            create_entry(session, EVENT, "fp-a", photo_id="p-1")
            create_entry(session, EVENT, "fp-b", photo_id="p-2", participant_name="Named")
            create_entry(session, EVENT, "fp-c")

            execution = execute_draw(
                session,
                config.id,
                random_source=KeepOrderSource(),
                photo_lookup=photos,
            )

            fields = [
                (w.participant_name, w.display_image_url)
                for w in sorted(execution.winners, key=lambda w: w.selection_order)
            ]
            self.assertEqual(
                fields,
                [
                    ("From Photo", "https://img/1.jpg"),
                    ("Named", ""),
                    ("Anonymous", ""),
                ],
            )

    def test_failure_after_status_flip_rolls_back_with_caller_transaction(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            create_entry(session, EVENT, "fp-a", photo_id="p-1")
            config_id = config.id

        with self.assertRaises(RuntimeError):
            with self.Session.begin() as session:
                execute_draw(session, config_id, photo_lookup=FailingPhotoLookup())

        with self.Session() as session:
            stored = session.get(DrawConfiguration, config_id)
            self.assertEqual(stored.status, "scheduled")
            self.assertEqual(session.scalars(select(Winner)).all(), [])
            entry = session.scalars(select(Entry)).one()
            self.assertFalse(entry.is_winner)
            self.assertIsNone(entry.prize_tier)

    def test_cancel_only_from_scheduled(self) -> None:
        with self.Session.begin() as session:
            config = self._configure(session)
            self._enter(session, 2)

            cancel_draw(session, config.id, "venue closed")
            self.assertEqual(config.status, "cancelled")
            self.assertEqual(config.cancellation_reason, "venue closed")

            with self.assertRaises(DrawNotScheduled):
                cancel_draw(session, config.id, "again")
            with self.assertRaises(DrawNotScheduled):
                execute_draw(session, config.id)

            entries = session.scalars(select(Entry)).all()
            self.assertTrue(all(not e.is_winner for e in entries))

    def test_cancel_missing_configuration(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ConfigNotFound):
                cancel_draw(session, 12345, "nope")


class ConcurrentExecutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tmpdir.name) / "draw.db"
        self.engine = create_engine(f"sqlite+pysqlite:///{db_path}", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()

    def test_losing_caller_sees_draw_not_scheduled(self) -> None:
        with self.Session.begin() as session:
            config = create_configuration(
                session, EVENT, [{"tier": "grand", "name": "Trip", "count": 1}]
            )
            for i in range(5):
                create_entry(session, EVENT, f"fp-{i}")
            config_id = config.id

        slow = self.Session()
        try:
            # The slow caller has already observed the scheduled status.
            stale = slow.get(DrawConfiguration, config_id)
            self.assertEqual(stale.status, "scheduled")

            with self.Session.begin() as fast:
                execute_draw(fast, config_id)

            with self.assertRaises(DrawNotScheduled):
                DrawOrchestrator(slow).execute(config_id)
            slow.rollback()
        finally:
            slow.close()

        with self.Session() as session:
            winners = session.scalars(select(Winner)).all()
            self.assertEqual(len(winners), 1)
            self.assertEqual(
                session.get(DrawConfiguration, config_id).status, "completed"
            )


if __name__ == "__main__":
    unittest.main()
